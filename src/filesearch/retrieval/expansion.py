"""Synonym-based query expansion with a bounded, time-limited cache.

Code search queries often use a different verb or noun than the code they
are looking for (``get user`` vs ``fetchAccount``). Expansion substitutes
domain synonyms into the query and runs every variant.
"""

import logging
import re
import time
from collections import OrderedDict
from collections.abc import Callable
from functools import lru_cache
from typing import Any

from filesearch.config import get_settings

logger = logging.getLogger(__name__)

CODE_SYNONYMS: dict[str, tuple[str, ...]] = {
    "function": ("method", "fn", "func"),
    "class": ("type", "interface", "struct"),
    "get": ("fetch", "retrieve", "read", "load"),
    "set": ("update", "write", "save", "store"),
    "delete": ("remove", "destroy", "drop"),
    "create": ("new", "add", "insert", "make"),
    "user": ("account", "member", "profile"),
    "auth": ("authentication", "login", "signin"),
    "error": ("exception", "failure", "issue"),
    "config": ("configuration", "settings", "options"),
}
"""Domain term to substitutes, matched as a case-insensitive substring."""

MAX_VARIANTS = 3
"""Maximum number of substituted variants added after the original query."""

DEFAULT_THRESHOLD = 0.7


class ExpansionCache:
    """In-process LRU cache with TTL support and size limits."""

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: OrderedDict[str, tuple[Any, float]] = OrderedDict()

    def get(self, key: str) -> Any | None:
        """Get value from cache if present and not expired."""
        if key not in self._cache:
            return None

        value, expiry = self._cache[key]
        if self._clock() > expiry:
            del self._cache[key]
            return None

        # Move to end (most recently used)
        self._cache.move_to_end(key)
        return value

    def put(self, key: str, value: Any) -> None:
        """Put value in cache with TTL."""
        expiry = self._clock() + self.ttl_seconds

        if key in self._cache:
            self._cache[key] = (value, expiry)
            self._cache.move_to_end(key)
            return

        if len(self._cache) >= self.max_size:
            self._cache.popitem(last=False)
        self._cache[key] = (value, expiry)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


def code_expansions(query: str, max_variants: int = MAX_VARIANTS) -> list[str]:
    """Substituted variants of ``query`` for every synonym key it contains.

    Args:
        query: Original query text.
        max_variants: Cap on the number of variants returned.

    Returns:
        Variants in dictionary order, at most ``max_variants``.
    """
    lower_query = query.lower()
    expansions: list[str] = []
    for key, substitutes in CODE_SYNONYMS.items():
        if key not in lower_query:
            continue
        pattern = re.compile(re.escape(key), re.IGNORECASE)
        expansions.extend(pattern.sub(lambda _, s=sub: s, query) for sub in substitutes)
        if len(expansions) >= max_variants:
            break
    return expansions[:max_variants]


class QueryExpander:
    """Expands queries into deduplicated variants, original first.

    Attributes:
        cache: Expansion cache keyed by ``query:threshold``.
        max_variants: Cap on substituted variants per query.
    """

    def __init__(self, cache: ExpansionCache | None = None, max_variants: int = MAX_VARIANTS):
        self.cache = cache if cache is not None else get_expansion_cache()
        self.max_variants = max_variants

    def expand(self, query: str, threshold: float = DEFAULT_THRESHOLD) -> list[str]:
        """Expand a query.

        Args:
            query: Query text.
            threshold: Similarity threshold; part of the cache key.

        Returns:
            The original query followed by unique substituted variants.
        """
        cache_key = f"{query}:{threshold}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        variants = [query, *code_expansions(query, self.max_variants)]
        unique = list(dict.fromkeys(variants))
        self.cache.put(cache_key, tuple(unique))

        if len(unique) > 1:
            logger.debug(f"Expanded query into {len(unique)} variants")
        return unique


@lru_cache(maxsize=1)
def get_expansion_cache() -> ExpansionCache:
    """Get the process-wide expansion cache sized from settings."""
    settings = get_settings()
    return ExpansionCache(
        max_size=settings.expansion_cache_size,
        ttl_seconds=settings.expansion_cache_ttl,
    )


def clear_expansion_cache() -> None:
    """Drop every cached expansion."""
    get_expansion_cache().clear()


def expand_query(query: str, threshold: float = DEFAULT_THRESHOLD) -> list[str]:
    """Expand a query with the process-wide cache."""
    return QueryExpander().expand(query, threshold)
