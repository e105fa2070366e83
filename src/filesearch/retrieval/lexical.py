"""Lexical (keyword) search over the hashed lexical vector column."""

import asyncio
import logging
from functools import lru_cache

from filesearch.clients.vectorstore import CollectionHandle, DistanceMetric
from filesearch.embedders.lexical import LexicalEncoder, get_lexical_encoder
from filesearch.retrieval.constants import LEXICAL_FIELD
from filesearch.retrieval.dense import folder_filter
from filesearch.retrieval.fusion import merge_hits_by_score
from filesearch.retrieval.types import RankedHit
from filesearch.services.schema_manager import CollectionManager

logger = logging.getLogger(__name__)


class WarnOnceRegistry:
    """Keys that have already produced a warning.

    Adding a key is idempotent, so concurrent searches need no lock.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def first_time(self, key: str) -> bool:
        """Record ``key`` and return True only the first time it is seen."""
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def clear(self) -> None:
        self._seen.clear()


@lru_cache(maxsize=1)
def get_missing_column_registry() -> WarnOnceRegistry:
    """Collections already warned about for lacking the lexical column."""
    return WarnOnceRegistry()


class LexicalSearcher:
    """Nearest-neighbor search on the lexical vector column.

    Collections created before hybrid search have no lexical column; they
    are treated as an unavailable channel and warned about once each.
    """

    def __init__(
        self,
        manager: CollectionManager,
        encoder: LexicalEncoder | None = None,
        warned: WarnOnceRegistry | None = None,
    ) -> None:
        self.manager = manager
        self.encoder = encoder or get_lexical_encoder()
        self.warned = warned if warned is not None else get_missing_column_registry()

    async def search(
        self,
        agent_id: str,
        query: str,
        top_k: int = 10,
        min_score: float = 0.0,
        folder_ids: list[str] | None = None,
    ) -> list[RankedHit]:
        """Search one query; see :meth:`search_many`."""
        return await self.search_many(agent_id, [query], top_k, min_score, folder_ids)

    async def search_many(
        self,
        agent_id: str,
        queries: list[str],
        top_k: int = 10,
        min_score: float = 0.0,
        folder_ids: list[str] | None = None,
    ) -> list[RankedHit]:
        """Search every query variant concurrently and keep each id's best score.

        Args:
            agent_id: Agent whose collection is searched.
            queries: Query variants.
            top_k: Maximum number of hits.
            min_score: Minimum cosine similarity between lexical vectors.
            folder_ids: Optional folder allow-list.

        Returns:
            Hits sorted by descending score; empty when the collection or
            its lexical column is missing, or on any failure.
        """
        try:
            handle = await self.manager.open(agent_id)
            if handle is None:
                return []

            if LEXICAL_FIELD not in await handle.schema():
                self._warn_missing_column(handle.name)
                return []

            results = await asyncio.gather(
                *(self._query(handle, query, top_k, min_score, folder_ids) for query in queries)
            )
        except Exception as e:
            logger.error(f"Lexical search failed for agent '{agent_id}': {e}", exc_info=True)
            return []

        return merge_hits_by_score([hit for hits in results for hit in hits])[:top_k]

    async def _query(
        self,
        handle: CollectionHandle,
        query: str,
        top_k: int,
        min_score: float,
        folder_ids: list[str] | None,
    ) -> list[RankedHit]:
        vector = self.encoder.encode(query)
        if not any(vector):
            # Only stop words or punctuation: nothing to match on.
            return []

        neighbors = await handle.nearest_neighbors(
            vector,
            LEXICAL_FIELD,
            metric=DistanceMetric.COSINE,
            limit=top_k,
            where=folder_filter(folder_ids),
        )
        hits = [RankedHit.from_row(n.row, score=1.0 - n.distance) for n in neighbors]
        return [hit for hit in hits if hit.score >= min_score]

    def _warn_missing_column(self, collection_name: str) -> None:
        if self.warned.first_time(collection_name):
            logger.warning(
                f"Collection '{collection_name}' is missing '{LEXICAL_FIELD}'. "
                "Re-index all folders for this agent to enable hybrid search."
            )
