"""Retrieval pipeline for agent file search.

This package provides:
- Dense and lexical search adapters (``retrieval.dense``, ``retrieval.lexical``)
- Reciprocal Rank Fusion and MMR diversification
- Synonym query expansion with an LRU + TTL cache
- The hybrid orchestrator and the rollout router
  (``retrieval.hybrid``, ``retrieval.router``)

Only the dependency-free building blocks are re-exported here; the
searchers depend on the collection manager and are imported from their
modules.
"""

from filesearch.retrieval.constants import (
    DEFAULT_MIN_SCORE,
    DEFAULT_TOP_K,
    DENSE_FIELD,
    FOLDER_FIELD,
    LEXICAL_FIELD,
    SENTINEL_ID,
)
from filesearch.retrieval.expansion import (
    ExpansionCache,
    QueryExpander,
    clear_expansion_cache,
    expand_query,
)
from filesearch.retrieval.fusion import (
    cosine_similarity,
    fuse_dense_lexical,
    merge_hits_by_score,
    mmr_diversify,
    rrf_fusion,
    sort_by_fused_score,
)
from filesearch.retrieval.types import RankedHit, SearchOptions, VectorRecord

__all__ = [
    # Types
    "RankedHit",
    "SearchOptions",
    "VectorRecord",
    # Fusion
    "cosine_similarity",
    "fuse_dense_lexical",
    "merge_hits_by_score",
    "mmr_diversify",
    "rrf_fusion",
    "sort_by_fused_score",
    # Expansion
    "ExpansionCache",
    "QueryExpander",
    "clear_expansion_cache",
    "expand_query",
    # Constants
    "DEFAULT_MIN_SCORE",
    "DEFAULT_TOP_K",
    "DENSE_FIELD",
    "FOLDER_FIELD",
    "LEXICAL_FIELD",
    "SENTINEL_ID",
]
