"""Hybrid retrieval: dense + lexical search fused with weighted RRF.

Pipeline per query:
1. Expand the query into synonym variants (optional)
2. Run dense and lexical search concurrently over every variant
3. If either channel came back empty, return the other one
4. Fuse both rankings with Reciprocal Rank Fusion
5. Diversify with MMR (optional)
6. Rerank the top candidates with a cross-encoder (optional)

With hybrid search disabled the retriever is a plain dense search.
"""

import asyncio
import logging

from filesearch.config import SearchConfig
from filesearch.rerankers.cross_encoder import CrossEncoderReranker
from filesearch.retrieval.constants import DEFAULT_MIN_SCORE
from filesearch.retrieval.dense import DenseSearcher
from filesearch.retrieval.expansion import QueryExpander
from filesearch.retrieval.fusion import (
    first_seen_hits,
    fuse_dense_lexical,
    mmr_diversify,
    sort_by_fused_score,
)
from filesearch.retrieval.lexical import LexicalSearcher
from filesearch.retrieval.types import RankedHit, SearchOptions

logger = logging.getLogger(__name__)


class HybridRetriever:
    """Dense + lexical retriever with dense-only fallback.

    Holds no per-query state; the expansion cache and the reranker's loaded
    model are the only things shared between calls.

    Attributes:
        dense: Dense searcher.
        lexical: Lexical searcher.
        expander: Query expander.
        reranker: Optional cross-encoder reranker.
        config: Default feature flag snapshot, used when a call passes none.
    """

    def __init__(
        self,
        dense: DenseSearcher,
        lexical: LexicalSearcher,
        config: SearchConfig,
        expander: QueryExpander | None = None,
        reranker: CrossEncoderReranker | None = None,
    ) -> None:
        self.dense = dense
        self.lexical = lexical
        self.config = config
        self.expander = expander or QueryExpander()
        self.reranker = reranker

    async def search(
        self,
        agent_id: str,
        query: str,
        options: SearchOptions | None = None,
        config: SearchConfig | None = None,
    ) -> list[RankedHit]:
        """Execute a search for one agent.

        Dense candidates are fetched under a loose score floor so fusion sees
        enough of them; when the lexical channel comes back empty the caller's
        ``min_score`` is applied to the dense hits before they are returned.

        Args:
            agent_id: Agent whose collection is searched.
            query: Query text.
            options: Result count, score floor and folder allow-list.
            config: Feature flag snapshot for this call.

        Returns:
            Hits sorted by relevance; never raises for routine failures.

        Raises:
            FusionInvariantError: If a fused id cannot be resolved to a hit.
        """
        options = options or SearchOptions()
        config = config or self.config
        top_k = options.top_k

        if not query.strip():
            return []

        if not config.enable_hybrid_search:
            logger.debug("Hybrid search disabled, running dense search")
            return await self.dense.search(
                agent_id, query, top_k, options.min_score, options.folder_ids
            )

        queries = (
            self.expander.expand(query, config.expansion_threshold)
            if config.enable_query_expansion
            else [query]
        )
        candidate_limit = top_k * config.candidate_multiplier

        dense_hits, lexical_hits = await asyncio.gather(
            self.dense.search_many(
                agent_id,
                queries,
                top_k=candidate_limit,
                min_score=min(options.min_score, DEFAULT_MIN_SCORE),
                folder_ids=options.folder_ids,
                with_embeddings=config.enable_diversification,
            ),
            self.lexical.search_many(
                agent_id,
                queries,
                top_k=candidate_limit,
                min_score=config.lexical_min_score,
                folder_ids=options.folder_ids,
            ),
        )
        logger.debug(f"Hybrid candidates: dense={len(dense_hits)}, lexical={len(lexical_hits)}")

        if not dense_hits:
            return lexical_hits[:top_k]
        if not lexical_hits:
            return [hit for hit in dense_hits if hit.score >= options.min_score][:top_k]

        fused = fuse_dense_lexical(
            dense_hits,
            lexical_hits,
            k=config.rrf_k,
            dense_weight=config.dense_weight,
            lexical_weight=config.lexical_weight,
        )
        hit_map = first_seen_hits(dense_hits, lexical_hits)

        if config.enable_diversification:
            candidates = sort_by_fused_score(fused, hit_map, candidate_limit)
            embeddings = {hit.id: hit.embedding for hit in candidates if hit.embedding}
            results = mmr_diversify(candidates, embeddings, top_k, config.mmr_lambda)
        else:
            results = sort_by_fused_score(fused, hit_map, top_k)

        if config.enable_reranking and self.reranker is not None:
            results = await self.reranker.rerank(query, results, config.rerank_top_k)

        logger.info(f"Hybrid search returned {len(results)} results for agent '{agent_id}'")
        return results
