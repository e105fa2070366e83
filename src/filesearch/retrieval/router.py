"""Search entry point with gradual hybrid rollout.

Each agent is assigned to dense-only or hybrid search by a stable hash of
its id, so the same agent always sees the same algorithm for a given
rollout percentage and raising the percentage only ever adds agents.
"""

import asyncio
import logging

from filesearch.config import SearchConfig
from filesearch.retrieval.dense import DenseSearcher
from filesearch.retrieval.hybrid import HybridRetriever
from filesearch.retrieval.types import RankedHit, SearchOptions
from filesearch.utils.hashing import java_string_hash

logger = logging.getLogger(__name__)


def rollout_bucket(agent_id: str) -> int:
    """Stable bucket in [0, 100) for an agent."""
    return java_string_hash(agent_id) % 100


class RolloutRouter:
    """Decides per agent whether hybrid search is used."""

    def use_hybrid(self, agent_id: str, config: SearchConfig) -> bool:
        """Whether ``agent_id`` is routed to hybrid search.

        Hybrid requires the global flag and ``search_mode == "hybrid"``. An
        unset rollout percentage routes every agent; otherwise an agent is
        routed when its bucket is below the percentage (0 routes none, 100
        routes all).
        """
        if not config.enable_hybrid_search or config.search_mode != "hybrid":
            return False

        percentage = config.hybrid_rollout_percentage
        if percentage is None:
            return True
        return rollout_bucket(agent_id) < percentage


class SearchRouter:
    """Routes searches to the hybrid retriever or plain dense search.

    Attributes:
        retriever: Hybrid retriever.
        dense: Dense searcher for agents outside the rollout.
        rollout: Rollout policy.
        config: Default feature flag snapshot.
    """

    def __init__(
        self,
        retriever: HybridRetriever,
        dense: DenseSearcher,
        config: SearchConfig,
        rollout: RolloutRouter | None = None,
    ) -> None:
        self.retriever = retriever
        self.dense = dense
        self.config = config
        self.rollout = rollout or RolloutRouter()

    async def search(
        self,
        agent_id: str,
        query: str,
        options: SearchOptions | None = None,
        config: SearchConfig | None = None,
    ) -> list[RankedHit]:
        """Search an agent's files.

        Args:
            agent_id: Agent whose collection is searched.
            query: Query text.
            options: Result count, score floor and folder allow-list.
            config: Feature flag snapshot for this call.

        Returns:
            Hits carrying file, chunk and line provenance.
        """
        options = options or SearchOptions()
        config = config or self.config

        if self.rollout.use_hybrid(agent_id, config):
            return await self.retriever.search(agent_id, query, options, config)

        logger.debug(f"Agent '{agent_id}' routed to dense search")
        return await self.dense.search(
            agent_id, query, options.top_k, options.min_score, options.folder_ids
        )

    async def search_multiple_agents(
        self,
        agent_ids: list[str],
        query: str,
        options: SearchOptions | None = None,
        config: SearchConfig | None = None,
    ) -> list[RankedHit]:
        """Search several agents and keep the overall top ``top_k`` hits."""
        options = options or SearchOptions()
        results = await asyncio.gather(
            *(self.search(agent_id, query, options, config) for agent_id in agent_ids)
        )

        hits = [
            hit.model_copy(update={"agent_id": agent_id})
            for agent_id, agent_hits in zip(agent_ids, results, strict=True)
            for hit in agent_hits
        ]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[: options.top_k]
