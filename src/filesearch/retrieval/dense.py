"""Dense (semantic) search over an agent collection."""

import asyncio
import logging

from filesearch.clients.vectorstore import DistanceMetric, FieldMatch
from filesearch.embedders.base import DenseEmbedder, normalize_embedding
from filesearch.retrieval.constants import DENSE_FIELD, FOLDER_FIELD
from filesearch.retrieval.fusion import merge_hits_by_score
from filesearch.retrieval.types import RankedHit
from filesearch.services.schema_manager import CollectionManager

logger = logging.getLogger(__name__)


def folder_filter(folder_ids: list[str] | None) -> list[FieldMatch] | None:
    """Equality filter restricting hits to the given folders."""
    if not folder_ids:
        return None
    return [FieldMatch.any_of(FOLDER_FIELD, folder_ids)]


class DenseSearcher:
    """Nearest-neighbor search on the dense vector column.

    The query is embedded and L2-normalized exactly like indexed chunks,
    searched with cosine distance, and scored as ``1 - distance``.
    """

    def __init__(self, manager: CollectionManager, embedder: DenseEmbedder) -> None:
        self.manager = manager
        self.embedder = embedder

    async def search(
        self,
        agent_id: str,
        query: str,
        top_k: int = 10,
        min_score: float = 0.3,
        folder_ids: list[str] | None = None,
        with_embeddings: bool = False,
    ) -> list[RankedHit]:
        """Search one query.

        Args:
            agent_id: Agent whose collection is searched.
            query: Query text.
            top_k: Maximum number of hits.
            min_score: Minimum cosine similarity.
            folder_ids: Optional folder allow-list.
            with_embeddings: Attach each hit's stored embedding.

        Returns:
            Hits sorted by descending score; empty on any failure.
        """
        if not query.strip():
            return []

        try:
            handle = await self.manager.open(agent_id)
            if handle is None:
                logger.info(f"Collection for agent '{agent_id}' not found")
                return []

            query_vector = normalize_embedding(await self.embedder.embed(query, is_query=True))
            neighbors = await handle.nearest_neighbors(
                query_vector,
                DENSE_FIELD,
                metric=DistanceMetric.COSINE,
                limit=top_k,
                where=folder_filter(folder_ids),
                with_vectors=with_embeddings,
            )
        except Exception as e:
            logger.error(f"Dense search failed for agent '{agent_id}': {e}", exc_info=True)
            return []

        hits = [
            RankedHit.from_row(
                neighbor.row,
                score=1.0 - neighbor.distance,
                embedding=neighbor.vectors.get(DENSE_FIELD),
            )
            for neighbor in neighbors
        ]
        hits = [hit for hit in hits if hit.score >= min_score]
        hits.sort(key=lambda h: h.score, reverse=True)

        logger.debug(
            f"Dense search returned {len(hits)}/{len(neighbors)} hits (min_score={min_score})"
        )
        return hits[:top_k]

    async def search_many(
        self,
        agent_id: str,
        queries: list[str],
        top_k: int = 10,
        min_score: float = 0.3,
        folder_ids: list[str] | None = None,
        with_embeddings: bool = False,
    ) -> list[RankedHit]:
        """Search every query variant concurrently and keep each id's best score."""
        results = await asyncio.gather(
            *(
                self.search(agent_id, query, top_k, min_score, folder_ids, with_embeddings)
                for query in queries
            )
        )
        return merge_hits_by_score([hit for hits in results for hit in hits])[:top_k]
