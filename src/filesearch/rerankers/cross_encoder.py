"""Cross-encoder reranker using sentence-transformers.

Cross-encoders jointly encode query and document for more accurate
relevance scoring compared to bi-encoders. Only the top candidates are
scored; the rest keep their fused order behind them.

The model is loaded lazily, at most once per process. Concurrent first
callers await the same load task. A failed load, or a model whose output
is not one score per pair, disables reranking for the rest of the process.
"""

import asyncio
import logging
from collections.abc import Callable
from functools import lru_cache
from typing import Any

from sentence_transformers import CrossEncoder

from filesearch.config import get_settings
from filesearch.rerankers.base import UnexpectedShape, parse_scores
from filesearch.retrieval.types import RankedHit

logger = logging.getLogger(__name__)

ModelLoader = Callable[[], Any]


class CrossEncoderReranker:
    """Lazily loaded, self-disabling cross-encoder reranker.

    Attributes:
        model_name: HuggingFace model name.
        batch_size: Batch size for inference.
        device: Device for inference; auto-detected by sentence-transformers if None.
        disabled: Set permanently after a failed load or a bad output shape.
    """

    def __init__(
        self,
        model_name: str = "cross-encoder/ms-marco-MiniLM-L-6-v2",
        batch_size: int = 16,
        device: str | None = None,
        max_length: int = 512,
        loader: ModelLoader | None = None,
    ) -> None:
        """Initialize reranker without loading the model.

        Args:
            model_name: HuggingFace model name.
            batch_size: Batch size for inference.
            device: Device for inference (cuda, cpu, mps).
            max_length: Maximum sequence length for input.
            loader: Zero-argument callable returning an object with a
                ``predict(pairs, **kwargs)`` method. Defaults to building a
                sentence-transformers ``CrossEncoder``.
        """
        self.model_name = model_name
        self.batch_size = batch_size
        self.device = device
        self.max_length = max_length
        self._loader = loader or self._load_cross_encoder
        self._model: Any = None
        self._load_task: asyncio.Task[Any] | None = None
        self.disabled = False

    def _load_cross_encoder(self) -> Any:
        return CrossEncoder(self.model_name, device=self.device, max_length=self.max_length)

    async def _load(self) -> Any:
        try:
            logger.info(f"Loading cross-encoder model: {self.model_name}")
            model = await asyncio.to_thread(self._loader)
        except Exception as e:
            logger.error(f"Failed to load reranker model '{self.model_name}': {e}")
            self.disabled = True
            return None

        logger.info("Reranker model loaded successfully")
        self._model = model
        return model

    async def get_model(self) -> Any:
        """Return the loaded model, loading it on first use.

        Concurrent callers share one in-flight load. Returns None once the
        reranker is disabled.
        """
        if self.disabled:
            return None
        if self._model is not None:
            return self._model
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load())
        try:
            return await asyncio.shield(self._load_task)
        finally:
            if self._load_task is not None and self._load_task.done():
                self._load_task = None

    def _predict(self, model: Any, pairs: list[list[str]]) -> Any:
        return model.predict(
            pairs,
            batch_size=self.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
        )

    async def rerank(self, query: str, hits: list[RankedHit], top_k: int = 20) -> list[RankedHit]:
        """Rerank the top ``top_k`` hits; the remainder follows unchanged.

        Args:
            query: The search query.
            hits: Fused hits, best first.
            top_k: Number of leading hits to score.

        Returns:
            Reranked hits carrying cross-encoder scores, followed by the
            unscored remainder. The input unchanged when the reranker is
            disabled or scoring fails.
        """
        if not hits or self.disabled:
            return hits

        model = await self.get_model()
        if model is None:
            return hits

        limit = min(top_k, len(hits))
        to_rerank = hits[:limit]
        remainder = hits[limit:]
        pairs = [[query, hit.text] for hit in to_rerank]

        try:
            output = await asyncio.to_thread(self._predict, model, pairs)
        except Exception as e:
            logger.error(f"Reranking failed, keeping fused order: {e}", exc_info=True)
            return hits

        parsed = parse_scores(output, expected=len(pairs))
        if isinstance(parsed, UnexpectedShape):
            if not self.disabled:
                self.disabled = True
                logger.warning(
                    f"Unexpected reranker output ({parsed.description}); '{self.model_name}' "
                    "may not be a cross-encoder. Reranking disabled for this process."
                )
            return hits

        rescored = [
            hit.model_copy(update={"score": score})
            for hit, score in zip(to_rerank, parsed.scores, strict=True)
        ]
        reranked = sorted(rescored, key=lambda h: h.score, reverse=True)
        logger.info(f"Reranked {len(reranked)} results")
        return [*reranked, *remainder]


@lru_cache(maxsize=1)
def get_cross_encoder_reranker() -> CrossEncoderReranker:
    """Get singleton reranker instance configured from settings."""
    settings = get_settings()
    return CrossEncoderReranker(
        model_name=settings.rerank_model,
        batch_size=settings.reranker_batch_size,
        device=settings.reranker_device,
    )
