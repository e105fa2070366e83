"""Dense text embedder using sentence-transformers."""

import logging
from typing import Any

from sentence_transformers import SentenceTransformer  # type: ignore

from filesearch.embedders.base import BaseEmbedder

logger = logging.getLogger(__name__)

# BGE models expect this instruction in front of queries but not documents.
BGE_QUERY_PREFIX = "Represent this sentence for searching relevant passages: "


class TextEmbedder(BaseEmbedder):
    """Dense text embedder using sentence-transformers.

    Uses BAAI/bge-small-en-v1.5 by default (384 dimensions). Embeddings are
    unit-normalized by the model so cosine distance behaves as expected.
    """

    def __init__(
        self,
        model_name: str = "BAAI/bge-small-en-v1.5",
        device: str = "cpu",
        batch_size: int = 32,
        normalize_embeddings: bool = True,
        **kwargs: Any,
    ) -> None:
        """Initialize text embedder.

        Args:
                model_name: HuggingFace model identifier.
                device: Device for inference (cpu, cuda, mps).
                batch_size: Batch size for batch operations.
                normalize_embeddings: Whether to normalize embeddings to unit length.
                **kwargs: Additional sentence-transformers arguments.
        """
        super().__init__(model_name, device, batch_size)
        self.normalize_embeddings = normalize_embeddings
        self._model_kwargs = kwargs
        self._embedding_dim = 0
        self._query_prefix = BGE_QUERY_PREFIX if "bge" in model_name.lower() else ""

    def _load_model(self) -> None:
        """Load sentence-transformers model."""
        self._model = SentenceTransformer(
            self.model_name,
            device=self.device,
            **self._model_kwargs,
        )
        self._embedding_dim = self._model.get_sentence_embedding_dimension()
        logger.info(
            f"Loaded {self.model_name} with {self._embedding_dim} dimensions "
            f"on device {self.device}"
        )

    def _add_prefix(self, text: str, is_query: bool) -> str:
        if is_query and self._query_prefix:
            return f"{self._query_prefix}{text}"
        return text

    def _embed_sync(self, text: str, is_query: bool = True) -> list[float]:
        if not self._model:
            raise RuntimeError("Model not loaded. Call load() first.")

        embedding = self._model.encode(
            self._add_prefix(text, is_query),
            normalize_embeddings=self.normalize_embeddings,
            convert_to_numpy=True,
        )
        result: list[float] = embedding.tolist()
        return result

    def _embed_batch_sync(self, texts: list[str], is_query: bool = True) -> list[list[float]]:
        if not self._model:
            raise RuntimeError("Model not loaded. Call load() first.")

        embeddings = self._model.encode(
            [self._add_prefix(text, is_query) for text in texts],
            batch_size=self.batch_size,
            normalize_embeddings=self.normalize_embeddings,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        result: list[list[float]] = embeddings.tolist()
        return result

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the embedding vector (0 before loading)."""
        return self._embedding_dim
