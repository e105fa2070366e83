"""Base abstract class for dense embedders."""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

import numpy as np
import torch  # type: ignore

logger = logging.getLogger(__name__)


class DenseEmbedder(Protocol):
    """What the retrieval pipeline needs from an embedding model."""

    async def embed(self, text: str, is_query: bool = True) -> list[float]: ...

    async def embed_batch(
        self, texts: list[str], is_query: bool = True
    ) -> list[list[float]]: ...


def normalize_embedding(vector: list[float]) -> list[float]:
    """L2-normalize a dense vector, leaving an all-zero vector unchanged.

    Indexed and query vectors go through the same normalization so that
    ``1 - cosine_distance`` is comparable across both.
    """
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()


class BaseEmbedder(ABC):
    """Abstract base class for local embedder implementations.

    All embedders must:
    - Support async operations (using thread pool for sync models)
    - Implement both single and batch embedding
    - Handle GPU/CPU device management
    """

    def __init__(
        self,
        model_name: str,
        device: str = "cpu",
        batch_size: int = 32,
    ) -> None:
        """Initialize base embedder.

        Args:
                model_name: HuggingFace model identifier.
                device: Device to use for inference (cpu, cuda, mps, auto).
                batch_size: Default batch size for batch operations.
        """
        self.model_name = model_name
        self.device = self._get_device(device)
        self.batch_size = batch_size
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._model: Any = None
        self._model_loaded = False
        self._load_lock = asyncio.Lock()

        logger.info(
            f"Initializing {self.__class__.__name__} with model '{model_name}' "
            f"on device '{self.device}'"
        )

    def _get_device(self, device: str) -> str:
        """Auto-detect and validate device.

        Args:
                device: Requested device (cpu, cuda, mps, auto).

        Returns:
                Validated device string.
        """
        if device == "auto":
            if torch.cuda.is_available():
                return "cuda"
            elif torch.backends.mps.is_available():
                return "mps"
            return "cpu"

        if device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA requested but not available, falling back to CPU")
            return "cpu"

        if device == "mps" and not torch.backends.mps.is_available():
            logger.warning("MPS requested but not available, falling back to CPU")
            return "cpu"

        return device

    @abstractmethod
    def _load_model(self) -> None:
        """Load the embedding model and set ``self._model``."""

    @abstractmethod
    def _embed_sync(self, text: str, is_query: bool = True) -> list[float]:
        """Synchronous embedding of a single text."""

    @abstractmethod
    def _embed_batch_sync(self, texts: list[str], is_query: bool = True) -> list[list[float]]:
        """Synchronous batch embedding."""

    async def embed(self, text: str, is_query: bool = True) -> list[float]:
        """Async embedding of a single text.

        Args:
                text: Text to embed.
                is_query: Whether this is a query (vs document).

        Returns:
                Embedding vector.
        """
        if not self._model_loaded:
            await self.load()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._embed_sync, text, is_query)

    async def embed_batch(self, texts: list[str], is_query: bool = True) -> list[list[float]]:
        """Async batch embedding.

        Args:
                texts: List of texts to embed.
                is_query: Whether these are queries.

        Returns:
                List of embedding vectors.
        """
        if not self._model_loaded:
            await self.load()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._embed_batch_sync, texts, is_query)

    async def load(self) -> None:
        """Load the model once, in the executor thread."""
        async with self._load_lock:
            if self._model_loaded:
                logger.debug(f"Model {self.model_name} already loaded")
                return

            logger.info(f"Loading model {self.model_name}...")
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(self._executor, self._load_model)
            self._model_loaded = True
            logger.info(f"Model {self.model_name} loaded successfully")

    async def unload(self) -> None:
        """Unload the model to free memory."""
        if not self._model_loaded:
            return

        logger.info(f"Unloading model {self.model_name}...")
        self._model = None
        self._model_loaded = False

        if self.device == "cuda":
            torch.cuda.empty_cache()

    @property
    def dimensions(self) -> int:
        """Embedding dimensions, known once the model is loaded."""
        return 0

    def __del__(self) -> None:
        """Cleanup executor on deletion."""
        self._executor.shutdown(wait=False)
