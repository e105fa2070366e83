"""Wiring of the store, embedders, indexer and search router."""

import logging

from filesearch.chunking.tokens import Tokenizer, get_tokenizer
from filesearch.clients.qdrant import QdrantVectorStore
from filesearch.clients.vectorstore import VectorStore
from filesearch.config import SearchConfig, Settings
from filesearch.embedders.base import DenseEmbedder
from filesearch.embedders.text import TextEmbedder
from filesearch.indexing.indexer import FileIndexer
from filesearch.rerankers.cross_encoder import CrossEncoderReranker, get_cross_encoder_reranker
from filesearch.retrieval.dense import DenseSearcher
from filesearch.retrieval.expansion import QueryExpander
from filesearch.retrieval.hybrid import HybridRetriever
from filesearch.retrieval.lexical import LexicalSearcher
from filesearch.retrieval.router import SearchRouter
from filesearch.retrieval.types import RankedHit, SearchOptions
from filesearch.services.schema_manager import CollectionManager

logger = logging.getLogger(__name__)


class FileSearchService:
    """Indexing and search over per-agent collections.

    Example:
            >>> service = await FileSearchService.create(get_settings())
            >>> await service.indexer.index_file("agent-1", "docs", "/a/b.py", text, "b.py")
            >>> hits = await service.search("agent-1", "parseConfig")
            >>> await service.close()
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: DenseEmbedder,
        settings: Settings,
        config: SearchConfig | None = None,
        reranker: CrossEncoderReranker | None = None,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.settings = settings
        self.config = config or settings.search_config()

        self.manager = CollectionManager(store, settings)
        self.indexer = FileIndexer(self.manager, embedder, self.config, tokenizer=tokenizer)
        self.dense = DenseSearcher(self.manager, embedder)
        self.lexical = LexicalSearcher(self.manager)
        self.retriever = HybridRetriever(
            self.dense,
            self.lexical,
            self.config,
            expander=QueryExpander(),
            reranker=reranker,
        )
        self.router = SearchRouter(self.retriever, self.dense, self.config)

    @classmethod
    async def create(cls, settings: Settings) -> "FileSearchService":
        """Connect to Qdrant and build the default embedder and reranker."""
        store = QdrantVectorStore(settings)
        await store.connect()
        embedder = TextEmbedder(
            model_name=settings.embedder_model,
            device=settings.embedder_device,
            batch_size=settings.embedder_batch_size,
        )
        reranker = get_cross_encoder_reranker() if settings.enable_reranking else None
        tokenizer = get_tokenizer(settings.tokenizer_encoding)
        return cls(store, embedder, settings, reranker=reranker, tokenizer=tokenizer)

    async def search(
        self, agent_id: str, query: str, options: SearchOptions | None = None
    ) -> list[RankedHit]:
        return await self.router.search(agent_id, query, options)

    async def search_multiple_agents(
        self, agent_ids: list[str], query: str, options: SearchOptions | None = None
    ) -> list[RankedHit]:
        return await self.router.search_multiple_agents(agent_ids, query, options)

    async def close(self) -> None:
        unload = getattr(self.embedder, "unload", None)
        if unload is not None:
            await unload()
        await self.store.close()
        logger.info("File search service closed")
