"""Per-agent collection schema management."""

import logging

from pydantic import BaseModel, Field

from filesearch.clients.vectorstore import CollectionHandle, FieldMatch, Row, VectorStore
from filesearch.config import SearchConfig, Settings
from filesearch.embedders.lexical import LEX_DIM
from filesearch.retrieval.constants import (
    LEXICAL_FIELD,
    SCHEMA_VERSION_DENSE,
    SCHEMA_VERSION_HYBRID,
    SENTINEL_ID,
)
from filesearch.retrieval.types import VectorRecord, now_ms

logger = logging.getLogger(__name__)


class CollectionStats(BaseModel):
    """Row statistics for an agent collection."""

    exists: bool = Field(description="Whether the agent has a collection")
    row_count: int = Field(default=0, description="Number of stored rows")


def build_sentinel_row(dense_dim: int, hybrid_schema: bool) -> Row:
    """Bootstrap row carrying every column the collection should have.

    Args:
        dense_dim: Width of the dense vector column.
        hybrid_schema: Include the lexical column and line provenance.

    Returns:
        Row with zero vectors and empty scalar fields.
    """
    record = VectorRecord(
        id=SENTINEL_ID,
        vector=[0.0] * dense_dim,
        text="",
        file_path="",
        relative_path="",
        folder_id="",
        chunk_index=0,
        token_count=0,
        indexed_at=now_ms(),
        version=SCHEMA_VERSION_DENSE,
    )
    if hybrid_schema:
        record = record.model_copy(
            update={
                "lexical_vector": [0.0] * LEX_DIM,
                "start_line": 0,
                "end_line": 0,
                "token_offset": 0,
                "version": SCHEMA_VERSION_HYBRID,
            }
        )
    return record.to_row()


class CollectionManager:
    """Owns one collection per agent and its schema lifecycle.

    The backing engine infers a collection's schema from its first rows, so
    a new collection is created with a sentinel row that is deleted right
    away. Upgrading an existing dense-only collection to the hybrid schema
    drops and recreates it; the agent's files must then be re-indexed.

    Example:
            >>> manager = CollectionManager(store, settings)
            >>> handle = await manager.ensure("agent-1", dense_dim=384, config=config)
    """

    def __init__(self, store: VectorStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self.prefix = settings.collection_prefix

    def collection_name(self, agent_id: str) -> str:
        """Collection name for an agent (dashes replaced by underscores)."""
        return f"{self.prefix}{agent_id.replace('-', '_')}"

    async def ensure(
        self, agent_id: str, dense_dim: int, config: SearchConfig | None = None
    ) -> CollectionHandle:
        """Open the agent's collection, creating or upgrading it as needed.

        Args:
            agent_id: Agent identifier.
            dense_dim: Width of the dense embeddings that will be stored.
            config: Feature flag snapshot; defaults to the current settings.

        Returns:
            Handle on a collection with no residual sentinel row.
        """
        config = config or self.settings.search_config()
        name = self.collection_name(agent_id)
        hybrid_schema = config.uses_v2_schema

        if await self.store.collection_exists(name):
            handle = await self.store.open_collection(name)
            if not hybrid_schema:
                return handle

            try:
                columns = await handle.schema()
            except Exception as e:
                logger.warning(
                    f"Could not read schema for '{name}', proceeding with existing collection: {e}"
                )
                return handle

            if LEXICAL_FIELD in columns:
                return handle

            logger.warning(
                f"Collection '{name}' lacks '{LEXICAL_FIELD}'; dropping it to upgrade to the "
                f"hybrid schema. Files for agent '{agent_id}' must be re-indexed."
            )
            await self.store.drop_collection(name)

        return await self._create(name, dense_dim, hybrid_schema)

    async def _create(self, name: str, dense_dim: int, hybrid_schema: bool) -> CollectionHandle:
        sentinel = build_sentinel_row(dense_dim, hybrid_schema)
        handle = await self.store.create_collection(name, [sentinel])
        await handle.delete([FieldMatch.equals("id", SENTINEL_ID)])
        logger.info(
            f"Created collection '{name}' (schema v"
            f"{SCHEMA_VERSION_HYBRID if hybrid_schema else SCHEMA_VERSION_DENSE})"
        )
        return handle

    async def open(self, agent_id: str) -> CollectionHandle | None:
        """Open the agent's collection, or None if it does not exist."""
        name = self.collection_name(agent_id)
        if not await self.store.collection_exists(name):
            return None
        return await self.store.open_collection(name)

    async def has_lexical_column(self, handle: CollectionHandle) -> bool:
        """Whether the collection carries lexical vectors.

        Introspection failures are logged and answered with False.
        """
        try:
            return LEXICAL_FIELD in await handle.schema()
        except Exception as e:
            logger.warning(f"Could not read schema for '{handle.name}': {e}")
            return False

    async def delete_agent_collection(self, agent_id: str) -> bool:
        """Drop the agent's collection.

        Returns:
            True if deleted, False if it didn't exist.
        """
        name = self.collection_name(agent_id)
        if not await self.store.collection_exists(name):
            logger.warning(f"Collection '{name}' does not exist, cannot delete")
            return False

        await self.store.drop_collection(name)
        logger.info(f"Deleted collection '{name}'")
        return True

    async def list_agent_collections(self) -> list[str]:
        """Names of all agent collections."""
        names = await self.store.list_collections()
        return [name for name in names if name.startswith(self.prefix)]

    async def collection_stats(self, agent_id: str) -> CollectionStats:
        """Existence and row count of the agent's collection."""
        handle = await self.open(agent_id)
        if handle is None:
            return CollectionStats(exists=False)
        return CollectionStats(exists=True, row_count=await handle.count())
