"""File indexer writing chunk records into agent collections.

Pipeline per file:
1. Chunk the text (token windows, or character windows when token
   chunking is off)
2. Embed every chunk (dense, L2-normalized)
3. Encode lexical vectors when the collection has the lexical column
4. Replace the file's existing rows with the new batch

There is no rollback: a failed write raises IndexingError and the caller
re-indexes the whole file.
"""

import logging
from dataclasses import dataclass

from filesearch.chunking.text import chunk_text
from filesearch.chunking.tokens import TokenChunker, Tokenizer
from filesearch.clients.vectorstore import FieldMatch
from filesearch.config import SearchConfig
from filesearch.embedders.base import DenseEmbedder, normalize_embedding
from filesearch.embedders.lexical import LexicalEncoder, get_lexical_encoder
from filesearch.exceptions import IndexingError
from filesearch.retrieval.constants import (
    FILE_PATH_FIELD,
    FOLDER_FIELD,
    SCHEMA_VERSION_DENSE,
    SCHEMA_VERSION_HYBRID,
)
from filesearch.retrieval.types import VectorRecord, now_ms
from filesearch.services.schema_manager import CollectionManager, CollectionStats

logger = logging.getLogger(__name__)


@dataclass
class _Chunk:
    index: int
    text: str
    token_count: int
    start_line: int
    end_line: int
    token_offset: int | None = None


def record_id(folder_id: str, path: str, chunk_index: int) -> str:
    """Record id for a chunk: ``<folder_id>:<path>:<chunk_index>``.

    Folders of one agent share a collection and often hold the same relative
    path, so the folder is part of the id.
    """
    return f"{folder_id}:{path}:{chunk_index}"


class FileIndexer:
    """Writes files into per-agent collections.

    Attributes:
        manager: Collection manager owning the agent collections.
        embedder: Dense embedder.
        lexical_encoder: Lexical encoder, shared with query time.
        config: Default feature flag snapshot.
    """

    def __init__(
        self,
        manager: CollectionManager,
        embedder: DenseEmbedder,
        config: SearchConfig,
        tokenizer: Tokenizer | None = None,
        lexical_encoder: LexicalEncoder | None = None,
    ) -> None:
        self.manager = manager
        self.embedder = embedder
        self.config = config
        self.tokenizer = tokenizer
        self.lexical_encoder = lexical_encoder or get_lexical_encoder()

    def _chunk(self, text: str, config: SearchConfig) -> list[_Chunk]:
        if config.enable_token_chunking:
            chunker = TokenChunker(
                self.tokenizer,
                window_tokens=config.chunk_window_tokens,
                stride_tokens=config.chunk_stride_tokens,
            )
            return [
                _Chunk(c.index, c.text, c.token_count, c.start_line, c.end_line, c.token_offset)
                for c in chunker.chunk(text)
            ]
        return [
            _Chunk(c.index, c.text, c.token_count, c.start_line, c.end_line)
            for c in chunk_text(
                text,
                max_characters=config.chunk_max_characters,
                overlap_characters=config.chunk_overlap_characters,
            )
        ]

    async def index_file(
        self,
        agent_id: str,
        folder_id: str,
        file_path: str,
        text: str,
        relative_path: str | None = None,
        config: SearchConfig | None = None,
    ) -> list[str]:
        """Index (or re-index) one file.

        Args:
            agent_id: Owning agent.
            folder_id: Synced folder the file belongs to.
            file_path: Source path of the file.
            text: File contents.
            relative_path: Path relative to the folder root; used in record ids.
            config: Feature flag snapshot for this call.

        Returns:
            Ids of the written records.

        Raises:
            IndexingError: If embedding, opening the collection or writing
                the batch fails.
        """
        config = config or self.config
        chunks = self._chunk(text, config)

        if not chunks:
            try:
                await self.remove_file(agent_id, file_path)
            except Exception as e:
                logger.error(f"Failed to clear rows for '{file_path}': {e}")
                raise IndexingError(file_path, str(e)) from e
            logger.info(f"No content to index in '{file_path}'")
            return []

        try:
            embeddings = await self.embedder.embed_batch(
                [chunk.text for chunk in chunks], is_query=False
            )
        except Exception as e:
            raise IndexingError(file_path, f"embedding failed: {e}") from e

        vectors = [normalize_embedding(embedding) for embedding in embeddings]
        try:
            handle = await self.manager.ensure(agent_id, len(vectors[0]), config)
            with_lexical = await self.manager.has_lexical_column(handle)
        except Exception as e:
            logger.error(f"Failed to open collection for agent '{agent_id}': {e}")
            raise IndexingError(file_path, f"collection unavailable: {e}") from e

        path = relative_path or file_path
        indexed_at = now_ms()
        records = [
            VectorRecord(
                id=record_id(folder_id, path, chunk.index),
                vector=vector,
                lexical_vector=self.lexical_encoder.encode(chunk.text) if with_lexical else None,
                text=chunk.text,
                file_path=file_path,
                relative_path=relative_path,
                folder_id=folder_id,
                chunk_index=chunk.index,
                token_count=chunk.token_count,
                start_line=chunk.start_line,
                end_line=chunk.end_line,
                token_offset=chunk.token_offset,
                indexed_at=indexed_at,
                version=SCHEMA_VERSION_HYBRID if with_lexical else SCHEMA_VERSION_DENSE,
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]

        try:
            await handle.delete([FieldMatch.equals(FILE_PATH_FIELD, file_path)])
            await handle.insert([record.to_row() for record in records])
        except Exception as e:
            logger.error(f"Failed to write {len(records)} chunks for '{file_path}': {e}")
            raise IndexingError(file_path, str(e)) from e

        logger.info(f"Indexed '{path}' into {len(records)} chunks for agent '{agent_id}'")
        return [record.id for record in records]

    async def remove_file(self, agent_id: str, file_path: str) -> None:
        """Delete every row of one file."""
        handle = await self.manager.open(agent_id)
        if handle is None:
            return
        await handle.delete([FieldMatch.equals(FILE_PATH_FIELD, file_path)])
        logger.debug(f"Removed '{file_path}' from agent '{agent_id}'")

    async def remove_folder(self, agent_id: str, folder_id: str) -> None:
        """Delete every row of an un-synced folder."""
        handle = await self.manager.open(agent_id)
        if handle is None:
            return
        await handle.delete([FieldMatch.equals(FOLDER_FIELD, folder_id)])
        logger.info(f"Removed folder '{folder_id}' from agent '{agent_id}'")

    async def delete_agent_collection(self, agent_id: str) -> bool:
        return await self.manager.delete_agent_collection(agent_id)

    async def list_agent_collections(self) -> list[str]:
        return await self.manager.list_agent_collections()

    async def collection_stats(self, agent_id: str) -> CollectionStats:
        return await self.manager.collection_stats(agent_id)
