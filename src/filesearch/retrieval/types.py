"""Core types for the retrieval module.

This module defines the persisted row shape, the ranked hit returned by
every search path, and per-call search options.
"""

import time
from typing import Any, Literal

from pydantic import BaseModel, Field

from filesearch.retrieval.constants import (
    DEFAULT_MIN_SCORE,
    DEFAULT_TOP_K,
    DENSE_FIELD,
    LEXICAL_FIELD,
)


def now_ms() -> int:
    return int(time.time() * 1000)


class VectorRecord(BaseModel):
    """One indexed chunk as stored in an agent collection.

    Attributes:
        id: Unique id, ``<folder_id>:<relative_path or file_path>:<chunk_index>``.
        vector: L2-normalized dense embedding.
        lexical_vector: Hashed lexical vector; presence marks schema v2.
        text: Chunk text.
        file_path: Absolute or source path of the file.
        relative_path: Path relative to the synced folder root.
        folder_id: Partition key for folder-scoped search and un-sync.
        chunk_index: Ordinal of the chunk within its file.
        token_count: Number of tokens (estimated for character chunks).
        start_line: 1-based first line covered (v2).
        end_line: 1-based last line covered (v2).
        token_offset: Offset of the first token in the file (token chunks).
        indexed_at: Unix epoch in milliseconds.
        version: Schema version, 1 (dense only) or 2 (hybrid).
    """

    id: str
    vector: list[float]
    lexical_vector: list[float] | None = None
    text: str
    file_path: str
    relative_path: str | None = None
    folder_id: str
    chunk_index: int = Field(ge=0)
    token_count: int = Field(default=0, ge=0)
    start_line: int | None = None
    end_line: int | None = None
    token_offset: int | None = None
    indexed_at: int = Field(default_factory=now_ms)
    version: Literal[1, 2] = 1

    def to_row(self) -> dict[str, Any]:
        """Row dict for the engine, omitting unset optional columns."""
        row = self.model_dump(exclude_none=True)
        row[DENSE_FIELD] = row.pop("vector")
        if self.lexical_vector is not None:
            row[LEXICAL_FIELD] = row.pop("lexical_vector")
        return row


class RankedHit(BaseModel):
    """A search result with citation provenance.

    Attributes:
        id: Record id.
        score: Relevance score; meaning depends on the producing stage
            (cosine similarity, fused RRF score or cross-encoder score).
        text: Chunk text.
        file_path: Source file path.
        relative_path: Path relative to the synced folder root.
        folder_id: Folder the chunk belongs to.
        chunk_index: Ordinal of the chunk within its file.
        start_line: 1-based first line covered, when known.
        end_line: 1-based last line covered, when known.
        agent_id: Owning agent, set by multi-agent search.
        embedding: Stored dense embedding, carried for diversification only.
    """

    id: str
    score: float
    text: str = ""
    file_path: str = ""
    relative_path: str | None = None
    folder_id: str | None = None
    chunk_index: int = 0
    start_line: int | None = None
    end_line: int | None = None
    agent_id: str | None = None
    embedding: list[float] | None = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_row(
        cls, row: dict[str, Any], score: float, embedding: list[float] | None = None
    ) -> "RankedHit":
        return cls(
            id=str(row.get("id", "")),
            score=score,
            text=row.get("text", ""),
            file_path=row.get("file_path", ""),
            relative_path=row.get("relative_path"),
            folder_id=row.get("folder_id"),
            chunk_index=row.get("chunk_index", 0),
            start_line=row.get("start_line"),
            end_line=row.get("end_line"),
            embedding=embedding,
        )

    @property
    def citation(self) -> str:
        """``path:start-end`` for display, or just the path when lines are unknown."""
        path = self.relative_path or self.file_path
        if self.start_line is None:
            return path
        end = self.end_line if self.end_line is not None else self.start_line
        return f"{path}:{self.start_line}-{end}"


class SearchOptions(BaseModel):
    """Per-call search parameters.

    Attributes:
        top_k: Maximum number of hits to return.
        min_score: Minimum similarity score for dense and lexical hits.
        folder_ids: Optional folder allow-list.
    """

    top_k: int = Field(default=DEFAULT_TOP_K, ge=1)
    min_score: float = Field(default=DEFAULT_MIN_SCORE, ge=0.0)
    folder_ids: list[str] | None = None
