"""Pytest configuration and shared fixtures."""

import math

import pytest

from filesearch.clients.vectorstore import (
    CollectionHandle,
    DistanceMetric,
    FieldMatch,
    Neighbor,
    Row,
    VectorStore,
    is_vector_value,
    matches_all,
)
from filesearch.config import SearchConfig, Settings
from filesearch.embedders.lexical import LexicalEncoder
from filesearch.exceptions import CollectionNotFoundError, SchemaInferenceError
from filesearch.retrieval.expansion import get_expansion_cache
from filesearch.retrieval.lexical import get_missing_column_registry
from filesearch.retrieval.types import VectorRecord
from filesearch.services.schema_manager import CollectionManager
from filesearch.utils.hashing import djb2_hash

DENSE_DIM = 8


def cosine_distance(a: list[float], b: list[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 1.0
    return 1.0 - sum(x * y for x, y in zip(a, b)) / norm


class InMemoryCollection(CollectionHandle):
    """Exact nearest-neighbor collection kept in a dict."""

    def __init__(self, name: str, columns: list[str]) -> None:
        self.name = name
        self.columns = columns
        self.rows: dict[str, Row] = {}
        self.query_log: list[tuple[str, list[float]]] = []

    async def nearest_neighbors(
        self,
        vector: list[float],
        column: str,
        metric: DistanceMetric = DistanceMetric.COSINE,
        limit: int = 10,
        where: list[FieldMatch] | None = None,
        with_vectors: bool = False,
    ) -> list[Neighbor]:
        self.query_log.append((column, vector))
        if column not in self.columns:
            raise KeyError(f"No vector column '{column}' in '{self.name}'")

        scored = [
            Neighbor(
                row={k: v for k, v in row.items() if not is_vector_value(v)},
                distance=cosine_distance(vector, row[column]),
                vectors={column: row[column]} if with_vectors else {},
            )
            for row in self.rows.values()
            if row.get(column) is not None and matches_all(row, where)
        ]
        scored.sort(key=lambda n: n.distance)
        return scored[:limit]

    async def insert(self, rows: list[Row]) -> None:
        for row in rows:
            self.rows[row["id"]] = dict(row)

    async def delete(self, where: list[FieldMatch]) -> None:
        self.rows = {k: row for k, row in self.rows.items() if not matches_all(row, where)}

    async def schema(self) -> list[str]:
        return list(self.columns)

    async def count(self) -> int:
        return len(self.rows)


class InMemoryVectorStore(VectorStore):
    """Vector store double inferring its schema from the seed rows."""

    def __init__(self) -> None:
        self.collections: dict[str, InMemoryCollection] = {}
        self.created: list[str] = []
        self.dropped: list[str] = []

    async def create_collection(self, name: str, rows: list[Row]) -> CollectionHandle:
        if not rows:
            raise SchemaInferenceError(f"Cannot infer schema for '{name}' without seed rows")
        collection = InMemoryCollection(name, list(rows[0].keys()))
        await collection.insert(rows)
        self.collections[name] = collection
        self.created.append(name)
        return collection

    async def drop_collection(self, name: str) -> None:
        self.collections.pop(name, None)
        self.dropped.append(name)

    async def list_collections(self) -> list[str]:
        return list(self.collections)

    async def open_collection(self, name: str) -> CollectionHandle:
        if name not in self.collections:
            raise CollectionNotFoundError(name)
        return self.collections[name]


class FakeEmbedder:
    """Deterministic dense embedder.

    Texts listed in ``vectors`` get that exact vector; any other text gets a
    positive hash-derived vector of ``dim`` components.
    """

    def __init__(self, vectors: dict[str, list[float]] | None = None, dim: int = DENSE_DIM):
        self.vectors = vectors or {}
        self.dim = dim
        self.calls: list[tuple[str, bool]] = []
        self.batch_calls = 0

    async def embed(self, text: str, is_query: bool = True) -> list[float]:
        self.calls.append((text, is_query))
        if text in self.vectors:
            return list(self.vectors[text])
        return [float(djb2_hash(f"{text}#{i}") % 997 + 1) for i in range(self.dim)]

    async def embed_batch(self, texts: list[str], is_query: bool = True) -> list[list[float]]:
        self.batch_calls += 1
        return [await self.embed(text, is_query) for text in texts]


class CharTokenizer:
    """One token per character."""

    def encode(self, text: str) -> list[int]:
        return [ord(ch) for ch in text]

    def decode(self, tokens: list[int]) -> str:
        return "".join(chr(t) for t in tokens)


@pytest.fixture(autouse=True)
def reset_process_caches():
    """Process-wide caches must not leak between tests."""
    get_expansion_cache().clear()
    get_missing_column_registry().clear()
    yield
    get_expansion_cache().clear()
    get_missing_column_registry().clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def config() -> SearchConfig:
    return SearchConfig()


@pytest.fixture
def dense_only_config() -> SearchConfig:
    return SearchConfig(enable_hybrid_search=False, enable_token_chunking=False)


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def manager(store: InMemoryVectorStore, settings: Settings) -> CollectionManager:
    return CollectionManager(store, settings)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def tokenizer() -> CharTokenizer:
    return CharTokenizer()


def make_row(
    record_id: str,
    vector: list[float],
    text: str,
    folder_id: str = "folder-1",
    with_lexical: bool = True,
    start_line: int = 1,
    end_line: int = 1,
) -> Row:
    """Engine row for a chunk, with the lexical vector derived from ``text``."""
    path = record_id.rsplit(":", 1)[0]
    return VectorRecord(
        id=record_id,
        vector=vector,
        lexical_vector=LexicalEncoder().encode(text) if with_lexical else None,
        text=text,
        file_path=f"/sync/{path}",
        relative_path=path,
        folder_id=folder_id,
        chunk_index=int(record_id.rsplit(":", 1)[1]),
        start_line=start_line,
        end_line=end_line,
        version=2 if with_lexical else 1,
    ).to_row()
