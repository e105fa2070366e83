"""Abstract vector-store engine used by the collection manager and searchers.

The engine owns point storage, the ANN index and distance math. This package
only creates, inserts into, queries and deletes from it through the
interfaces below, so any backend (embedded Qdrant, a test double) can be
plugged in.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Row = dict[str, Any]


class DistanceMetric(str, Enum):
    """Distance metric for nearest-neighbor queries.

    Attributes:
        COSINE: ``1 - cosine_similarity``; the only metric the search
            adapters use, so ``score = 1 - distance``.
    """

    COSINE = "cosine"


@dataclass(frozen=True)
class FieldMatch:
    """Equality / membership condition on a scalar row field.

    A row matches when ``row[field]`` is one of ``values``.
    """

    field: str
    values: tuple[Any, ...]

    @classmethod
    def equals(cls, field: str, value: Any) -> "FieldMatch":
        return cls(field=field, values=(value,))

    @classmethod
    def any_of(cls, field: str, values: list[Any] | tuple[Any, ...]) -> "FieldMatch":
        return cls(field=field, values=tuple(values))

    def matches(self, row: Row) -> bool:
        return row.get(self.field) in self.values


def matches_all(row: Row, where: list[FieldMatch] | None) -> bool:
    """Whether a row satisfies every condition (vacuously true for none)."""
    return all(condition.matches(row) for condition in where or [])


@dataclass
class Neighbor:
    """A row returned by a nearest-neighbor query and its distance."""

    row: Row
    distance: float
    vectors: dict[str, list[float]] = field(default_factory=dict)


class CollectionHandle(ABC):
    """Handle on one open collection."""

    name: str

    @abstractmethod
    async def nearest_neighbors(
        self,
        vector: list[float],
        column: str,
        metric: DistanceMetric = DistanceMetric.COSINE,
        limit: int = 10,
        where: list[FieldMatch] | None = None,
        with_vectors: bool = False,
    ) -> list[Neighbor]:
        """Return up to ``limit`` rows closest to ``vector`` on ``column``.

        Args:
            vector: Query vector; must match the column's width.
            column: Name of the vector column to search.
            metric: Distance metric.
            limit: Maximum number of neighbors.
            where: Optional conditions every returned row must satisfy.
            with_vectors: Also return the stored ``column`` vector per row.

        Returns:
            Neighbors sorted by ascending distance.
        """

    @abstractmethod
    async def insert(self, rows: list[Row]) -> None:
        """Insert rows (upserting on ``id``)."""

    @abstractmethod
    async def delete(self, where: list[FieldMatch]) -> None:
        """Delete every row matching all conditions."""

    @abstractmethod
    async def schema(self) -> list[str]:
        """Column names known to the engine for this collection."""

    @abstractmethod
    async def count(self) -> int:
        """Number of rows currently stored."""


class VectorStore(ABC):
    """Vector-store engine: a namespace of named collections."""

    @abstractmethod
    async def create_collection(self, name: str, rows: list[Row]) -> CollectionHandle:
        """Create a collection whose schema is inferred from ``rows``, then insert them.

        Raises:
            SchemaInferenceError: If ``rows`` is empty or has no vector column.
        """

    @abstractmethod
    async def drop_collection(self, name: str) -> None:
        """Drop a collection and all of its rows."""

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Names of all collections."""

    @abstractmethod
    async def open_collection(self, name: str) -> CollectionHandle:
        """Open an existing collection.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """

    async def collection_exists(self, name: str) -> bool:
        return name in await self.list_collections()

    async def close(self) -> None:
        """Release engine resources."""


def is_vector_value(value: Any) -> bool:
    """Whether a row value is a dense vector (a non-empty list of numbers)."""
    return (
        isinstance(value, list)
        and len(value) > 0
        and all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value)
    )
