"""Qdrant-backed vector store (embedded local mode or remote server)."""

import logging
import uuid
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models
from qdrant_client.http.models import Distance, VectorParams

from filesearch.clients.vectorstore import (
    CollectionHandle,
    DistanceMetric,
    FieldMatch,
    Neighbor,
    Row,
    VectorStore,
    is_vector_value,
)
from filesearch.config import Settings
from filesearch.exceptions import CollectionNotFoundError, SchemaInferenceError

logger = logging.getLogger(__name__)

# Payload fields indexed for filtering on a Qdrant server (no-op in local mode).
INDEXED_PAYLOAD_FIELDS = ("folder_id", "file_path")

_POINT_NAMESPACE = uuid.UUID("6f1c2f0e-4c1b-5d3a-9a63-2f3f0d8d7a41")


def point_id_for(record_id: str) -> str:
    """Deterministic Qdrant point id for a record id.

    Qdrant only accepts unsigned integers and UUIDs as point ids, while
    record ids look like ``src/app.py:3``.
    """
    return str(uuid.uuid5(_POINT_NAMESPACE, record_id))


def build_filter(where: list[FieldMatch] | None) -> models.Filter | None:
    """Build a Qdrant filter from field match conditions."""
    if not where:
        return None

    conditions: list[models.Condition] = []
    for condition in where:
        if len(condition.values) == 1:
            match: Any = models.MatchValue(value=condition.values[0])
        else:
            match = models.MatchAny(any=list(condition.values))
        conditions.append(models.FieldCondition(key=condition.field, match=match))
    return models.Filter(must=conditions)


class QdrantCollection(CollectionHandle):
    """Collection handle over an AsyncQdrantClient."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        name: str,
        vector_columns: list[str] | None = None,
    ) -> None:
        self.client = client
        self.name = name
        self._vector_columns = vector_columns

    async def _get_vector_columns(self) -> list[str]:
        if self._vector_columns is None:
            info = await self.client.get_collection(collection_name=self.name)
            vectors = info.config.params.vectors
            self._vector_columns = list(vectors.keys()) if isinstance(vectors, dict) else []
        return self._vector_columns

    async def nearest_neighbors(
        self,
        vector: list[float],
        column: str,
        metric: DistanceMetric = DistanceMetric.COSINE,
        limit: int = 10,
        where: list[FieldMatch] | None = None,
        with_vectors: bool = False,
    ) -> list[Neighbor]:
        if metric != DistanceMetric.COSINE:
            raise ValueError(f"Unsupported distance metric for Qdrant collections: {metric}")

        response = await self.client.query_points(
            collection_name=self.name,
            query=vector,
            using=column,
            query_filter=build_filter(where),
            limit=limit,
            with_payload=True,
            with_vectors=[column] if with_vectors else False,
        )

        neighbors = []
        for point in response.points:
            vectors: dict[str, list[float]] = {}
            if with_vectors and isinstance(point.vector, dict) and column in point.vector:
                vectors[column] = list(point.vector[column])  # type: ignore[arg-type]
            # Qdrant reports cosine similarity; the engine contract is a distance.
            neighbors.append(
                Neighbor(row=dict(point.payload or {}), distance=1.0 - point.score, vectors=vectors)
            )
        return neighbors

    async def insert(self, rows: list[Row]) -> None:
        if not rows:
            return

        vector_columns = set(await self._get_vector_columns())
        points = []
        for row in rows:
            vectors = {k: v for k, v in row.items() if k in vector_columns and v is not None}
            payload = {k: v for k, v in row.items() if k not in vector_columns}
            points.append(
                models.PointStruct(id=point_id_for(str(row["id"])), vector=vectors, payload=payload)
            )

        await self.client.upsert(collection_name=self.name, points=points, wait=True)
        logger.debug(f"Upserted {len(points)} points into '{self.name}'")

    async def delete(self, where: list[FieldMatch]) -> None:
        qdrant_filter = build_filter(where)
        if qdrant_filter is None:
            raise ValueError("Refusing to delete without conditions; drop the collection instead")

        await self.client.delete(
            collection_name=self.name,
            points_selector=models.FilterSelector(filter=qdrant_filter),
            wait=True,
        )

    async def schema(self) -> list[str]:
        info = await self.client.get_collection(collection_name=self.name)
        vectors = info.config.params.vectors
        columns = list(vectors.keys()) if isinstance(vectors, dict) else []
        columns.extend((info.payload_schema or {}).keys())
        return columns

    async def count(self) -> int:
        result = await self.client.count(collection_name=self.name, exact=True)
        return result.count


class QdrantVectorStore(VectorStore):
    """Vector store over Qdrant with lifecycle management.

    Runs Qdrant in embedded local mode under ``settings.vectordb_path``
    unless ``settings.qdrant_url`` points at a server. Collection vector
    configuration is inferred from the rows a collection is created with:
    every list-of-number field becomes a named cosine vector of that width.
    """

    def __init__(self, settings: Settings, client: AsyncQdrantClient | None = None) -> None:
        self.settings = settings
        self._client = client

    async def connect(self) -> None:
        """Create the AsyncQdrantClient if one was not injected."""
        if self._client is not None:
            return

        if self.settings.qdrant_url:
            logger.info(f"Connecting to Qdrant at {self.settings.qdrant_url}")
            self._client = AsyncQdrantClient(
                url=self.settings.qdrant_url, timeout=self.settings.qdrant_timeout
            )
        else:
            logger.info(f"Opening embedded Qdrant store at {self.settings.vectordb_path}")
            self._client = AsyncQdrantClient(path=self.settings.vectordb_path)

    async def close(self) -> None:
        if self._client is not None:
            logger.info("Closing Qdrant client connection")
            await self._client.close()
            self._client = None

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the underlying AsyncQdrantClient instance.

        Raises:
            RuntimeError: If client is not connected.
        """
        if self._client is None:
            raise RuntimeError("Qdrant client not connected. Call connect() first.")
        return self._client

    async def create_collection(self, name: str, rows: list[Row]) -> CollectionHandle:
        if not rows:
            raise SchemaInferenceError(f"Cannot infer schema for '{name}' without seed rows")

        seed = rows[0]
        vectors_config = {
            column: VectorParams(size=len(value), distance=Distance.COSINE)
            for column, value in seed.items()
            if is_vector_value(value)
        }
        if not vectors_config:
            raise SchemaInferenceError(f"Seed row for '{name}' has no vector columns")

        await self.client.create_collection(collection_name=name, vectors_config=vectors_config)
        for field_name in INDEXED_PAYLOAD_FIELDS:
            if field_name in seed:
                await self.client.create_payload_index(
                    collection_name=name,
                    field_name=field_name,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )

        logger.info(
            f"Created collection '{name}' with vectors "
            + ", ".join(f"{col}({params.size})" for col, params in vectors_config.items())
        )

        handle = QdrantCollection(self.client, name, vector_columns=list(vectors_config))
        await handle.insert(rows)
        return handle

    async def drop_collection(self, name: str) -> None:
        await self.client.delete_collection(collection_name=name)
        logger.info(f"Dropped collection '{name}'")

    async def list_collections(self) -> list[str]:
        response = await self.client.get_collections()
        return [collection.name for collection in response.collections]

    async def collection_exists(self, name: str) -> bool:
        return await self.client.collection_exists(collection_name=name)

    async def open_collection(self, name: str) -> CollectionHandle:
        if not await self.collection_exists(name):
            raise CollectionNotFoundError(name)
        return QdrantCollection(self.client, name)

    async def __aenter__(self) -> "QdrantVectorStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
