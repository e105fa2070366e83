"""Vector store engine interface and its Qdrant implementation."""

from filesearch.clients.qdrant import QdrantCollection, QdrantVectorStore
from filesearch.clients.vectorstore import (
    CollectionHandle,
    DistanceMetric,
    FieldMatch,
    Neighbor,
    VectorStore,
)

__all__ = [
    "CollectionHandle",
    "DistanceMetric",
    "FieldMatch",
    "Neighbor",
    "QdrantCollection",
    "QdrantVectorStore",
    "VectorStore",
]
