"""Tests for the Qdrant vector store adapter."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from qdrant_client.http import models

from filesearch.clients.qdrant import (
    QdrantCollection,
    QdrantVectorStore,
    build_filter,
    point_id_for,
)
from filesearch.clients.vectorstore import FieldMatch
from filesearch.config import Settings
from filesearch.exceptions import CollectionNotFoundError, SchemaInferenceError


def seed_row() -> dict:
    return {
        "id": "__schema__",
        "vector": [0.0] * 4,
        "lexical_vector": [0.0] * 6,
        "text": "",
        "file_path": "",
        "folder_id": "",
        "chunk_index": 0,
    }


class TestHelpers:
    """Tests for id mapping and filter building."""

    def test_point_id_is_stable_uuid(self) -> None:
        """Test that record ids map to the same valid UUID every time."""
        point_id = point_id_for("src/app.py:3")
        assert point_id == point_id_for("src/app.py:3")
        assert point_id != point_id_for("src/app.py:4")
        uuid.UUID(point_id)

    def test_build_filter_none(self) -> None:
        """Test that no conditions means no filter."""
        assert build_filter(None) is None
        assert build_filter([]) is None

    def test_build_filter_single_value(self) -> None:
        """Test that a single value becomes an exact match."""
        qdrant_filter = build_filter([FieldMatch.equals("file_path", "a.py")])
        condition = qdrant_filter.must[0]
        assert condition.key == "file_path"
        assert isinstance(condition.match, models.MatchValue)
        assert condition.match.value == "a.py"

    def test_build_filter_any_of(self) -> None:
        """Test that several values become a MatchAny."""
        qdrant_filter = build_filter([FieldMatch.any_of("folder_id", ["f1", "f2"])])
        condition = qdrant_filter.must[0]
        assert isinstance(condition.match, models.MatchAny)
        assert condition.match.any == ["f1", "f2"]


class TestQdrantVectorStore:
    """Tests for QdrantVectorStore."""

    @pytest.fixture
    def settings(self) -> Settings:
        """Create test settings pointing at a server."""
        return Settings(_env_file=None, qdrant_url="http://localhost:6333", qdrant_timeout=10)

    @pytest.fixture
    def mock_async_client(self):
        """Create mock AsyncQdrantClient."""
        with patch("filesearch.clients.qdrant.AsyncQdrantClient") as mock_cls:
            mock_client = AsyncMock()
            mock_cls.return_value = mock_client
            yield mock_cls, mock_client

    async def test_connect_server(self, settings: Settings, mock_async_client) -> None:
        """Test connecting to a Qdrant server."""
        mock_cls, mock_client = mock_async_client
        store = QdrantVectorStore(settings)
        await store.connect()

        mock_cls.assert_called_once_with(url="http://localhost:6333", timeout=10)
        assert store.client is mock_client

    async def test_connect_embedded(self, mock_async_client) -> None:
        """Test opening the embedded local store."""
        mock_cls, _ = mock_async_client
        settings = Settings(_env_file=None, vectordb_path="/tmp/vectors")
        store = QdrantVectorStore(settings)
        await store.connect()

        mock_cls.assert_called_once_with(path="/tmp/vectors")

    def test_client_before_connect(self, settings: Settings) -> None:
        """Test accessing the client before connecting."""
        with pytest.raises(RuntimeError, match="not connected"):
            _ = QdrantVectorStore(settings).client

    async def test_context_manager_closes(self, settings: Settings, mock_async_client) -> None:
        """Test that the async context manager connects and closes."""
        _, mock_client = mock_async_client
        async with QdrantVectorStore(settings) as store:
            assert store.client is mock_client
        mock_client.close.assert_awaited_once()

    async def test_create_collection_infers_vectors(
        self, settings: Settings, mock_async_client
    ) -> None:
        """Test that list-of-number fields become named cosine vectors."""
        _, mock_client = mock_async_client
        store = QdrantVectorStore(settings)
        await store.connect()

        handle = await store.create_collection("agent_a", [seed_row()])

        kwargs = mock_client.create_collection.call_args.kwargs
        assert kwargs["collection_name"] == "agent_a"
        vectors_config = kwargs["vectors_config"]
        assert set(vectors_config) == {"vector", "lexical_vector"}
        assert vectors_config["vector"].size == 4
        assert vectors_config["lexical_vector"].size == 6
        assert vectors_config["vector"].distance == models.Distance.COSINE

        indexed = {c.kwargs["field_name"] for c in mock_client.create_payload_index.call_args_list}
        assert indexed == {"folder_id", "file_path"}

        point = mock_client.upsert.call_args.kwargs["points"][0]
        assert point.id == point_id_for("__schema__")
        assert set(point.vector) == {"vector", "lexical_vector"}
        assert "vector" not in point.payload
        assert point.payload["id"] == "__schema__"
        assert isinstance(handle, QdrantCollection)

    async def test_create_collection_without_rows(
        self, settings: Settings, mock_async_client
    ) -> None:
        """Test that a schema cannot be inferred from nothing."""
        store = QdrantVectorStore(settings)
        await store.connect()
        with pytest.raises(SchemaInferenceError):
            await store.create_collection("agent_a", [])

    async def test_create_collection_without_vectors(
        self, settings: Settings, mock_async_client
    ) -> None:
        """Test that seed rows must carry a vector column."""
        store = QdrantVectorStore(settings)
        await store.connect()
        with pytest.raises(SchemaInferenceError, match="no vector columns"):
            await store.create_collection("agent_a", [{"id": "x", "text": ""}])

    async def test_open_missing_collection(self, settings: Settings, mock_async_client) -> None:
        """Test opening a collection that does not exist."""
        _, mock_client = mock_async_client
        mock_client.collection_exists = AsyncMock(return_value=False)
        store = QdrantVectorStore(settings)
        await store.connect()
        with pytest.raises(CollectionNotFoundError):
            await store.open_collection("agent_missing")

    async def test_list_and_drop(self, settings: Settings, mock_async_client) -> None:
        """Test listing and dropping collections."""
        _, mock_client = mock_async_client
        first, second = MagicMock(), MagicMock()
        first.name, second.name = "agent_a", "other"
        mock_client.get_collections = AsyncMock(return_value=MagicMock(collections=[first, second]))
        store = QdrantVectorStore(settings)
        await store.connect()

        assert await store.list_collections() == ["agent_a", "other"]
        await store.drop_collection("agent_a")
        mock_client.delete_collection.assert_awaited_once_with(collection_name="agent_a")


class TestQdrantCollection:
    """Tests for QdrantCollection."""

    @pytest.fixture
    def client(self) -> AsyncMock:
        return AsyncMock()

    async def test_nearest_neighbors(self, client: AsyncMock) -> None:
        """Test that scores are converted to distances and filters applied."""
        point = MagicMock()
        point.payload = {"id": "a.py:0", "text": "hello"}
        point.score = 0.8
        point.vector = {"vector": [0.6, 0.8]}
        client.query_points = AsyncMock(return_value=MagicMock(points=[point]))

        handle = QdrantCollection(client, "agent_a", vector_columns=["vector"])
        neighbors = await handle.nearest_neighbors(
            [0.6, 0.8],
            "vector",
            limit=5,
            where=[FieldMatch.any_of("folder_id", ["f1", "f2"])],
            with_vectors=True,
        )

        assert len(neighbors) == 1
        assert neighbors[0].distance == pytest.approx(0.2)
        assert neighbors[0].row["id"] == "a.py:0"
        assert neighbors[0].vectors == {"vector": [0.6, 0.8]}

        kwargs = client.query_points.call_args.kwargs
        assert kwargs["using"] == "vector"
        assert kwargs["limit"] == 5
        assert kwargs["with_vectors"] == ["vector"]
        assert kwargs["query_filter"].must[0].match.any == ["f1", "f2"]

    async def test_nearest_neighbors_without_vectors(self, client: AsyncMock) -> None:
        """Test that stored vectors are not requested by default."""
        client.query_points = AsyncMock(return_value=MagicMock(points=[]))
        handle = QdrantCollection(client, "agent_a", vector_columns=["vector"])

        assert await handle.nearest_neighbors([1.0], "vector") == []
        kwargs = client.query_points.call_args.kwargs
        assert kwargs["with_vectors"] is False
        assert kwargs["query_filter"] is None

    async def test_insert_looks_up_vector_columns(self, client: AsyncMock) -> None:
        """Test that an opened handle reads its vector columns once."""
        info = MagicMock()
        info.config.params.vectors = {"vector": MagicMock()}
        client.get_collection = AsyncMock(return_value=info)
        handle = QdrantCollection(client, "agent_a")

        await handle.insert([{"id": "a:0", "vector": [1.0, 0.0], "text": "x"}])
        await handle.insert([{"id": "a:1", "vector": [0.0, 1.0], "text": "y"}])

        client.get_collection.assert_awaited_once()
        point = client.upsert.call_args.kwargs["points"][0]
        assert point.vector == {"vector": [0.0, 1.0]}
        assert point.payload == {"id": "a:1", "text": "y"}

    async def test_insert_empty_is_noop(self, client: AsyncMock) -> None:
        """Test that inserting nothing does not call Qdrant."""
        handle = QdrantCollection(client, "agent_a", vector_columns=["vector"])
        await handle.insert([])
        client.upsert.assert_not_called()

    async def test_delete_requires_conditions(self, client: AsyncMock) -> None:
        """Test that an unconditional delete is refused."""
        handle = QdrantCollection(client, "agent_a", vector_columns=["vector"])
        with pytest.raises(ValueError):
            await handle.delete([])

    async def test_delete_by_filter(self, client: AsyncMock) -> None:
        """Test deleting with a filter selector."""
        handle = QdrantCollection(client, "agent_a", vector_columns=["vector"])
        await handle.delete([FieldMatch.equals("id", "__schema__")])

        selector = client.delete.call_args.kwargs["points_selector"]
        assert isinstance(selector, models.FilterSelector)
        assert selector.filter.must[0].match.value == "__schema__"

    async def test_schema_lists_vectors_and_payload_fields(self, client: AsyncMock) -> None:
        """Test schema introspection."""
        info = MagicMock()
        info.config.params.vectors = {"vector": MagicMock(), "lexical_vector": MagicMock()}
        info.payload_schema = {"folder_id": MagicMock()}
        client.get_collection = AsyncMock(return_value=info)

        handle = QdrantCollection(client, "agent_a")
        assert await handle.schema() == ["vector", "lexical_vector", "folder_id"]

    async def test_count(self, client: AsyncMock) -> None:
        """Test exact row counting."""
        client.count = AsyncMock(return_value=MagicMock(count=7))
        handle = QdrantCollection(client, "agent_a")
        assert await handle.count() == 7
        client.count.assert_awaited_once_with(collection_name="agent_a", exact=True)
