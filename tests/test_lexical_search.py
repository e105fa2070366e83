"""Tests for the lexical search adapter."""

import logging
from unittest.mock import AsyncMock

import pytest

from filesearch.config import SearchConfig
from filesearch.retrieval.lexical import (
    LexicalSearcher,
    WarnOnceRegistry,
    get_missing_column_registry,
)
from filesearch.services.schema_manager import CollectionManager

from conftest import DENSE_DIM, make_row


@pytest.fixture
async def populated(manager: CollectionManager, config: SearchConfig) -> CollectionManager:
    handle = await manager.ensure("agent-1", DENSE_DIM, config)
    await handle.insert(
        [
            make_row("loader.ts:0", [1.0] * DENSE_DIM, "export function parseConfig(raw)"),
            make_row("fs.ts:0", [1.0] * DENSE_DIM, "reads settings from disk", folder_id="f2"),
            make_row("user.ts:0", [1.0] * DENSE_DIM, "getUserById lookup"),
        ]
    )
    return manager


class TestWarnOnceRegistry:
    """Tests for WarnOnceRegistry."""

    def test_first_time(self) -> None:
        """Test that only the first sighting of a key is reported."""
        registry = WarnOnceRegistry()
        assert registry.first_time("agent_a") is True
        assert registry.first_time("agent_a") is False
        assert registry.first_time("agent_b") is True
        assert "agent_a" in registry

    def test_shared_registry(self) -> None:
        """Test the process-wide registry."""
        assert get_missing_column_registry() is get_missing_column_registry()


class TestLexicalSearcher:
    """Tests for LexicalSearcher."""

    async def test_literal_identifier_ranks_first(self, populated: CollectionManager) -> None:
        """Test that a literal identifier matches its chunk."""
        hits = await LexicalSearcher(populated).search("agent-1", "parseConfig", min_score=0.01)
        assert hits[0].id == "loader.ts:0"
        assert hits[0].score > 0.5

    async def test_spelling_variants_match(self, populated: CollectionManager) -> None:
        """Test that snake_case queries match camelCase code."""
        hits = await LexicalSearcher(populated).search("agent-1", "get_user_by_id", min_score=0.01)
        assert hits[0].id == "user.ts:0"

    async def test_min_score_drops_unrelated(self, populated: CollectionManager) -> None:
        """Test that chunks without shared tokens are filtered out."""
        hits = await LexicalSearcher(populated).search("agent-1", "parseConfig", min_score=0.01)
        assert "fs.ts:0" not in {h.id for h in hits}

    async def test_folder_allow_list(self, populated: CollectionManager) -> None:
        """Test that the folder filter is applied."""
        hits = await LexicalSearcher(populated).search(
            "agent-1", "reads settings", folder_ids=["f2"]
        )
        assert [h.id for h in hits] == ["fs.ts:0"]

    async def test_stop_word_query_skips_engine(self, populated: CollectionManager) -> None:
        """Test that a query with no surviving tokens returns nothing."""
        handle = await populated.open("agent-1")
        hits = await LexicalSearcher(populated).search("agent-1", "the and of")
        assert hits == []
        assert handle.query_log == []

    async def test_missing_collection(self, manager: CollectionManager) -> None:
        """Test that an agent without a collection gets no hits."""
        assert await LexicalSearcher(manager).search("nobody", "parseConfig") == []

    async def test_missing_column_warns_once(
        self,
        manager: CollectionManager,
        dense_only_config: SearchConfig,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that a v1 collection is skipped with one warning per collection."""
        handle = await manager.ensure("agent-1", DENSE_DIM, dense_only_config)
        row = make_row("a.py:0", [1.0] * DENSE_DIM, "parseConfig", with_lexical=False)
        await handle.insert([row])
        searcher = LexicalSearcher(manager, warned=WarnOnceRegistry())

        with caplog.at_level(logging.WARNING, logger="filesearch.retrieval.lexical"):
            first = await searcher.search("agent-1", "parseConfig")
            second = await searcher.search("agent-1", "parseConfig")

        assert first == [] and second == []
        warnings = [r for r in caplog.records if "missing 'lexical_vector'" in r.getMessage()]
        assert len(warnings) == 1

    async def test_search_many_merges_variants(self, populated: CollectionManager) -> None:
        """Test that variants are merged and each id appears once."""
        hits = await LexicalSearcher(populated).search_many(
            "agent-1", ["parseConfig", "parse configuration", "parseConfig"], min_score=0.01
        )
        ids = [h.id for h in hits]
        assert ids.count("loader.ts:0") == 1
        assert ids[0] == "loader.ts:0"

    async def test_engine_failure_logged_with_traceback(
        self, manager: CollectionManager, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that an engine failure returns no hits and logs an error with exc_info."""
        manager.open = AsyncMock(side_effect=ConnectionError("engine unreachable"))

        with caplog.at_level(logging.ERROR, logger="filesearch.retrieval.lexical"):
            hits = await LexicalSearcher(manager).search("agent-1", "parseConfig")

        assert hits == []
        errors = [r for r in caplog.records if "Lexical search failed" in r.getMessage()]
        assert len(errors) == 1
        assert errors[0].levelno == logging.ERROR
        assert errors[0].exc_info is not None
