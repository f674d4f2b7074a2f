"""Unit tests for the database connection and the workflow store.

Tests for schema setup and instance/checkpoint persistence using in-memory SQLite.
"""

import asyncio

import pytest

from news_brief.config import ServerConfig, set_config
from news_brief.storage import database
from news_brief.storage.workflow_store import MISSING, WorkflowStore


# Mark all tests as async
pytestmark = pytest.mark.anyio


@pytest.fixture
def store(in_memory_db):
    return WorkflowStore(in_memory_db)


class TestDatabaseInitialization:
    """Tests for database schema initialization."""

    async def test_init_creates_tables(self, in_memory_db):
        """Test that initialization creates the required tables."""
        cursor = await in_memory_db.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )
        tables = [row[0] for row in await cursor.fetchall()]

        assert "content_cache" in tables
        assert "workflow_instances" in tables
        assert "workflow_steps" in tables

    async def test_init_creates_indexes(self, in_memory_db):
        """Test that initialization creates the indexes."""
        cursor = await in_memory_db.execute(
            "SELECT name FROM sqlite_master WHERE type='index'"
        )
        indexes = [row[0] for row in await cursor.fetchall()]

        assert "idx_content_cache_expires_at" in indexes
        assert "idx_workflow_instances_status" in indexes

    async def test_init_is_idempotent(self, in_memory_db):
        """Test that running initialization twice is harmless."""
        await database.init_database(in_memory_db)

    async def test_singleton_connection(self, tmp_path):
        """Test that get_database creates the file once and reuses the connection."""
        db_path = tmp_path / "nested" / "news_brief.db"
        set_config(ServerConfig(db_path=str(db_path)))
        try:
            first = await database.get_database()
            second = await database.get_database()

            assert first is second
            assert db_path.exists()
        finally:
            await database.close_database()
            set_config(None)


class TestWorkflowStore:
    """Tests for instance rows and step checkpoints."""

    async def test_create_and_get(self, store):
        """Test that a created instance is queued with its params."""
        await store.create_instances("delivery", [("d-1", {"article": {"url": "https://x/a"}})])

        record = await store.get_instance("delivery", "d-1")

        assert record["status"] == "queued"
        assert record["params"] == {"article": {"url": "https://x/a"}}
        assert record["output"] is None
        assert record["error"] is None

    async def test_get_is_scoped_by_type(self, store):
        """Test that an id of another workflow type is not found."""
        await store.create_instances("delivery", [("d-1", {})])

        assert await store.get_instance("discovery", "d-1") is None
        assert await store.get_instance("delivery", "unknown") is None

    async def test_create_returns_inserted_ids(self, store):
        """Test that only new ids are inserted and reported."""
        assert await store.create_instances("delivery", [("d-1", {"n": 1})]) == ["d-1"]

        inserted = await store.create_instances("delivery", [("d-2", {}), ("d-1", {"n": 2})])

        assert inserted == ["d-2"]
        # The existing row keeps its original params
        assert (await store.get_instance("delivery", "d-1"))["params"] == {"n": 1}

    async def test_concurrent_create_inserts_once(self, store):
        """Test that the same id submitted concurrently is inserted by one caller."""
        results = await asyncio.gather(
            store.create_instances("delivery", [("d-1", {})]),
            store.create_instances("delivery", [("d-1", {})]),
            store.create_instances("delivery", [("d-1", {})]),
        )

        assert sorted(results) == [[], [], ["d-1"]]

    async def test_requeue_errored(self, store):
        """Test that only errored instances of the type are queued again."""
        await store.create_instances("delivery", [("e", {}), ("c", {}), ("r", {})])
        await store.set_status("e", "errored", error="boom")
        await store.set_status("c", "complete", output={})
        await store.set_status("r", "running")

        requeued = await store.requeue_errored("delivery", ["e", "c", "r", "unknown"])

        assert requeued == ["e"]
        record = await store.get_instance("delivery", "e")
        assert record["status"] == "queued"
        assert record["error"] is None
        assert await store.requeue_errored("discovery", ["e"]) == []

    async def test_status_output_and_error(self, store):
        """Test that output and error are persisted with the status."""
        await store.create_instances("delivery", [("d-1", {}), ("d-2", {})])

        await store.set_status("d-1", "complete", output={"success": True})
        await store.set_status("d-2", "errored", error="Failed to send notification for article: https://x/b")

        done = await store.get_instance("delivery", "d-1")
        failed = await store.get_instance("delivery", "d-2")
        assert done["output"] == {"success": True}
        assert failed["status"] == "errored"
        assert failed["error"].startswith("Failed to send notification")

    async def test_list_unfinished(self, store):
        """Test that only queued and running instances of the type are listed."""
        await store.create_instances("delivery", [("q", {"n": 1}), ("r", {"n": 2}), ("c", {"n": 3})])
        await store.create_instances("discovery", [("other", {})])
        await store.set_status("r", "running")
        await store.set_status("c", "complete", output={})

        unfinished = await store.list_unfinished("delivery")

        assert sorted(unfinished) == [("q", {"n": 1}), ("r", {"n": 2})]

    async def test_step_checkpoints(self, store):
        """Test that a checkpoint is written once and read back."""
        assert await store.load_step("d-1", "send_notification") is MISSING

        await store.save_step("d-1", "send_notification", True)
        await store.save_step("d-1", "send_notification", False)

        assert await store.load_step("d-1", "send_notification") is True

    async def test_null_checkpoint_is_not_missing(self, store):
        """Test that a stored None is distinguishable from no checkpoint."""
        await store.save_step("d-1", "fetch_article_links", None)

        assert await store.load_step("d-1", "fetch_article_links") is None
