"""MongoWorkflowStore against mocked Motor collections"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from checklist_rules.config.settings import settings
from checklist_rules.domain.enums import ExecutionStatus
from checklist_rules.domain.models import InboundEvent
from checklist_rules.domain.errors import (
    AlreadyExistsError, ConcurrencyError, PersistenceError, WorkflowNotFoundError
)
from checklist_rules.repositories.async_mongo import create_indexes
from checklist_rules.repositories.workflow_repo import MongoWorkflowStore


def _collection() -> MagicMock:
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.find_one = AsyncMock()
    collection.find_one_and_update = AsyncMock()
    collection.delete_one = AsyncMock()
    return collection


def _cursor(docs) -> MagicMock:
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.fixture
def workflows_collection() -> MagicMock:
    return _collection()


@pytest.fixture
def executions_collection() -> MagicMock:
    return _collection()


@pytest.fixture
def events_collection() -> MagicMock:
    return _collection()


@pytest.fixture
def mongo_store(workflows_collection, executions_collection, events_collection) -> MongoWorkflowStore:
    database = {
        settings.workflows_collection: workflows_collection,
        settings.executions_collection: executions_collection,
        settings.events_collection: events_collection,
    }
    return MongoWorkflowStore(database, max_update_attempts=3)


def _doc(workflow, **overrides):
    doc = workflow.model_dump(mode="json")
    doc["_id"] = workflow.workflow_id
    doc.update(overrides)
    return doc


class TestDefinitions:
    @pytest.mark.asyncio
    async def test_create_duplicate(self, mongo_store, workflows_collection, make_workflow):
        workflows_collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        with pytest.raises(AlreadyExistsError):
            await mongo_store.create_workflow(make_workflow())

    @pytest.mark.asyncio
    async def test_create_inserts_once(self, mongo_store, workflows_collection, make_workflow):
        workflow = make_workflow()

        created = await mongo_store.create_workflow(workflow)

        doc = workflows_collection.insert_one.await_args.args[0]
        assert doc["_id"] == workflow.workflow_id
        assert created.workflow_id == workflow.workflow_id
        workflows_collection.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_preserves_engine_fields(self, mongo_store, workflows_collection, make_workflow):
        workflow = make_workflow()
        workflows_collection.find_one.return_value = _doc(workflow)

        saved = await mongo_store.save_workflow(workflow)

        query, update = workflows_collection.update_one.await_args.args
        assert query == {"_id": workflow.workflow_id}
        assert "analytics" not in update["$set"]
        assert "analytics_version" not in update["$set"]
        assert set(update["$setOnInsert"]) == {"analytics", "analytics_version", "last_run", "created_at"}
        assert workflows_collection.update_one.await_args.kwargs["upsert"] is True
        assert saved.workflow_id == workflow.workflow_id

    @pytest.mark.asyncio
    async def test_load_skips_corrupted_records(self, mongo_store, workflows_collection, make_workflow):
        good = make_workflow()
        cursor = _cursor([_doc(good), {"_id": "WF-bad", "workflow_id": "WF-bad", "trigger": {"type": "?"}}])
        workflows_collection.find.return_value = cursor

        workflows = await mongo_store.load_workflows("WS-1")

        assert [w.workflow_id for w in workflows] == [good.workflow_id]
        workflows_collection.find.assert_called_once_with({"workspace_id": "WS-1"})
        cursor.sort.assert_called_once_with("created_at", 1)

    @pytest.mark.asyncio
    async def test_load_all_workspaces(self, mongo_store, workflows_collection):
        workflows_collection.find.return_value = _cursor([])
        assert await mongo_store.load_workflows() == []
        workflows_collection.find.assert_called_once_with({})

    @pytest.mark.asyncio
    async def test_delete(self, mongo_store, workflows_collection):
        workflows_collection.delete_one.return_value = MagicMock(deleted_count=0)
        assert await mongo_store.delete_workflow("WF-missing") is False

    @pytest.mark.asyncio
    async def test_driver_failure_becomes_persistence_error(self, mongo_store, workflows_collection):
        workflows_collection.find_one.side_effect = ServerSelectionTimeoutError("no primary")

        with pytest.raises(PersistenceError) as exc_info:
            await mongo_store.get_workflow("WF-1")
        assert exc_info.value.details["operation"] == "read"


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_versioned_update(self, mongo_store, workflows_collection):
        workflows_collection.find_one.return_value = {"analytics": {}, "analytics_version": 4}
        workflows_collection.find_one_and_update.return_value = {"workflow_id": "WF-1"}

        analytics = await mongo_store.update_analytics("WF-1", ExecutionStatus.SUCCESS, 120)

        assert analytics.total_executions == 1
        query, update = workflows_collection.find_one_and_update.await_args.args
        assert query == {"workflow_id": "WF-1", "analytics_version": 4}
        assert update["$set"]["analytics_version"] == 5
        assert update["$set"]["analytics"]["successful_executions"] == 1

    @pytest.mark.asyncio
    async def test_conflict_is_retried(self, mongo_store, workflows_collection):
        workflows_collection.find_one.side_effect = [
            {"analytics": {"total_executions": 1, "successful_executions": 1}, "analytics_version": 1},
            {"analytics": {"total_executions": 2, "successful_executions": 2}, "analytics_version": 2},
        ]
        workflows_collection.find_one_and_update.side_effect = [None, {"workflow_id": "WF-1"}]

        analytics = await mongo_store.update_analytics("WF-1", ExecutionStatus.FAILED, 50, error="boom")

        assert analytics.total_executions == 3
        assert analytics.failed_executions == 1
        assert workflows_collection.find_one_and_update.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, mongo_store, workflows_collection):
        workflows_collection.find_one.return_value = {"analytics": {}, "analytics_version": 0}
        workflows_collection.find_one_and_update.return_value = None

        with pytest.raises(ConcurrencyError):
            await mongo_store.update_analytics("WF-1", ExecutionStatus.SUCCESS, 10)
        assert workflows_collection.find_one_and_update.await_count == 3

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, mongo_store, workflows_collection):
        workflows_collection.find_one.return_value = None

        with pytest.raises(WorkflowNotFoundError):
            await mongo_store.update_analytics("WF-missing", ExecutionStatus.SUCCESS, 10)


class TestExecutionLog:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, mongo_store, executions_collection):
        doc = {
            "_id": "EXE-1", "execution_id": "EXE-1", "workflow_id": "WF-1",
            "workspace_id": "WS-1", "state": "completed",
        }
        cursor = _cursor([doc])
        executions_collection.find.return_value = cursor

        executions = await mongo_store.list_executions("WF-1", limit=10)

        assert [e.execution_id for e in executions] == ["EXE-1"]
        cursor.limit.assert_called_once_with(10)
        assert cursor.sort.call_args.args[0] == "started_at"


class TestReceivedEvents:
    @pytest.mark.asyncio
    async def test_record_drops_secret(self, mongo_store, events_collection):
        event = InboundEvent(
            workspace_id="WS-1", event_type="push", source="webhook",
            webhook_path="/hooks/ci", secret="s3cret", payload={"ref": "main"}
        )

        await mongo_store.record_event(event)

        doc = events_collection.insert_one.await_args.args[0]
        assert doc["_id"] == event.event_id
        assert "secret" not in doc
        assert doc["payload"] == {"ref": "main"}

    @pytest.mark.asyncio
    async def test_list_newest_first(self, mongo_store, events_collection):
        docs = [
            {"_id": "EVT-2", "event_id": "EVT-2", "workspace_id": "WS-1", "event_type": "b", "source": "upstream_event"},
            {"_id": "EVT-x", "event_id": "EVT-x", "workspace_id": "WS-1", "source": "carrier_pigeon"},
        ]
        cursor = _cursor(docs)
        events_collection.find.return_value = cursor

        events = await mongo_store.list_events("WS-1", limit=5)

        assert [e.event_id for e in events] == ["EVT-2"]
        events_collection.find.assert_called_once_with({"workspace_id": "WS-1"})
        assert cursor.sort.call_args.args[0] == "timestamp"
        cursor.limit.assert_called_once_with(5)

    @pytest.mark.asyncio
    async def test_insert_failure_becomes_persistence_error(self, mongo_store, events_collection):
        events_collection.insert_one.side_effect = ServerSelectionTimeoutError("no primary")

        with pytest.raises(PersistenceError):
            await mongo_store.record_event(
                InboundEvent(workspace_id="WS-1", event_type="a", source="upstream_event")
            )


@pytest.mark.asyncio
async def test_create_indexes(workflows_collection, executions_collection, events_collection):
    for collection in (workflows_collection, executions_collection, events_collection):
        collection.create_indexes = AsyncMock()
    database = {
        settings.workflows_collection: workflows_collection,
        settings.executions_collection: executions_collection,
        settings.events_collection: events_collection,
    }

    await create_indexes(database)

    names = [index.document["name"] for index in workflows_collection.create_indexes.await_args.args[0]]
    assert "workflow_id_unique" in names
    executions_collection.create_indexes.assert_awaited_once()
    event_names = [index.document["name"] for index in events_collection.create_indexes.await_args.args[0]]
    assert "workspace_recent_events" in event_names
