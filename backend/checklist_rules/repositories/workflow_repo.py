"""Workflow Repository - MongoDB store for workflows, analytics, executions and events"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from pydantic import ValidationError

from .base import WorkflowStore
from .async_mongo import get_async_database
from ..config.settings import settings
from ..domain.models import InboundEvent, Workflow, WorkflowAnalytics, WorkflowExecutionResult
from ..domain.enums import ExecutionStatus
from ..domain.errors import (
    WorkflowNotFoundError, ConcurrencyError, AlreadyExistsError, PersistenceError
)
from ..engine.analytics_recorder import apply_outcome
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Fields owned by the engine; replacing a definition never overwrites them
ENGINE_OWNED_FIELDS = ("analytics", "analytics_version", "last_run", "created_at")


@contextmanager
def _mongo_errors(operation: str) -> Iterator[None]:
    """Wrap driver failures in PersistenceError"""
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error(f"MongoDB {operation} failed: {e}")
        raise PersistenceError(
            f"Workflow store {operation} failed",
            details={"operation": operation, "reason": str(e)}
        ) from e


class MongoWorkflowStore(WorkflowStore):
    """
    Workflow store backed by MongoDB (Motor)

    Analytics use optimistic concurrency on `analytics_version`: read,
    fold the outcome in, write back only if the version is unchanged,
    retry on conflict.
    """

    def __init__(
        self,
        database: Optional[AsyncIOMotorDatabase] = None,
        max_update_attempts: Optional[int] = None
    ):
        db = database if database is not None else get_async_database()
        self._workflows = db[settings.workflows_collection]
        self._executions = db[settings.executions_collection]
        self._events = db[settings.events_collection]
        self.max_update_attempts = max_update_attempts or settings.analytics_max_update_attempts

    # =========================================================================
    # Workflow Definitions
    # =========================================================================

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        """Insert a new workflow"""
        doc = workflow.model_dump(mode="json")
        doc["_id"] = workflow.workflow_id

        try:
            with _mongo_errors("insert"):
                await self._workflows.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(
                f"Workflow {workflow.workflow_id} already exists",
                details={"workflow_id": workflow.workflow_id}
            )
        logger.info(
            f"Created workflow: {workflow.workflow_id}",
            extra={"workflow_id": workflow.workflow_id, "workspace_id": workflow.workspace_id}
        )
        return workflow

    async def save_workflow(self, workflow: Workflow) -> Workflow:
        doc = workflow.model_dump(mode="json")
        preserved = {key: doc.pop(key) for key in ENGINE_OWNED_FIELDS}
        doc["updated_at"] = utc_now().isoformat()

        with _mongo_errors("save"):
            await self._workflows.update_one(
                {"_id": workflow.workflow_id},
                {"$set": doc, "$setOnInsert": preserved},
                upsert=True
            )
        logger.info(f"Saved workflow: {workflow.workflow_id}", extra={"workflow_id": workflow.workflow_id})
        return await self.get_workflow_or_raise(workflow.workflow_id)

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        with _mongo_errors("read"):
            doc = await self._workflows.find_one({"workflow_id": workflow_id})
        return self._to_workflow(doc) if doc else None

    async def load_workflows(self, workspace_id: Optional[str] = None) -> List[Workflow]:
        """Workflows of a workspace. Corrupted records are skipped."""
        query: Dict[str, Any] = {}
        if workspace_id is not None:
            query["workspace_id"] = workspace_id

        with _mongo_errors("read"):
            docs = await self._workflows.find(query).sort("created_at", 1).to_list(length=None)

        workflows = []
        for doc in docs:
            workflow = self._to_workflow(doc)
            if workflow:
                workflows.append(workflow)
        return workflows

    async def delete_workflow(self, workflow_id: str) -> bool:
        with _mongo_errors("delete"):
            result = await self._workflows.delete_one({"workflow_id": workflow_id})
        return result.deleted_count > 0

    # =========================================================================
    # Analytics
    # =========================================================================

    async def update_analytics(
        self,
        workflow_id: str,
        outcome: ExecutionStatus,
        duration_ms: float,
        error: Optional[str] = None
    ) -> WorkflowAnalytics:
        """
        Fold one execution outcome into the stored analytics

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            ConcurrencyError: If every attempt lost the optimistic lock
        """
        for attempt in range(1, self.max_update_attempts + 1):
            with _mongo_errors("read"):
                doc = await self._workflows.find_one(
                    {"workflow_id": workflow_id},
                    {"analytics": 1, "analytics_version": 1}
                )
            if doc is None:
                raise WorkflowNotFoundError(
                    f"Workflow {workflow_id} not found",
                    details={"workflow_id": workflow_id}
                )

            version = doc.get("analytics_version", 0)
            current = WorkflowAnalytics.model_validate(doc.get("analytics") or {})
            updated = apply_outcome(current, outcome, duration_ms, error)
            updated_doc = updated.model_dump(mode="json")

            with _mongo_errors("analytics update"):
                result = await self._workflows.find_one_and_update(
                    {"workflow_id": workflow_id, "analytics_version": version},
                    {"$set": {
                        "analytics": updated_doc,
                        "analytics_version": version + 1,
                        "last_run": updated_doc["last_execution_time"]
                    }},
                    return_document=ReturnDocument.AFTER
                )

            if result is not None:
                return updated

            logger.warning(
                f"Analytics update conflict for {workflow_id}, retrying",
                extra={"workflow_id": workflow_id, "attempt": attempt}
            )

        raise ConcurrencyError(
            f"Analytics for workflow {workflow_id} were modified concurrently",
            details={"workflow_id": workflow_id, "attempts": self.max_update_attempts}
        )

    # =========================================================================
    # Execution Log
    # =========================================================================

    async def record_execution(self, result: WorkflowExecutionResult) -> None:
        doc = result.model_dump(mode="json")
        doc["_id"] = result.execution_id
        with _mongo_errors("execution insert"):
            await self._executions.insert_one(doc)

    async def list_executions(
        self,
        workflow_id: str,
        limit: int = 50
    ) -> List[WorkflowExecutionResult]:
        with _mongo_errors("read"):
            docs = await (
                self._executions.find({"workflow_id": workflow_id})
                .sort("started_at", DESCENDING)
                .limit(limit)
                .to_list(length=limit)
            )

        executions = []
        for doc in docs:
            doc.pop("_id", None)
            try:
                executions.append(WorkflowExecutionResult.model_validate(doc))
            except ValidationError as e:
                logger.warning(
                    f"Skipping corrupted execution {doc.get('execution_id', 'unknown')}",
                    extra={"workflow_id": workflow_id, "status": "corrupted"}
                )
                logger.debug(str(e)[:300])
        return executions

    # =========================================================================
    # Received Events
    # =========================================================================

    async def record_event(self, event: InboundEvent) -> None:
        doc = event.model_dump(mode="json", exclude={"secret"})
        doc["_id"] = event.event_id
        with _mongo_errors("event insert"):
            await self._events.insert_one(doc)

    async def list_events(self, workspace_id: str, limit: int = 50) -> List[InboundEvent]:
        with _mongo_errors("read"):
            docs = await (
                self._events.find({"workspace_id": workspace_id})
                .sort("timestamp", DESCENDING)
                .limit(limit)
                .to_list(length=limit)
            )

        events = []
        for doc in docs:
            doc.pop("_id", None)
            try:
                events.append(InboundEvent.model_validate(doc))
            except ValidationError:
                logger.warning(
                    f"Skipping corrupted event {doc.get('event_id', 'unknown')}",
                    extra={"workspace_id": workspace_id, "status": "corrupted"}
                )
        return events

    @staticmethod
    def _to_workflow(doc: Dict[str, Any]) -> Optional[Workflow]:
        doc.pop("_id", None)
        try:
            return Workflow.model_validate(doc)
        except ValidationError as e:
            workflow_id = doc.get("workflow_id", "unknown")
            logger.error(
                f"Corrupted workflow data for {workflow_id}. Validation failed: {str(e)[:500]}",
                extra={"workflow_id": workflow_id}
            )
            return None
