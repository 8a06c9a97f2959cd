"""In-Memory Workflow Store - Process-local store for tests and embedding"""
import asyncio
from collections import defaultdict
from typing import Dict, List, Optional

from .base import WorkflowStore
from ..domain.models import InboundEvent, Workflow, WorkflowAnalytics, WorkflowExecutionResult
from ..domain.enums import ExecutionStatus
from ..domain.errors import AlreadyExistsError, WorkflowNotFoundError
from ..engine.analytics_recorder import apply_outcome
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryWorkflowStore(WorkflowStore):
    """
    Dict-backed workflow store

    Analytics updates are serialized by a per-workflow asyncio.Lock.
    Stored objects are copies, so callers never mutate the store directly.
    """

    def __init__(self):
        self._workflows: Dict[str, Workflow] = {}
        self._executions: Dict[str, List[WorkflowExecutionResult]] = defaultdict(list)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._events: Dict[str, List[InboundEvent]] = defaultdict(list)

    async def load_workflows(self, workspace_id: Optional[str] = None) -> List[Workflow]:
        return [
            w.model_copy(deep=True) for w in self._workflows.values()
            if workspace_id is None or w.workspace_id == workspace_id
        ]

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        async with self._locks[workflow.workflow_id]:
            if workflow.workflow_id in self._workflows:
                raise AlreadyExistsError(
                    f"Workflow {workflow.workflow_id} already exists",
                    details={"workflow_id": workflow.workflow_id}
                )
            self._workflows[workflow.workflow_id] = workflow.model_copy(deep=True)
        return workflow.model_copy(deep=True)

    async def save_workflow(self, workflow: Workflow) -> Workflow:
        async with self._locks[workflow.workflow_id]:
            existing = self._workflows.get(workflow.workflow_id)
            stored = workflow.model_copy(deep=True)
            if existing:
                stored.analytics = existing.analytics.model_copy()
                stored.analytics_version = existing.analytics_version
                stored.last_run = existing.last_run
            stored.updated_at = utc_now()
            self._workflows[workflow.workflow_id] = stored
        return stored.model_copy(deep=True)

    async def delete_workflow(self, workflow_id: str) -> bool:
        async with self._locks[workflow_id]:
            deleted = self._workflows.pop(workflow_id, None) is not None
        self._locks.pop(workflow_id, None)
        self._executions.pop(workflow_id, None)
        return deleted

    async def update_analytics(
        self,
        workflow_id: str,
        outcome: ExecutionStatus,
        duration_ms: float,
        error: Optional[str] = None
    ) -> WorkflowAnalytics:
        async with self._locks[workflow_id]:
            workflow = self._workflows.get(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(
                    f"Workflow {workflow_id} not found",
                    details={"workflow_id": workflow_id}
                )
            analytics = apply_outcome(workflow.analytics, outcome, duration_ms, error)
            workflow.analytics = analytics
            workflow.analytics_version += 1
            workflow.last_run = analytics.last_execution_time
        return analytics.model_copy()

    async def record_execution(self, result: WorkflowExecutionResult) -> None:
        self._executions[result.workflow_id].append(result.model_copy(deep=True))

    async def list_executions(
        self,
        workflow_id: str,
        limit: int = 50
    ) -> List[WorkflowExecutionResult]:
        return list(reversed(self._executions.get(workflow_id, [])))[:limit]

    async def record_event(self, event: InboundEvent) -> None:
        self._events[event.workspace_id].append(event.model_copy(update={"secret": None}, deep=True))

    async def list_events(self, workspace_id: str, limit: int = 50) -> List[InboundEvent]:
        return list(reversed(self._events.get(workspace_id, [])))[:limit]

