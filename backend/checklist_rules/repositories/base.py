"""Workflow Store - Persisted store interface used by the engine and services"""
from abc import ABC, abstractmethod
from typing import List, Optional

from ..domain.models import InboundEvent, Workflow, WorkflowAnalytics, WorkflowExecutionResult
from ..domain.enums import ExecutionStatus
from ..domain.errors import WorkflowNotFoundError


class WorkflowStore(ABC):
    """
    Persistence for workflow definitions, analytics, the execution log and
    received events

    `update_analytics` must be an atomic read-modify-write per workflow so
    concurrent executions of the same workflow never lose an update.
    """

    @abstractmethod
    async def load_workflows(self, workspace_id: Optional[str] = None) -> List[Workflow]:
        """Workflows of a workspace (all workspaces when None)"""

    @abstractmethod
    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Workflow by ID, or None"""

    @abstractmethod
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        """Insert a new workflow atomically; AlreadyExistsError if the ID is taken"""

    @abstractmethod
    async def save_workflow(self, workflow: Workflow) -> Workflow:
        """Insert or replace a workflow definition (analytics are preserved on replace)"""

    @abstractmethod
    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow; False if it did not exist"""

    @abstractmethod
    async def update_analytics(
        self,
        workflow_id: str,
        outcome: ExecutionStatus,
        duration_ms: float,
        error: Optional[str] = None
    ) -> WorkflowAnalytics:
        """Fold one finished execution into the workflow's analytics"""

    @abstractmethod
    async def record_execution(self, result: WorkflowExecutionResult) -> None:
        """Append a finished execution to the execution log"""

    @abstractmethod
    async def list_executions(
        self,
        workflow_id: str,
        limit: int = 50
    ) -> List[WorkflowExecutionResult]:
        """Most recent executions of a workflow, newest first"""

    @abstractmethod
    async def record_event(self, event: InboundEvent) -> None:
        """Store a received event (its secret is never stored)"""

    @abstractmethod
    async def list_events(
        self,
        workspace_id: str,
        limit: int = 50
    ) -> List[InboundEvent]:
        """Most recent events of a workspace, newest first"""

    async def get_workflow_or_raise(self, workflow_id: str) -> Workflow:
        """Get workflow by ID or raise error"""
        workflow = await self.get_workflow(workflow_id)
        if not workflow:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return workflow
