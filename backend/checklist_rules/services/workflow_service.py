"""Workflow Service - Workflow automation management and event routing"""
from typing import Any, Dict, List, Optional, Union
from pydantic import ValidationError as PydanticValidationError

from ..domain.models import (
    Workflow, WorkflowAnalytics, InboundEvent, WorkflowExecutionResult, ScheduleTrigger
)
from ..domain.errors import ValidationError, WorkflowNotFoundError
from ..engine.action_dispatcher import ActionDispatcher
from ..engine.trigger_matcher import TriggerMatcher
from ..engine.workflow_engine import WorkflowEngine, run_workflows
from ..repositories.base import WorkflowStore
from ..scheduler.workflow_scheduler import WorkflowScheduler
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowService:
    """
    Service for workflow automation operations

    Store errors (PersistenceError) propagate to the caller. Action failures
    never do: they are visible in the execution result and analytics.
    """

    def __init__(
        self,
        store: WorkflowStore,
        dispatcher: Optional[ActionDispatcher] = None,
        engine: Optional[WorkflowEngine] = None,
        matcher: Optional[TriggerMatcher] = None,
        scheduler: Optional[WorkflowScheduler] = None
    ):
        self.store = store
        self.engine = engine or WorkflowEngine(store, dispatcher or ActionDispatcher())
        self.matcher = matcher or TriggerMatcher()
        self.scheduler = scheduler

    def attach_scheduler(self, scheduler: WorkflowScheduler) -> None:
        """Use a scheduler for schedule-triggered workflows"""
        self.scheduler = scheduler

    # =========================================================================
    # Definitions
    # =========================================================================

    async def create_workflow(self, data: Union[Workflow, Dict[str, Any]]) -> Workflow:
        """
        Create a workflow (disabled unless `enabled` is given)

        Raises:
            ValidationError: If the definition or its schedule is invalid
            AlreadyExistsError: If the workflow ID is taken
        """
        workflow = data if isinstance(data, Workflow) else self._parse(data)

        if isinstance(workflow.trigger, ScheduleTrigger):
            WorkflowScheduler.build_trigger(workflow.trigger)

        now = utc_now()
        workflow.created_at = now
        workflow.updated_at = now
        saved = await self.store.create_workflow(workflow)
        self._reschedule(saved)

        logger.info(
            f"Created workflow {saved.workflow_id} ({saved.trigger.type})",
            extra={"workflow_id": saved.workflow_id, "workspace_id": saved.workspace_id}
        )
        return saved

    async def get_workflow(self, workflow_id: str) -> Workflow:
        """Get workflow by ID"""
        return await self.store.get_workflow_or_raise(workflow_id)

    async def list_workflows(
        self,
        workspace_id: str,
        enabled: Optional[bool] = None
    ) -> List[Workflow]:
        """List a workspace's workflows, optionally filtered by enabled flag"""
        workflows = await self.store.load_workflows(workspace_id)
        if enabled is None:
            return workflows
        return [w for w in workflows if w.enabled == enabled]

    async def set_enabled(self, workflow_id: str, enabled: bool) -> Workflow:
        """Enable or disable a workflow"""
        workflow = await self.store.get_workflow_or_raise(workflow_id)
        workflow.enabled = enabled
        saved = await self.store.save_workflow(workflow)
        self._reschedule(saved)

        logger.info(
            f"Workflow {workflow_id} {'enabled' if enabled else 'disabled'}",
            extra={"workflow_id": workflow_id}
        )
        return saved

    async def delete_workflow(self, workflow_id: str) -> None:
        """Delete a workflow and its schedule"""
        if not await self.store.delete_workflow(workflow_id):
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        if self.scheduler:
            self.scheduler.unschedule(workflow_id)
        logger.info(f"Deleted workflow {workflow_id}", extra={"workflow_id": workflow_id})

    # =========================================================================
    # Execution
    # =========================================================================

    async def process_event(self, event: InboundEvent) -> List[WorkflowExecutionResult]:
        """
        Route an inbound event to every matching workflow

        The event is stored first, then matched workflows run concurrently
        as independent tasks.
        """
        await self.store.record_event(event)
        workflows = await self.store.load_workflows(event.workspace_id)
        matched = self.matcher.select(workflows, event)

        logger.info(
            f"Event {event.event_type} matched {len(matched)} workflow(s)",
            extra={"workspace_id": event.workspace_id, "event_type": event.event_type}
        )
        return await run_workflows(self.engine, matched, event)

    async def execute_workflow(
        self,
        workflow_id: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> WorkflowExecutionResult:
        """
        Run a workflow directly, bypassing trigger matching

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            ValidationError: If the workflow is disabled
        """
        workflow = await self.store.get_workflow_or_raise(workflow_id)
        if not workflow.enabled:
            raise ValidationError(
                f"Workflow {workflow_id} is disabled",
                details={"workflow_id": workflow_id}
            )
        return await self.engine.execute(workflow, payload=payload or {})

    async def get_analytics(self, workflow_id: str) -> WorkflowAnalytics:
        """Current analytics of a workflow"""
        workflow = await self.store.get_workflow_or_raise(workflow_id)
        return workflow.analytics

    async def list_executions(
        self,
        workflow_id: str,
        limit: int = 50
    ) -> List[WorkflowExecutionResult]:
        """Recent executions of a workflow, newest first"""
        await self.store.get_workflow_or_raise(workflow_id)
        return await self.store.list_executions(workflow_id, limit=limit)

    async def list_events(self, workspace_id: str, limit: int = 50) -> List[InboundEvent]:
        """Recently received events of a workspace, newest first"""
        return await self.store.list_events(workspace_id, limit=limit)

    async def sync_schedules(self, workspace_id: Optional[str] = None) -> int:
        """Register cron jobs for stored schedule-triggered workflows"""
        if not self.scheduler:
            return 0
        return self.scheduler.sync(await self.store.load_workflows(workspace_id))

    def _reschedule(self, workflow: Workflow) -> None:
        if self.scheduler:
            self.scheduler.schedule(workflow)

    @staticmethod
    def _parse(data: Dict[str, Any]) -> Workflow:
        try:
            return Workflow.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid workflow definition",
                details={"errors": str(e)[:500]}
            ) from e
