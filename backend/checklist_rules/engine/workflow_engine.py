"""Workflow Engine - Condition evaluation, ordered action execution and retries"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..domain.models import (
    Workflow, WorkflowAction, InboundEvent, WorkflowError, WorkflowStepResult,
    WorkflowExecutionResult
)
from ..domain.enums import (
    ExecutionState, ExecutionStatus, StepResultStatus, WorkflowErrorType
)
from ..domain.errors import DomainError, WorkflowTimeoutError
from ..repositories.base import WorkflowStore
from ..config.settings import settings
from .action_dispatcher import ActionContext, ActionDispatcher
from .condition_evaluator import ConditionEvaluator
from .retry_policy import compute_delay
from .template_renderer import render_payload
from ..utils.idgen import generate_execution_id
from ..utils.logger import get_logger, correlation_scope
from ..utils.time import utc_now, elapsed_ms

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class WorkflowEngine:
    """
    Run one workflow against one event

    State machine per run:
    MATCHED -> CONDITIONS_EVALUATED -> EXECUTING -> COMPLETED | FAILED
    (or CONDITIONS_EVALUATED -> SKIPPED when the conditions do not hold).

    Actions run strictly in ascending `order`. A failed action is retried per
    its retry policy; once retries are exhausted the run fails and the
    remaining actions are not started. The whole action sequence is bounded
    by an overall timeout. Finished runs (completed or failed) update the
    workflow's analytics and are appended to the execution log; skipped runs
    touch neither.
    """

    def __init__(
        self,
        store: WorkflowStore,
        dispatcher: ActionDispatcher,
        condition_evaluator: Optional[ConditionEvaluator] = None,
        timeout_seconds: Optional[float] = None,
        sleep: Sleep = asyncio.sleep
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else settings.workflow_execution_timeout_seconds
        )
        self._sleep = sleep

    async def execute(
        self,
        workflow: Workflow,
        event: Optional[InboundEvent] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> WorkflowExecutionResult:
        """
        Execute a matched workflow

        Args:
            workflow: Workflow definition (already matched to the event)
            event: Triggering event; its payload is used unless `payload` is given
            payload: Data the conditions and action placeholders read

        Returns:
            Execution result. Action failures are reported here and in
            analytics, never raised.

        Raises:
            PersistenceError: If analytics or the execution log cannot be written
        """
        if payload is None:
            payload = event.payload if event else {}

        with correlation_scope(generate_execution_id()) as execution_id:
            return await self._execute(workflow, event, payload, execution_id)

    async def _execute(
        self,
        workflow: Workflow,
        event: Optional[InboundEvent],
        payload: Dict[str, Any],
        execution_id: str
    ) -> WorkflowExecutionResult:
        log_extra = {
            "workflow_id": workflow.workflow_id,
            "execution_id": execution_id,
            "workspace_id": workflow.workspace_id
        }
        result = WorkflowExecutionResult(
            execution_id=execution_id,
            workflow_id=workflow.workflow_id,
            workspace_id=workflow.workspace_id,
            event_id=event.event_id if event else None,
            state=ExecutionState.MATCHED,
            state_history=[ExecutionState.MATCHED]
        )

        result.conditions_met = self.condition_evaluator.evaluate_chain(workflow.conditions, payload)
        self._transition(result, ExecutionState.CONDITIONS_EVALUATED)

        if not result.conditions_met:
            self._transition(result, ExecutionState.SKIPPED)
            result.finished_at = utc_now()
            result.duration_ms = elapsed_ms(result.started_at, result.finished_at)
            logger.info(f"Workflow {workflow.workflow_id} conditions not met, skipping", extra=log_extra)
            return result

        self._transition(result, ExecutionState.EXECUTING)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds if self.timeout_seconds else None

        try:
            result.error = await asyncio.wait_for(
                self._run_actions(workflow, payload, result, deadline),
                timeout=self.timeout_seconds or None
            )
        except asyncio.TimeoutError:
            timeout_error = WorkflowTimeoutError(
                f"Workflow execution exceeded {self.timeout_seconds}s",
                details={"timeout_seconds": self.timeout_seconds}
            )
            self._fail_in_flight(result, timeout_error)
            result.error = timeout_error.message
            logger.error(f"Workflow {workflow.workflow_id} timed out", extra=log_extra)

        result.finished_at = utc_now()
        result.duration_ms = elapsed_ms(result.started_at, result.finished_at)

        if result.error:
            self._transition(result, ExecutionState.FAILED)
            outcome = ExecutionStatus.FAILED
        else:
            self._transition(result, ExecutionState.COMPLETED)
            outcome = ExecutionStatus.SUCCESS

        await self.store.update_analytics(
            workflow.workflow_id, outcome, result.duration_ms, error=result.error
        )
        await self.store.record_execution(result)

        logger.info(
            f"Workflow {workflow.workflow_id} finished: {result.state.value}",
            extra={**log_extra, "status": result.state.value, "duration_ms": result.duration_ms}
        )
        return result

    async def _run_actions(
        self,
        workflow: Workflow,
        payload: Dict[str, Any],
        result: WorkflowExecutionResult,
        deadline: Optional[float]
    ) -> Optional[str]:
        """Run actions in order; return the failure message of the first failed action"""
        for action in workflow.ordered_actions():
            step = WorkflowStepResult(
                step_id=action.id,
                action_type=action.type,
                order=action.order,
                status=StepResultStatus.PENDING
            )
            result.step_results.append(step)

            await self._run_action(workflow, action, payload, step, result.execution_id, deadline)

            if step.status == StepResultStatus.FAILED:
                message = step.errors[-1].message if step.errors else "Action failed"
                return f"Action {action.id} ({action.type.value}) failed: {message}"
        return None

    async def _run_action(
        self,
        workflow: Workflow,
        action: WorkflowAction,
        payload: Dict[str, Any],
        step: WorkflowStepResult,
        execution_id: str,
        deadline: Optional[float]
    ) -> None:
        """Execute one action with its retry policy, recording into `step`"""
        policy = action.retry_policy
        rendered = render_payload(action.config, payload)
        log_extra = {
            "workflow_id": workflow.workflow_id,
            "execution_id": execution_id,
            "action_type": action.type.value,
            "step_id": action.id
        }
        started_at = utc_now()

        for attempt in range(1, policy.max_retries + 2):
            step.attempts = attempt
            context = ActionContext(
                execution_id=execution_id,
                workflow_id=workflow.workflow_id,
                workspace_id=workflow.workspace_id,
                attempt=attempt,
                deadline=deadline
            )
            try:
                step.outputs = await self.dispatcher.dispatch(action, rendered, context)
                step.status = StepResultStatus.COMPLETED
                break

            except Exception as e:
                # Plain exceptions are retryable; DomainErrors carry their own flag
                retryable = getattr(e, "retryable", True) and attempt <= policy.max_retries
                step.errors.append(self._to_workflow_error(action.id, e, retryable=retryable))
                logger.warning(
                    f"Action {action.id} attempt {attempt} failed: {e}",
                    extra={**log_extra, "attempt": attempt}
                )
                if not retryable:
                    step.status = StepResultStatus.FAILED
                    logger.error(
                        f"Action {action.id} failed after {attempt} attempt(s)",
                        extra={**log_extra, "attempt": attempt}
                    )
                    break

                delay = compute_delay(policy, attempt - 1)
                step.retry_delays.append(delay)
                await self._sleep(delay)

        step.duration_ms = elapsed_ms(started_at)

    @staticmethod
    def _to_workflow_error(step_id: str, error: Exception, retryable: bool) -> WorkflowError:
        """Classify a failure; non-domain exceptions count as system errors"""
        if isinstance(error, DomainError):
            error_type, message, details = error.error_type, error.message, error.details
        else:
            error_type, message, details = WorkflowErrorType.SYSTEM, str(error), {}

        return WorkflowError(
            step_id=step_id,
            action_id=step_id,
            type=error_type,
            message=message,
            details=details,
            retryable=retryable
        )

    @classmethod
    def _fail_in_flight(cls, result: WorkflowExecutionResult, error: WorkflowTimeoutError) -> None:
        """Mark the action interrupted by the timeout as failed"""
        for step in result.step_results:
            if step.status == StepResultStatus.PENDING:
                step.status = StepResultStatus.FAILED
                step.errors.append(cls._to_workflow_error(step.step_id, error, retryable=False))

    @staticmethod
    def _transition(result: WorkflowExecutionResult, state: ExecutionState) -> None:
        result.state = state
        result.state_history.append(state)


async def run_workflows(
    engine: WorkflowEngine,
    workflows: List[Workflow],
    event: InboundEvent
) -> List[WorkflowExecutionResult]:
    """Run several matched workflows concurrently as independent tasks"""
    if not workflows:
        return []
    return list(await asyncio.gather(*(engine.execute(w, event) for w in workflows)))
