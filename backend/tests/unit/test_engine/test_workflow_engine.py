"""WorkflowEngine ordering, retries, timeout, analytics and execution log"""

import asyncio

import pytest

from checklist_rules.domain.enums import (
    ExecutionState, ExecutionStatus, StepResultStatus, WorkflowErrorType
)
from checklist_rules.domain.errors import EndpointCallError, ValidationError
from checklist_rules.domain.models import InboundEvent
from checklist_rules.engine.action_dispatcher import ActionExecutor
from checklist_rules.utils.logger import get_correlation_id


def _action(order, retries=0, strategy="exponential", **config):
    return {
        "id": f"ACT-{order}",
        "type": "send_message",
        "order": order,
        "config": config,
        "retry_policy": {"max_retries": retries, "backoff_strategy": strategy, "initial_delay_seconds": 1},
    }


@pytest.mark.asyncio
async def test_actions_run_in_ascending_order(store, calls, make_executor, make_engine, make_workflow):
    workflow = await store.save_workflow(make_workflow(actions=[_action(2), _action(1), _action(3)]))
    engine = make_engine(make_executor())

    result = await engine.execute(workflow, payload={})

    assert [c["order"] for c in calls] == [1, 2, 3]
    assert [s.order for s in result.step_results] == [1, 2, 3]
    assert result.state == ExecutionState.COMPLETED
    assert result.state_history == [
        ExecutionState.MATCHED,
        ExecutionState.CONDITIONS_EVALUATED,
        ExecutionState.EXECUTING,
        ExecutionState.COMPLETED,
    ]
    assert result.step_results[0].outputs == {"ok": True, "order": 1}


@pytest.mark.asyncio
async def test_failed_action_stops_later_actions(store, calls, make_executor, make_engine, make_workflow):
    workflow = await store.save_workflow(make_workflow(actions=[_action(2), _action(1), _action(3)]))
    engine = make_engine(make_executor(fail_orders={1}))

    result = await engine.execute(workflow, payload={})

    assert [c["order"] for c in calls] == [1]
    assert result.state == ExecutionState.FAILED
    assert len(result.step_results) == 1
    assert result.step_results[0].status == StepResultStatus.FAILED
    assert result.step_results[0].attempts == 1
    assert "action 1 failed" in result.error

    analytics = (await store.get_workflow(workflow.workflow_id)).analytics
    assert analytics.failed_executions == 1
    assert analytics.last_execution_status == ExecutionStatus.FAILED
    assert analytics.last_error == result.error


@pytest.mark.asyncio
async def test_exponential_retries_then_single_failure(
    store, calls, fake_sleep, make_executor, make_engine, make_workflow
):
    workflow = await store.save_workflow(make_workflow(actions=[_action(1, retries=3)]))
    engine = make_engine(make_executor(fail_times=10))

    result = await engine.execute(workflow, payload={})

    assert fake_sleep.delays == [1, 2, 4]
    step = result.step_results[0]
    assert step.attempts == 4
    assert step.retry_delays == [1, 2, 4]
    assert [e.retryable for e in step.errors] == [True, True, True, False]

    analytics = (await store.get_workflow(workflow.workflow_id)).analytics
    assert analytics.total_executions == 1
    assert analytics.failed_executions == 1


@pytest.mark.asyncio
async def test_retry_recovers(store, calls, fake_sleep, make_executor, make_engine, make_workflow):
    workflow = await store.save_workflow(make_workflow(actions=[_action(1, retries=3, strategy="linear")]))
    engine = make_engine(make_executor(fail_times=2))

    result = await engine.execute(workflow, payload={})

    assert result.state == ExecutionState.COMPLETED
    assert [c["attempt"] for c in calls] == [1, 2, 3]
    assert fake_sleep.delays == [1, 2]


@pytest.mark.asyncio
async def test_conditions_not_met_skips_without_analytics(
    store, calls, make_executor, make_engine, make_workflow
):
    workflow = await store.save_workflow(make_workflow(
        actions=[_action(1)],
        conditions=[{"field": "status", "operator": "equals", "value": "done"}]
    ))
    engine = make_engine(make_executor())

    result = await engine.execute(workflow, payload={"status": "open"})

    assert calls == []
    assert result.state == ExecutionState.SKIPPED
    assert result.conditions_met is False
    assert (await store.get_workflow(workflow.workflow_id)).analytics.total_executions == 0
    assert await store.list_executions(workflow.workflow_id) == []


@pytest.mark.asyncio
async def test_action_config_is_rendered_against_payload(
    store, calls, make_executor, make_engine, make_workflow
):
    action = _action(1, recipients=["{{task.owner}}"], subject="Done: {{task.title}} {{task.nope}}")
    workflow = await store.save_workflow(make_workflow(actions=[action]))
    engine = make_engine(make_executor())

    await engine.execute(workflow, payload={"task": {"owner": "ana@example.com", "title": "Audit"}})

    assert calls[0]["payload"] == {
        "recipients": ["ana@example.com"],
        "subject": "Done: Audit {{task.nope}}",
    }


@pytest.mark.asyncio
async def test_event_payload_used_by_default(store, calls, make_executor, make_engine, make_workflow):
    workflow = await store.save_workflow(make_workflow(
        actions=[_action(1, text="{{name}}")],
        conditions=[{"field": "name", "operator": "exists"}]
    ))
    event = InboundEvent(
        workspace_id="WS-1", event_type="item.completed", source="upstream_event",
        payload={"name": "Checklist A"}
    )

    result = await make_engine(make_executor()).execute(workflow, event)

    assert result.event_id == event.event_id
    assert calls[0]["payload"] == {"text": "Checklist A"}


@pytest.mark.asyncio
async def test_missing_executor_fails_without_retry(store, fake_sleep, make_engine, make_workflow):
    workflow = await store.save_workflow(make_workflow(actions=[_action(1, retries=3)]))

    result = await make_engine(None).execute(workflow, payload={})

    assert result.state == ExecutionState.FAILED
    assert fake_sleep.delays == []
    assert result.step_results[0].errors[0].retryable is False


@pytest.mark.asyncio
async def test_integration_errors_are_classified(store, make_engine, make_workflow):
    class FailingEndpoint(ActionExecutor):
        async def execute(self, action, payload, context):
            raise EndpointCallError("Endpoint call failed: 502", details={"status_code": 502})

    workflow = await store.save_workflow(make_workflow(actions=[_action(1)]))
    result = await make_engine(FailingEndpoint()).execute(workflow, payload={})

    error = result.step_results[0].errors[0]
    assert error.type == WorkflowErrorType.INTEGRATION
    assert error.details == {"status_code": 502}


@pytest.mark.asyncio
async def test_validation_errors_are_not_retried(store, fake_sleep, make_engine, make_workflow):
    class Rejecting(ActionExecutor):
        async def execute(self, action, payload, context):
            raise ValidationError("call_endpoint action requires a url")

    workflow = await store.save_workflow(make_workflow(actions=[_action(1, retries=3)]))
    result = await make_engine(Rejecting()).execute(workflow, payload={})

    step = result.step_results[0]
    assert step.attempts == 1
    assert fake_sleep.delays == []
    assert step.errors[0].type == WorkflowErrorType.VALIDATION
    assert step.errors[0].retryable is False

@pytest.mark.asyncio
async def test_overall_timeout_fails_the_run(store, make_engine, make_workflow):
    class StuckExecutor(ActionExecutor):
        async def execute(self, action, payload, context):
            assert context.remaining_seconds() is not None
            await asyncio.sleep(10)

    workflow = await store.save_workflow(make_workflow(actions=[_action(1), _action(2)]))
    result = await make_engine(StuckExecutor(), timeout_seconds=0.05).execute(workflow, payload={})

    assert result.state == ExecutionState.FAILED
    assert "exceeded" in result.error
    assert len(result.step_results) == 1
    assert result.step_results[0].status == StepResultStatus.FAILED
    assert result.step_results[0].errors[-1].type == WorkflowErrorType.TIMEOUT
    assert (await store.get_workflow(workflow.workflow_id)).analytics.failed_executions == 1


@pytest.mark.asyncio
async def test_finished_runs_are_logged(store, make_executor, make_engine, make_workflow):
    workflow = await store.save_workflow(make_workflow(actions=[_action(1)]))
    engine = make_engine(make_executor())

    first = await engine.execute(workflow, payload={})
    second = await engine.execute(workflow, payload={})

    executions = await store.list_executions(workflow.workflow_id)
    assert [e.execution_id for e in executions] == [second.execution_id, first.execution_id]
    assert first.execution_id != second.execution_id


@pytest.mark.asyncio
async def test_correlation_id_is_execution_id_during_run(store, make_engine, make_workflow):
    seen = []

    class CorrelationCapture(ActionExecutor):
        async def execute(self, action, payload, context):
            seen.append((get_correlation_id(), context.execution_id))

    workflow = await store.save_workflow(make_workflow(actions=[_action(1)]))
    await make_engine(CorrelationCapture()).execute(workflow, payload={})

    assert seen[0][0] == seen[0][1]
    assert get_correlation_id() is None


@pytest.mark.asyncio
async def test_analytics_after_mixed_runs(store, make_engine, make_workflow, make_executor):
    ok = await store.save_workflow(make_workflow(actions=[_action(1)]))
    ok_engine = make_engine(make_executor())
    bad_engine = make_engine(make_executor(fail_orders={1}))

    for _ in range(3):
        await ok_engine.execute(ok, payload={})
    await bad_engine.execute(ok, payload={})

    analytics = (await store.get_workflow(ok.workflow_id)).analytics
    assert analytics.total_executions == 4
    assert analytics.successful_executions == 3
    assert analytics.failed_executions == 1
    assert analytics.error_rate_percent == pytest.approx(25.0)


@pytest.mark.asyncio
async def test_concurrent_runs_do_not_lose_analytics(store, make_engine, make_workflow, make_executor):
    workflow = await store.save_workflow(make_workflow(actions=[_action(1)]))
    engine = make_engine(make_executor())

    await asyncio.gather(*(engine.execute(workflow, payload={}) for _ in range(20)))

    assert (await store.get_workflow(workflow.workflow_id)).analytics.total_executions == 20
