"""ActionDispatcher registration and dispatch"""

import asyncio

import pytest

from checklist_rules.domain.enums import ActionType
from checklist_rules.domain.errors import ExecutorNotRegisteredError
from checklist_rules.domain.models import WorkflowAction
from checklist_rules.engine.action_dispatcher import ActionContext, ActionDispatcher, ActionExecutor


class EchoExecutor(ActionExecutor):
    async def execute(self, action, payload, context):
        return {"echo": payload, "attempt": context.attempt}


def _context(**kwargs) -> ActionContext:
    return ActionContext(execution_id="EXE-1", workflow_id="WF-1", workspace_id="WS-1", **kwargs)


@pytest.mark.asyncio
async def test_dispatch_to_registered_executor():
    dispatcher = ActionDispatcher()
    dispatcher.register("create_record", EchoExecutor())

    action = WorkflowAction(type=ActionType.CREATE_RECORD)
    result = await dispatcher.dispatch(action, {"title": "x"}, _context(attempt=2))

    assert dispatcher.has_executor(ActionType.CREATE_RECORD)
    assert result == {"echo": {"title": "x"}, "attempt": 2}


@pytest.mark.asyncio
async def test_unregistered_type_raises():
    dispatcher = ActionDispatcher({ActionType.CREATE_RECORD: EchoExecutor()})

    with pytest.raises(ExecutorNotRegisteredError) as exc_info:
        await dispatcher.dispatch(WorkflowAction(type=ActionType.RUN_ANALYSIS), {}, _context())
    assert exc_info.value.details["action_type"] == "run_analysis"


@pytest.mark.asyncio
async def test_remaining_seconds():
    assert _context().remaining_seconds() is None

    loop = asyncio.get_running_loop()
    remaining = _context(deadline=loop.time() + 30).remaining_seconds()
    assert 29 < remaining <= 30
    assert _context(deadline=loop.time() - 1).remaining_seconds() == 0.0
