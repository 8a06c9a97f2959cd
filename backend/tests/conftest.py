"""
Pytest Configuration and Fixtures

This file contains shared fixtures and configuration for all tests.
"""

import pytest
from typing import Any, Dict, List, Optional

from checklist_rules.domain.enums import ActionType
from checklist_rules.domain.models import Workflow, WorkflowAction
from checklist_rules.engine.action_dispatcher import ActionContext, ActionDispatcher, ActionExecutor
from checklist_rules.engine.workflow_engine import WorkflowEngine
from checklist_rules.repositories.memory_repo import InMemoryWorkflowStore


class RecordingExecutor(ActionExecutor):
    """Executor that records every call and fails the first `fail_times` attempts"""

    def __init__(self, calls: List[Dict[str, Any]], fail_times: int = 0, fail_orders=()):
        self.calls = calls
        self.fail_times = fail_times
        self.fail_orders = set(fail_orders)

    async def execute(
        self,
        action: WorkflowAction,
        payload: Dict[str, Any],
        context: ActionContext
    ) -> Optional[Dict[str, Any]]:
        self.calls.append({
            "action_id": action.id,
            "order": action.order,
            "payload": payload,
            "attempt": context.attempt,
        })
        if action.order in self.fail_orders:
            raise RuntimeError(f"action {action.order} failed")
        if context.attempt <= self.fail_times:
            raise RuntimeError(f"attempt {context.attempt} failed")
        return {"ok": True, "order": action.order}


class FakeSleep:
    """Records requested delays instead of sleeping"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def calls() -> List[Dict[str, Any]]:
    return []


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def make_executor(calls):
    """Build a RecordingExecutor sharing the `calls` log"""
    def _make(fail_times: int = 0, fail_orders=()) -> RecordingExecutor:
        return RecordingExecutor(calls, fail_times=fail_times, fail_orders=fail_orders)
    return _make


@pytest.fixture
def make_engine(store, fake_sleep):
    """Build a WorkflowEngine over the in-memory store with a given executor"""
    def _make(executor: Optional[ActionExecutor] = None, timeout_seconds: float = 5.0) -> WorkflowEngine:
        dispatcher = ActionDispatcher()
        if executor is not None:
            for action_type in ActionType:
                dispatcher.register(action_type, executor)
        return WorkflowEngine(
            store, dispatcher, timeout_seconds=timeout_seconds, sleep=fake_sleep
        )
    return _make


@pytest.fixture
def make_workflow():
    """Build an enabled upstream-event workflow with the given actions/conditions"""
    def _make(
        actions: Optional[List[Dict[str, Any]]] = None,
        conditions: Optional[List[Dict[str, Any]]] = None,
        **overrides: Any
    ) -> Workflow:
        data: Dict[str, Any] = {
            "workspace_id": "WS-1",
            "name": "Notify on completion",
            "enabled": True,
            "trigger": {"type": "upstream_event", "event_types": ["item.completed"]},
            "conditions": conditions or [],
            "actions": actions or [],
        }
        data.update(overrides)
        return Workflow.model_validate(data)
    return _make
