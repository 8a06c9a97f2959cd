"""Action Dispatcher - Route workflow actions to injected executors"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..domain.models import WorkflowAction
from ..domain.enums import ActionType
from ..domain.errors import ExecutorNotRegisteredError
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ActionContext:
    """Per-attempt execution details handed to executors"""
    execution_id: str
    workflow_id: str
    workspace_id: str
    attempt: int = 1
    deadline: Optional[float] = None  # event-loop time the whole run must finish by

    def remaining_seconds(self) -> Optional[float]:
        """Seconds left before the execution deadline (None = unbounded)"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - asyncio.get_running_loop().time())


class ActionExecutor(ABC):
    """
    Performs the side effect of one action type

    Implementations raise on failure; the engine applies the retry policy.
    Returned dicts are recorded as the step's outputs.
    """

    @abstractmethod
    async def execute(
        self,
        action: WorkflowAction,
        payload: Dict[str, Any],
        context: ActionContext
    ) -> Optional[Dict[str, Any]]:
        """
        Execute the action

        Args:
            action: Action definition
            payload: Action config with placeholders resolved
            context: Execution ID, attempt number and deadline
        """
        ...


class ActionDispatcher:
    """Registry with a single dispatch point per action type"""

    def __init__(self, executors: Optional[Dict[ActionType, ActionExecutor]] = None):
        self._executors: Dict[ActionType, ActionExecutor] = dict(executors or {})

    def register(self, action_type: ActionType, executor: ActionExecutor) -> None:
        """Register (or replace) the executor for an action type"""
        self._executors[ActionType(action_type)] = executor
        logger.debug(f"Registered executor for {ActionType(action_type).value}")

    def has_executor(self, action_type: ActionType) -> bool:
        return action_type in self._executors

    async def dispatch(
        self,
        action: WorkflowAction,
        payload: Dict[str, Any],
        context: ActionContext
    ) -> Dict[str, Any]:
        """
        Run the executor registered for the action's type

        Raises:
            ExecutorNotRegisteredError: If no executor handles the type
        """
        executor = self._executors.get(action.type)
        if executor is None:
            raise ExecutorNotRegisteredError(
                f"No executor registered for action type {action.type.value}",
                details={"action_id": action.id, "action_type": action.type.value}
            )
        return await executor.execute(action, payload, context) or {}
