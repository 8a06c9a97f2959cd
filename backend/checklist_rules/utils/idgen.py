"""ID Generation - Prefixed short IDs for workflows, actions, events and runs"""
import uuid
from typing import Optional

WORKFLOW_PREFIX = "WF"
ACTION_PREFIX = "ACT"
EVENT_PREFIX = "EVT"
EXECUTION_PREFIX = "EXE"


def generate_id(prefix: Optional[str] = None, length: int = 12) -> str:
    """
    Random hex ID, optionally prefixed

    Examples:
        >>> generate_id("WF")
        'WF-3f9c0a51d2be'
    """
    unique_part = uuid.uuid4().hex[:length]
    return f"{prefix}-{unique_part}" if prefix else unique_part


def generate_workflow_id() -> str:
    return generate_id(WORKFLOW_PREFIX)


def generate_action_id() -> str:
    return generate_id(ACTION_PREFIX)


def generate_event_id() -> str:
    return generate_id(EVENT_PREFIX)


def generate_execution_id() -> str:
    """Execution IDs double as the log correlation id of the run"""
    return generate_id(EXECUTION_PREFIX)
