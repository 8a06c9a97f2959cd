"""Analytics Recorder - Fold one execution outcome into a workflow's counters"""
from datetime import datetime
from typing import Optional

from ..domain.models import WorkflowAnalytics
from ..domain.enums import ExecutionStatus
from ..utils.time import utc_now


def apply_outcome(
    analytics: WorkflowAnalytics,
    outcome: ExecutionStatus,
    duration_ms: float,
    error: Optional[str] = None,
    finished_at: Optional[datetime] = None
) -> WorkflowAnalytics:
    """
    Return new analytics with one finished execution added

    The average execution time is a running mean over all executions and
    the error rate is failed / total * 100. `last_error` keeps the most
    recent failure message and is cleared by a success.

    Raises:
        ValueError: If outcome is not SUCCESS or FAILED
    """
    outcome = ExecutionStatus(outcome)
    if outcome not in (ExecutionStatus.SUCCESS, ExecutionStatus.FAILED):
        raise ValueError(f"Cannot record outcome {outcome.value}")

    total = analytics.total_executions + 1
    successful = analytics.successful_executions + (outcome == ExecutionStatus.SUCCESS)
    failed = analytics.failed_executions + (outcome == ExecutionStatus.FAILED)
    average = analytics.average_execution_time_ms + (
        (duration_ms - analytics.average_execution_time_ms) / total
    )

    return WorkflowAnalytics(
        total_executions=total,
        successful_executions=successful,
        failed_executions=failed,
        average_execution_time_ms=average,
        last_execution_status=outcome,
        last_execution_time=finished_at or utc_now(),
        error_rate_percent=failed / total * 100,
        last_error=error if outcome == ExecutionStatus.FAILED else None
    )
