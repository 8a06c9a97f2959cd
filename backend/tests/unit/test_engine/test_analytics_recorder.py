"""apply_outcome counters, running mean and error rate"""

from datetime import datetime, timezone

import pytest

from checklist_rules.domain.enums import ExecutionStatus
from checklist_rules.domain.models import WorkflowAnalytics
from checklist_rules.engine.analytics_recorder import apply_outcome


@pytest.mark.parametrize("successes,failures", [(1, 0), (0, 1), (3, 1), (7, 5)])
def test_totals_and_error_rate(successes, failures):
    analytics = WorkflowAnalytics()
    for _ in range(successes):
        analytics = apply_outcome(analytics, ExecutionStatus.SUCCESS, 10)
    for _ in range(failures):
        analytics = apply_outcome(analytics, ExecutionStatus.FAILED, 10, error="boom")

    assert analytics.total_executions == successes + failures
    assert analytics.successful_executions == successes
    assert analytics.failed_executions == failures
    assert analytics.error_rate_percent == pytest.approx(100 * failures / (successes + failures))


def test_running_mean():
    analytics = WorkflowAnalytics()
    for duration in (100, 200, 600):
        analytics = apply_outcome(analytics, ExecutionStatus.SUCCESS, duration)
    assert analytics.average_execution_time_ms == pytest.approx(300)


def test_last_status_time_and_error():
    finished = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    failed = apply_outcome(WorkflowAnalytics(), "failed", 5, error="timeout", finished_at=finished)

    assert failed.last_execution_status == ExecutionStatus.FAILED
    assert failed.last_execution_time == finished
    assert failed.last_error == "timeout"

    recovered = apply_outcome(failed, ExecutionStatus.SUCCESS, 5)
    assert recovered.last_error is None
    assert recovered.last_execution_status == ExecutionStatus.SUCCESS


def test_input_is_not_mutated():
    analytics = WorkflowAnalytics()
    apply_outcome(analytics, ExecutionStatus.SUCCESS, 5)
    assert analytics.total_executions == 0


def test_running_is_not_an_outcome():
    with pytest.raises(ValueError):
        apply_outcome(WorkflowAnalytics(), ExecutionStatus.RUNNING, 5)
