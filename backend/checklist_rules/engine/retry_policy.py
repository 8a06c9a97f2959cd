"""Retry Policy - Backoff delays between action attempts"""
from typing import List

from ..domain.models import RetryPolicy
from ..domain.enums import BackoffStrategy


def compute_delay(policy: RetryPolicy, retry_index: int) -> float:
    """
    Delay in seconds before retry number `retry_index` (0-based)

    Linear: initial * (retry_index + 1)
    Exponential: initial * 2 ** retry_index
    Both are capped at max_delay_seconds.
    """
    if policy.backoff_strategy == BackoffStrategy.LINEAR:
        delay = policy.initial_delay_seconds * (retry_index + 1)
    else:
        delay = policy.initial_delay_seconds * (2 ** retry_index)
    return min(delay, policy.max_delay_seconds)


def delay_schedule(policy: RetryPolicy) -> List[float]:
    """All delays the policy allows, in the order they are applied"""
    return [compute_delay(policy, i) for i in range(policy.max_retries)]
