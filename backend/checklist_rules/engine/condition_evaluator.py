"""Condition Evaluator - Operator table shared by every rule kind

Variable dependencies, step conditions, content conditions and workflow
conditions all compare values through `ConditionEvaluator.compare`, so an
operator means the same thing wherever it appears.
"""
from typing import Any, Callable, Dict, List, Union

from ..domain.models import WorkflowCondition
from ..domain.enums import ConditionOperator, LogicalOperator
from ..utils.logger import get_logger

logger = get_logger(__name__)

_COLLECTIONS = (list, tuple, set)


class _Missing:
    """Marker for a path that does not resolve"""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def get_path_value(data: Any, path: str, default: Any = MISSING) -> Any:
    """
    Get a value using dot notation

    Example: "task.owner.email" -> data["task"]["owner"]["email"]
    Numeric segments index into lists ("items.0.name").

    Returns `default` (MISSING unless given) when any segment is absent,
    so callers can tell "no value" apart from an explicit None.
    """
    value = data
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return default
    return value


def is_empty(value: Any) -> bool:
    """None, empty string and empty collections count as empty"""
    return value is None or value is MISSING or value == "" or value == [] or value == {}


def _numeric(comparator: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    """Numeric comparison; missing or non-numeric operands never match"""
    def check(actual: Any, expected: Any) -> bool:
        if actual is None or expected is None:
            return False
        try:
            return comparator(float(actual), float(expected))
        except (ValueError, TypeError):
            return False
    return check


def _contains(actual: Any, expected: Any) -> bool:
    if actual is None:
        return False
    if isinstance(actual, _COLLECTIONS):
        return expected in actual
    return str(expected) in str(actual)


def _member_of(actual: Any, expected: Any) -> bool:
    return isinstance(expected, _COLLECTIONS) and actual in expected


def _not_member_of(actual: Any, expected: Any) -> bool:
    return isinstance(expected, _COLLECTIONS) and actual not in expected


OPERATORS: Dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: lambda actual, expected: actual == expected,
    ConditionOperator.NOT_EQUALS: lambda actual, expected: actual != expected,
    ConditionOperator.GREATER_THAN: _numeric(lambda a, b: a > b),
    ConditionOperator.LESS_THAN: _numeric(lambda a, b: a < b),
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: lambda actual, expected: actual is None or not _contains(actual, expected),
    ConditionOperator.IN: _member_of,
    ConditionOperator.NOT_IN: _not_member_of,
    ConditionOperator.EXISTS: lambda actual, _: actual is not None,
    ConditionOperator.IS_EMPTY: lambda actual, _: is_empty(actual),
    ConditionOperator.IS_NOT_EMPTY: lambda actual, _: not is_empty(actual),
}


class ConditionEvaluator:
    """
    Evaluate rule conditions safely

    Uses a fixed operator table - no eval() or exec(). Every failure
    (unknown operator, incomparable values) fails closed.
    """

    def compare(
        self,
        field_value: Any,
        operator: Union[ConditionOperator, str],
        compare_value: Any
    ) -> bool:
        """Compare a value against an expected value, failing closed"""
        try:
            check = OPERATORS[ConditionOperator(operator)]
            return bool(check(field_value, compare_value))
        except Exception as e:
            logger.warning(f"Condition {operator!s} could not be evaluated: {e}")
            return False

    def evaluate_chain(
        self,
        conditions: List[WorkflowCondition],
        payload: Dict[str, Any]
    ) -> bool:
        """
        Evaluate workflow conditions as a flat left-to-right chain

        The chain reads `c1 OP1 c2 OP2 c3 ...` where OPn is the
        logic_operator of condition n. There is no precedence or grouping:
        `a OR b AND c` is evaluated as `(a OR b) AND c`. The operator of the
        last condition is ignored.

        Args:
            conditions: Conditions in declaration order
            payload: Event payload the fields are read from

        Returns:
            True if the chain holds (always True for an empty list)
        """
        if not conditions:
            return True

        result = self.evaluate_single(conditions[0], payload)
        for joining, condition in zip(conditions, conditions[1:]):
            current = self.evaluate_single(condition, payload)
            if joining.logic_operator == LogicalOperator.OR:
                result = result or current
            else:
                result = result and current
        return result

    def evaluate_single(
        self,
        condition: WorkflowCondition,
        payload: Dict[str, Any]
    ) -> bool:
        """Evaluate a single workflow condition against the payload"""
        field_value = get_path_value(payload, condition.field, default=None)
        return self.compare(field_value, condition.operator, condition.value)
