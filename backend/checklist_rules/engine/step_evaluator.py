"""Step Evaluator - Resolve show/hide/require/skip/modify decisions for checklist steps"""
from typing import Any, Callable, Dict, List, Optional

from ..domain.models import (
    ConditionalStep, ProcessedStep, EvaluationContext, VariableCondition,
    PreviousStepCondition, UserRoleCondition, DeviceTypeCondition, TimeCondition,
    LocationCondition, CustomCondition
)
from ..domain.enums import ConditionOperator, LogicalOperator
from .condition_evaluator import ConditionEvaluator
from ..utils.time import clock_minutes, to_local, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class StepEvaluator:
    """
    Evaluate conditional steps against an evaluation context

    Each condition type has exactly one handler in the dispatch table.
    Conditions that cannot be evaluated count as not met.
    """

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()
        self._handlers: Dict[type, Callable[[Any, EvaluationContext], bool]] = {
            VariableCondition: self._variable,
            PreviousStepCondition: self._previous_step,
            UserRoleCondition: self._user_role,
            DeviceTypeCondition: self._device_type,
            TimeCondition: self._time,
            LocationCondition: self._location,
            CustomCondition: self._custom,
        }

    def process(
        self,
        conditional_steps: List[ConditionalStep],
        context: EvaluationContext
    ) -> List[ProcessedStep]:
        """
        Evaluate conditional steps and keep those whose conditions hold

        Args:
            conditional_steps: Rules in declaration order
            context: Values the conditions read

        Returns:
            One ProcessedStep per applicable rule, in declaration order.
            Rules targeting the same step are not merged (see resolve_step_actions).
        """
        processed: List[ProcessedStep] = []

        for conditional_step in conditional_steps:
            if not self.evaluate_conditions(conditional_step, context):
                continue

            processed.append(ProcessedStep(
                step_id=conditional_step.step_id,
                action=conditional_step.action,
                modifications=conditional_step.modification_data,
                reasoning=f"Conditions met for {conditional_step.logical_operator.value} logic",
                priority=conditional_step.priority,
                conditional_step_id=conditional_step.id
            ))

        return processed

    def evaluate_conditions(
        self,
        conditional_step: ConditionalStep,
        context: EvaluationContext
    ) -> bool:
        """Combine a rule's conditions with its logical operator"""
        if not conditional_step.conditions:
            return True  # Unconditional rule

        results = [self.evaluate_condition(c, context) for c in conditional_step.conditions]
        if conditional_step.logical_operator == LogicalOperator.OR:
            return any(results)
        return all(results)

    def evaluate_condition(self, condition: Any, context: EvaluationContext) -> bool:
        """Evaluate one step condition, failing closed"""
        handler = self._handlers.get(type(condition))
        if handler is None:
            logger.warning(f"Unsupported step condition: {type(condition).__name__}")
            return False

        try:
            return bool(handler(condition, context))
        except Exception as e:
            logger.warning(
                f"Step condition {condition.type} could not be evaluated: {e}",
                extra={"step_id": context.current_step}
            )
            return False

    def _variable(self, condition: VariableCondition, context: EvaluationContext) -> bool:
        value = context.variables.get(condition.variable_id)
        return self.condition_evaluator.compare(value, condition.operator, condition.value)

    def _previous_step(self, condition: PreviousStepCondition, context: EvaluationContext) -> bool:
        step = context.completed_step(condition.step_id)
        if condition.operator == ConditionOperator.EXISTS:
            return step is not None
        value = step.value if step else None
        return self.condition_evaluator.compare(value, condition.operator, condition.value)

    def _user_role(self, condition: UserRoleCondition, context: EvaluationContext) -> bool:
        return self.condition_evaluator.compare(
            context.user_profile.role, condition.operator, condition.value
        )

    def _device_type(self, condition: DeviceTypeCondition, context: EvaluationContext) -> bool:
        return self.condition_evaluator.compare(
            context.environment.device_type.value, condition.operator, condition.value
        )

    def _time(self, condition: TimeCondition, context: EvaluationContext) -> bool:
        """
        Compare local wall-clock time

        GREATER_THAN / LESS_THAN compare against an "HH:MM" value. IN / NOT_IN
        take a ["HH:MM", "HH:MM"] window (start inclusive, end exclusive),
        which may wrap past midnight. Other operators compare the "HH:MM" text.
        """
        local = to_local(context.now or utc_now(), context.environment.timezone)
        current = local.hour * 60 + local.minute

        if condition.operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
            return self.condition_evaluator.compare(
                current, condition.operator, clock_minutes(str(condition.value))
            )

        if condition.operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
            start, end = (clock_minutes(str(v)) for v in condition.value)
            if start <= end:
                inside = start <= current < end
            else:
                inside = current >= start or current < end
            return inside if condition.operator == ConditionOperator.IN else not inside

        return self.condition_evaluator.compare(
            local.strftime("%H:%M"), condition.operator, condition.value
        )

    def _location(self, condition: LocationCondition, context: EvaluationContext) -> bool:
        location = context.environment.location
        value = getattr(location, condition.field) if location else None
        return self.condition_evaluator.compare(value, condition.operator, condition.value)

    def _custom(self, condition: CustomCondition, context: EvaluationContext) -> bool:
        if condition.custom_evaluator is None:
            return False
        return condition.custom_evaluator(context)


def resolve_step_actions(processed: List[ProcessedStep]) -> Dict[str, ProcessedStep]:
    """
    Pick one processed step per step ID

    Highest priority wins; on equal priority the entry declared last wins.

    Returns:
        Winning entry keyed by step ID
    """
    resolved: Dict[str, ProcessedStep] = {}
    for step in processed:
        current = resolved.get(step.step_id)
        if current is None or step.priority >= current.priority:
            resolved[step.step_id] = step
    return resolved
