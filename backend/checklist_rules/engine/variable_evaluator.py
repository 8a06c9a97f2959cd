"""Variable Evaluator - Validate variable values and resolve dependencies"""
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..domain.models import (
    TemplateVariable, ValidationRule, VariableDependency, VariableError,
    VariableWarning, ResolvedDependency, VariableEvaluationResult
)
from ..domain.enums import VariableType, ValidationRuleType
from .condition_evaluator import ConditionEvaluator, is_empty
from ..utils.logger import get_logger

logger = get_logger(__name__)


class VariableEvaluator:
    """
    Validate template variable values

    Side-effect free: dependency rules are only described (resolved or
    not, plus the source value), never applied to the variables.
    """

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

    def evaluate(
        self,
        variables: List[TemplateVariable],
        values: Dict[str, Any]
    ) -> VariableEvaluationResult:
        """
        Validate values against variable declarations

        Args:
            variables: Declared template variables
            values: Supplied values keyed by variable ID

        Returns:
            Result with an entry in validated_values for every variable,
            all collected errors/warnings and the resolved dependencies
        """
        errors: List[VariableError] = []
        warnings: List[VariableWarning] = []
        validated_values: Dict[str, Any] = {}
        dependencies: List[ResolvedDependency] = []

        for variable in variables:
            value = values.get(variable.id)

            for dependency in variable.dependencies:
                dependencies.append(self._resolve_dependency(variable, dependency, values))

            if is_empty(value):
                validated_values[variable.id] = variable.default_value
                if variable.required:
                    errors.append(VariableError(
                        variable_id=variable.id,
                        rule=ValidationRuleType.REQUIRED.value,
                        message=f"{variable.display_name} is required",
                        value=value
                    ))
                continue

            for rule in variable.validation:
                if not self._validate_rule(value, rule, values):
                    errors.append(VariableError(
                        variable_id=variable.id,
                        rule=rule.type.value,
                        message=rule.message or f"{variable.display_name} failed {rule.type.value} validation",
                        value=value
                    ))

            warnings.extend(self._check_shape(variable, value))
            validated_values[variable.id] = value

        if errors:
            logger.debug(
                f"Variable evaluation produced {len(errors)} error(s)",
                extra={"status": "invalid"}
            )

        return VariableEvaluationResult(
            is_valid=not errors,
            validated_values=validated_values,
            errors=errors,
            warnings=warnings,
            dependencies=dependencies
        )

    def _validate_rule(
        self,
        value: Any,
        rule: ValidationRule,
        all_values: Dict[str, Any]
    ) -> bool:
        """Check a single rule; a rule that cannot be applied fails"""
        try:
            if rule.type == ValidationRuleType.REQUIRED:
                return not is_empty(value)

            elif rule.type == ValidationRuleType.MIN_LENGTH:
                return isinstance(value, (str, list)) and len(value) >= int(rule.value)

            elif rule.type == ValidationRuleType.MAX_LENGTH:
                return isinstance(value, (str, list)) and len(value) <= int(rule.value)

            elif rule.type == ValidationRuleType.PATTERN:
                return isinstance(value, str) and re.search(str(rule.value), value) is not None

            elif rule.type == ValidationRuleType.MIN_VALUE:
                return self._is_number(value) and value >= float(rule.value)

            elif rule.type == ValidationRuleType.MAX_VALUE:
                return self._is_number(value) and value <= float(rule.value)

            elif rule.type == ValidationRuleType.CUSTOM:
                if rule.custom_validator is None:
                    return True
                return bool(rule.custom_validator(value, all_values))

        except Exception as e:
            logger.warning(f"Validation rule {rule.type.value} could not be applied: {e}")
            return False

        return True

    def _resolve_dependency(
        self,
        variable: TemplateVariable,
        dependency: VariableDependency,
        values: Dict[str, Any]
    ) -> ResolvedDependency:
        """Evaluate a dependency against the source variable's supplied value"""
        source_value = values.get(dependency.variable_id)
        resolved = self.condition_evaluator.compare(
            source_value, dependency.condition, dependency.value
        )
        return ResolvedDependency(
            variable_id=variable.id,
            depends_on=[dependency.variable_id],
            condition=dependency.condition,
            action=dependency.action,
            resolved=resolved,
            value=source_value if resolved else None
        )

    def _check_shape(self, variable: TemplateVariable, value: Any) -> List[VariableWarning]:
        """Non-blocking checks of value type and option membership"""
        warnings: List[VariableWarning] = []

        expected = {
            VariableType.NUMBER: self._is_number(value),
            VariableType.BOOLEAN: isinstance(value, bool),
            VariableType.MULTISELECT: isinstance(value, list),
            VariableType.DATE: isinstance(value, (str, date, datetime)),
            VariableType.TEXT: isinstance(value, str),
            VariableType.URL: isinstance(value, str),
        }.get(variable.type, True)
        if not expected:
            warnings.append(VariableWarning(
                variable_id=variable.id,
                message=f"{variable.display_name} expects a {variable.type.value} value",
                suggestion=f"Got {type(value).__name__}"
            ))

        if variable.options and variable.type in (VariableType.SELECT, VariableType.MULTISELECT):
            allowed = [option.value for option in variable.options if not option.disabled]
            chosen = value if isinstance(value, list) else [value]
            unknown = [item for item in chosen if item not in allowed]
            if unknown:
                warnings.append(VariableWarning(
                    variable_id=variable.id,
                    message=f"{variable.display_name} has values outside its options: {unknown}",
                    suggestion=f"Choose from {allowed}"
                ))

        return warnings

    @staticmethod
    def _is_number(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
