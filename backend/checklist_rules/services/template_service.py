"""Template Rule Service - Variables, conditional steps and dynamic content for templates"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from pydantic import ValidationError as PydanticValidationError

from ..domain.models import (
    TemplateRules, TemplateVariable, ConditionalStep, DynamicContentBinding,
    EvaluationContext, VariableEvaluationResult, ProcessedStep, GeneratedContent,
    TemplateEvaluation
)
from ..domain.errors import TemplateValidationError
from ..engine.content_generator import ContentGenerator
from ..engine.dependency_graph import DependencyGraph
from ..engine.step_evaluator import StepEvaluator, resolve_step_actions
from ..engine.variable_evaluator import VariableEvaluator
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ContextProvider(ABC):
    """Supplies the evaluation context for a template evaluation"""

    @abstractmethod
    async def get_context(
        self,
        template_id: str,
        user_id: str,
        workspace_id: str
    ) -> EvaluationContext:
        """Variables, user profile, environment and completed steps for one evaluation"""


class TemplateRuleService:
    """
    Service for template rule evaluation

    All evaluation is synchronous and in-memory; only fetching the context
    through a ContextProvider suspends.
    """

    def __init__(
        self,
        context_provider: Optional[ContextProvider] = None,
        variable_evaluator: Optional[VariableEvaluator] = None,
        step_evaluator: Optional[StepEvaluator] = None,
        content_generator: Optional[ContentGenerator] = None
    ):
        self.context_provider = context_provider
        self.variable_evaluator = variable_evaluator or VariableEvaluator()
        self.step_evaluator = step_evaluator or StepEvaluator()
        self.content_generator = content_generator or ContentGenerator()

    def evaluate_variables(
        self,
        variables: List[TemplateVariable],
        values: Dict[str, Any]
    ) -> VariableEvaluationResult:
        """Validate variable values and resolve dependencies"""
        return self.variable_evaluator.evaluate(variables, values)

    def process_conditional_steps(
        self,
        conditional_steps: List[ConditionalStep],
        context: EvaluationContext
    ) -> List[ProcessedStep]:
        """Conditional steps whose conditions hold for the context"""
        return self.step_evaluator.process(conditional_steps, context)

    def generate_dynamic_content(
        self,
        bindings: List[DynamicContentBinding],
        context: EvaluationContext
    ) -> List[GeneratedContent]:
        """Render every dynamic content binding for the context"""
        return self.content_generator.generate(bindings, context)

    def validate_template(self, rules: Union[TemplateRules, Dict[str, Any]]) -> List[str]:
        """
        Authoring-time check of a template's rule definitions

        Returns:
            Variable IDs in dependency order

        Raises:
            TemplateValidationError: If the definition is malformed, has
                duplicate variable IDs or references undeclared variables
            DependencyCycleError: If the variable dependencies form a cycle
        """
        rules = self.parse_rules(rules)

        seen = set()
        duplicates = []
        for variable in rules.variables:
            if variable.id in seen:
                duplicates.append(variable.id)
            seen.add(variable.id)
        if duplicates:
            raise TemplateValidationError(
                "Duplicate variable IDs",
                details={"template_id": rules.template_id, "duplicates": duplicates}
            )

        graph = DependencyGraph.from_variables(rules.variables)
        graph.ensure_references()
        graph.ensure_acyclic()
        return graph.topological_order()

    def evaluate(
        self,
        rules: TemplateRules,
        context: EvaluationContext
    ) -> TemplateEvaluation:
        """
        Full evaluation pass: variables, then steps, then content

        Steps and content read the context's variables with validated
        values (defaults included) laid over them.
        """
        variables = self.evaluate_variables(rules.variables, context.variables)
        resolved_context = context.model_copy(update={
            "template_id": context.template_id or rules.template_id,
            "variables": {**context.variables, **variables.validated_values}
        })

        processed = self.process_conditional_steps(rules.conditional_steps, resolved_context)
        content = self.generate_dynamic_content(rules.dynamic_content, resolved_context)

        logger.debug(
            f"Evaluated template {rules.template_id}: {len(processed)} step rule(s) applied",
            extra={"template_id": rules.template_id, "status": "valid" if variables.is_valid else "invalid"}
        )
        return TemplateEvaluation(
            template_id=rules.template_id,
            variables=variables,
            processed_steps=processed,
            resolved_steps=resolve_step_actions(processed),
            content=content
        )

    async def evaluate_for(
        self,
        rules: TemplateRules,
        user_id: str,
        workspace_id: str
    ) -> TemplateEvaluation:
        """Evaluate a template with the context supplied by the context provider"""
        if self.context_provider is None:
            raise TemplateValidationError(
                "No context provider configured",
                details={"template_id": rules.template_id}
            )
        context = await self.context_provider.get_context(rules.template_id, user_id, workspace_id)
        return self.evaluate(rules, context)

    @staticmethod
    def parse_rules(rules: Union[TemplateRules, Dict[str, Any]]) -> TemplateRules:
        if isinstance(rules, TemplateRules):
            return rules
        try:
            return TemplateRules.model_validate(rules)
        except PydanticValidationError as e:
            raise TemplateValidationError(
                "Invalid template rule definition",
                details={"errors": e.errors(include_url=False, include_context=False)}
            ) from e
