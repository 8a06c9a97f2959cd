"""Content Generator - Dynamic text from template variables"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..domain.models import (
    DynamicContentBinding, ContentFormatter, EvaluationContext, GeneratedContent
)
from ..domain.enums import FormatterType
from .condition_evaluator import MISSING, ConditionEvaluator
from .template_renderer import render_variables, stringify
from ..utils.time import parse_iso, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ContentGenerator:
    """
    Generate content for dynamic content bindings

    A binding whose condition matches emits that condition's literal
    content; otherwise its template is interpolated. Any failure falls
    back to the binding's fallback content, never raising to the caller.
    """

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

    def generate(
        self,
        bindings: List[DynamicContentBinding],
        context: EvaluationContext
    ) -> List[GeneratedContent]:
        """Generate content for every binding, in declaration order"""
        return [self.generate_one(binding, context) for binding in bindings]

    def generate_one(
        self,
        binding: DynamicContentBinding,
        context: EvaluationContext
    ) -> GeneratedContent:
        """Generate content for a single binding"""
        try:
            content = self._matched_condition_content(binding, context)
            if content is None:
                content = render_variables(
                    binding.content_template,
                    context.variables,
                    transform=lambda value: self.format_value(value, binding.formatters)
                )
            return self._build(binding, context, content)

        except Exception:
            logger.warning(
                f"Content generation failed for {binding.target_id}, using fallback",
                extra={"target_id": binding.target_id, "template_id": context.template_id},
                exc_info=True
            )
            return self._build(binding, context, binding.fallback_content or "", used_fallback=True)

    def format_value(self, value: Any, formatters: List[ContentFormatter]) -> str:
        """
        Apply a formatter chain to one interpolated value

        Case formatters transform the current text. Value formatters
        (date/number/currency/custom) render from the raw value. A missing
        value renders empty without running the chain.
        """
        if value is None or value is MISSING:
            return ""

        text = stringify(value)
        for formatter in formatters:
            if formatter.type == FormatterType.CAPITALIZE:
                text = text[:1].upper() + text[1:]

            elif formatter.type == FormatterType.UPPERCASE:
                text = text.upper()

            elif formatter.type == FormatterType.LOWERCASE:
                text = text.lower()

            elif formatter.type == FormatterType.DATE_FORMAT:
                text = self._format_date(value, formatter.options.get("format", "%Y-%m-%d"))

            elif formatter.type == FormatterType.NUMBER_FORMAT:
                text = self._format_number(
                    value,
                    int(formatter.options.get("decimals", 0)),
                    formatter.options.get("thousands_separator", ",")
                )

            elif formatter.type == FormatterType.CURRENCY:
                amount = self._format_number(
                    value,
                    int(formatter.options.get("decimals", 2)),
                    formatter.options.get("thousands_separator", ",")
                )
                text = f"{formatter.options.get('symbol', '$')}{amount}"

            elif formatter.type == FormatterType.CUSTOM and formatter.custom_formatter:
                text = str(formatter.custom_formatter(value))

        return text

    def _matched_condition_content(
        self,
        binding: DynamicContentBinding,
        context: EvaluationContext
    ) -> Optional[str]:
        """Literal content of the first matching condition, if any"""
        for condition in binding.conditions:
            value = context.variables.get(condition.variable_id)
            if self.condition_evaluator.compare(value, condition.operator, condition.value):
                return condition.content
        return None

    @staticmethod
    def _format_date(value: Any, pattern: str) -> str:
        if isinstance(value, (datetime, date)):
            return value.strftime(pattern)
        return parse_iso(str(value)).strftime(pattern)

    @staticmethod
    def _format_number(value: Any, decimals: int, separator: str) -> str:
        formatted = f"{float(value):,.{decimals}f}"
        return formatted.replace(",", separator)

    @staticmethod
    def _bound_variables(binding: DynamicContentBinding, context: EvaluationContext) -> Dict[str, Any]:
        """Variables the binding declares; every variable when it declares none"""
        if not binding.variables:
            return dict(context.variables)
        return {
            name: context.variables[name]
            for name in binding.variables if name in context.variables
        }

    @classmethod
    def _build(
        cls,
        binding: DynamicContentBinding,
        context: EvaluationContext,
        content: str,
        used_fallback: bool = False
    ) -> GeneratedContent:
        return GeneratedContent(
            target_id=binding.target_id,
            target_type=binding.target_type,
            content=content,
            content_type=binding.content_type,
            generated_at=utc_now(),
            variables=cls._bound_variables(binding, context),
            used_fallback=used_fallback
        )
