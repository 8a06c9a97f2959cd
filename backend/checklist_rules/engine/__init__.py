"""Rule Engine - Variables, conditional steps, dynamic content and workflow automation"""
from .condition_evaluator import ConditionEvaluator
from .dependency_graph import DependencyGraph
from .variable_evaluator import VariableEvaluator
from .step_evaluator import StepEvaluator, resolve_step_actions
from .content_generator import ContentGenerator
from .trigger_matcher import TriggerMatcher
from .action_dispatcher import ActionContext, ActionExecutor, ActionDispatcher
from .analytics_recorder import apply_outcome
from .workflow_engine import WorkflowEngine, run_workflows

__all__ = [
    "ConditionEvaluator",
    "DependencyGraph",
    "VariableEvaluator",
    "StepEvaluator",
    "resolve_step_actions",
    "ContentGenerator",
    "TriggerMatcher",
    "ActionContext",
    "ActionExecutor",
    "ActionDispatcher",
    "apply_outcome",
    "WorkflowEngine",
    "run_workflows",
]
