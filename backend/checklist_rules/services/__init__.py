"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService
from .template_service import TemplateRuleService, ContextProvider

__all__ = [
    "WorkflowService",
    "TemplateRuleService",
    "ContextProvider",
]
