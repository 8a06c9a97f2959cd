"""Domain Errors - Exception hierarchy of the rule engine

Each error carries a stable `error_code`. Errors raised by action executors
also say how a failed action is classified in the execution result
(`error_type`) and whether the engine may retry it (`retryable`).
"""
from typing import Any, Dict, Optional

from .enums import WorkflowErrorType


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    error_type: WorkflowErrorType = WorkflowErrorType.SYSTEM
    retryable: bool = True

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code


# Definition errors: the input is wrong, repeating it cannot help
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    error_type = WorkflowErrorType.VALIDATION
    retryable = False


class TemplateValidationError(ValidationError):
    """Template rule definition is malformed"""
    error_code = "TEMPLATE_VALIDATION_ERROR"


class DependencyCycleError(TemplateValidationError):
    """Variable dependencies form a cycle"""
    error_code = "DEPENDENCY_CYCLE"


# Lookups
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"


class WorkflowNotFoundError(NotFoundError):
    """Workflow not found"""
    error_code = "WORKFLOW_NOT_FOUND"


# Conflicts
class ConflictError(DomainError):
    """Resource conflict"""
    error_code = "CONFLICT"


class ConcurrencyError(ConflictError):
    """Analytics lost the optimistic lock on every attempt"""
    error_code = "CONCURRENCY_CONFLICT"


class AlreadyExistsError(ConflictError):
    """Workflow ID already taken"""
    error_code = "ALREADY_EXISTS"


# Workflow execution
class EngineError(DomainError):
    """Workflow engine error"""
    error_code = "ENGINE_ERROR"


class ActionExecutionError(EngineError):
    """An action executor reported a failure"""
    error_code = "ACTION_EXECUTION_ERROR"


class ExecutorNotRegisteredError(ActionExecutionError):
    """No executor handles the action type"""
    error_code = "EXECUTOR_NOT_REGISTERED"
    retryable = False


class WorkflowTimeoutError(EngineError):
    """Run exceeded the overall execution deadline"""
    error_code = "WORKFLOW_TIMEOUT"
    error_type = WorkflowErrorType.TIMEOUT
    retryable = False


class ExternalServiceError(ActionExecutionError):
    """Integration or remote service failure"""
    error_code = "EXTERNAL_SERVICE_ERROR"
    error_type = WorkflowErrorType.INTEGRATION


class EndpointCallError(ExternalServiceError):
    """Outbound HTTP call failed or returned an error status"""
    error_code = "ENDPOINT_CALL_ERROR"


# Storage
class PersistenceError(DomainError):
    """Workflow store unreachable or rejected the operation"""
    error_code = "PERSISTENCE_ERROR"
