"""Domain Enumerations - All type tags and status definitions"""
from enum import Enum


# ============================================================================
# Template Variables
# ============================================================================

class VariableType(str, Enum):
    """Input slot types for template variables"""
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTISELECT = "multiselect"
    DATE = "date"
    TIME = "time"
    FILE = "file"
    URL = "url"


class ValidationRuleType(str, Enum):
    """Validation rules applied to a variable value"""
    REQUIRED = "required"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    PATTERN = "pattern"
    MIN_VALUE = "min_value"
    MAX_VALUE = "max_value"
    CUSTOM = "custom"


class DependencyAction(str, Enum):
    """What a satisfied dependency does to the dependent variable"""
    SHOW = "show"
    HIDE = "hide"
    REQUIRE = "require"
    DISABLE = "disable"
    SET_VALUE = "set_value"


class ValidationSeverity(str, Enum):
    """Severity of a validation finding"""
    ERROR = "error"
    WARNING = "warning"


# ============================================================================
# Conditions
# ============================================================================

class ConditionOperator(str, Enum):
    """Operators for condition evaluation"""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class LogicalOperator(str, Enum):
    """How condition results are combined"""
    AND = "AND"
    OR = "OR"


class StepConditionType(str, Enum):
    """Sources a step condition can read from"""
    VARIABLE = "variable"
    PREVIOUS_STEP = "previous_step"
    USER_ROLE = "user_role"
    DEVICE_TYPE = "device_type"
    TIME = "time"
    LOCATION = "location"
    CUSTOM = "custom"


# ============================================================================
# Conditional Steps & Dynamic Content
# ============================================================================

class StepAction(str, Enum):
    """Effect of a conditional step on its target checklist step"""
    SHOW = "show"
    HIDE = "hide"
    REQUIRE = "require"
    SKIP = "skip"
    MODIFY = "modify"


class ContentTargetType(str, Enum):
    """Which piece of a checklist item a content binding renders"""
    TITLE = "title"
    DESCRIPTION = "description"
    INSTRUCTION = "instruction"
    NOTE = "note"
    LINK = "link"
    IMAGE = "image"
    VIDEO = "video"
    CUSTOM = "custom"


class ContentType(str, Enum):
    """Format of generated content"""
    TEXT = "text"
    HTML = "html"
    MARKDOWN = "markdown"
    JSON = "json"


class FormatterType(str, Enum):
    """Formatters applied to interpolated values"""
    CAPITALIZE = "capitalize"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    DATE_FORMAT = "date_format"
    NUMBER_FORMAT = "number_format"
    CURRENCY = "currency"
    CUSTOM = "custom"


class DeviceType(str, Enum):
    """Device classes reported by the environment"""
    DESKTOP = "desktop"
    TABLET = "tablet"
    MOBILE = "mobile"


# ============================================================================
# Workflow Automation
# ============================================================================

class TriggerType(str, Enum):
    """How inbound events are matched to a workflow"""
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"
    UPSTREAM_EVENT = "upstream_event"


class EventSource(str, Enum):
    """Producer of an inbound event"""
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"
    UPSTREAM_EVENT = "upstream_event"


class ActionType(str, Enum):
    """Side effects a workflow action requests"""
    SEND_MESSAGE = "send_message"
    CREATE_RECORD = "create_record"
    UPDATE_RECORD = "update_record"
    CALL_ENDPOINT = "call_endpoint"
    SYNC_INTEGRATION = "sync_integration"
    RUN_ANALYSIS = "run_analysis"


class BackoffStrategy(str, Enum):
    """Delay growth between action retries"""
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class FrequencyType(str, Enum):
    """How often a workflow may run"""
    ONCE = "once"
    RECURRING = "recurring"


class FrequencyInterval(str, Enum):
    """Recurrence unit for recurring workflows"""
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class ExecutionState(str, Enum):
    """States of a single workflow execution"""
    MATCHED = "matched"
    CONDITIONS_EVALUATED = "conditions_evaluated"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # Conditions not met


class ExecutionStatus(str, Enum):
    """Outcome recorded in workflow analytics"""
    SUCCESS = "success"
    FAILED = "failed"
    RUNNING = "running"


class StepResultStatus(str, Enum):
    """Outcome of a single workflow action"""
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowErrorType(str, Enum):
    """Classification of action failures"""
    VALIDATION = "validation"
    INTEGRATION = "integration"
    SYSTEM = "system"
    TIMEOUT = "timeout"
