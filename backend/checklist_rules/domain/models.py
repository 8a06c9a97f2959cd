"""Domain Models - Pydantic schemas for all rule and automation entities"""
from datetime import datetime
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import (
    VariableType, ValidationRuleType, DependencyAction, ValidationSeverity,
    ConditionOperator, LogicalOperator, StepAction, ContentTargetType, ContentType,
    FormatterType, DeviceType, EventSource, ActionType, BackoffStrategy,
    FrequencyType, FrequencyInterval, ExecutionState, ExecutionStatus,
    StepResultStatus, WorkflowErrorType
)
from ..utils.idgen import generate_workflow_id, generate_event_id, generate_action_id
from ..utils.time import utc_now


def _upper_logic(value: Any) -> Any:
    """Accept 'and'/'or' as well as 'AND'/'OR'"""
    if isinstance(value, str):
        return value.upper()
    return value


# ============================================================================
# Template Variables
# ============================================================================

class ValidationRule(BaseModel):
    """A single validation rule for a variable value"""
    type: ValidationRuleType
    value: Optional[Any] = Field(None, description="Rule parameter (length, bound, pattern)")
    message: str = Field("", description="Message reported when the rule fails")
    custom_validator: Optional[Callable[[Any, Dict[str, Any]], bool]] = Field(
        None, exclude=True, description="Caller-supplied predicate for CUSTOM rules"
    )


class VariableOption(BaseModel):
    """Option for select/multiselect variables"""
    label: str
    value: Any
    description: Optional[str] = None
    disabled: bool = False


class VariableDependency(BaseModel):
    """Binds a variable's behavior to another variable's value"""
    variable_id: str = Field(..., description="Source variable the condition reads")
    condition: ConditionOperator
    value: Optional[Any] = None
    action: DependencyAction


class TemplateVariable(BaseModel):
    """Named, typed input slot of a template"""
    id: str
    name: str
    type: VariableType = VariableType.TEXT
    label: str = ""
    description: Optional[str] = None
    default_value: Optional[Any] = None
    required: bool = False
    validation: List[ValidationRule] = Field(default_factory=list)
    options: List[VariableOption] = Field(default_factory=list)
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    group: Optional[str] = None
    dependencies: List[VariableDependency] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.label or self.name


class VariableError(BaseModel):
    """Validation error for a variable value"""
    variable_id: str
    rule: str
    message: str
    value: Optional[Any] = None
    severity: ValidationSeverity = ValidationSeverity.ERROR


class VariableWarning(BaseModel):
    """Non-blocking validation finding"""
    variable_id: str
    message: str
    suggestion: Optional[str] = None


class ResolvedDependency(BaseModel):
    """Descriptive outcome of one dependency rule"""
    variable_id: str
    depends_on: List[str]
    condition: ConditionOperator
    action: DependencyAction
    resolved: bool
    value: Optional[Any] = None


class VariableEvaluationResult(BaseModel):
    """Result of validating variable values"""
    is_valid: bool
    validated_values: Dict[str, Any] = Field(default_factory=dict)
    errors: List[VariableError] = Field(default_factory=list)
    warnings: List[VariableWarning] = Field(default_factory=list)
    dependencies: List[ResolvedDependency] = Field(default_factory=list)


# ============================================================================
# Evaluation Context
# ============================================================================

class LocationInfo(BaseModel):
    """Coarse location of the user"""
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None


class EnvironmentContext(BaseModel):
    """Device and locale the template is rendered in"""
    device_type: DeviceType = DeviceType.DESKTOP
    browser_type: Optional[str] = None
    operating_system: Optional[str] = None
    timezone: str = "UTC"
    language: str = "en"
    location: Optional[LocationInfo] = None


class UserProfile(BaseModel):
    """Profile of the user the template is evaluated for"""
    id: str = ""
    role: str = ""
    experience: Optional[str] = None


class CompletedStep(BaseModel):
    """A checklist step completed earlier in this run"""
    step_id: str
    completed_at: datetime = Field(default_factory=utc_now)
    value: Optional[Any] = None
    duration: float = 0


class EvaluationContext(BaseModel):
    """Bundle of values a rule is evaluated against"""
    user_id: str = ""
    workspace_id: str = ""
    template_id: str = ""
    variables: Dict[str, Any] = Field(default_factory=dict)
    user_profile: UserProfile = Field(default_factory=UserProfile)
    environment: EnvironmentContext = Field(default_factory=EnvironmentContext)
    previous_steps: List[CompletedStep] = Field(default_factory=list)
    current_step: Optional[str] = None
    now: Optional[datetime] = Field(None, description="Evaluation instant, defaults to current time")

    def completed_step(self, step_id: str) -> Optional[CompletedStep]:
        """Find a completed step by ID"""
        for step in self.previous_steps:
            if step.step_id == step_id:
                return step
        return None


# ============================================================================
# Conditional Steps
# ============================================================================

class _StepConditionBase(BaseModel):
    operator: ConditionOperator = ConditionOperator.EQUALS
    value: Optional[Any] = None


class VariableCondition(_StepConditionBase):
    """Compares a context variable"""
    type: Literal["variable"] = "variable"
    variable_id: str


class PreviousStepCondition(_StepConditionBase):
    """Checks a previously completed step (EXISTS = step completed)"""
    type: Literal["previous_step"] = "previous_step"
    step_id: str


class UserRoleCondition(_StepConditionBase):
    """Compares the user's role"""
    type: Literal["user_role"] = "user_role"


class DeviceTypeCondition(_StepConditionBase):
    """Compares the device type"""
    type: Literal["device_type"] = "device_type"


class TimeCondition(_StepConditionBase):
    """Compares local wall-clock time (HH:MM) in the environment timezone"""
    type: Literal["time"] = "time"


class LocationCondition(_StepConditionBase):
    """Compares a field of the environment location"""
    type: Literal["location"] = "location"
    field: Literal["country", "region", "city", "timezone"] = "country"


class CustomCondition(_StepConditionBase):
    """Delegates to a caller-supplied predicate over the whole context"""
    type: Literal["custom"] = "custom"
    custom_evaluator: Optional[Callable[[EvaluationContext], bool]] = Field(None, exclude=True)


StepCondition = Annotated[
    Union[
        VariableCondition, PreviousStepCondition, UserRoleCondition,
        DeviceTypeCondition, TimeCondition, LocationCondition, CustomCondition
    ],
    Field(discriminator="type")
]


class ConditionalStep(BaseModel):
    """Rule that shows/hides/requires/skips/modifies a checklist step"""
    id: str
    step_id: str
    conditions: List[StepCondition] = Field(default_factory=list)
    logical_operator: LogicalOperator = LogicalOperator.AND
    action: StepAction
    modification_data: Optional[Dict[str, Any]] = None
    priority: int = Field(default=0, description="Higher priority wins on conflicts")

    @field_validator("logical_operator", mode="before")
    @classmethod
    def normalize_logic(cls, value: Any) -> Any:
        return _upper_logic(value)


class ProcessedStep(BaseModel):
    """A conditional step whose conditions were met"""
    step_id: str
    action: StepAction
    modifications: Optional[Dict[str, Any]] = None
    reasoning: str
    priority: int = 0
    conditional_step_id: Optional[str] = None


# ============================================================================
# Dynamic Content
# ============================================================================

class DynamicContentCondition(BaseModel):
    """Literal content used when the variable condition matches"""
    variable_id: str
    operator: ConditionOperator = ConditionOperator.EQUALS
    value: Optional[Any] = None
    content: str


class ContentFormatter(BaseModel):
    """Formatter applied to interpolated values"""
    type: FormatterType
    options: Dict[str, Any] = Field(default_factory=dict)
    custom_formatter: Optional[Callable[[Any], str]] = Field(None, exclude=True)


class DynamicContentBinding(BaseModel):
    """Maps a text target to a template string and its activation conditions"""
    id: str
    target_type: ContentTargetType = ContentTargetType.CUSTOM
    target_id: str
    content_template: str
    variables: List[str] = Field(default_factory=list)
    conditions: List[DynamicContentCondition] = Field(default_factory=list)
    fallback_content: Optional[str] = None
    content_type: ContentType = ContentType.TEXT
    formatters: List[ContentFormatter] = Field(default_factory=list)


class GeneratedContent(BaseModel):
    """Rendered content for one binding"""
    target_id: str
    target_type: ContentTargetType = ContentTargetType.CUSTOM
    content: str
    content_type: ContentType = ContentType.TEXT
    generated_at: datetime = Field(default_factory=utc_now)
    variables: Dict[str, Any] = Field(default_factory=dict)
    used_fallback: bool = False


# ============================================================================
# Template Rule Set
# ============================================================================

class TemplateRules(BaseModel):
    """All rules attached to a checklist template"""
    template_id: str
    variables: List[TemplateVariable] = Field(default_factory=list)
    conditional_steps: List[ConditionalStep] = Field(default_factory=list)
    dynamic_content: List[DynamicContentBinding] = Field(default_factory=list)


class TemplateEvaluation(BaseModel):
    """Outcome of one full evaluation pass over a template"""
    template_id: str
    variables: VariableEvaluationResult
    processed_steps: List[ProcessedStep] = Field(default_factory=list)
    resolved_steps: Dict[str, ProcessedStep] = Field(default_factory=dict)
    content: List[GeneratedContent] = Field(default_factory=list)


# ============================================================================
# Workflow Automation - Definition
# ============================================================================

class WebhookTrigger(BaseModel):
    """Matches webhook deliveries by path, secret and event type"""
    type: Literal["webhook"] = "webhook"
    webhook_path: Optional[str] = None
    secret: Optional[str] = Field(None, description="Shared secret the receiver must present")
    event_types: List[str] = Field(default_factory=list, description="Empty = any event type")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ScheduleTrigger(BaseModel):
    """Matches scheduler ticks addressed to the workflow"""
    type: Literal["schedule"] = "schedule"
    cron_expression: str = Field(..., description="5-field crontab expression")
    timezone: str = "UTC"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UpstreamEventTrigger(BaseModel):
    """Matches domain events by event type membership"""
    type: Literal["upstream_event"] = "upstream_event"
    event_types: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


Trigger = Annotated[
    Union[WebhookTrigger, ScheduleTrigger, UpstreamEventTrigger],
    Field(discriminator="type")
]


class WorkflowCondition(BaseModel):
    """Condition on the event payload; logic_operator joins it to the next one"""
    field: str = Field(..., description="Dotted path into the event payload")
    operator: ConditionOperator
    value: Optional[Any] = None
    logic_operator: LogicalOperator = LogicalOperator.AND

    @field_validator("logic_operator", mode="before")
    @classmethod
    def normalize_logic(cls, value: Any) -> Any:
        return _upper_logic(value)


class RetryPolicy(BaseModel):
    """Backoff schedule for a failing action"""
    max_retries: int = Field(default=0, ge=0)
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    initial_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=60.0, ge=0)


class WorkflowAction(BaseModel):
    """A side-effect request executed by an injected executor"""
    id: str = Field(default_factory=generate_action_id)
    type: ActionType
    config: Dict[str, Any] = Field(default_factory=dict)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    order: int = 0


class WorkflowFrequency(BaseModel):
    """Execution frequency limits"""
    type: FrequencyType = FrequencyType.RECURRING
    interval: Optional[FrequencyInterval] = None
    interval_value: Optional[int] = None
    max_executions: Optional[int] = Field(None, ge=1)


class WorkflowAnalytics(BaseModel):
    """Cumulative execution counters - mutated only by the engine"""
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time_ms: float = 0.0
    last_execution_status: Optional[ExecutionStatus] = None
    last_execution_time: Optional[datetime] = None
    error_rate_percent: float = 0.0
    last_error: Optional[str] = None


class Workflow(BaseModel):
    """Automation workflow definition"""
    model_config = ConfigDict(extra="ignore")

    workflow_id: str = Field(default_factory=generate_workflow_id)
    workspace_id: str
    name: str
    description: str = ""
    enabled: bool = False
    trigger: Trigger
    conditions: List[WorkflowCondition] = Field(default_factory=list)
    actions: List[WorkflowAction] = Field(default_factory=list)
    frequency: WorkflowFrequency = Field(default_factory=WorkflowFrequency)
    analytics: WorkflowAnalytics = Field(default_factory=WorkflowAnalytics)
    analytics_version: int = Field(default=0, description="Optimistic lock for analytics updates")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_run: Optional[datetime] = None

    def ordered_actions(self) -> List[WorkflowAction]:
        """Actions sorted by ascending order (stable for equal orders)"""
        return sorted(self.actions, key=lambda a: a.order)


# ============================================================================
# Workflow Automation - Runtime
# ============================================================================

class InboundEvent(BaseModel):
    """Event entering the engine from a webhook, scheduler or publisher"""
    event_id: str = Field(default_factory=generate_event_id)
    workspace_id: str
    connection_id: Optional[str] = None
    event_type: str
    source: EventSource
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
    webhook_path: Optional[str] = None
    secret: Optional[str] = Field(None, description="Secret presented by the webhook sender")
    target_workflow_id: Optional[str] = Field(None, description="Workflow a schedule tick is for")


class WorkflowError(BaseModel):
    """Failure detail of an action"""
    step_id: str
    action_id: Optional[str] = None
    type: WorkflowErrorType = WorkflowErrorType.SYSTEM
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    retryable: bool = True


class WorkflowStepResult(BaseModel):
    """Outcome of one action in a workflow run"""
    step_id: str
    action_type: ActionType
    order: int
    status: StepResultStatus
    outputs: Dict[str, Any] = Field(default_factory=dict)
    errors: List[WorkflowError] = Field(default_factory=list)
    attempts: int = 0
    retry_delays: List[float] = Field(default_factory=list)
    duration_ms: float = 0.0


class WorkflowExecutionResult(BaseModel):
    """Outcome of one workflow run"""
    execution_id: str
    workflow_id: str
    workspace_id: str
    event_id: Optional[str] = None
    state: ExecutionState
    state_history: List[ExecutionState] = Field(default_factory=list)
    conditions_met: bool = False
    step_results: List[WorkflowStepResult] = Field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state == ExecutionState.COMPLETED
