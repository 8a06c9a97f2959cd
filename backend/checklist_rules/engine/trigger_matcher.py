"""Trigger Matcher - Route inbound events to workflows"""
import hmac
from typing import List

from ..domain.models import (
    Workflow, InboundEvent, WebhookTrigger, ScheduleTrigger, UpstreamEventTrigger
)
from ..domain.enums import EventSource, FrequencyType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TriggerMatcher:
    """
    Decide whether an inbound event should start a workflow

    A workflow matches only when it is enabled, belongs to the event's
    workspace, has not reached its frequency limit and its trigger accepts
    the event.
    """

    def matches(self, workflow: Workflow, event: InboundEvent) -> bool:
        if not workflow.enabled:
            return False
        if workflow.workspace_id != event.workspace_id:
            return False
        if self.frequency_exhausted(workflow):
            logger.debug(
                f"Workflow {workflow.workflow_id} reached its execution limit",
                extra={"workflow_id": workflow.workflow_id}
            )
            return False

        trigger = workflow.trigger
        if isinstance(trigger, WebhookTrigger):
            return self._match_webhook(trigger, event)
        elif isinstance(trigger, ScheduleTrigger):
            return self._match_schedule(workflow, event)
        elif isinstance(trigger, UpstreamEventTrigger):
            return self._match_upstream(trigger, event)
        return False

    def select(self, workflows: List[Workflow], event: InboundEvent) -> List[Workflow]:
        """Workflows the event should start, in the given order"""
        return [w for w in workflows if self.matches(w, event)]

    @staticmethod
    def frequency_exhausted(workflow: Workflow) -> bool:
        """True if the frequency limit forbids further runs"""
        total = workflow.analytics.total_executions
        if workflow.frequency.type == FrequencyType.ONCE:
            return total >= 1
        max_executions = workflow.frequency.max_executions
        return max_executions is not None and total >= max_executions

    @staticmethod
    def _match_webhook(trigger: WebhookTrigger, event: InboundEvent) -> bool:
        if event.source != EventSource.WEBHOOK:
            return False
        if trigger.webhook_path and trigger.webhook_path != event.webhook_path:
            return False
        if trigger.secret and not hmac.compare_digest(
            trigger.secret.encode(), (event.secret or "").encode()
        ):
            logger.warning(
                "Webhook secret mismatch",
                extra={"workspace_id": event.workspace_id, "event_type": event.event_type}
            )
            return False
        if trigger.event_types and event.event_type not in trigger.event_types:
            return False
        return True

    @staticmethod
    def _match_schedule(workflow: Workflow, event: InboundEvent) -> bool:
        return (
            event.source == EventSource.SCHEDULE
            and event.target_workflow_id == workflow.workflow_id
        )

    @staticmethod
    def _match_upstream(trigger: UpstreamEventTrigger, event: InboundEvent) -> bool:
        return (
            event.source == EventSource.UPSTREAM_EVENT
            and event.event_type in trigger.event_types
        )
