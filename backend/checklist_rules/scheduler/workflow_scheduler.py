"""Workflow Scheduler - Cron ticks for schedule-triggered workflows

Each enabled workflow with a schedule trigger becomes one APScheduler cron
job. A tick is turned into a `schedule` inbound event addressed to that
workflow and handed to the tick handler (normally
WorkflowService.process_event), so scheduled runs go through the same
matching, condition and analytics path as every other event.
"""
from typing import Any, Awaitable, Callable, List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config.settings import settings
from ..domain.models import Workflow, ScheduleTrigger, InboundEvent
from ..domain.enums import EventSource
from ..domain.errors import ValidationError
from ..utils.logger import get_logger
from ..utils.time import utc_now, format_iso

logger = get_logger(__name__)

SCHEDULE_EVENT_TYPE = "schedule.tick"
JOB_PREFIX = "workflow:"

TickHandler = Callable[[InboundEvent], Awaitable[Any]]


class WorkflowScheduler:
    """APScheduler wrapper that owns one cron job per scheduled workflow"""

    def __init__(
        self,
        on_tick: TickHandler,
        scheduler: Optional[AsyncIOScheduler] = None
    ):
        self.on_tick = on_tick
        self.scheduler = scheduler or AsyncIOScheduler()
        self._is_running = False

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Scheduler already running")
            return
        self.scheduler.start()
        self._is_running = True
        logger.info(f"Workflow scheduler started with {len(self.scheduler.get_jobs())} job(s)")

    def stop(self) -> None:
        """Stop the scheduler"""
        if self._is_running:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("Workflow scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    @staticmethod
    def job_id(workflow_id: str) -> str:
        return f"{JOB_PREFIX}{workflow_id}"

    @staticmethod
    def build_trigger(trigger: ScheduleTrigger) -> CronTrigger:
        """
        Build a cron trigger from a schedule trigger definition

        Raises:
            ValidationError: If the cron expression or timezone is invalid
        """
        try:
            return CronTrigger.from_crontab(trigger.cron_expression, timezone=trigger.timezone)
        except Exception as e:
            raise ValidationError(
                f"Invalid schedule: {e}",
                details={"cron_expression": trigger.cron_expression, "timezone": trigger.timezone}
            ) from e

    def schedule(self, workflow: Workflow) -> bool:
        """
        Register, replace or remove the job for a workflow

        Returns:
            True if the workflow now has a job
        """
        if not isinstance(workflow.trigger, ScheduleTrigger) or not workflow.enabled:
            self.unschedule(workflow.workflow_id)
            return False

        trigger = self.build_trigger(workflow.trigger)
        job_id = self.job_id(workflow.workflow_id)
        # A stopped scheduler queues jobs without de-duplicating IDs
        if self.scheduler.get_job(job_id) is not None:
            self.scheduler.remove_job(job_id)

        self.scheduler.add_job(
            self._tick,
            trigger=trigger,
            args=[workflow.workflow_id, workflow.workspace_id],
            id=job_id,
            name=f"Workflow {workflow.name}",
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=settings.scheduler_misfire_grace_seconds
        )
        logger.info(
            f"Scheduled workflow {workflow.workflow_id}: {workflow.trigger.cron_expression}",
            extra={"workflow_id": workflow.workflow_id, "workspace_id": workflow.workspace_id}
        )
        return True

    def unschedule(self, workflow_id: str) -> bool:
        """Remove a workflow's job; False if it had none"""
        job_id = self.job_id(workflow_id)
        if self.scheduler.get_job(job_id) is None:
            return False
        self.scheduler.remove_job(job_id)
        logger.info(f"Unscheduled workflow {workflow_id}", extra={"workflow_id": workflow_id})
        return True

    def sync(self, workflows: List[Workflow]) -> int:
        """
        Schedule every enabled schedule-triggered workflow in the list

        Returns:
            Number of workflows with an active job
        """
        scheduled = 0
        for workflow in workflows:
            try:
                if self.schedule(workflow):
                    scheduled += 1
            except ValidationError as e:
                logger.error(
                    f"Skipping workflow {workflow.workflow_id}: {e.message}",
                    extra={"workflow_id": workflow.workflow_id}
                )
        return scheduled

    def scheduled_workflow_ids(self) -> List[str]:
        return [
            job.id[len(JOB_PREFIX):] for job in self.scheduler.get_jobs()
            if job.id.startswith(JOB_PREFIX)
        ]

    async def _tick(self, workflow_id: str, workspace_id: str) -> None:
        """Turn a cron tick into a schedule event"""
        event = InboundEvent(
            workspace_id=workspace_id,
            event_type=SCHEDULE_EVENT_TYPE,
            source=EventSource.SCHEDULE,
            target_workflow_id=workflow_id,
            payload={"workflow_id": workflow_id, "scheduled_at": format_iso(utc_now())}
        )
        try:
            await self.on_tick(event)
        except Exception as e:
            logger.error(
                f"Scheduled run of workflow {workflow_id} failed: {e}",
                extra={"workflow_id": workflow_id, "workspace_id": workspace_id},
                exc_info=True
            )
