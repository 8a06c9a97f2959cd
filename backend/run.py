"""
Run the workflow schedule runner.

Loads schedule-triggered workflows from MongoDB, registers their cron jobs
and executes them until interrupted.

Usage:
    python run.py
    python run.py --workspace WS-123   # Only one workspace
    python run.py --create-indexes     # Ensure MongoDB indexes first
"""
import argparse
import asyncio

from checklist_rules.config.settings import settings
from checklist_rules.engine.action_dispatcher import ActionDispatcher
from checklist_rules.domain.enums import ActionType
from checklist_rules.executors.http_endpoint import HttpEndpointExecutor
from checklist_rules.repositories.async_mongo import (
    create_indexes, close_async_connection, async_health_check
)
from checklist_rules.repositories.workflow_repo import MongoWorkflowStore
from checklist_rules.scheduler.workflow_scheduler import WorkflowScheduler
from checklist_rules.services.workflow_service import WorkflowService
from checklist_rules.utils.logger import setup_logging, get_logger

logger = get_logger(__name__)


async def serve(workspace_id, ensure_indexes: bool) -> None:
    health = await async_health_check()
    if health["status"] != "healthy":
        logger.error(f"MongoDB unavailable: {health.get('error')}")
        await close_async_connection()
        return

    if ensure_indexes:
        await create_indexes()

    dispatcher = ActionDispatcher({ActionType.CALL_ENDPOINT: HttpEndpointExecutor()})
    service = WorkflowService(MongoWorkflowStore(), dispatcher=dispatcher)
    scheduler = WorkflowScheduler(service.process_event)
    service.attach_scheduler(scheduler)

    scheduled = await service.sync_schedules(workspace_id)
    scheduler.start()
    logger.info(f"Schedule runner started with {scheduled} workflow(s)")

    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
        await close_async_connection()


def main():
    parser = argparse.ArgumentParser(description="Run the checklist workflow schedule runner")
    parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Only schedule workflows of this workspace (default: all)"
    )
    parser.add_argument(
        "--create-indexes",
        action="store_true",
        help="Create MongoDB indexes before starting"
    )

    args = parser.parse_args()

    setup_logging()

    print(f"Starting checklist workflow schedule runner...")
    print(f"  Database: {settings.mongo_db}")
    print(f"  Workspace: {args.workspace or 'all'}")
    print(f"  Execution timeout: {settings.workflow_execution_timeout_seconds}s")
    print()

    try:
        asyncio.run(serve(args.workspace, args.create_indexes))
    except KeyboardInterrupt:
        print("Stopped.")


if __name__ == "__main__":
    main()
