"""Motor connection and index management for the workflow store"""
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import PyMongoError

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

_client: Optional[AsyncIOMotorClient] = None

WORKFLOW_INDEXES: List[IndexModel] = [
    IndexModel("workflow_id", unique=True, name="workflow_id_unique"),
    # Event routing loads a workspace's workflows
    IndexModel([("workspace_id", ASCENDING), ("enabled", ASCENDING)], name="workspace_enabled"),
    IndexModel("trigger.type", name="trigger_type"),
]

EXECUTION_INDEXES: List[IndexModel] = [
    IndexModel("execution_id", unique=True, name="execution_id_unique"),
    IndexModel([("workflow_id", ASCENDING), ("started_at", DESCENDING)], name="workflow_recent_runs"),
]

EVENT_INDEXES: List[IndexModel] = [
    IndexModel("event_id", unique=True, name="event_id_unique"),
    IndexModel([("workspace_id", ASCENDING), ("timestamp", DESCENDING)], name="workspace_recent_events"),
]


def get_async_client() -> AsyncIOMotorClient:
    """Process-wide Motor client, created on first use"""
    global _client
    if _client is None:
        logger.info(f"Connecting workflow store to {settings.mongo_uri}")
        _client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
    return _client


def get_async_database() -> AsyncIOMotorDatabase:
    return get_async_client()[settings.mongo_db]


async def create_indexes(database: Optional[AsyncIOMotorDatabase] = None) -> None:
    """Ensure the workflow, execution-log and event indexes exist"""
    db = database if database is not None else get_async_database()
    await db[settings.workflows_collection].create_indexes(WORKFLOW_INDEXES)
    await db[settings.executions_collection].create_indexes(EXECUTION_INDEXES)
    await db[settings.events_collection].create_indexes(EVENT_INDEXES)
    logger.info(
        f"Indexes ensured on {settings.workflows_collection}, "
        f"{settings.executions_collection} and {settings.events_collection}"
    )


async def close_async_connection() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("Workflow store connection closed")


async def async_health_check() -> Dict[str, Any]:
    """Ping the server; never raises"""
    try:
        await get_async_client().admin.command("ping")
    except PyMongoError as e:
        logger.error(f"Workflow store health check failed: {e}")
        return {"status": "unhealthy", "database": settings.mongo_db, "error": str(e)}
    return {"status": "healthy", "database": settings.mongo_db}
