"""Repository modules - Data access layer"""
from .base import WorkflowStore
from .memory_repo import InMemoryWorkflowStore
from .async_mongo import (
    get_async_client, get_async_database, create_indexes, close_async_connection, async_health_check
)
from .workflow_repo import MongoWorkflowStore

__all__ = [
    "WorkflowStore",
    "InMemoryWorkflowStore",
    "get_async_client",
    "get_async_database",
    "create_indexes",
    "close_async_connection",
    "async_health_check",
    "MongoWorkflowStore",
]
