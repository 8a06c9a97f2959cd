"""Utility modules"""
from .logger import get_logger, setup_logging, get_correlation_id, correlation_scope
from .idgen import generate_id, generate_execution_id
from .time import utc_now, format_iso, parse_iso, to_local

__all__ = [
    "get_logger",
    "setup_logging",
    "get_correlation_id",
    "correlation_scope",
    "generate_id",
    "generate_execution_id",
    "utc_now",
    "format_iso",
    "parse_iso",
    "to_local",
]
