"""
Test Suite

This module contains all tests for the checklist rule engine.

Structure:
    tests/
    ├── __init__.py             # This file
    ├── conftest.py             # Pytest fixtures
    └── unit/                   # Unit tests
        ├── __init__.py
        ├── test_engine/        # Evaluators and workflow engine
        ├── test_services/      # Service layer tests
        ├── test_repositories/  # Store tests (Mongo mocked)
        ├── test_executors/     # Call-endpoint executor (httpx mock transport)
        ├── test_scheduler/     # Cron job bookkeeping and ticks
        ├── test_scripts/       # Maintenance scripts
        └── test_utils/         # Utility tests

To run tests:
    pytest backend/tests/
    pytest backend/tests/unit/test_engine/
"""
