"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports ``rolebot.core.config``
so that the global settings object validates without a .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("TELEGRAM_APITOKEN", "123456:test-token")
os.environ.setdefault("SECURITY_ADMIN_USERNAME", "admin")

from unittest.mock import Mock

import pytest

from rolebot.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from rolebot.core.security import AdmissionGate
from rolebot.services.directory import Directory
from rolebot.services.dispatcher import CommandDispatcher


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "roles.db")


@pytest.fixture
def directory(db_path):
    directory = Directory.open(db_path, timeout_seconds=5.0)
    yield directory
    directory.close()


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1000.0)


@pytest.fixture
def gate(clock) -> AdmissionGate:
    limiter = InMemorySlidingWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
    return AdmissionGate(limiter=limiter, admin_username="admin")


@pytest.fixture
def dispatcher(directory, gate) -> CommandDispatcher:
    return CommandDispatcher(directory, gate)
