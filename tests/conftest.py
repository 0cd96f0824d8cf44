"""Shared pytest fixtures for the project sync tests.

Fixture Organization:
    - Config fixtures: SyncConfig instances isolated from the environment
    - Store fixtures: pre-populated InMemoryRecordStore
"""

import os

import pytest

from projectsync.config import SyncConfig, reset_config
from projectsync.stores import InMemoryRecordStore

_ENV_PREFIXES = (
    "API_",
    "SOURCE_HOST",
    "RATE_",
    "BATCH_CAP",
    "REQUEST_TIMEOUT",
    "README_BRANCH",
    "SYNC_INTERVAL",
    "NOTIFY_ON_FAILURE",
    "FAILURE_WEBHOOK_URL",
    "RECORD_STORE",
    "QDRANT_",
    "METRICS_ENABLED",
    "PUSHGATEWAY_URL",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove sync settings from the environment and reset the config cache."""
    for key in list(os.environ):
        if key.upper().startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    """SyncConfig with defaults, ignoring any .env file."""
    return SyncConfig(_env_file=None, record_store="memory")


@pytest.fixture
def store():
    """In-memory store with three tracked repositories (A, B, C)."""
    records = InMemoryRecordStore()
    records.create_record("A", title="alpha", github_url="https://github.com/o/alpha")
    records.create_record("B", title="beta", github_url="github.com/o/beta", stargazers_count=7)
    records.create_record("C", title="gamma", github_url="http://www.github.com/o/gamma")
    return records
