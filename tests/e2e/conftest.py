"""
E2E test fixtures for walreaper.

These tests need a running PostgreSQL server whose pg_wal directory is
readable from the test process (same host or a shared volume).

Environment:
    WALREAPER_E2E_TESTS=1       enable the suite
    WALREAPER_E2E_DSN           connection string (role needs pg_checkpoint)
    WALREAPER_E2E_WAL_DIR       path to the server's pg_wal directory
"""

import os

import pytest

E2E_ENABLED = os.environ.get("WALREAPER_E2E_TESTS", "0") == "1"

pytestmark = pytest.mark.skipif(
    not E2E_ENABLED,
    reason="E2E tests disabled. Set WALREAPER_E2E_TESTS=1 to enable."
)


@pytest.fixture
def database_config():
    from dbaas.walreaper.config import DatabaseConfig

    return DatabaseConfig(
        dsn=os.environ.get("WALREAPER_E2E_DSN", "postgresql://postgres@localhost:5432/postgres"),
        connect_timeout=5,
    )


@pytest.fixture
def wal_dir():
    path = os.environ.get("WALREAPER_E2E_WAL_DIR")
    if not path or not os.path.isdir(path):
        pytest.skip("WALREAPER_E2E_WAL_DIR not set or not readable")
    return path
