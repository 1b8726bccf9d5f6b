"""
Database command interface for walreaper.

This module provides a pluggable backend for the three commands a reclaim
cycle issues against the live server:
- PostgreSQL (production)
- In-memory (for testing)

Invariants:
    - Any command failure aborts the cycle before the filesystem is touched
    - The active segment is fetched fresh every cycle, never stored

How to change safely:
    - New backends must implement the DatabaseControl protocol
    - Verify failure behavior on a standby before deploying
"""

from .base import (
    DatabaseCommandError,
    DatabaseConnectionError,
    DatabaseControl,
    DatabaseError,
    create_database_control,
)
from .checkpoint import ActiveSegmentResolver, CheckpointTrigger, CycleAbortedError
from .memory import InMemoryDatabaseControl
from .postgres import PostgresControl

__all__ = [
    # Protocol and errors
    "DatabaseControl",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseCommandError",
    "CycleAbortedError",
    # Factory
    "create_database_control",
    # Cycle steps
    "CheckpointTrigger",
    "ActiveSegmentResolver",
    # Implementations
    "PostgresControl",
    "InMemoryDatabaseControl",
]
