"""
Base protocol and errors for the database command interface.

The reclaim cycle needs exactly three things from the live database:
- close out the segment currently being written (log switch)
- flush state so older segments are no longer needed for recovery
- report which segment it is writing right now

This module defines the DatabaseControl protocol that backends implement,
along with the error types that abort a cycle.

Invariants:
    - Every failure is raised as a DatabaseError subclass
    - Backends hold no state that survives between cycles besides the
      connection itself

How to change safely:
    - Protocol changes require updating all implementations
    - Do not add commands that mutate data; this tool only reads and
      triggers server-side maintenance
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable
import logging

if TYPE_CHECKING:
    from ..config import ReaperConfig

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for database commands."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Connection to the database failed or was lost."""
    pass


class DatabaseCommandError(DatabaseError):
    """The database rejected or failed a command."""
    pass


@runtime_checkable
class DatabaseControl(Protocol):
    """Protocol for database command backends.

    Example:
        >>> control = PostgresControl(config.database)
        >>> await control.connect()
        >>> await control.switch_wal()
        >>> await control.checkpoint()
        >>> name = await control.current_wal_file()
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the database.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call when not connected."""
        ...

    @abstractmethod
    async def switch_wal(self) -> None:
        """Force a switch to a new WAL segment.

        Raises:
            DatabaseConnectionError: If not connected
            DatabaseCommandError: If the server refuses the switch
        """
        ...

    @abstractmethod
    async def checkpoint(self) -> None:
        """Force an immediate checkpoint.

        Raises:
            DatabaseConnectionError: If not connected
            DatabaseCommandError: If the checkpoint fails
        """
        ...

    @abstractmethod
    async def current_wal_file(self) -> str:
        """Return the name of the segment currently being written.

        Raises:
            DatabaseConnectionError: If not connected
            DatabaseCommandError: If the query fails
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected."""
        ...


def create_database_control(config: "ReaperConfig") -> DatabaseControl:
    """Factory function to create the database backend from configuration.

    Args:
        config: Reaper configuration

    Returns:
        DatabaseControl implementation for the configured server
    """
    from .postgres import PostgresControl

    return PostgresControl(config.database)
