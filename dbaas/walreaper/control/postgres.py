"""
PostgreSQL command backend.

Issues the log switch, checkpoint and current-segment queries over a single
autocommit connection opened with psycopg's async API.

Function names changed in PostgreSQL 10 (xlog -> wal); the server version
reported at connect time selects which set is used.

Invariants:
    - The connection is autocommit; CHECKPOINT cannot run in a transaction
    - Connection-level failures mark the backend as disconnected
    - The role needs pg_checkpoint (15+) or superuser, plus EXECUTE on
      pg_switch_wal

How to change safely:
    - Test against a standby: every command must fail cleanly there
    - Keep queries read-only apart from the two maintenance commands
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg

from .base import DatabaseCommandError, DatabaseConnectionError

logger = logging.getLogger(__name__)

WAL_RENAME_VERSION = 100000

_QUERIES = {
    "switch": ("SELECT pg_switch_wal()", "SELECT pg_switch_xlog()"),
    "current": (
        "SELECT pg_walfile_name(pg_current_wal_lsn())",
        "SELECT pg_xlogfile_name(pg_current_xlog_location())",
    ),
}


class PostgresControl:
    """PostgreSQL implementation of DatabaseControl.

    Attributes:
        config: DatabaseConfig with connection settings
        server_version: Server version number once connected (e.g. 160002)

    Example:
        >>> control = PostgresControl(DatabaseConfig(host="db", user="postgres"))
        >>> await control.connect()
        >>> await control.switch_wal()
    """

    def __init__(self, config: Any) -> None:
        """Initialize the backend.

        Args:
            config: DatabaseConfig instance
        """
        self.config = config
        self.server_version: int | None = None
        self._conn: psycopg.AsyncConnection | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    async def connect(self) -> None:
        """Open the autocommit connection.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        if self.is_connected:
            return

        try:
            self._conn = await psycopg.AsyncConnection.connect(
                self.config.dsn or "",
                autocommit=True,
                **self._connect_kwargs(),
            )
        except psycopg.Error as e:
            self._conn = None
            raise DatabaseConnectionError(f"Failed to connect to PostgreSQL: {e}") from e

        self.server_version = self._conn.info.server_version
        logger.info(
            "Connected to PostgreSQL",
            extra={
                "host": self._conn.info.host,
                "port": self._conn.info.port,
                "server_version": self.server_version,
            },
        )

    async def close(self) -> None:
        if self._conn is not None:
            try:
                await self._conn.close()
            except psycopg.Error as e:
                logger.warning(f"Error closing PostgreSQL connection: {e}")
            self._conn = None

    async def switch_wal(self) -> None:
        await self._execute(self._query("switch"))
        logger.debug("WAL switch requested")

    async def checkpoint(self) -> None:
        await self._execute("CHECKPOINT")
        logger.debug("Checkpoint completed")

    async def current_wal_file(self) -> str:
        row = await self._execute(self._query("current"), fetch=True)
        if not row or row[0] is None:
            raise DatabaseCommandError("Server returned no current WAL file name")
        return str(row[0])

    def _query(self, kind: str) -> str:
        modern, legacy = _QUERIES[kind]
        if self.server_version is not None and self.server_version < WAL_RENAME_VERSION:
            return legacy
        return modern

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "connect_timeout": self.config.connect_timeout,
            "application_name": self.config.application_name,
        }
        # Explicit DSN wins over the individual parts.
        if not self.config.dsn:
            kwargs.update(
                host=self.config.host,
                port=self.config.port,
                user=self.config.user,
                dbname=self.config.dbname,
            )
            if self.config.password:
                kwargs["password"] = self.config.password
        return kwargs

    async def _execute(self, sql: str, fetch: bool = False) -> tuple[Any, ...] | None:
        if not self.is_connected:
            raise DatabaseConnectionError("Not connected to PostgreSQL")

        try:
            async with self._conn.cursor() as cur:
                await cur.execute(sql)
                if fetch:
                    return await cur.fetchone()
                return None
        except psycopg.Error as e:
            if self._conn.broken or self._conn.closed:
                await self.close()
                raise DatabaseConnectionError(f"PostgreSQL connection lost: {e}") from e
            raise DatabaseCommandError(f"{sql!r} failed: {e}") from e
