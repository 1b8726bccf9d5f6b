"""
In-memory database control for testing.

This module provides a scripted DatabaseControl backend for:
- Unit tests of the checkpoint trigger and active segment resolver
- Integration tests of full reclaim cycles without a server
- Failure injection (refused connection, failing commands)

Invariants:
    - Every command is recorded in `calls` in the order issued
    - A log switch advances the current segment to the next name

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with DatabaseControl protocol
"""

from __future__ import annotations

import logging

from ..segments.naming import DEFAULT_SEGMENT_SIZE, parse_segment_name
from .base import DatabaseCommandError, DatabaseConnectionError

logger = logging.getLogger(__name__)


class InMemoryDatabaseControl:
    """Scripted implementation of DatabaseControl.

    Attributes:
        current_segment: Name reported by current_wal_file()
        fail_on: Commands that raise DatabaseCommandError
            ("switch_wal", "checkpoint", "current_wal_file")
        refuse_connect: Whether connect() raises DatabaseConnectionError
        advance_on_switch: Whether switch_wal() moves to the next segment
        calls: Commands issued so far

    Example:
        >>> control = InMemoryDatabaseControl("000000010000000000000005")
        >>> await control.connect()
        >>> await control.switch_wal()
        >>> await control.current_wal_file()
        '000000010000000000000006'
    """

    def __init__(
        self,
        current_segment: str = "000000010000000000000001",
        fail_on: set[str] | None = None,
        refuse_connect: bool = False,
        advance_on_switch: bool = False,
        segment_size: int = DEFAULT_SEGMENT_SIZE,
    ) -> None:
        self.current_segment = current_segment
        self.fail_on = set(fail_on or ())
        self.refuse_connect = refuse_connect
        self.advance_on_switch = advance_on_switch
        self.segment_size = segment_size
        self.calls: list[str] = []
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.calls.append("connect")
        if self.refuse_connect:
            raise DatabaseConnectionError("Connection refused")
        self._connected = True
        logger.debug("InMemoryDatabaseControl connected")

    async def close(self) -> None:
        self.calls.append("close")
        self._connected = False

    async def switch_wal(self) -> None:
        self._command("switch_wal")
        if self.advance_on_switch:
            segment = parse_segment_name(self.current_segment)
            self.current_segment = segment.next(self.segment_size).name

    async def checkpoint(self) -> None:
        self._command("checkpoint")

    async def current_wal_file(self) -> str:
        self._command("current_wal_file")
        return self.current_segment

    def _command(self, name: str) -> None:
        self.calls.append(name)
        if not self._connected:
            raise DatabaseConnectionError("Not connected")
        if name in self.fail_on:
            raise DatabaseCommandError(f"{name} failed (injected)")
