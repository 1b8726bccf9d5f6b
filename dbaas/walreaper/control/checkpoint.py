"""
Checkpoint trigger and active segment resolver.

Both run before the WAL directory is inspected. Any failure here aborts the
cycle: classifying segments against a checkpoint that did not happen, or
without knowing which segment is being written, could delete a file the
server still needs for recovery.

Invariants:
    - Log switch is issued before the checkpoint
    - The resolved name must match the segment naming convention
    - Failures surface as CycleAbortedError; nothing is retried
"""

from __future__ import annotations

import logging

from ..segments.naming import is_segment_name
from .base import DatabaseControl, DatabaseError

logger = logging.getLogger(__name__)


class CycleAbortedError(Exception):
    """A pre-inspection step failed; the cycle must not touch the filesystem.

    Attributes:
        stage: Name of the step that failed
    """

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class CheckpointTrigger:
    """Closes the current segment and forces a checkpoint."""

    def __init__(self, control: DatabaseControl) -> None:
        self.control = control

    async def run(self) -> None:
        """Issue log switch then checkpoint.

        Raises:
            CycleAbortedError: If either command fails
        """
        try:
            await self.control.switch_wal()
        except DatabaseError as e:
            raise CycleAbortedError("switch_wal", str(e)) from e

        try:
            await self.control.checkpoint()
        except DatabaseError as e:
            raise CycleAbortedError("checkpoint", str(e)) from e

        logger.info("Log switch and checkpoint completed")


class ActiveSegmentResolver:
    """Resolves the segment the server is currently writing."""

    def __init__(self, control: DatabaseControl) -> None:
        self.control = control

    async def resolve(self) -> str:
        """Return the active segment file name.

        Raises:
            CycleAbortedError: If the query fails or returns a malformed name
        """
        try:
            name = await self.control.current_wal_file()
        except DatabaseError as e:
            raise CycleAbortedError("current_wal_file", str(e)) from e

        name = name.strip()
        if not is_segment_name(name):
            raise CycleAbortedError(
                "current_wal_file", f"server returned malformed segment name {name!r}"
            )

        logger.info("Resolved active segment", extra={"active_segment": name})
        return name
