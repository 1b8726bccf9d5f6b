"""
One reclaim cycle over a PostgreSQL WAL directory.

The cycle:
1. Connects and forces a log switch plus checkpoint
2. Resolves the segment currently being written
3. Indexes the WAL directory
4. Classifies every segment and applies the retention threshold
5. Deletes eligible segments and their markers
6. Sweeps stale markers and backup labels

Steps 1-3 never mutate anything; a failure there aborts the cycle and the
report says so. Steps 5-6 never raise for per-file problems.

Invariants:
    - No state is carried from one cycle to the next
    - Overlapping cycles against the same directory are not supported; the
      scheduler must run one at a time
    - The connection is closed when the cycle ends, whatever the outcome

How to change safely:
    - New stages must run after the resolver, never before the checkpoint
    - Keep per-file errors out of the abort path
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

from ..control.base import DatabaseControl, DatabaseError
from ..control.checkpoint import ActiveSegmentResolver, CheckpointTrigger, CycleAbortedError
from ..segments.index import SegmentDirectoryIndex
from ..segments.lifecycle import classify_segments, filter_eligible
from ..segments.naming import STATUS_SUBDIR
from .executor import DeletionExecutor, DeletionOutcome
from .sweeper import OrphanSweeper, SweepOutcome

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Result of one reclaim cycle.

    Attributes:
        started_at: Cycle start (Unix seconds)
        finished_at: Cycle end (Unix seconds)
        active_segment: Segment the server was writing, if resolved
        deletion: Deletion outcome (empty when aborted)
        sweep: Sweep outcome, None if the sweep did not run
        aborted: Whether the cycle stopped before touching the filesystem
        error: Error message if aborted
        dry_run: Whether unlinking was suppressed
    """

    started_at: float
    finished_at: float = 0.0
    active_segment: str | None = None
    deletion: DeletionOutcome = field(default_factory=DeletionOutcome)
    sweep: SweepOutcome | None = None
    aborted: bool = False
    error: str | None = None
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return not self.aborted

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at) * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_ms": self.duration_ms,
            "active_segment": self.active_segment,
            "aborted": self.aborted,
            "error": self.error,
            "dry_run": self.dry_run,
            "deletion": self.deletion.to_dict(),
            "sweep": self.sweep.to_dict() if self.sweep else None,
        }


class ReclaimCycle:
    """Runs the checkpoint → classify → delete → sweep pipeline once.

    Attributes:
        control: Database command backend
        index: WAL directory index
        threshold: Retention threshold
        dry_run: Report without unlinking
        sweep_enabled: Whether the orphan sweep runs

    Example:
        >>> cycle = ReclaimCycle(control, "/var/lib/postgresql/16/main/pg_wal")
        >>> report = await cycle.run()
        >>> print(report.deletion.deleted_count)
    """

    def __init__(
        self,
        control: DatabaseControl,
        wal_dir: str | Path,
        threshold: timedelta = timedelta(days=10),
        status_subdir: str = STATUS_SUBDIR,
        dry_run: bool = False,
        sweep_enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cycle.

        Args:
            control: DatabaseControl backend (connected or not)
            wal_dir: WAL directory path
            threshold: Retention threshold
            status_subdir: Marker subdirectory name
            dry_run: If True, nothing is unlinked
            sweep_enabled: If False, skip the orphan sweep
            clock: Time source in Unix seconds
        """
        self.control = control
        self.index = SegmentDirectoryIndex(wal_dir, status_subdir)
        self.threshold = threshold
        self.dry_run = dry_run
        self.sweep_enabled = sweep_enabled
        self.clock = clock

    @classmethod
    def from_config(cls, config: Any, control: DatabaseControl) -> ReclaimCycle:
        """Build a cycle from a ReaperConfig."""
        return cls(
            control=control,
            wal_dir=config.retention.wal_dir,
            threshold=config.retention.threshold,
            status_subdir=config.retention.status_subdir,
            dry_run=config.retention.dry_run,
            sweep_enabled=config.retention.sweep_enabled,
        )

    async def run(self) -> RunReport:
        """Execute one cycle.

        Returns:
            RunReport; aborted is set if a pre-inspection step failed
        """
        report = RunReport(started_at=self.clock(), dry_run=self.dry_run)
        logger.info(
            "Starting reclaim cycle",
            extra={
                "wal_dir": str(self.index.wal_dir),
                "retention_seconds": self.threshold.total_seconds(),
                "dry_run": self.dry_run,
            },
        )

        try:
            await self._connect()
            await CheckpointTrigger(self.control).run()
            active = await ActiveSegmentResolver(self.control).resolve()
            report.active_segment = active

            try:
                segments = self.index.scan()
            except OSError as e:
                raise CycleAbortedError("index", str(e)) from e

            now = self.clock()
            classified = classify_segments(segments, active, now)
            decision = filter_eligible(classified, self.threshold)

            executor = DeletionExecutor(self.index, dry_run=self.dry_run)
            report.deletion = executor.execute(decision.eligible, active)
            report.deletion.record_skips(decision.skipped)

            if self.sweep_enabled:
                sweeper = OrphanSweeper(self.index, self.threshold, dry_run=self.dry_run)
                report.sweep = sweeper.sweep(now)

        except CycleAbortedError as e:
            report.aborted = True
            report.error = str(e)
            logger.error(f"Reclaim cycle aborted: {e}")

        finally:
            await self.control.close()
            report.finished_at = self.clock()

        logger.info("Reclaim cycle finished", extra=report.to_dict())
        return report

    async def _connect(self) -> None:
        if self.control.is_connected:
            return
        try:
            await self.control.connect()
        except DatabaseError as e:
            raise CycleAbortedError("connect", str(e)) from e
