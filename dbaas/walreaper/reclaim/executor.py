"""
Deletion executor for eligible WAL segments.

For each eligible segment the executor removes the segment file and then its
`.done` marker. The pair is one logical unit, but the filesystem offers no
way to remove two files atomically, so the order matters: the marker is kept
until the segment is gone. A marker left behind by a failed second step is an
orphan the sweeper reclaims on a later cycle.

Invariants:
    - Only segments in state ELIGIBLE are considered
    - The active segment is never unlinked, even if handed in as eligible
    - A segment whose `.done` marker vanished since classification is skipped
    - A file that is already absent counts as deleted
    - Nothing is retried within a cycle

How to change safely:
    - Any new branch must end in "skip" when the state is ambiguous
    - Re-running execute() on the same input must leave the same directory
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..segments.index import SegmentDirectoryIndex
from ..segments.lifecycle import ArchiveMarkerState, ClassifiedSegment, LifecycleState, SkipReason

logger = logging.getLogger(__name__)


@dataclass
class DeletionOutcome:
    """Per-cycle result of the deletion executor.

    Attributes:
        deleted: Segments removed (or already absent), in order
        already_gone: Subset of deleted that was absent before unlinking
        skipped: Skip reason per segment name
        failed: Segments whose unlink failed; their marker is left in place
        partial: Segments removed whose marker could not be removed
        dry_run: Whether unlinking was suppressed
    """

    deleted: list[str] = field(default_factory=list)
    already_gone: list[str] = field(default_factory=list)
    skipped: dict[str, SkipReason] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    partial: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def record_skips(self, skipped: dict[str, SkipReason]) -> None:
        """Merge skip reasons produced by the retention filter."""
        self.skipped.update(skipped)

    def skip_reason_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for reason in self.skipped.values():
            counts[reason.value] = counts.get(reason.value, 0) + 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "deleted": self.deleted_count,
            "already_gone": len(self.already_gone),
            "skipped": self.skipped_count,
            "skip_reasons": self.skip_reason_counts(),
            "failed": list(self.failed),
            "partial": list(self.partial),
            "dry_run": self.dry_run,
        }


class DeletionExecutor:
    """Removes eligible segments and their `.done` markers.

    Example:
        >>> executor = DeletionExecutor(index)
        >>> outcome = executor.execute(decision.eligible, active_name)
        >>> print(f"Deleted {outcome.deleted_count} segments")
    """

    def __init__(self, index: SegmentDirectoryIndex, dry_run: bool = False) -> None:
        """Initialize the executor.

        Args:
            index: Directory index used to resolve paths
            dry_run: If True, report what would be deleted without unlinking
        """
        self.index = index
        self.dry_run = dry_run

    def execute(
        self,
        eligible: Iterable[ClassifiedSegment],
        active_name: str,
    ) -> DeletionOutcome:
        """Delete every eligible segment.

        Args:
            eligible: Segments selected by the retention filter
            active_name: Segment currently written by the server

        Returns:
            DeletionOutcome for this run
        """
        outcome = DeletionOutcome(dry_run=self.dry_run)

        for item in sorted(eligible, key=lambda c: c.name):
            if item.name == active_name:
                logger.error(f"Refusing to delete active segment {item.name}")
                outcome.skipped[item.name] = SkipReason.ACTIVE
                continue
            if item.state is not LifecycleState.ELIGIBLE:
                logger.warning(
                    f"Skipping {item.name}: state {item.state.value} is not eligible"
                )
                outcome.skipped[item.name] = SkipReason.UNCLASSIFIABLE
                continue

            self._delete_one(item.name, outcome)

        return outcome

    def _delete_one(self, name: str, outcome: DeletionOutcome) -> None:
        segment_path = self.index.segment_path(name)
        marker_path = self.index.marker_path(name, ArchiveMarkerState.DONE)

        try:
            segment_present = segment_path.exists()
            marker_present = marker_path.exists()
        except OSError as e:
            logger.error(f"Cannot inspect {name} before deletion: {e}")
            outcome.failed.append(name)
            return

        if segment_present and not marker_present:
            logger.warning(f"Skipping {name}: .done marker disappeared since classification")
            outcome.skipped[name] = SkipReason.MARKER_MISSING
            return

        if self.dry_run:
            logger.info(f"Would delete WAL segment {name}", extra={"segment": name})
            outcome.deleted.append(name)
            return

        try:
            removed = _unlink(segment_path)
        except OSError as e:
            logger.error(f"Failed to delete WAL segment {name}: {e}")
            outcome.failed.append(name)
            return

        if not removed:
            logger.info(f"WAL segment {name} already gone", extra={"segment": name})
            outcome.already_gone.append(name)

        try:
            _unlink(marker_path)
        except OSError as e:
            logger.warning(
                f"Deleted {name} but could not remove its marker: {e}",
                extra={"segment": name, "marker": str(marker_path)},
            )
            outcome.partial.append(name)

        logger.info("Deleted WAL segment", extra={"segment": name})
        outcome.deleted.append(name)


def _unlink(path: Path) -> bool:
    """Remove path. Returns False if it was already absent."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
