"""
Orphan sweeper for WAL metadata files.

A best-effort pass that removes stale `.done` markers and backup label
files by age alone, whether or not the segment they describe still exists.
It repairs what partial deletions and manual clean-ups leave behind.

Invariants:
    - Segment files are never touched
    - `.ready` markers and timeline history files are never touched
    - Age must strictly exceed the retention threshold
    - Errors are logged and recorded, never raised
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from ..segments.index import MetadataFile, SegmentDirectoryIndex

logger = logging.getLogger(__name__)


@dataclass
class SweepOutcome:
    """Result of one sweep.

    Attributes:
        markers_removed: `.done` marker names removed
        labels_removed: Backup label names removed
        failed: Names that could not be removed
        dry_run: Whether unlinking was suppressed
    """

    markers_removed: list[str] = field(default_factory=list)
    labels_removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "markers_removed": len(self.markers_removed),
            "labels_removed": len(self.labels_removed),
            "failed": list(self.failed),
            "dry_run": self.dry_run,
        }


class OrphanSweeper:
    """Removes stale markers and backup labels.

    Example:
        >>> sweeper = OrphanSweeper(index, timedelta(days=10))
        >>> outcome = sweeper.sweep(now=time.time())
    """

    def __init__(
        self,
        index: SegmentDirectoryIndex,
        threshold: timedelta,
        dry_run: bool = False,
    ) -> None:
        self.index = index
        self.threshold = threshold
        self.dry_run = dry_run

    def sweep(self, now: float) -> SweepOutcome:
        """Run one sweep.

        Args:
            now: Reference time (Unix seconds) for age computation
        """
        outcome = SweepOutcome(dry_run=self.dry_run)

        try:
            markers = self.index.list_done_markers()
            labels = self.index.list_backup_labels()
        except OSError as e:
            logger.warning(f"Orphan sweep skipped, cannot list WAL directory: {e}")
            return outcome

        for marker in markers:
            if self._remove_if_stale(marker, now, outcome):
                outcome.markers_removed.append(marker.name)

        for label in labels:
            if self._remove_if_stale(label, now, outcome):
                outcome.labels_removed.append(label.name)

        if outcome.markers_removed or outcome.labels_removed:
            logger.info("Orphan sweep finished", extra=outcome.to_dict())
        return outcome

    def _remove_if_stale(self, item: MetadataFile, now: float, outcome: SweepOutcome) -> bool:
        if item.modified_at is None:
            return False
        if now - item.modified_at <= self.threshold.total_seconds():
            return False

        if self.dry_run:
            logger.info(f"Would remove stale {item.name}")
            return True

        try:
            item.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove stale {item.name}: {e}")
            outcome.failed.append(item.name)
            return False

        logger.info(f"Removed stale {item.name}", extra={"file": str(item.path)})
        return True
