"""
Segment lifecycle model, classifier and retention filter.

Every segment is classified fresh each cycle from what is observed on disk
and what the database reports as its current write position:

    WRITING ──▶ CLOSED_UNARCHIVED ──▶ ARCHIVED ──▶ ELIGIBLE
                                        (age > retention)

There is no persisted state machine. classify_segment() is a pure function
of (name, marker state, age, is_active); filter_eligible() is a pure function
of the classified set and the retention threshold. Neither touches the
filesystem.

Invariants:
    - Active status wins over every other observation
    - Only a `done` marker can lead to ARCHIVED
    - ELIGIBLE requires age strictly greater than the threshold
    - An observation that cannot be completed is UNCLASSIFIABLE, never
      defaulted to deletable

How to change safely:
    - New states must map to a SkipReason unless they are ELIGIBLE
    - Keep these functions free of I/O so they stay testable in isolation
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum


class ArchiveMarkerState(Enum):
    """State of a segment's archive_status marker."""

    ABSENT = "absent"
    READY = "ready"
    DONE = "done"


class LifecycleState(Enum):
    """Per-cycle lifecycle state of a segment."""

    WRITING = "writing"
    CLOSED_UNARCHIVED = "closed_unarchived"
    ARCHIVED = "archived"
    ELIGIBLE = "eligible"
    UNCLASSIFIABLE = "unclassifiable"


class SkipReason(Enum):
    """Why a segment was not deleted."""

    ACTIVE = "active"
    NOT_ARCHIVED = "not_archived"
    TOO_YOUNG = "too_young"
    UNCLASSIFIABLE = "unclassifiable"
    MARKER_MISSING = "marker_missing"


_SKIP_REASONS = {
    LifecycleState.WRITING: SkipReason.ACTIVE,
    LifecycleState.CLOSED_UNARCHIVED: SkipReason.NOT_ARCHIVED,
    LifecycleState.ARCHIVED: SkipReason.TOO_YOUNG,
    LifecycleState.UNCLASSIFIABLE: SkipReason.UNCLASSIFIABLE,
}


@dataclass(frozen=True)
class WalSegment:
    """A segment file as observed by the directory index.

    Attributes:
        name: Segment file name (24 hex digits)
        modified_at: Modification time (Unix seconds), None if unreadable
        marker: Archive marker state
    """

    name: str
    modified_at: float | None
    marker: ArchiveMarkerState = ArchiveMarkerState.ABSENT

    def age(self, now: float) -> float | None:
        """Seconds since last modification, None if unknown."""
        if self.modified_at is None:
            return None
        return now - self.modified_at


@dataclass(frozen=True)
class ClassifiedSegment:
    """A segment tagged with its lifecycle state for this cycle."""

    segment: WalSegment
    state: LifecycleState
    age: float | None

    @property
    def name(self) -> str:
        return self.segment.name


@dataclass
class RetentionDecision:
    """Output of the retention filter.

    Attributes:
        eligible: Segments in state ELIGIBLE, ordered by name
        skipped: Skip reason per segment name for everything else
    """

    eligible: list[ClassifiedSegment] = field(default_factory=list)
    skipped: dict[str, SkipReason] = field(default_factory=dict)

    @property
    def eligible_names(self) -> list[str]:
        return [c.name for c in self.eligible]


def classify_segment(
    name: str,
    marker: ArchiveMarkerState,
    age: float | None,
    is_active: bool,
) -> LifecycleState:
    """Classify a single segment.

    Args:
        name: Segment file name
        marker: Observed archive marker state
        age: Seconds since modification, None if it could not be read
        is_active: Whether name is the database's current segment

    Returns:
        The lifecycle state before retention is applied (never ELIGIBLE)
    """
    if is_active:
        return LifecycleState.WRITING
    if age is None:
        return LifecycleState.UNCLASSIFIABLE
    if marker is ArchiveMarkerState.DONE:
        return LifecycleState.ARCHIVED
    return LifecycleState.CLOSED_UNARCHIVED


def classify_segments(
    segments: Iterable[WalSegment],
    active_name: str,
    now: float,
) -> list[ClassifiedSegment]:
    """Classify an index listing against the active segment name."""
    classified = []
    for segment in segments:
        age = segment.age(now)
        state = classify_segment(
            segment.name,
            segment.marker,
            age,
            is_active=segment.name == active_name,
        )
        classified.append(ClassifiedSegment(segment=segment, state=state, age=age))
    return classified


def filter_eligible(
    classified: Iterable[ClassifiedSegment],
    threshold: timedelta,
) -> RetentionDecision:
    """Select archived segments older than the retention threshold.

    Args:
        classified: Output of classify_segments()
        threshold: Retention threshold; age must strictly exceed it

    Returns:
        RetentionDecision with eligible segments and skip reasons
    """
    limit = threshold.total_seconds()
    decision = RetentionDecision()

    for item in sorted(classified, key=lambda c: c.name):
        if item.state is LifecycleState.ARCHIVED and item.age is not None and item.age > limit:
            decision.eligible.append(
                ClassifiedSegment(
                    segment=item.segment,
                    state=LifecycleState.ELIGIBLE,
                    age=item.age,
                )
            )
        else:
            decision.skipped[item.name] = _SKIP_REASONS.get(
                item.state, SkipReason.UNCLASSIFIABLE
            )

    return decision
