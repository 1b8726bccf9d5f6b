"""
Unit tests for the deletion executor.

Tests cover:
- Removal of segment and marker as a pair
- Idempotence and already-absent files
- Guards against active and non-eligible segments
- Partial-pair and failure reporting
- Dry run
"""

from pathlib import Path

import pytest

from dbaas.walreaper.reclaim.executor import DeletionExecutor
from dbaas.walreaper.segments.index import SegmentDirectoryIndex
from dbaas.walreaper.segments.lifecycle import (
    ArchiveMarkerState,
    ClassifiedSegment,
    LifecycleState,
    SkipReason,
    WalSegment,
)

ACTIVE = "000000010000000000000010"
SEG_B = "00000001000000000000000B"
SEG_E = "00000001000000000000000E"


def eligible(name, state=LifecycleState.ELIGIBLE):
    segment = WalSegment(name=name, modified_at=0.0, marker=ArchiveMarkerState.DONE)
    return ClassifiedSegment(segment=segment, state=state, age=20 * 86400.0)


class TestDeletionExecutor:
    """Tests for DeletionExecutor."""

    @pytest.fixture
    def executor(self, wal_tree):
        return DeletionExecutor(SegmentDirectoryIndex(wal_tree.wal_dir))

    def test_deletes_segment_and_marker(self, wal_tree, executor):
        wal_tree.segment(SEG_B, 15, marker="done")

        outcome = executor.execute([eligible(SEG_B)], ACTIVE)

        assert outcome.deleted == [SEG_B]
        assert outcome.deleted_count == 1
        assert not wal_tree.exists(SEG_B)
        assert not wal_tree.marker_exists(SEG_B)

    def test_segment_already_gone(self, wal_tree, executor):
        wal_tree.marker(SEG_E, "done", 12)

        outcome = executor.execute([eligible(SEG_E)], ACTIVE)

        assert outcome.deleted == [SEG_E]
        assert outcome.already_gone == [SEG_E]
        assert outcome.failed == []
        assert not wal_tree.marker_exists(SEG_E)

    def test_both_already_gone(self, wal_tree, executor):
        outcome = executor.execute([eligible(SEG_E)], ACTIVE)

        assert outcome.deleted == [SEG_E]
        assert outcome.failed == []
        assert outcome.partial == []

    def test_idempotent(self, wal_tree, executor):
        wal_tree.segment(SEG_B, 15, marker="done")
        wal_tree.segment(ACTIVE, 0)
        items = [eligible(SEG_B)]

        executor.execute(items, ACTIVE)
        after_first = wal_tree.listing()
        second = executor.execute(items, ACTIVE)

        assert wal_tree.listing() == after_first
        assert second.deleted == [SEG_B]
        assert second.failed == []

    def test_never_deletes_active(self, wal_tree, executor):
        wal_tree.segment(ACTIVE, 30, marker="done")

        outcome = executor.execute([eligible(ACTIVE)], ACTIVE)

        assert outcome.deleted == []
        assert outcome.skipped == {ACTIVE: SkipReason.ACTIVE}
        assert wal_tree.exists(ACTIVE)
        assert wal_tree.marker_exists(ACTIVE)

    def test_rejects_non_eligible_state(self, wal_tree, executor):
        wal_tree.segment(SEG_B, 30, marker="done")

        outcome = executor.execute([eligible(SEG_B, LifecycleState.ARCHIVED)], ACTIVE)

        assert outcome.deleted == []
        assert outcome.skipped == {SEG_B: SkipReason.UNCLASSIFIABLE}
        assert wal_tree.exists(SEG_B)

    def test_marker_vanished_skips(self, wal_tree, executor):
        wal_tree.segment(SEG_B, 30)

        outcome = executor.execute([eligible(SEG_B)], ACTIVE)

        assert outcome.skipped == {SEG_B: SkipReason.MARKER_MISSING}
        assert wal_tree.exists(SEG_B)

    def test_dry_run(self, wal_tree):
        wal_tree.segment(SEG_B, 15, marker="done")
        executor = DeletionExecutor(SegmentDirectoryIndex(wal_tree.wal_dir), dry_run=True)

        outcome = executor.execute([eligible(SEG_B)], ACTIVE)

        assert outcome.deleted == [SEG_B]
        assert outcome.dry_run is True
        assert wal_tree.exists(SEG_B)
        assert wal_tree.marker_exists(SEG_B)

    def test_segment_unlink_failure_keeps_marker(self, wal_tree, executor, monkeypatch):
        wal_tree.segment(SEG_B, 15, marker="done")
        original = Path.unlink

        def failing_unlink(self, *args, **kwargs):
            if self.name == SEG_B:
                raise PermissionError("denied")
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", failing_unlink)

        outcome = executor.execute([eligible(SEG_B)], ACTIVE)

        assert outcome.failed == [SEG_B]
        assert outcome.deleted == []
        assert wal_tree.marker_exists(SEG_B)

    def test_marker_unlink_failure_is_partial(self, wal_tree, executor, monkeypatch):
        wal_tree.segment(SEG_B, 15, marker="done")
        original = Path.unlink

        def failing_unlink(self, *args, **kwargs):
            if self.name == f"{SEG_B}.done":
                raise PermissionError("denied")
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", failing_unlink)

        outcome = executor.execute([eligible(SEG_B)], ACTIVE)

        assert outcome.deleted == [SEG_B]
        assert outcome.partial == [SEG_B]
        assert not wal_tree.exists(SEG_B)
        assert wal_tree.marker_exists(SEG_B)

    def test_outcome_summary(self, wal_tree, executor):
        wal_tree.segment(SEG_B, 15, marker="done")
        outcome = executor.execute([eligible(SEG_B)], ACTIVE)
        outcome.record_skips({ACTIVE: SkipReason.ACTIVE, SEG_E: SkipReason.TOO_YOUNG})

        summary = outcome.to_dict()

        assert summary["deleted"] == 1
        assert summary["skipped"] == 2
        assert summary["skip_reasons"] == {"active": 1, "too_young": 1}
