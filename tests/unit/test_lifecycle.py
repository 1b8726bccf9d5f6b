"""
Unit tests for segment classification and retention filtering.

Tests cover:
- State selection and tie-breaking in classify_segment()
- Deletion-set properties over marker state, age and active status
- Skip reasons reported by filter_eligible()
"""

import itertools
from datetime import timedelta

import pytest

from dbaas.walreaper.segments.lifecycle import (
    ArchiveMarkerState,
    LifecycleState,
    SkipReason,
    WalSegment,
    classify_segment,
    classify_segments,
    filter_eligible,
)

DAY = 86400.0
NOW = 1_700_000_000.0
THRESHOLD = timedelta(days=10)

SEG_A = "000000010000000000000010"
SEG_B = "00000001000000000000000B"
SEG_C = "00000001000000000000000C"
SEG_D = "00000001000000000000000D"


def seg(name, age_days, marker=ArchiveMarkerState.ABSENT):
    modified_at = None if age_days is None else NOW - age_days * DAY
    return WalSegment(name=name, modified_at=modified_at, marker=marker)


def deletion_set(segments, active):
    decision = filter_eligible(classify_segments(segments, active, NOW), THRESHOLD)
    return decision.eligible_names


class TestClassifySegment:
    """Tests for the pure classification function."""

    def test_active_is_writing(self):
        state = classify_segment(SEG_A, ArchiveMarkerState.ABSENT, 0.0, is_active=True)
        assert state is LifecycleState.WRITING

    def test_active_wins_over_done_marker(self):
        state = classify_segment(SEG_A, ArchiveMarkerState.DONE, 30 * DAY, is_active=True)
        assert state is LifecycleState.WRITING

    def test_done_is_archived(self):
        state = classify_segment(SEG_B, ArchiveMarkerState.DONE, 1.0, is_active=False)
        assert state is LifecycleState.ARCHIVED

    @pytest.mark.parametrize("marker", [ArchiveMarkerState.ABSENT, ArchiveMarkerState.READY])
    def test_not_done_is_closed_unarchived(self, marker):
        state = classify_segment(SEG_D, marker, 30 * DAY, is_active=False)
        assert state is LifecycleState.CLOSED_UNARCHIVED

    def test_unknown_age_is_unclassifiable(self):
        state = classify_segment(SEG_B, ArchiveMarkerState.DONE, None, is_active=False)
        assert state is LifecycleState.UNCLASSIFIABLE

    def test_never_returns_eligible(self):
        for marker in ArchiveMarkerState:
            for active in (True, False):
                state = classify_segment(SEG_B, marker, 100 * DAY, is_active=active)
                assert state is not LifecycleState.ELIGIBLE


class TestDeletionSetProperties:
    """Deletion-set properties over every combination of inputs."""

    AGES = [None, 0.0, 3.0, 10.0, 10.0001, 15.0, 400.0]

    @pytest.mark.parametrize(
        "marker,age,active",
        list(itertools.product(ArchiveMarkerState, AGES, (True, False))),
    )
    def test_membership(self, marker, age, active):
        segment = seg(SEG_B, age, marker)
        active_name = SEG_B if active else SEG_A

        selected = deletion_set([segment], active_name)

        expected = (
            not active
            and marker is ArchiveMarkerState.DONE
            and age is not None
            and age * DAY > THRESHOLD.total_seconds()
        )
        assert selected == ([SEG_B] if expected else [])

    def test_age_equal_to_threshold_is_kept(self):
        segment = seg(SEG_B, 10.0, ArchiveMarkerState.DONE)
        decision = filter_eligible(classify_segments([segment], SEG_A, NOW), THRESHOLD)

        assert decision.eligible == []
        assert decision.skipped == {SEG_B: SkipReason.TOO_YOUNG}

    def test_active_match_is_exact(self):
        # Same timeline/log prefix, different segment: not protected
        segment = seg("000000010000000000000011", 20, ArchiveMarkerState.DONE)
        assert deletion_set([segment], "00000001000000000000001") == [segment.name]

    def test_eligible_listed_once(self):
        segments = [seg(SEG_B, 15, ArchiveMarkerState.DONE), seg(SEG_C, 15, ArchiveMarkerState.DONE)]
        assert deletion_set(segments, SEG_A) == [SEG_B, SEG_C]


class TestFilterEligible:
    """Tests for skip reasons and ordering."""

    def test_scenario_a(self):
        segments = [
            seg(SEG_A, 0, ArchiveMarkerState.ABSENT),
            seg(SEG_B, 15, ArchiveMarkerState.DONE),
            seg(SEG_C, 3, ArchiveMarkerState.DONE),
            seg(SEG_D, 20, ArchiveMarkerState.READY),
        ]

        decision = filter_eligible(classify_segments(segments, SEG_A, NOW), THRESHOLD)

        assert decision.eligible_names == [SEG_B]
        assert decision.eligible[0].state is LifecycleState.ELIGIBLE
        assert decision.skipped == {
            SEG_A: SkipReason.ACTIVE,
            SEG_C: SkipReason.TOO_YOUNG,
            SEG_D: SkipReason.NOT_ARCHIVED,
        }

    def test_unclassifiable_is_skipped(self):
        segments = [seg(SEG_B, None, ArchiveMarkerState.DONE)]

        decision = filter_eligible(classify_segments(segments, SEG_A, NOW), THRESHOLD)

        assert decision.eligible == []
        assert decision.skipped == {SEG_B: SkipReason.UNCLASSIFIABLE}

    def test_eligible_sorted_by_name(self):
        segments = [
            seg(SEG_D, 30, ArchiveMarkerState.DONE),
            seg(SEG_B, 30, ArchiveMarkerState.DONE),
        ]

        decision = filter_eligible(classify_segments(segments, SEG_A, NOW), THRESHOLD)

        assert decision.eligible_names == [SEG_B, SEG_D]

    def test_age_computed_from_mtime(self):
        segment = seg(SEG_B, 12, ArchiveMarkerState.DONE)
        classified = classify_segments([segment], SEG_A, NOW)

        assert classified[0].age == pytest.approx(12 * DAY)
