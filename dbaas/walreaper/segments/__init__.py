"""
Segment module for walreaper.

This module turns a WAL directory into deletion decisions:
- naming: segment, marker and backup label name conventions
- index: listing of segments and markers on disk
- lifecycle: pure classification and retention filtering

Invariants:
    - Nothing in this module deletes files
    - Every decision is recomputed from a fresh listing
"""

from .index import MetadataFile, SegmentDirectoryIndex
from .lifecycle import (
    ArchiveMarkerState,
    ClassifiedSegment,
    LifecycleState,
    RetentionDecision,
    SkipReason,
    WalSegment,
    classify_segment,
    classify_segments,
    filter_eligible,
)
from .naming import SegmentId, is_backup_label_name, is_segment_name, parse_segment_name

__all__ = [
    # Model
    "ArchiveMarkerState",
    "LifecycleState",
    "SkipReason",
    "WalSegment",
    "ClassifiedSegment",
    "RetentionDecision",
    # Pipeline
    "SegmentDirectoryIndex",
    "MetadataFile",
    "classify_segment",
    "classify_segments",
    "filter_eligible",
    # Naming
    "SegmentId",
    "is_segment_name",
    "is_backup_label_name",
    "parse_segment_name",
]
