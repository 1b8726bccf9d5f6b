"""
PostgreSQL WAL file naming conventions.

A segment file name is 24 upper-case hex digits:

    TTTTTTTT LLLLLLLL SSSSSSSS
    timeline log id   segment

Names sort lexicographically in log order within a timeline. The
archive_status subdirectory holds one marker per archivable file:

    archive_status/<name>.ready   closed, waiting for the archiver
    archive_status/<name>.done    archiver confirmed the copy

Backup label files live next to the segments:

    <segment>.<8 hex offset>.backup

Invariants:
    - Only names matching SEGMENT_NAME_RE are ever treated as segments
    - Matching is exact (fullmatch); no prefix, suffix or case-insensitive
      comparison

How to change safely:
    - Widening a pattern widens what the executor may delete
    - Keep backup label and history names out of SEGMENT_NAME_RE
"""

from __future__ import annotations

import re
from dataclasses import dataclass

STATUS_SUBDIR = "archive_status"
BACKUP_SUFFIX = ".backup"

DEFAULT_SEGMENT_SIZE = 16 * 1024 * 1024  # 16MB, initdb default

SEGMENT_NAME_RE = re.compile(r"[0-9A-F]{24}")
BACKUP_LABEL_RE = re.compile(r"([0-9A-F]{24})\.([0-9A-F]{8})\.backup")
MARKER_RE = re.compile(r"(?P<stem>.+)\.(?P<state>ready|done)")


@dataclass(frozen=True, order=True)
class SegmentId:
    """Decoded segment file name.

    Attributes:
        timeline: Timeline ID
        log: High 32 bits of the segment number
        segment: Low part of the segment number
    """

    timeline: int
    log: int
    segment: int

    @property
    def name(self) -> str:
        return f"{self.timeline:08X}{self.log:08X}{self.segment:08X}"

    def next(self, segment_size: int = DEFAULT_SEGMENT_SIZE) -> SegmentId:
        """Return the segment that follows this one on the same timeline."""
        per_log = 0x100000000 // segment_size
        if self.segment + 1 >= per_log:
            return SegmentId(self.timeline, self.log + 1, 0)
        return SegmentId(self.timeline, self.log, self.segment + 1)

    def __str__(self) -> str:
        return self.name


def is_segment_name(name: str) -> bool:
    """Whether name is a WAL segment file name."""
    return SEGMENT_NAME_RE.fullmatch(name) is not None


def is_backup_label_name(name: str) -> bool:
    """Whether name is a backup label file name."""
    return BACKUP_LABEL_RE.fullmatch(name) is not None


def parse_segment_name(name: str) -> SegmentId:
    """Decode a segment file name.

    Raises:
        ValueError: If name is not a segment file name
    """
    if not is_segment_name(name):
        raise ValueError(f"Not a WAL segment name: {name!r}")
    return SegmentId(
        timeline=int(name[0:8], 16),
        log=int(name[8:16], 16),
        segment=int(name[16:24], 16),
    )


def parse_marker_name(name: str) -> tuple[str, str] | None:
    """Split an archive_status entry into (stem, state).

    Returns None for names that are not `.ready`/`.done` markers.
    """
    match = MARKER_RE.fullmatch(name)
    if match is None:
        return None
    return match.group("stem"), match.group("state")
