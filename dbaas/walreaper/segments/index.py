"""
Directory index for a PostgreSQL WAL directory.

The index lists segment files, their archive_status markers and the
metadata files the orphan sweeper cares about. It is rebuilt on every call;
the live server and the archiver keep changing the directory underneath it.

Invariants:
    - A file that disappears between listing and stat is not reported
    - A file that cannot be stat'ed for another reason is reported with an
      unknown modification time
    - A missing archive_status directory means every marker is absent

How to change safely:
    - Never follow symlinks when deciding whether an entry is a file
    - Keep listing and deletion separate; the index never mutates anything
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .lifecycle import ArchiveMarkerState, WalSegment
from .naming import (
    BACKUP_SUFFIX,
    STATUS_SUBDIR,
    is_backup_label_name,
    is_segment_name,
    parse_marker_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetadataFile:
    """A marker or backup label file.

    Attributes:
        name: File name
        path: Full path
        modified_at: Modification time (Unix seconds), None if unreadable
    """

    name: str
    path: Path
    modified_at: float | None


class SegmentDirectoryIndex:
    """Enumerates segments and markers under a WAL directory.

    Example:
        >>> index = SegmentDirectoryIndex("/var/lib/postgresql/16/main/pg_wal")
        >>> for segment in index.scan():
        ...     print(segment.name, segment.marker)
    """

    def __init__(self, wal_dir: str | Path, status_subdir: str = STATUS_SUBDIR) -> None:
        self.wal_dir = Path(wal_dir)
        self.status_dir = self.wal_dir / status_subdir

    def segment_path(self, name: str) -> Path:
        return self.wal_dir / name

    def marker_path(self, name: str, state: ArchiveMarkerState) -> Path:
        return self.status_dir / f"{name}.{state.value}"

    def scan(self) -> list[WalSegment]:
        """List segment files with their marker state, ordered by name.

        Raises:
            OSError: If the WAL directory itself cannot be listed
        """
        markers = self.read_markers()
        segments = []

        with os.scandir(self.wal_dir) as entries:
            for entry in entries:
                if not is_segment_name(entry.name):
                    continue
                modified_at = _stat_mtime(entry)
                if modified_at is _VANISHED:
                    logger.debug(f"Segment vanished during listing: {entry.name}")
                    continue
                if modified_at is _NOT_A_FILE:
                    continue
                segments.append(
                    WalSegment(
                        name=entry.name,
                        modified_at=modified_at,
                        marker=markers.get(entry.name, ArchiveMarkerState.ABSENT),
                    )
                )

        segments.sort(key=lambda s: s.name)
        logger.debug(
            "Indexed WAL directory",
            extra={"wal_dir": str(self.wal_dir), "segments": len(segments)},
        )
        return segments

    def read_markers(self) -> dict[str, ArchiveMarkerState]:
        """Map segment name to its marker state.

        A `.done` marker wins over a `.ready` marker for the same segment.
        """
        markers: dict[str, ArchiveMarkerState] = {}
        for entry in self._status_entries():
            parsed = parse_marker_name(entry.name)
            if parsed is None:
                continue
            stem, state = parsed
            if not is_segment_name(stem):
                continue
            if state == ArchiveMarkerState.DONE.value:
                markers[stem] = ArchiveMarkerState.DONE
            elif markers.get(stem) is not ArchiveMarkerState.DONE:
                markers[stem] = ArchiveMarkerState.READY
        return markers

    def list_done_markers(self) -> list[MetadataFile]:
        """List `.done` markers for segments and backup labels.

        Markers for timeline history files are not included.
        """
        found = []
        for entry in self._status_entries():
            parsed = parse_marker_name(entry.name)
            if parsed is None:
                continue
            stem, state = parsed
            if state != ArchiveMarkerState.DONE.value:
                continue
            if not (is_segment_name(stem) or is_backup_label_name(stem)):
                continue
            modified_at = _stat_mtime(entry)
            if modified_at is _VANISHED or modified_at is _NOT_A_FILE:
                continue
            found.append(MetadataFile(entry.name, Path(entry.path), modified_at))
        return sorted(found, key=lambda f: f.name)

    def list_backup_labels(self) -> list[MetadataFile]:
        """List `<segment>.<offset>.backup` files in the WAL directory."""
        found = []
        with os.scandir(self.wal_dir) as entries:
            for entry in entries:
                if not entry.name.endswith(BACKUP_SUFFIX) or not is_backup_label_name(entry.name):
                    continue
                modified_at = _stat_mtime(entry)
                if modified_at is _VANISHED or modified_at is _NOT_A_FILE:
                    continue
                found.append(MetadataFile(entry.name, Path(entry.path), modified_at))
        return sorted(found, key=lambda f: f.name)

    def _status_entries(self) -> list[os.DirEntry]:
        try:
            with os.scandir(self.status_dir) as entries:
                return list(entries)
        except FileNotFoundError:
            return []


_VANISHED = object()
_NOT_A_FILE = object()


def _stat_mtime(entry: os.DirEntry):
    """Return the entry's mtime, None if unreadable, or a sentinel."""
    try:
        if not entry.is_file(follow_symlinks=False):
            return _NOT_A_FILE
        return entry.stat(follow_symlinks=False).st_mtime
    except FileNotFoundError:
        return _VANISHED
    except OSError as e:
        logger.warning(f"Cannot stat {entry.path}: {e}")
        return None
