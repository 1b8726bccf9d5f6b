"""
Shared fixtures for walreaper tests.

WalTree builds a throwaway pg_wal layout with controlled modification times.
"""

import os
import tempfile
from pathlib import Path

import pytest

DAY = 86400.0
NOW = 1_700_000_000.0


class WalTree:
    """Temporary pg_wal directory with an archive_status subdirectory."""

    def __init__(self, root: Path, now: float = NOW) -> None:
        self.wal_dir = root / "pg_wal"
        self.status_dir = self.wal_dir / "archive_status"
        self.status_dir.mkdir(parents=True)
        self.now = now

    def _touch(self, path: Path, age_days: float) -> Path:
        path.write_bytes(b"\0" * 16)
        mtime = self.now - age_days * DAY
        os.utime(path, (mtime, mtime))
        return path

    def segment(self, name: str, age_days: float, marker: str | None = None) -> Path:
        """Create a segment file and, optionally, its marker with the same age."""
        path = self._touch(self.wal_dir / name, age_days)
        if marker:
            self.marker(name, marker, age_days)
        return path

    def marker(self, name: str, state: str, age_days: float) -> Path:
        return self._touch(self.status_dir / f"{name}.{state}", age_days)

    def label(self, name: str, age_days: float) -> Path:
        return self._touch(self.wal_dir / name, age_days)

    def exists(self, name: str) -> bool:
        return (self.wal_dir / name).exists()

    def marker_exists(self, name: str, state: str = "done") -> bool:
        return (self.status_dir / f"{name}.{state}").exists()

    def listing(self) -> set[str]:
        """All files under the WAL directory, relative to it."""
        return {
            str(p.relative_to(self.wal_dir))
            for p in self.wal_dir.rglob("*")
            if p.is_file()
        }


@pytest.fixture
def wal_tree():
    """Create a fresh pg_wal tree."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield WalTree(Path(tmpdir))
