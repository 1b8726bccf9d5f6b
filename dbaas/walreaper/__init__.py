"""
walreaper - Safe reclamation of PostgreSQL WAL segment files.

This package removes write-ahead log segments that the database no longer
needs for crash recovery and that an external archiver has confirmed as
durably copied. It never archives anything itself; the `.done` marker written
by the archiver is the only proof of durability it trusts.

Cycle:
    ┌────────────┐     ┌────────────┐     ┌─────────────┐
    │ Checkpoint │────▶│   Active   │────▶│  Directory  │
    │  Trigger   │     │  Resolver  │     │    Index    │
    └────────────┘     └────────────┘     └──────┬──────┘
                                                 │
                                                 ▼
    ┌────────────┐     ┌────────────┐     ┌─────────────┐
    │   Orphan   │◀────│  Deletion  │◀────│ Classifier  │
    │  Sweeper   │     │  Executor  │     │ + Retention │
    └────────────┘     └────────────┘     └─────────────┘

Invariants:
    - The active segment is never deleted
    - A segment is deleted only when its marker is `done` and it is older
      than the retention threshold
    - A database error before inspection aborts the cycle with no mutation
    - Nothing is cached between cycles; every run re-observes the directory

How to change safely:
    - Keep classification a pure function, separate from unlinking
    - Any ambiguous state must resolve to "do not delete"
    - Test against a temporary pg_wal layout before touching a live server

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
