"""
Reclaim module for walreaper.

This module performs the side effects of a cycle:
- executor: deletes eligible segments and their `.done` markers
- sweeper: removes stale markers and backup labels
- cycle: runs the whole pipeline once and reports the result

Invariants:
    - Deletion steps are individually idempotent
    - Per-file errors never abort a cycle
"""

from .cycle import ReclaimCycle, RunReport
from .executor import DeletionExecutor, DeletionOutcome
from .sweeper import OrphanSweeper, SweepOutcome

__all__ = [
    "ReclaimCycle",
    "RunReport",
    "DeletionExecutor",
    "DeletionOutcome",
    "OrphanSweeper",
    "SweepOutcome",
]
