"""
walreaper Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (temporary pg_wal tree, in-memory database control)
- e2e/: End-to-end tests (real PostgreSQL server)
"""
