"""
DocStore Test Suite.

This package contains:
- unit/: Unit tests (in-memory backend, no files)
- integration/: Integration tests (SQLite backend, full CLI flow)
"""
