"""
Membership Indexer Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Reconciler, handler and tools against the in-memory index store
"""
