"""
Test suite for the habit-ledger tracking engine.

This package contains:
- Unit tests for the pure recurrence and progress engines
- Store and sync queue tests against temporary files
- Tracker and CLI tests covering complete workflows
"""
