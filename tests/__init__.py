"""Test package for camwatch.

This package contains:
- Unit tests (test_spatial.py, test_lifecycle.py, test_store.py, test_config.py)
- Orchestrator tests (test_worker.py, test_cli.py)
- Test configuration (conftest.py)
"""
