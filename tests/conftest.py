"""Pytest configuration and fixtures shared across all test modules.

Environment variables are pinned before anything imports
``tourcompanion.core.config`` so settings never pick up a developer's
``.env`` file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from tourcompanion.core.rate_limit import reset_rate_limiters


@pytest.fixture(autouse=True)
def _fresh_rate_limiters():
    """Start every test with empty process-wide limiters."""
    reset_rate_limiters()
    yield
    reset_rate_limiters()
