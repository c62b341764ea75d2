"""
Shared pytest fixtures and configuration for refresh-queue tests.

This module provides:
- Auto-applied markers for unmarked tests
- structlog reset between tests
- A manually advanced clock and sample records

Usage:
    Fixtures are auto-discovered by pytest. Simply use them as function
    arguments (pytest injects them automatically).
"""

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest
import structlog

# Ensure refresh_queue package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tests._support import Group, ManualClock


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults so no test leaks a logging config."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Clock and Record Fixtures
# =============================================================================


@pytest.fixture
def t0() -> datetime:
    return datetime(2026, 1, 5, 12, 0, tzinfo=UTC)


@pytest.fixture
def clock(t0) -> ManualClock:
    return ManualClock(t0)


@pytest.fixture
def groups() -> list[Group]:
    return [Group("alpha"), Group("beta"), Group("gamma")]
