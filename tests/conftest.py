"""Pytest configuration and fixtures."""

import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for resource_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from converge.engine import ConvergenceEngine  # noqa: E402
from resource_mock import GroupResource, MockGroupBackend  # noqa: E402


@pytest.fixture
def backend() -> MockGroupBackend:
    """Empty in-memory group store."""
    return MockGroupBackend()


@pytest.fixture
def engine(backend: MockGroupBackend) -> ConvergenceEngine:
    """Engine driving the group resource against the in-memory store."""
    return ConvergenceEngine(GroupResource(backend))


@pytest.fixture(autouse=True)
def _reset_converge_logging() -> Iterator[None]:
    """Drop handlers installed by the command line host after each test."""
    root_logger = logging.getLogger()
    level = root_logger.level
    yield
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        if getattr(handler, "_converge", False):
            root_logger.removeHandler(handler)
