"""
Shared pytest fixtures for the crisis sentiment test suite.
"""
import copy

import pytest

from fakes import FAST_AGENT_CONFIG, NOW


@pytest.fixture
def now():
    """Fixed clock: 2025-09-15 12:00 UTC."""
    return NOW


@pytest.fixture
def agent_config():
    """Agent settings with no rate-limit pauses."""
    return copy.deepcopy(FAST_AGENT_CONFIG)
