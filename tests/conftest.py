"""
Pytest configuration and fixtures for factlogic tests.
"""

import random
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path so we can import the factlogic package
sys.path.insert(0, str(Path(__file__).parent.parent))

from factlogic.context import create_base_context, extend_context, fact_matcher


@pytest.fixture
def sample_facts():
    """Plain facts for an entity."""
    return [
        "is a fox spirit",
        "wears a red scarf",
        "poisoned",
    ]


@pytest.fixture
def night_context(sample_facts):
    """Base context at 22:00 with a seeded random source."""
    return create_base_context(
        fact_matcher(sample_facts),
        now=datetime(2026, 1, 1, 22, 0),
        rng=random.Random(42),
    )


@pytest.fixture
def day_context(sample_facts):
    """Base context at noon with domain fields added."""
    base = create_base_context(
        fact_matcher(sample_facts),
        now=datetime(2026, 1, 1, 12, 0),
        rng=random.Random(7),
    )
    return extend_context(
        base,
        name="Kitsune",
        unread_count=3,
        channel={"name": "tavern", "is_nsfw": False},
    )


# Markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "hypothesis: property-based tests"
    )
    config.addinivalue_line(
        "markers", "security: security-related tests"
    )
