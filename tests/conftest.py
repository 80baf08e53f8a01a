"""
Shared fixtures for the fortune test suite.
"""

import os

import pytest

from fortune.analysis import BirthInput, build_chart_profile
from fortune.context import UserContext
from fortune.storage import InMemoryRepository


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep FORTUNE_* overrides from the outer shell out of every test."""
    for name in list(os.environ):
        if name.startswith("FORTUNE_"):
            monkeypatch.delenv(name)


@pytest.fixture
def sample_birth():
    """1990-01-01 12:00 Beijing time: Geng Wu, Ding Chou, Bing Yin, Jia Wu."""
    return BirthInput(1990, 1, 1, 12, 0, timezone="Asia/Shanghai")


@pytest.fixture
def sample_profile(sample_birth):
    return build_chart_profile(sample_birth, target_year=2026)


@pytest.fixture
def sample_context():
    return UserContext.create(
        focus="career",
        situation="seeking_promotion",
        strategy="aggressive",
        avoid=["overwork", "open_conflict"],
        energy="moderate",
    )


@pytest.fixture
def memory_repo():
    return InMemoryRepository()
