"""Shared test fixtures and configuration."""

import sys
from pathlib import Path

import pytest

# Add src and the test helpers to path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from factories import FailingTextGenerator, FakeTextGenerator  # noqa: E402


@pytest.fixture
def text_generator():
    return FakeTextGenerator()


@pytest.fixture
def failing_generator():
    return FailingTextGenerator()
