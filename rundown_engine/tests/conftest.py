"""Shared pytest fixtures for the rundown engine tests."""

import pytest

from builders import FakeClock


@pytest.fixture
def clock():
    return FakeClock()
