"""Shared fixtures for tests."""

from collections.abc import Generator

import pytest
from aioresponses import aioresponses as aioresponses_cls


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls]:
    """Intercept aiohttp requests."""
    with aioresponses_cls() as mocked:
        yield mocked
