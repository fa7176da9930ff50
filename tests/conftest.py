import asyncio

import pytest

from fake_freshrss import FakeFreshRSS


@pytest.fixture
def fake():
    return FakeFreshRSS()


@pytest.fixture
def run():
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run
