"""Pytest configuration and shared fixtures."""

import sys
import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from task_insights.config import Config  # noqa: E402
from task_insights.domain import Period, Task  # noqa: E402


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Execute async tests without external plugins."""
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(testfunction)
            call_kwargs = {name: pyfuncitem.funcargs[name] for name in sig.parameters}
            loop.run_until_complete(testfunction(**call_kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


@pytest.fixture(autouse=True)
def reset_config():
    """Keep the configuration singleton from leaking between tests."""
    Config._instance = None
    yield
    Config._instance = None


WEEK_START = datetime(2024, 5, 6, tzinfo=timezone.utc)  # a Monday


@pytest.fixture
def week() -> Period:
    """Monday 2024-05-06 00:00 to Sunday 2024-05-12 23:59:59.999999 UTC."""
    return Period(WEEK_START, WEEK_START + timedelta(days=7) - timedelta(microseconds=1))


@pytest.fixture
def now() -> datetime:
    return WEEK_START + timedelta(days=4, hours=12)  # Friday noon


@pytest.fixture
def at():
    """``at(day, hour)`` -> datetime inside the test week (day 0 = Monday)."""
    def _at(day: float, hour: float = 9) -> datetime:
        return WEEK_START + timedelta(days=day, hours=hour)
    return _at


@pytest.fixture
def make_task():
    counter = {"next": 1}

    def _make(**kwargs) -> Task:
        if "id" not in kwargs:
            kwargs["id"] = counter["next"]
            counter["next"] += 1
        return Task(**kwargs)
    return _make
