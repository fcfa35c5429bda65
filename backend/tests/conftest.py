import asyncio
import inspect
import pathlib
import sys

import pytest

BACKEND = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from rebalance_advisor.config import get_engine_parameters  # noqa: E402
from rebalance_service.config import get_settings  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: run the test inside a fresh asyncio event loop")


@pytest.fixture(autouse=True)
def _fresh_cached_config():
    """Drop cached settings so environment changes in one test never leak into another."""

    get_settings.cache_clear()
    get_engine_parameters.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine_parameters.cache_clear()


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``async def`` tests to completion on their own loop."""

    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        accepted = inspect.signature(test_function).parameters
        arguments = {name: value for name, value in pyfuncitem.funcargs.items() if name in accepted}
        loop.run_until_complete(test_function(**arguments))
    finally:
        asyncio.set_event_loop(None)
        loop.close()
    return True
