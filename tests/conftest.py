"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Generator
from io import StringIO
import json
from typing import Any

import pytest

from storefront.core import LoggerCore, Settings, configure_logging


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests; never read from the environment's .env."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        environment="development",
        log_level="DEBUG",
        host="127.0.0.1",
        port=0,
    )


@pytest.fixture
def log_stream() -> Generator[StringIO, None, None]:
    """Route all logging into a JSON stream for the duration of the test."""
    stream = StringIO()
    configure_logging(level="DEBUG", environment="production", stream=stream)
    yield stream
    configure_logging(level="INFO")


@pytest.fixture
def log_lines(log_stream: StringIO) -> Callable[[], list[dict[str, Any]]]:
    """Return a callable parsing every JSON log line written so far."""

    def read() -> list[dict[str, Any]]:
        return [json.loads(line) for line in log_stream.getvalue().splitlines() if line.strip()]

    return read


@pytest.fixture
def core(log_stream: StringIO) -> LoggerCore:  # noqa: ARG001
    """Logger core writing into ``log_stream``."""
    return LoggerCore("storefront.test")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
