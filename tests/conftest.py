"""
Pytest configuration and fixtures for resilient-network tests.
"""

import asyncio
import json
from typing import Any, Callable, List, Optional

import pytest

from resilient_network.core.models import TransportRequest, TransportResponse
from resilient_network.core.logging.config import LoggingConfig


def make_response(
    status: int = 200,
    body: Any = None,
    headers: Optional[dict] = None,
    url: str = "",
) -> TransportResponse:
    """TransportResponse with a JSON body by default."""
    if body is None:
        body = {"status": status}
    out_headers = {"Content-Type": "application/json"}
    out_headers.update(headers or {})
    text = body if isinstance(body, str) else json.dumps(body)
    return TransportResponse(status=status, headers=out_headers, body=text, url=url, duration=0.001)


class FakeTransport:
    """
    Scripted transport.

    Each call pops the next item of ``script`` (or uses ``responder``):
    an int status, a TransportResponse, or an exception instance to raise.
    """

    def __init__(
        self,
        script: Optional[List[Any]] = None,
        responder: Optional[Callable[[TransportRequest], Any]] = None,
        default: Any = 200,
        delay: float = 0.0,
    ):
        self.script = list(script or [])
        self.responder = responder
        self.default = default
        self.delay = delay
        self.calls: List[TransportRequest] = []

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.script:
            item = self.script.pop(0)
        elif self.responder is not None:
            item = self.responder(request)
        else:
            item = self.default

        if isinstance(item, BaseException):
            raise item
        if isinstance(item, int):
            return make_response(item, url=request.url)
        return item

    @property
    def proxies(self) -> List[Optional[str]]:
        return [call.proxy for call in self.calls]


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingLogger:
    """Logger double: keeps (level, message, fields) tuples."""

    def __init__(self):
        self.records = []

    def _record(self, level, message, **fields):
        self.records.append((level, message, fields))

    def debug(self, message, **fields):
        self._record("debug", message, **fields)

    def info(self, message, **fields):
        self._record("info", message, **fields)

    def warning(self, message, **fields):
        self._record("warning", message, **fields)

    def error(self, message, **fields):
        self._record("error", message, **fields)

    def messages(self, level=None):
        return [m for lvl, m, _ in self.records if level is None or lvl == level]


@pytest.fixture
def base_url():
    """Base URL for testing."""
    return "https://api.example.com"


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def logging_config_with_file(tmp_path):
    """
    LoggingConfig with file logging enabled.

    Uses a temporary directory for log files to avoid cleanup issues.
    """
    return LoggingConfig.create(
        level="DEBUG",
        format="json",
        enable_console=False,
        enable_file=True,
        file_path=str(tmp_path / "network.log"),
    )
