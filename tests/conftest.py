from __future__ import annotations

import asyncio
import sys
from collections import deque
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class FakeLineTransport:
    """Blocking transport fed from a list of lines."""

    def __init__(self, lines: list[str] | None = None) -> None:
        self.incoming: deque[str] = deque(lines or [])
        self.written: list[str] = []
        self.closed = False

    def read_line(self) -> str:
        from gateway.errors import ChannelClosedError

        if not self.incoming:
            raise ChannelClosedError()
        return self.incoming.popleft()

    def write_line(self, line: str) -> None:
        self.written.append(line)

    def close(self) -> None:
        self.closed = True


class FakeAsyncTransport:
    """Replies to each written line with the next queued response."""

    def __init__(self, header: list[str], replies: list[str]) -> None:
        self.header: deque[str] = deque(header)
        self.replies: deque[str] = deque(replies)
        self.written: list[str] = []
        self.closed = False

    async def read_line(self) -> str:
        from gateway.errors import ChannelClosedError

        await asyncio.sleep(0)
        if self.header:
            return self.header.popleft()
        if not self.replies:
            raise ChannelClosedError()
        return self.replies.popleft()

    async def write_line(self, line: str) -> None:
        self.written.append(line)

    def close(self) -> None:
        self.closed = True


class FakeSocketTransport(asyncio.Transport):
    """In-memory stand-in for the transport asyncio hands to a protocol."""

    def __init__(self, protocol: asyncio.Protocol) -> None:
        super().__init__()
        self._protocol = protocol
        self._closing = False
        self.written: list[bytes] = []

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def lines(self) -> list[str]:
        return [chunk.decode().rstrip("\n") for chunk in self.written]

    def is_closing(self) -> bool:
        return self._closing

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        asyncio.get_running_loop().call_soon(self._protocol.connection_lost, None)

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return ("127.0.0.1", 4573)
        return default


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Isolate every test from the host environment and the settings cache."""

    for name in (
        "AGI_ENV_PREFIX",
        "AGI_ENCODING",
        "AGI_LINE_TERMINATOR",
        "AGI_TRACE",
        "AGI_RESPONSE_TIMEOUT",
        "AGI_MAX_LINE_LENGTH",
    ):
        monkeypatch.delenv(name, raising=False)

    from config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def line_transport():
    return FakeLineTransport


@pytest.fixture()
def async_transport():
    return FakeAsyncTransport


@pytest.fixture()
def socket_transport():
    return FakeSocketTransport
