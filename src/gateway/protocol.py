"""Callback-driven asyncio transport for FastAGI connections.

``AgiProtocol`` receives bytes through ``data_received``, cuts them into
lines and hands each line to its ``SuspensionBridge``. Session code awaits
``read_line`` and stays parked until a line or a failure arrives. When the
connection drops, the parked task is resumed with ``ChannelClosedError``
instead of waiting forever.

Usage with a server created by the caller::

    async def handle(session):
        await session.execute("answer")
        await session.execute("stream_file", "hello-world", None)

    server = await loop.create_server(lambda: AgiProtocol(handle), host, port)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from config.settings import get_settings
from gateway.bridge import SuspensionBridge
from gateway.errors import ChannelClosedError, ChannelFailureError, GatewayError
from gateway.session import AsyncAgiSession
from gateway.transport import strip_terminator

LOGGER = logging.getLogger(__name__)

SessionHandler = Callable[[AsyncAgiSession], Awaitable[None]]


class AgiProtocol(asyncio.Protocol):
    def __init__(
        self,
        handler: SessionHandler | None = None,
        *,
        encoding: str | None = None,
        terminator: str | None = None,
        trace: bool | None = None,
        max_line_length: int | None = None,
    ) -> None:
        settings = get_settings()
        self._handler = handler
        self._encoding = encoding or settings.agi_encoding
        self._terminator = terminator or settings.agi_line_terminator
        self._trace = trace
        self._max_line_length = max_line_length or settings.agi_max_line_length
        self._transport: asyncio.Transport | None = None
        self._buffer = bytearray()
        self.bridge = SuspensionBridge()
        self.task: asyncio.Task | None = None

    # asyncio.Protocol callbacks

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]
        LOGGER.debug("AGI connection from %s", transport.get_extra_info("peername"))
        if self._handler is not None:
            self.task = asyncio.get_running_loop().create_task(self._run_session())

    def data_received(self, data: bytes) -> None:
        if self.bridge.failed:
            return
        buffer = self._buffer
        buffer.extend(data)
        start = 0
        while True:
            end = buffer.find(b"\n", start)
            if end < 0:
                break
            if end + 1 - start > self._max_line_length:
                self._overflow()
                return
            text = buffer[start : end + 1].decode(self._encoding, errors="replace")
            start = end + 1
            self.bridge.resume(strip_terminator(text))
        del buffer[:start]

        if len(buffer) > self._max_line_length:
            self._overflow()

    def eof_received(self) -> bool | None:
        return False

    def connection_lost(self, exc: Exception | None) -> None:
        self._transport = None
        if exc is None:
            self.bridge.fail(ChannelClosedError())
        else:
            self.bridge.fail(exc)

    # line transport

    async def read_line(self) -> str:
        return await self.bridge.wait_line()

    async def write_line(self, line: str) -> None:
        if self._transport is None or self._transport.is_closing():
            raise ChannelClosedError()
        self._transport.write((line + self._terminator).encode(self._encoding))

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()

    def _overflow(self) -> None:
        self._buffer.clear()
        LOGGER.warning("AGI line exceeds %d bytes, dropping connection", self._max_line_length)
        self.bridge.fail(ChannelFailureError(f"line exceeds {self._max_line_length} bytes"))
        self.close()

    async def _run_session(self) -> None:
        session: AsyncAgiSession | None = None
        try:
            session = await AsyncAgiSession.start(self, trace=self._trace)
            await self._handler(session)
        except GatewayError as exc:
            LOGGER.info("AGI session ended: %s", exc.detail)
        except Exception:
            LOGGER.exception("AGI session handler crashed")
        finally:
            if session is not None:
                session.close()
            else:
                self.close()
