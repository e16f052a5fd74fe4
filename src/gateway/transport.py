"""Line transports the engine reads from and writes to.

A transport reads one line at a time (terminator stripped) and writes one
line at a time, flushing immediately: the other end is a live call.
"""

from __future__ import annotations

import asyncio
import io
import logging
import sys
from typing import IO, Any, Protocol

from config.settings import get_settings
from gateway.errors import ChannelClosedError, ChannelFailureError

LOGGER = logging.getLogger(__name__)


class LineTransport(Protocol):
    def read_line(self) -> str:  # pragma: no cover - protocol stub
        ...

    def write_line(self, line: str) -> None:  # pragma: no cover - protocol stub
        ...

    def close(self) -> None:  # pragma: no cover - protocol stub
        ...


class AsyncLineTransport(Protocol):
    async def read_line(self) -> str:  # pragma: no cover - protocol stub
        ...

    async def write_line(self, line: str) -> None:  # pragma: no cover - protocol stub
        ...

    def close(self) -> None:  # pragma: no cover - protocol stub
        ...


def strip_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


class StreamLineTransport:
    """Blocking transport over a pair of file objects.

    Works with text streams (``sys.stdin``/``sys.stdout`` for a classic AGI
    script) and binary ones (``socket.makefile("rwb")`` for FastAGI).
    """

    def __init__(
        self,
        rfile: IO[Any] | None = None,
        wfile: IO[Any] | None = None,
        *,
        encoding: str | None = None,
        terminator: str | None = None,
    ) -> None:
        settings = get_settings()
        self._rfile = rfile if rfile is not None else sys.stdin
        self._wfile = wfile if wfile is not None else sys.stdout
        self._encoding = encoding or settings.agi_encoding
        self._terminator = terminator or settings.agi_line_terminator

    def read_line(self) -> str:
        try:
            line = self._rfile.readline()
        except OSError as exc:
            raise ChannelFailureError(f"read failed: {exc}") from exc

        if isinstance(line, bytes):
            line = line.decode(self._encoding, errors="replace")
        if not line:
            raise ChannelClosedError()
        return strip_terminator(line)

    def write_line(self, line: str) -> None:
        data: str | bytes = line + self._terminator
        if not isinstance(self._wfile, io.TextIOBase):
            data = data.encode(self._encoding)
        try:
            self._wfile.write(data)
            self._wfile.flush()
        except OSError as exc:
            raise ChannelFailureError(f"write failed: {exc}") from exc

    def close(self) -> None:
        for stream in (self._rfile, self._wfile):
            if stream in (sys.stdin, sys.stdout):
                continue
            try:
                stream.close()
            except OSError:
                LOGGER.debug("Ignoring error while closing AGI stream", exc_info=True)


class StreamReaderTransport:
    """asyncio streams transport, e.g. from ``asyncio.start_server``."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        encoding: str | None = None,
        terminator: str | None = None,
    ) -> None:
        settings = get_settings()
        self._reader = reader
        self._writer = writer
        self._encoding = encoding or settings.agi_encoding
        self._terminator = terminator or settings.agi_line_terminator

    async def read_line(self) -> str:
        try:
            data = await self._reader.readline()
        except (OSError, ValueError) as exc:
            raise ChannelFailureError(f"read failed: {exc}") from exc

        if not data:
            raise ChannelClosedError()
        return strip_terminator(data.decode(self._encoding, errors="replace"))

    async def write_line(self, line: str) -> None:
        if self._writer.is_closing():
            raise ChannelClosedError()
        try:
            self._writer.write((line + self._terminator).encode(self._encoding))
            await self._writer.drain()
        except OSError as exc:
            raise ChannelFailureError(f"write failed: {exc}") from exc

    def close(self) -> None:
        self._writer.close()
