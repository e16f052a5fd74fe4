from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from config.settings import get_settings
from gateway.errors import ChannelFailureError, CommandInFlightError
from gateway.response import Response, parse_response
from gateway.transport import AsyncLineTransport, LineTransport

LOGGER = logging.getLogger(__name__)

EMPTY_ARGUMENT = '""'


def format_command(name: str, args: Iterable[Any] = ()) -> str:
    """Compose one command line.

    ``None`` and ``""`` become the literal ``""`` token; anything else is
    passed through as ``str(arg)`` without quoting.
    """

    parts = [str(name)]
    for arg in args:
        parts.append(EMPTY_ARGUMENT if arg is None or arg == "" else str(arg))
    return " ".join(parts)


class CommandChannel:
    """Blocking request/response channel: one line out, one line back."""

    def __init__(self, transport: LineTransport, *, trace: bool | None = None) -> None:
        self._transport = transport
        self._trace = get_settings().agi_trace if trace is None else trace

    def send(self, name: str, args: Iterable[Any] = ()) -> Response:
        line = format_command(name, args)
        if self._trace:
            LOGGER.info(">> %s", line)
        self._transport.write_line(line)

        raw = self._transport.read_line()
        if self._trace:
            LOGGER.info("<< %s", raw)
        return parse_response(raw)


class AsyncCommandChannel:
    """Request/response channel for asyncio transports.

    Awaiting ``send`` suspends only the calling task. At most one command may
    be in flight; responses carry no ids and are paired by arrival order.
    """

    def __init__(
        self,
        transport: AsyncLineTransport,
        *,
        trace: bool | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._transport = transport
        self._trace = settings.agi_trace if trace is None else trace
        self._timeout = settings.agi_response_timeout if timeout is None else timeout
        self._in_flight = False
        self._broken: str | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _poison(self, reason: str) -> None:
        self._broken = reason
        LOGGER.warning("AGI channel unusable: %s", reason)

    async def send(
        self,
        name: str,
        args: Iterable[Any] = (),
        *,
        timeout: float | None = None,
    ) -> Response:
        if self._in_flight:
            raise CommandInFlightError()
        if self._broken is not None:
            raise ChannelFailureError(self._broken)

        line = format_command(name, args)
        timeout = self._timeout if timeout is None else timeout

        self._in_flight = True
        try:
            if self._trace:
                LOGGER.info(">> %s", line)
            try:
                await self._transport.write_line(line)
                if timeout is None:
                    raw = await self._transport.read_line()
                else:
                    raw = await asyncio.wait_for(self._transport.read_line(), timeout)
            except asyncio.TimeoutError:
                # A late reply would be paired with the next command.
                self._poison(f"no response to {line!r} within {timeout}s")
                raise
            except asyncio.CancelledError:
                self._poison(f"{line!r} cancelled before its response arrived")
                raise
        finally:
            self._in_flight = False

        if self._trace:
            LOGGER.info("<< %s", raw)
        return parse_response(raw)
