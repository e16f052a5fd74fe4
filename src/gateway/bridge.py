"""Park a session task until a callback-driven transport delivers a line.

The transport calls ``resume`` with each received line and ``fail`` when the
connection breaks. The session task calls ``wait_line`` and is suspended
(its continuation parked on a future) until one of those callbacks fires.
Only the task is suspended; the event loop keeps serving other sessions.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import deque

from gateway.errors import (
    ChannelClosedError,
    CommandInFlightError,
    GatewayError,
    SuspensionFailureError,
)

LOGGER = logging.getLogger(__name__)


def _as_gateway_error(exc: BaseException) -> GatewayError:
    if isinstance(exc, GatewayError):
        return exc
    error = SuspensionFailureError(f"transport failure: {exc!r}")
    error.__cause__ = exc
    return error


class SuspensionBridge:
    """Idle -> AwaitingResponse -> resumed with a line or with an error."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._waiter: asyncio.Future[str] | None = None
        self._lines: deque[str] = deque()
        self._failure: GatewayError | None = None

    @property
    def awaiting(self) -> bool:
        return self._waiter is not None and not self._waiter.done()

    @property
    def failed(self) -> bool:
        return self._failure is not None

    async def wait_line(self) -> str:
        if self._lines:
            return self._lines.popleft()
        if self._failure is not None:
            raise self._fresh_failure()
        if self.awaiting:
            raise CommandInFlightError()

        loop = self._loop or asyncio.get_running_loop()
        waiter: asyncio.Future[str] = loop.create_future()
        self._waiter = waiter
        try:
            return await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None

    def resume(self, line: str) -> None:
        """Success callback: hand ``line`` to the parked task, or buffer it."""

        waiter = self._waiter
        if waiter is not None and not waiter.done():
            self._waiter = None
            waiter.set_result(line)
        else:
            self._lines.append(line)

    def fail(self, exc: BaseException) -> None:
        """Failure callback: the parked task, and every later wait, raises."""

        if self._failure is None:
            self._failure = _as_gateway_error(exc)
            LOGGER.debug("AGI bridge failed: %s", self._failure.detail)

        waiter = self._waiter
        if waiter is not None and not waiter.done():
            self._waiter = None
            waiter.set_exception(self._failure)

    def close(self) -> None:
        self.fail(ChannelClosedError())

    def _fresh_failure(self) -> GatewayError:
        # Each raise gets its own traceback.
        error = copy.copy(self._failure)
        error.__cause__ = self._failure.__cause__
        return error
