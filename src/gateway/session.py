"""Per-connection AGI sessions.

``AgiSession`` is the blocking shape (one thread or process per call, as in a
classic AGI script). ``AsyncAgiSession`` is the asyncio shape, where many
sessions share one event loop and each command suspends only its own task.

Neither installs signal handlers. The process that owns the session registers
shutdown hooks (for example from its SIGHUP handler) and calls ``close``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from gateway.channel import AsyncCommandChannel, CommandChannel
from gateway.commands import AgiCommand, build_command
from gateway.env import AgiEnvironment, read_environment, read_environment_async
from gateway.response import Response
from gateway.transport import AsyncLineTransport, LineTransport, StreamLineTransport

LOGGER = logging.getLogger(__name__)


class ShutdownHook(Protocol):
    def __call__(self, session: Any) -> None:  # pragma: no cover - protocol stub
        ...


class _SessionBase:
    def __init__(self, env: AgiEnvironment) -> None:
        self._env = env
        self._hooks: list[ShutdownHook] = []
        self._closed = False

    @property
    def env(self) -> AgiEnvironment:
        """Session environment without the ``agi_`` prefix."""

        return self._env

    environment = env

    @property
    def closed(self) -> bool:
        return self._closed

    def __getitem__(self, key: str) -> str | None:
        return self._env.get(str(key))

    def add_shutdown_hook(self, hook: ShutdownHook) -> Callable[[], None]:
        """Run ``hook(session)`` on ``close``. Returns a function that unregisters it."""

        self._hooks.append(hook)

        def remove() -> None:
            if hook in self._hooks:
                self._hooks.remove(hook)

        return remove

    def _run_shutdown_hooks(self) -> None:
        while self._hooks:
            hook = self._hooks.pop()
            try:
                hook(self)
            except Exception:
                LOGGER.exception("AGI shutdown hook %r failed", hook)


class AgiSession(_SessionBase):
    """Blocking AGI session.

    Reads the environment from ``transport`` (stdin/stdout by default) before
    returning, so the first command is never sent ahead of the header block.
    """

    def __init__(
        self,
        transport: LineTransport | None = None,
        *,
        trace: bool | None = None,
        prefix: str | None = None,
    ) -> None:
        self._transport = transport if transport is not None else StreamLineTransport()
        super().__init__(read_environment(self._transport, prefix=prefix))
        self._channel = CommandChannel(self._transport, trace=trace)
        LOGGER.debug("AGI session started channel=%s", self._env.get("channel"))

    def send(self, name: str, *args: Any) -> Response:
        """Send ``name`` with ``args`` verbatim and return the parsed reply."""

        return self._channel.send(name, args)

    def execute(self, command: AgiCommand | str, *args: Any) -> Response:
        """Send a command checked against the command table."""

        name, args = build_command(command, args)
        return self._channel.send(name, args)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._run_shutdown_hooks()
        self._transport.close()

    def __enter__(self) -> AgiSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class AsyncAgiSession(_SessionBase):
    """asyncio AGI session; create it with ``await AsyncAgiSession.start(...)``."""

    def __init__(
        self,
        transport: AsyncLineTransport,
        env: AgiEnvironment,
        *,
        trace: bool | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(env)
        self._transport = transport
        self._channel = AsyncCommandChannel(transport, trace=trace, timeout=timeout)

    @classmethod
    async def start(
        cls,
        transport: AsyncLineTransport,
        *,
        trace: bool | None = None,
        timeout: float | None = None,
        prefix: str | None = None,
    ) -> AsyncAgiSession:
        env = await read_environment_async(transport, prefix=prefix)
        session = cls(transport, env, trace=trace, timeout=timeout)
        LOGGER.debug("AGI session started channel=%s", env.get("channel"))
        return session

    async def send(self, name: str, *args: Any, timeout: float | None = None) -> Response:
        return await self._channel.send(name, args, timeout=timeout)

    async def execute(
        self, command: AgiCommand | str, *args: Any, timeout: float | None = None
    ) -> Response:
        name, args = build_command(command, args)
        return await self._channel.send(name, args, timeout=timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._run_shutdown_hooks()
        self._transport.close()

    async def __aenter__(self) -> AsyncAgiSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
