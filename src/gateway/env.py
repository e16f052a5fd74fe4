"""Parsing of the AGI environment block sent at session start.

The gateway opens every session with ``agi_key: value`` lines followed by one
blank line. Keys are stored without the ``agi_`` prefix, so ``agi_channel``
is looked up as ``channel``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from config.settings import get_settings
from gateway.errors import ChannelClosedError, MalformedHeaderError
from gateway.transport import AsyncLineTransport, LineTransport

LOGGER = logging.getLogger(__name__)


def _split_header(line: str, prefix: str) -> tuple[str, str]:
    key, _, value = line.partition(":")
    key = key.strip()
    if prefix and key.startswith(prefix):
        key = key[len(prefix) :]
    return key, value.strip()


class AgiEnvironment(Mapping[str, str]):
    """Read-only view of the session environment."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"AgiEnvironment({self._values!r})"

    @classmethod
    def from_lines(cls, lines: Iterable[str], *, prefix: str | None = None) -> AgiEnvironment:
        """Consume ``lines`` up to and including the blank terminator line.

        Raises:
            MalformedHeaderError: if ``lines`` runs out before the blank line.
        """

        if prefix is None:
            prefix = get_settings().agi_env_prefix

        values: dict[str, str] = {}
        for line in lines:
            if not line.rstrip():
                return cls(values)
            key, value = _split_header(line, prefix)
            values[key] = value

        raise MalformedHeaderError()


def _transport_lines(transport: LineTransport) -> Iterator[str]:
    while True:
        yield transport.read_line()


def read_environment(transport: LineTransport, *, prefix: str | None = None) -> AgiEnvironment:
    """Blocking read of the environment block from ``transport``."""

    try:
        env = AgiEnvironment.from_lines(_transport_lines(transport), prefix=prefix)
    except ChannelClosedError as exc:
        raise MalformedHeaderError() from exc

    LOGGER.debug("Read AGI environment with %d variables", len(env))
    return env


async def read_environment_async(
    transport: AsyncLineTransport, *, prefix: str | None = None
) -> AgiEnvironment:
    """Read the environment block, suspending only the calling task."""

    lines: list[str] = []
    while True:
        try:
            line = await transport.read_line()
        except ChannelClosedError as exc:
            raise MalformedHeaderError() from exc
        lines.append(line)
        if not line.rstrip():
            break

    env = AgiEnvironment.from_lines(lines, prefix=prefix)
    LOGGER.debug("Read AGI environment with %d variables", len(env))
    return env
