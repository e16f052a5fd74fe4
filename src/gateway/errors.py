"""Exceptions raised by the AGI protocol engine.

Transport-level errors are fatal for the session and are never retried here.
An unparsable response line is not an error: it comes back as a ``Response``
whose derived fields are unset.
"""

from __future__ import annotations


class GatewayError(Exception):
    default_detail: str = "AGI gateway error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class MalformedHeaderError(GatewayError):
    default_detail = "Session ended before the environment block was terminated."


class ChannelFailureError(GatewayError):
    default_detail = "AGI channel failed."


class ChannelClosedError(ChannelFailureError):
    default_detail = "AGI channel closed by the remote end."


class SuspensionFailureError(GatewayError):
    default_detail = "Transport reported a failure while a command was pending."


class CommandInFlightError(GatewayError):
    default_detail = "Another command is still awaiting its response."


class CommandArgumentError(GatewayError, ValueError):
    default_detail = "Invalid arguments for AGI command."
