"""Known AGI commands and the shape of their arguments.

The engine itself treats commands as opaque name + arguments; this table is
an optional typed layer on top. Names that are not in the table go to the
wire unvalidated: identifier-form names (``speech_create``) are spelled the
way the gateway expects (``SPEECH CREATE``), anything else is left as is.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Optional, Union

from pydantic import TypeAdapter, ValidationError

from gateway.errors import CommandArgumentError

Digits = Optional[str]
Value = Optional[Union[str, int, float]]


class AgiCommand(str, Enum):
    ANSWER = "ANSWER"
    ASYNCAGI_BREAK = "ASYNCAGI BREAK"
    CHANNEL_STATUS = "CHANNEL STATUS"
    CONTROL_STREAM_FILE = "CONTROL STREAM FILE"
    DATABASE_DEL = "DATABASE DEL"
    DATABASE_DELTREE = "DATABASE DELTREE"
    DATABASE_GET = "DATABASE GET"
    DATABASE_PUT = "DATABASE PUT"
    EXEC = "EXEC"
    GET_DATA = "GET DATA"
    GET_FULL_VARIABLE = "GET FULL VARIABLE"
    GET_OPTION = "GET OPTION"
    GET_VARIABLE = "GET VARIABLE"
    HANGUP = "HANGUP"
    NOOP = "NOOP"
    RECEIVE_CHAR = "RECEIVE CHAR"
    RECEIVE_TEXT = "RECEIVE TEXT"
    RECORD_FILE = "RECORD FILE"
    SAY_ALPHA = "SAY ALPHA"
    SAY_DATE = "SAY DATE"
    SAY_DATETIME = "SAY DATETIME"
    SAY_DIGITS = "SAY DIGITS"
    SAY_NUMBER = "SAY NUMBER"
    SAY_PHONETIC = "SAY PHONETIC"
    SAY_TIME = "SAY TIME"
    SEND_IMAGE = "SEND IMAGE"
    SEND_TEXT = "SEND TEXT"
    SET_AUTOHANGUP = "SET AUTOHANGUP"
    SET_CALLERID = "SET CALLERID"
    SET_CONTEXT = "SET CONTEXT"
    SET_EXTENSION = "SET EXTENSION"
    SET_MUSIC = "SET MUSIC"
    SET_PRIORITY = "SET PRIORITY"
    SET_VARIABLE = "SET VARIABLE"
    STREAM_FILE = "STREAM FILE"
    TDD_MODE = "TDD MODE"
    VERBOSE = "VERBOSE"
    WAIT_FOR_DIGIT = "WAIT FOR DIGIT"


@dataclass(frozen=True)
class CommandSpec:
    """Positional argument types: ``required`` first, then ``optional``."""

    required: tuple[Any, ...] = ()
    optional: tuple[Any, ...] = ()

    @cached_property
    def _adapters(self) -> tuple[TypeAdapter, ...]:
        return tuple(TypeAdapter(tp) for tp in self.required + self.optional)

    def validate(self, name: str, args: Sequence[Any]) -> None:
        low = len(self.required)
        high = low + len(self.optional)
        if not low <= len(args) <= high:
            expected = str(low) if low == high else f"{low}-{high}"
            raise CommandArgumentError(f"{name} takes {expected} arguments, got {len(args)}")

        for position, (adapter, value) in enumerate(zip(self._adapters, args)):
            try:
                adapter.validate_python(value)
            except ValidationError as exc:
                raise CommandArgumentError(
                    f"{name} argument {position} is invalid: {value!r}"
                ) from exc


COMMANDS: dict[AgiCommand, CommandSpec] = {
    AgiCommand.ANSWER: CommandSpec(),
    AgiCommand.ASYNCAGI_BREAK: CommandSpec(),
    AgiCommand.CHANNEL_STATUS: CommandSpec(optional=(Optional[str],)),
    AgiCommand.CONTROL_STREAM_FILE: CommandSpec(
        required=(str, Digits),
        optional=(Optional[int], Digits, Digits, Digits, Optional[int]),
    ),
    AgiCommand.DATABASE_DEL: CommandSpec(required=(str, str)),
    AgiCommand.DATABASE_DELTREE: CommandSpec(required=(str,), optional=(Optional[str],)),
    AgiCommand.DATABASE_GET: CommandSpec(required=(str, str)),
    AgiCommand.DATABASE_PUT: CommandSpec(required=(str, str, Value)),
    AgiCommand.EXEC: CommandSpec(required=(str,), optional=(Optional[str],)),
    AgiCommand.GET_DATA: CommandSpec(required=(str,), optional=(Optional[int], Optional[int])),
    AgiCommand.GET_FULL_VARIABLE: CommandSpec(required=(str,), optional=(Optional[str],)),
    AgiCommand.GET_OPTION: CommandSpec(required=(str, Digits), optional=(Optional[int],)),
    AgiCommand.GET_VARIABLE: CommandSpec(required=(str,)),
    AgiCommand.HANGUP: CommandSpec(optional=(Optional[str],)),
    AgiCommand.NOOP: CommandSpec(),
    AgiCommand.RECEIVE_CHAR: CommandSpec(required=(int,)),
    AgiCommand.RECEIVE_TEXT: CommandSpec(required=(int,)),
    AgiCommand.RECORD_FILE: CommandSpec(
        required=(str, str, Digits, int),
        optional=(Optional[int], Optional[str], Optional[str]),
    ),
    AgiCommand.SAY_ALPHA: CommandSpec(required=(str, Digits)),
    AgiCommand.SAY_DATE: CommandSpec(required=(int, Digits)),
    AgiCommand.SAY_DATETIME: CommandSpec(
        required=(int, Digits), optional=(Optional[str], Optional[str])
    ),
    AgiCommand.SAY_DIGITS: CommandSpec(required=(int, Digits)),
    AgiCommand.SAY_NUMBER: CommandSpec(required=(int, Digits), optional=(Optional[str],)),
    AgiCommand.SAY_PHONETIC: CommandSpec(required=(str, Digits)),
    AgiCommand.SAY_TIME: CommandSpec(required=(int, Digits)),
    AgiCommand.SEND_IMAGE: CommandSpec(required=(str,)),
    AgiCommand.SEND_TEXT: CommandSpec(required=(str,)),
    AgiCommand.SET_AUTOHANGUP: CommandSpec(required=(int,)),
    AgiCommand.SET_CALLERID: CommandSpec(required=(str,)),
    AgiCommand.SET_CONTEXT: CommandSpec(required=(str,)),
    AgiCommand.SET_EXTENSION: CommandSpec(required=(str,)),
    AgiCommand.SET_MUSIC: CommandSpec(required=(str,), optional=(Optional[str],)),
    AgiCommand.SET_PRIORITY: CommandSpec(required=(str,)),
    AgiCommand.SET_VARIABLE: CommandSpec(required=(str, Value)),
    AgiCommand.STREAM_FILE: CommandSpec(required=(str, Digits), optional=(Optional[int],)),
    AgiCommand.TDD_MODE: CommandSpec(required=(str,)),
    AgiCommand.VERBOSE: CommandSpec(required=(str,), optional=(Optional[int],)),
    AgiCommand.WAIT_FOR_DIGIT: CommandSpec(required=(int,)),
}


def resolve_command(name: AgiCommand | str) -> AgiCommand | str:
    """Map ``"say_time"``, ``"SAY_TIME"`` or ``"SAY TIME"`` to ``AgiCommand.SAY_TIME``.

    Unknown identifiers such as ``"speech_create"`` come back as
    ``"SPEECH CREATE"``; any other unknown name is returned untouched.
    """

    if isinstance(name, AgiCommand):
        return name
    key = name.upper()
    if key in AgiCommand.__members__:
        return AgiCommand[key]
    try:
        return AgiCommand(key)
    except ValueError:
        pass
    if "_" in name and " " not in name:
        return key.replace("_", " ")
    return name


def build_command(name: AgiCommand | str, args: Sequence[Any] = ()) -> tuple[str, tuple[Any, ...]]:
    """Resolve ``name`` and check ``args`` against the command table.

    Returns the wire name and the arguments, which are not coerced.
    """

    command = resolve_command(name)
    args = tuple(args)
    if isinstance(command, AgiCommand):
        COMMANDS[command].validate(command.value, args)
        return command.value, args
    return command, args
