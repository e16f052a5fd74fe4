from __future__ import annotations

import re
from dataclasses import dataclass

SUCCESS_CODE = 200

_RESPONSE_RE = re.compile(
    r"^(\d+)\s+result=(-?\d+)(?:\s+\((.*)\))?(?:\s+endpos=(-?\d+))?",
    re.ASCII,
)


@dataclass(frozen=True, slots=True)
class Response:
    """One reply line, e.g. ``200 result=1 (timeout) endpos=1234``.

    ``result`` is frequently the code point of a DTMF digit rather than a
    number in its own right; see ``result_char``.
    """

    raw: str
    code: int | None = None
    result: int | None = None
    note: str | None = None
    endpos: int | None = None

    @property
    def matched(self) -> bool:
        return self.code is not None

    @property
    def ok(self) -> bool:
        return self.code == SUCCESS_CODE

    @property
    def result_char(self) -> str | None:
        if self.result is None or not 0 < self.result < 0x110000:
            return None
        return chr(self.result)


def parse_response(raw: str) -> Response:
    """Parse a response line. Never raises.

    A line that does not match leaves every field but ``raw`` unset so the
    caller can decide whether it is protocol drift or an expected message.
    """

    match = _RESPONSE_RE.match(raw)
    if match is None:
        return Response(raw=raw)

    code, result, note, endpos = match.groups()
    return Response(
        raw=raw,
        code=int(code),
        result=int(result),
        note=note,
        endpos=int(endpos) if endpos is not None else None,
    )
