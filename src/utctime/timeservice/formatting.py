"""strftime-style formatting of a :class:`TimeSnapshot`."""

from __future__ import annotations

from typing import TYPE_CHECKING

from utctime.timeservice.errors import FormatError

if TYPE_CHECKING:
    from utctime.timeservice.snapshot import TimeSnapshot

# POSIX/glibc directives accepted by datetime.strftime on Linux.
_DIRECTIVES = frozenset("aAbBcCdDeFgGhHIjklmMnpPrRStTuUVwWxXyYzZf%")


def format_time(snapshot: TimeSnapshot, spec: str) -> str:
    """Format *snapshot* (in its own timezone) with a strftime *spec*.

    ``%s`` expands to the Unix seconds of the snapshot. Any other directive
    outside the POSIX set raises :class:`FormatError` instead of being echoed
    back verbatim.
    """
    if not spec:
        raise FormatError(spec, "empty format")

    local = snapshot.local
    parts: list[str] = []
    i = 0
    while i < len(spec):
        char = spec[i]
        if char != "%":
            parts.append(char)
            i += 1
            continue
        if i + 1 >= len(spec):
            raise FormatError(spec, "trailing '%'")
        directive = spec[i + 1]
        if directive == "s":
            parts.append(str(snapshot.unix.seconds))
        elif directive in _DIRECTIVES:
            parts.append(local.strftime("%" + directive))
        else:
            raise FormatError(spec, f"unsupported directive '%{directive}'")
        i += 2
    return "".join(parts)
