"""Parsing of session duration strings such as ``"1h30m"``."""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from .errors import InvalidSessionDuration

_UNITS: dict[str, Decimal] = {
    "ns": Decimal("0.000000001"),
    "us": Decimal("0.000001"),
    "µs": Decimal("0.000001"),
    "μs": Decimal("0.000001"),
    "ms": Decimal("0.001"),
    "s": Decimal(1),
    "m": Decimal(60),
    "h": Decimal(3600),
}

# Longest units first so "ms" wins over "m".
_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration made of ``<number><unit>`` groups.

    Accepts an optional leading sign and the bare string ``"0"``.
    """

    raw = text.strip() if isinstance(text, str) else ""
    if not raw:
        raise InvalidSessionDuration(f"invalid duration {text!r}")
    sign = 1
    if raw[0] in "+-":
        sign = -1 if raw[0] == "-" else 1
        raw = raw[1:]
    if raw == "0":
        return timedelta(0)
    if not raw:
        raise InvalidSessionDuration(f"invalid duration {text!r}")

    seconds = Decimal(0)
    position = 0
    while position < len(raw):
        match = _COMPONENT.match(raw, position)
        if match is None:
            raise InvalidSessionDuration(f"invalid duration {text!r}")
        number, unit = match.groups()
        try:
            seconds += Decimal(number) * _UNITS[unit]
        except InvalidOperation as exc:
            raise InvalidSessionDuration(f"invalid duration {text!r}") from exc
        position = match.end()
    try:
        return sign * timedelta(seconds=float(seconds))
    except OverflowError as exc:
        raise InvalidSessionDuration(f"duration {text!r} out of range") from exc


def format_duration(value: timedelta) -> str:
    """Render *value* back in the compact ``1h2m3s`` form."""

    total = int(value.total_seconds())
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return sign + "".join(parts)


__all__ = ["format_duration", "parse_duration"]
