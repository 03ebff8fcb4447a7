"""Value printing, truthiness, printf verbs, and time formatting for templates."""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, List, Mapping, Sequence

NO_VALUE = "<no value>"
NIL = "<nil>"

_VERB_PATTERN = re.compile(r"%([-+# 0]*)(\d+|\*)?(?:\.(\d+|\*))?([a-zA-Z%])")


def plain(value: Any) -> Any:
    """Unwrap enum members to their underlying value."""

    if isinstance(value, Enum):
        return value.value
    return value


def format_value(value: Any, nil: str = NIL) -> str:
    """Render ``value`` the way a template prints it."""

    value = plain(value)
    if value is None:
        return nil
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(format_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda item: format_value(item[0]))
        return "map[" + " ".join(f"{format_value(k)}:{format_value(v)}" for k, v in items) + "]"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, timedelta):
        return format_duration(value)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return format_value(to_dict())
    return str(value)


def is_true(value: Any) -> bool:
    """Report whether a value counts as true in a condition."""

    value = plain(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value) > 0
    return True


def format_float(value: float) -> str:
    if value != value or value in (float("inf"), float("-inf")):
        return {"nan": "NaN", "inf": "+Inf", "-inf": "-Inf"}[repr(value)]
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


# ----------------------------------------------------------------------
# printf
# ----------------------------------------------------------------------
def sprintf(fmt: str, args: Sequence[Any]) -> str:
    """Format ``args`` with printf verbs (``%s``, ``%d``, ``%v``, ``%q`` ...)."""

    out: List[str] = []
    remaining = list(args)
    position = 0
    for match in _VERB_PATTERN.finditer(fmt):
        out.append(fmt[position:match.start()])
        position = match.end()
        flags, width, precision, verb = match.groups()
        if verb == "%":
            out.append("%")
            continue
        if width == "*":
            width = str(remaining.pop(0)) if remaining else ""
        if precision == "*":
            precision = str(remaining.pop(0)) if remaining else ""
        if not remaining:
            out.append(f"%!{verb}(MISSING)")
            continue
        out.append(_format_verb(flags or "", width or "", precision, verb, remaining.pop(0)))
    out.append(fmt[position:])
    if remaining:
        extra = ", ".join(f"{type(arg).__name__}={format_value(arg)}" for arg in remaining)
        out.append(f"%!(EXTRA {extra})")
    return "".join(out)


def _format_verb(flags: str, width: str, precision: Any, verb: str, arg: Any) -> str:
    arg = plain(arg)
    spec_flags = flags.replace("#", "")
    precision_part = f".{precision}" if precision not in (None, "") else ""
    if verb in "dboxXc" and isinstance(arg, int) and not isinstance(arg, bool):
        if verb == "d":
            return ("%" + spec_flags + width + "d") % arg
        if verb == "c":
            return chr(arg)
        prefix = {"b": "0b", "o": "0", "x": "0x", "X": "0X"}[verb] if "#" in flags else ""
        body = format(abs(arg), verb)
        text = ("-" if arg < 0 else "") + prefix + body
        return _pad(text, flags, width)
    if verb in "feEgG" and isinstance(arg, (int, float)) and not isinstance(arg, bool):
        if verb == "f" and not precision_part:
            precision_part = ".6"
        return ("%" + spec_flags + width + precision_part + verb) % float(arg)
    if verb == "t" and isinstance(arg, bool):
        return _pad(format_value(arg), flags, width)
    if verb == "q":
        if isinstance(arg, int) and not isinstance(arg, bool):
            return _pad("'" + chr(arg) + "'", flags, width)
        return _pad(json.dumps(format_value(arg), ensure_ascii=False), flags, width)
    if verb in "xX" and isinstance(arg, str):
        text = arg.encode("utf-8").hex()
        return _pad(text.upper() if verb == "X" else text, flags, width)
    if verb in "sv":
        text = format_value(arg)
        if precision not in (None, ""):
            text = text[: int(precision)]
        return _pad(text, flags, width)
    return f"%!{verb}({type(arg).__name__}={format_value(arg)})"


def _pad(text: str, flags: str, width: str) -> str:
    if not width:
        return text
    if "-" in flags:
        return text.ljust(int(width))
    return text.rjust(int(width))


def sprint(args: Sequence[Any]) -> str:
    """Join operands, adding spaces between operands when neither is a string."""

    out: List[str] = []
    for index, arg in enumerate(args):
        if index > 0 and not isinstance(arg, str) and not isinstance(args[index - 1], str):
            out.append(" ")
        out.append(format_value(arg))
    return "".join(out)


def sprintln(args: Sequence[Any]) -> str:
    return " ".join(format_value(arg) for arg in args) + "\n"


# ----------------------------------------------------------------------
# Time
# ----------------------------------------------------------------------
_LAYOUT_TOKENS = (
    "January", "Monday", "Z07:00", "-07:00", "-0700", "2006", ".000000", ".000",
    "Jan", "Mon", "MST", "002", "__2", "_2", "01", "02", "03", "04", "05",
    "06", "15", "PM", "pm", "1", "2", "3", "4", "5",
)
_LAYOUT_PATTERN = re.compile("|".join(re.escape(token) for token in _LAYOUT_TOKENS))


def format_time(layout: str, moment: Any) -> str:
    """Format ``moment`` using a reference-time layout such as ``2006-01-02``."""

    if isinstance(moment, date) and not isinstance(moment, datetime):
        moment = datetime(moment.year, moment.month, moment.day)
    return _LAYOUT_PATTERN.sub(lambda match: _layout_token(match.group(0), moment), layout)


def _layout_token(token: str, moment: datetime) -> str:
    hour12 = moment.hour % 12 or 12
    table = {
        "January": moment.strftime("%B"),
        "Jan": moment.strftime("%b"),
        "Monday": moment.strftime("%A"),
        "Mon": moment.strftime("%a"),
        "2006": f"{moment.year:04d}",
        "06": f"{moment.year % 100:02d}",
        "01": f"{moment.month:02d}",
        "1": str(moment.month),
        "02": f"{moment.day:02d}",
        "_2": f"{moment.day:>2d}",
        "2": str(moment.day),
        "002": f"{moment.timetuple().tm_yday:03d}",
        "__2": f"{moment.timetuple().tm_yday:>3d}",
        "15": f"{moment.hour:02d}",
        "03": f"{hour12:02d}",
        "3": str(hour12),
        "04": f"{moment.minute:02d}",
        "4": str(moment.minute),
        "05": f"{moment.second:02d}",
        "5": str(moment.second),
        ".000": f".{moment.microsecond // 1000:03d}",
        ".000000": f".{moment.microsecond:06d}",
        "PM": "PM" if moment.hour >= 12 else "AM",
        "pm": "pm" if moment.hour >= 12 else "am",
        "MST": moment.strftime("%Z") or "UTC",
    }
    if token in table:
        return table[token]
    return _zone_offset(token, moment)


def _zone_offset(token: str, moment: datetime) -> str:
    offset = moment.utcoffset() or timedelta(0)
    if token == "Z07:00" and not offset:
        return "Z"
    minutes = int(offset.total_seconds() // 60)
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    if token == "-0700":
        return f"{sign}{hours:02d}{mins:02d}"
    return f"{sign}{hours:02d}:{mins:02d}"


def format_duration(value: Any) -> str:
    """Render a timedelta, or an integer count of nanoseconds, as ``1h2m3s``."""

    if isinstance(value, timedelta):
        nanos = (value.days * 86400 + value.seconds) * 1_000_000_000 + value.microseconds * 1000
    else:
        nanos = int(value)
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)
    if nanos < 1_000_000_000:
        for unit, size in (("ms", 1_000_000), ("µs", 1_000), ("ns", 1)):
            if nanos >= size:
                return sign + _trim_fraction(nanos, size) + unit
    hours, rest = divmod(nanos, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    seconds = _trim_fraction(rest, 1_000_000_000) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def _trim_fraction(amount: int, size: int) -> str:
    whole, fraction = divmod(amount, size)
    if not fraction:
        return str(whole)
    digits = len(str(size)) - 1
    return f"{whole}." + f"{fraction:0{digits}d}".rstrip("0")
