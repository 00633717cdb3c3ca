"""Pure rules shared by the availability query and booking admission paths."""

import math
import re
from datetime import datetime, timedelta, timezone
from numbers import Real

from fleetlink.errors import ValidationError

# ECMAScript StrWhiteSpaceChar, which differs from str.isspace()
_JS_WHITESPACE = r"\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
_LEADING_INTEGER = re.compile(
    rf"[{_JS_WHITESPACE}]*([+-]?)(?:0[xX]([0-9a-fA-F]+)|([0-9]+))"
)


def parse_pincode(pincode) -> int:
    """Read the leading integer of a pincode, 0 when there is none.

    "400001" -> 400001, " 560 034" -> 560, "0x1A" -> 26, "abc" -> 0.
    Only ASCII digits count.
    """
    match = _LEADING_INTEGER.match(str(pincode or ""))
    if not match:
        return 0
    sign, hex_digits, digits = match.groups()
    value = int(hex_digits, 16) if hex_digits else int(digits)
    return -value if sign == "-" else value


def is_positive_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value) and value > 0


def estimate_ride_duration(from_pincode, to_pincode) -> int:
    """Estimated ride duration in whole hours between two pincodes.

    A stand-in for real routing: the absolute pincode difference modulo 24.
    """
    return abs(parse_pincode(from_pincode) - parse_pincode(to_pincode)) % 24


def overlaps(existing_start, existing_end, candidate_start, candidate_end) -> bool:
    # half-open intervals, touching ends do not conflict
    return candidate_start < existing_end and candidate_end > existing_start


def to_utc(value: datetime) -> datetime:
    """Normalize to naive UTC, the form timestamps are stored in."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_start_time(value) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("startTime must be a valid ISO date string")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError("startTime must be a valid ISO date string") from None
    return to_utc(parsed)


def ride_window(start_time: datetime, duration_hours: int):
    return start_time, start_time + timedelta(hours=duration_hours)
