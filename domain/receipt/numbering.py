"""Receipt number format: <PREFIX>-<YYYY>-<NNNNNN>, sequential per calendar year."""
from __future__ import annotations

import re

SEQUENCE_WIDTH = 6
MAX_SEQUENCE = 10 ** SEQUENCE_WIDTH - 1

_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<seq>\d{6})$")


def format_receipt_number(prefix: str, year: int, sequence: int) -> str:
    if not 1 <= sequence <= MAX_SEQUENCE:
        raise ValueError(f"receipt sequence out of range: {sequence}")
    return f"{prefix}-{year:04d}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_receipt_number(number: str) -> tuple[str, int, int]:
    """Return (prefix, year, sequence); raises ValueError on malformed input."""
    m = _NUMBER_RE.match(number or "")
    if not m:
        raise ValueError(f"malformed receipt number: {number!r}")
    return m.group("prefix"), int(m.group("year")), int(m.group("seq"))


def counter_key(prefix: str, year: int) -> str:
    return f"{prefix}-{year:04d}"
