from __future__ import annotations

import math
import re
import struct
from typing import NamedTuple, Optional

NOT_AVAILABLE = "N/A"
ZERO = "0"

_NUMERAL_CHARS = "0123456789."
_NON_NUMERIC = re.compile(r"[^0-9.]")
_VERSION_PREFIX = re.compile(r"\d+\.\d+")

_MULTIPLIERS = {
    "K": 1000,
    "M": 1000 ** 2,
    "G": 1000 ** 3,
    "T": 1000 ** 4,
    "Ki": 1024,
    "Mi": 1024 ** 2,
    "Gi": 1024 ** 3,
    "Ti": 1024 ** 4,
}

# -----------------------------
# Helpers
# -----------------------------

class UnitValue(NamedTuple):
    numeral: str
    prefix: str
    unit: str


def tokenize_unit(raw: str) -> Optional[UnitValue]:
    """Split a reading like '1005 MiB' into ('1005', 'Mi', 'B').

    The numeral must be followed by exactly one space. The prefix is one of
    K/M/G/T, optionally followed by 'i'; whatever remains is the unit.
    Returns None if the reading does not have that shape.
    """
    s = raw.strip()
    end = 0
    while end < len(s) and s[end] in _NUMERAL_CHARS:
        end += 1
    numeral, rest = s[:end], s[end:]
    if not numeral or not rest.startswith(" "):
        return None
    rest = rest[1:]

    prefix = ""
    if rest and rest[0] in "KMGT":
        prefix = rest[0]
        if rest[1:2] == "i":
            prefix += "i"
    return UnitValue(numeral, prefix, rest[len(prefix):])


def multiplier(prefix: str) -> int:
    return _MULTIPLIERS.get(prefix, 1)


def _to_float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def format_float32(value: float) -> str:
    """Shortest text that reads back as the same 32-bit float, in %g layout.

    >>> format_float32(961e6)
    '9.61e+08'
    >>> format_float32(12.5)
    '12.5'
    """
    target = _to_float32(value)
    for digits in range(1, 10):
        text = "%.*e" % (digits - 1, target)
        if _to_float32(float(text)) == target:
            break
    exponent = int(text.split("e")[1])
    if exponent < -4 or exponent >= 6:
        return text
    return "%.*f" % (max(digits - 1 - exponent, 0), float(text))

# -----------------------------
# Public API
# -----------------------------

def filter_number(raw: str) -> str:
    """Keep only digits and dots ('P2' -> '2', 'x16' -> '16')."""
    if raw == NOT_AVAILABLE:
        return ZERO
    digits = _NON_NUMERIC.sub("", raw)
    try:
        float(digits)
    except ValueError:
        return ZERO
    return digits


def filter_unit(raw: str) -> str:
    """Scale a unit-suffixed reading to its base unit ('961 MHz' -> '9.61e+08').

    Any reading that is not '<number> <prefix><unit>' collapses to '0'.
    """
    if raw == NOT_AVAILABLE:
        return ZERO
    token = tokenize_unit(raw)
    if token is None:
        return ZERO
    try:
        value = float(token.numeral) * multiplier(token.prefix)
        # past the float32 range struct yields inf
        if not math.isfinite(_to_float32(value)):
            return ZERO
        return format_float32(value)
    except (ValueError, OverflowError):
        return ZERO


def filter_version(raw: str) -> str:
    """'440.95.01' -> '440.95'."""
    match = _VERSION_PREFIX.search(raw)
    return match.group(0) if match else ZERO


def label_value(raw: str) -> str:
    return raw.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
