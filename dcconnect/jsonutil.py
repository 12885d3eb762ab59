"""Helpers for reading decoded JSON payloads and converting numbers to and from text."""

from __future__ import annotations

import json
import math
import re
from typing import Any

_INT_PREFIX = re.compile(r"[+-]?\d+")
_REAL_PREFIX = re.compile(
    r"[+-]?(?:nan|infinity|inf|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)",
    re.IGNORECASE,
)
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_BASES = frozenset({2, 8, 10, 16})


def dump_json(data: Any) -> str:
    """Serialize ``data`` compactly; raises TypeError for values JSON cannot hold."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def _convert(value: Any, kind: type) -> Any:
    if kind is str:
        return value if isinstance(value, str) else None
    if kind is bool:
        return value if isinstance(value, bool) else None
    if kind is int:
        if isinstance(value, (bool, int, float)) and not (
            isinstance(value, float) and not math.isfinite(value)
        ):
            return int(value)
        return None
    if kind is float:
        return float(value) if isinstance(value, (bool, int, float)) else None
    return value if isinstance(value, kind) else None


def get_value(data: Any, kind: type, *keys: str) -> Any:
    """Look up ``keys`` in nested objects and return the value as ``kind``.

    Every key but the last must name an object. Returns None if a key is
    missing or the value cannot be read as ``kind``.
    """
    node = data
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return _convert(node, kind)


def _is_type(value: Any, marker: Any) -> bool:
    if marker is None or marker is type(None):
        return value is None
    if marker is bool:
        return isinstance(value, bool)
    if marker is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if marker is float:
        return isinstance(value, float)
    return isinstance(value, marker)


def has_fields(data: Any, *spec: Any) -> bool:
    """Check that ``data`` holds fields of the given types.

    ``spec`` is a run of entries of the form ``key, type[, type...]`` meaning
    the key must hold one of the types (``None`` stands for JSON null), or
    ``key, subkey, ...`` meaning the key must hold an object against which the
    rest of the specification is checked.
    """
    if not spec:
        return True
    if not isinstance(data, dict):
        return False
    key, rest = spec[0], spec[1:]
    if not isinstance(key, str):
        raise TypeError(f"expected a key name, got {key!r}")
    if not rest:
        raise TypeError(f"no type given for key {key!r}")
    if isinstance(rest[0], str):
        nested = data.get(key)
        if not isinstance(nested, dict):
            return False
        return has_fields(nested, *rest)

    markers = []
    while rest and not isinstance(rest[0], str):
        markers.append(rest[0])
        rest = rest[1:]
    if key not in data or not any(_is_type(data[key], m) for m in markers):
        return False
    return has_fields(data, *rest)


def parse_number(text: str, kind: type) -> Any:
    """Parse the number (or boolean) at the start of ``text``.

    Trailing characters after the number are ignored. Raises ValueError if
    ``text`` does not start with a value of the requested kind.
    """
    if kind is bool:
        if text.startswith("true"):
            return True
        if text.startswith("false"):
            return False
        raise ValueError(f"not a boolean: {text!r}")
    if kind is int:
        match = _INT_PREFIX.match(text)
        if match is None:
            raise ValueError(f"not an integer: {text!r}")
        return int(match.group())
    if kind is float:
        match = _REAL_PREFIX.match(text)
        if match is None:
            raise ValueError(f"not a real number: {text!r}")
        return float(match.group())
    raise TypeError(f"unsupported kind: {kind!r}")


def _format_fixed(value: float) -> str:
    whole, fraction = f"{value:.3f}".split(".")
    return f"{whole}.{fraction.rstrip('0') or '0'}"


def _format_real(value: float) -> str:
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "-inf" if value < 0 else "inf"
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    if magnitude != 0 and (magnitude < 1e-3 or magnitude >= 1e5):
        exponent = math.floor(math.log10(magnitude))
        mantissa = round(magnitude / 10**exponent, 3)
        if mantissa >= 10:
            mantissa /= 10
            exponent += 1
        exp_sign = "-" if exponent < 0 else ""
        return f"{sign}{_format_fixed(mantissa)}e{exp_sign}{abs(exponent):02d}"
    return sign + _format_fixed(magnitude)


def format_number(value: Any, base: int = 10) -> str:
    """Render a boolean, integer or real number as text.

    Integers may use base 2, 8, 10 or 16; reals and booleans use base 10.
    """
    if base not in _BASES:
        raise ValueError(f"unsupported base: {base}")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        if value == 0:
            return "0"
        sign = "-" if value < 0 else ""
        remaining = abs(value)
        digits = []
        while remaining:
            remaining, digit = divmod(remaining, base)
            digits.append(_DIGITS[digit])
        return sign + "".join(reversed(digits))
    if isinstance(value, float):
        if base != 10:
            raise ValueError("real numbers can only be written in base 10")
        return _format_real(value)
    raise TypeError(f"unsupported value: {value!r}")