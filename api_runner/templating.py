# api_runner/templating.py
"""
Template rendering for ``{{var}}`` placeholders.

A string that is exactly one placeholder is replaced by the variable value
itself, so numbers, booleans, objects and arrays keep their type. Embedded
placeholders are substituted textually. Unknown names are left untouched.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict

_WHOLE_RE = re.compile(r"^\{\{([A-Za-z0-9_]+)\}\}$")
_TOKEN_RE = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")


def to_json_text(value: Any) -> str:
    """Compact JSON text, the way a browser's JSON.stringify writes it."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def format_number(value: float) -> str:
    """Canonical decimal text for a number (``1.0`` -> ``"1"``)."""
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return _js_float_text(value)
    return str(value)


def _js_float_text(value: float) -> str:
    """Shortest round-trip digits laid out like JavaScript's Number#toString.

    Plain notation for 1e-6 <= |x| < 1e21, otherwise ``1.5e+300`` / ``1e-7``.
    """
    sign = "-" if value < 0 else ""
    mantissa, _, exp = repr(abs(value)).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = int_part + frac_part
    point = len(int_part) + int(exp or 0)

    stripped = digits.lstrip("0")
    point -= len(digits) - len(stripped)
    digits = stripped.rstrip("0") or "0"
    k, n = len(digits), point

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        e = n - 1
        head = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{head}e{'+' if e > 0 else '-'}{abs(e)}"
    return sign + text


def to_text(value: Any) -> str:
    """Stringify a JSON value for textual substitution or comparison."""
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, (dict, list)):
        return to_json_text(value)
    return str(value)


def interpolate(value: Any, variables: Dict[str, Any]) -> Any:
    """Resolve placeholders recursively in strings, objects and arrays."""
    if isinstance(value, str):
        whole = _WHOLE_RE.match(value)
        if whole and whole.group(1) in variables:
            return variables[whole.group(1)]

        def replace(match: re.Match) -> str:
            name = match.group(1)
            if name in variables:
                return to_text(variables[name])
            return match.group(0)

        return _TOKEN_RE.sub(replace, value)

    if isinstance(value, dict):
        rendered = {}
        for key, val in value.items():
            new_key = interpolate(key, variables)
            rendered[to_text(new_key)] = interpolate(val, variables)
        return rendered

    if isinstance(value, list):
        return [interpolate(v, variables) for v in value]

    return value
