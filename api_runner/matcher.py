# api_runner/matcher.py
"""
Response assertions.

``validate_response`` checks every field of an expectation block and returns
all mismatches at once; an empty list means the response passed.
JSON bodies are compared with a lenient partial match: extra keys on the
actual side are ignored and numbers match their decimal string form.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from api_runner.api_types import Expectation, ResponseRecord
from api_runner.expressions import ExpressionEvaluator
from api_runner.schema_validator import SchemaValidator
from api_runner.templating import format_number, interpolate, to_text

logger = logging.getLogger(__name__)


# ==================== JSON matching ====================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _first_mismatch(actual: Any, expected: Any, path: str) -> Optional[str]:
    """Return the path of the first mismatching node, or ``None`` on a match."""
    if actual is None or expected is None:
        if actual is None and expected is None:
            return None
        return f"{path}: expected {_short(expected)}, got {_short(actual)}"

    if isinstance(actual, bool) or isinstance(expected, bool):
        if isinstance(actual, bool) and isinstance(expected, bool) and actual == expected:
            return None
        return f"{path}: expected {_short(expected)}, got {_short(actual)}"

    if _is_number(actual) and isinstance(expected, str):
        ok = format_number(actual) == expected
    elif isinstance(actual, str) and _is_number(expected):
        ok = actual == format_number(expected)
    elif _is_number(actual) and _is_number(expected):
        ok = actual == expected
    elif isinstance(actual, str) and isinstance(expected, str):
        ok = actual == expected
    elif isinstance(expected, list):
        if not isinstance(actual, list):
            return f"{path}: expected array, got {type(actual).__name__}"
        if len(actual) != len(expected):
            return f"{path}: length mismatch (expected {len(expected)}, got {len(actual)})"
        for i, (act_item, exp_item) in enumerate(zip(actual, expected)):
            diff = _first_mismatch(act_item, exp_item, f"{path}[{i}]")
            if diff:
                return diff
        return None
    elif isinstance(expected, dict):
        if not isinstance(actual, dict):
            return f"{path}: expected object, got {type(actual).__name__}"
        for key, exp_value in expected.items():
            if key not in actual:
                return f"{path}.{key}: missing key in actual"
            diff = _first_mismatch(actual[key], exp_value, f"{path}.{key}")
            if diff:
                return diff
        return None
    else:
        ok = False

    if ok:
        return None
    return f"{path}: expected {_short(expected)}, got {_short(actual)}"


def _short(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False) if not isinstance(value, str) else repr(value)


def deep_match(actual: Any, expected: Any) -> bool:
    """Type-coercive partial deep equality (see module docstring)."""
    return _first_mismatch(actual, expected, "$") is None


def _pretty(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


# ==================== Response validation ====================

class ResponseMatcher:
    """Validate responses; custom assertions run in the sandboxed evaluator."""

    def __init__(
        self,
        evaluator: Optional[ExpressionEvaluator] = None,
        schema_check: Optional[Callable[[Any, Any], bool]] = None,
    ):
        if schema_check is None:
            schema_check = SchemaValidator().is_valid
        self.evaluator = evaluator or ExpressionEvaluator({"schema_valid": schema_check})

    def validate(self, response: ResponseRecord, expect: Expectation, variables: Dict[str, Any]) -> List[str]:
        errors: List[str] = []

        # Status
        if expect.status is not None and response.status != expect.status:
            errors.append(f"Expected status {expect.status}, got {response.status}")

        # Headers
        if expect.headers:
            expected_headers = interpolate(expect.headers, variables)
            for key, value in expected_headers.items():
                actual = response.headers.get(key.lower())
                if actual is None:
                    errors.append(f"Expected header {key}: {to_text(value)}, got <missing>")
                    continue
                actual_text = ",".join(actual) if isinstance(actual, list) else to_text(actual)
                if actual_text != to_text(value):
                    errors.append(f"Expected header {key}: {to_text(value)}, got {actual_text}")

        # JSON body
        if expect.has_json:
            expected_json = interpolate(expect.json, variables)
            diff = _first_mismatch(response.body, expected_json, "$")
            if diff:
                errors.append(
                    f"JSON mismatch at {diff}.\n"
                    f"    Expected: {_pretty(expected_json)}\n"
                    f"    Got: {_pretty(response.body)}"
                )

        # Substring
        if expect.contains is not None:
            needle = to_text(interpolate(expect.contains, variables))
            if needle not in response.raw_body:
                errors.append(f'Response body does not contain "{needle}"')

        # Custom assertion
        if expect.custom is not None:
            scope = {
                "status": response.status,
                "headers": response.headers,
                "json": response.body,
                "body": response.raw_body,
                "vars": variables,
            }
            scope["response"] = {k: scope[k] for k in ("status", "headers", "json", "body")}
            try:
                if not self.evaluator.evaluate(str(expect.custom), scope):
                    errors.append(f"Custom assertion failed: {expect.custom}")
            except Exception as e:
                logger.debug("Custom assertion raised", exc_info=True)
                errors.append(f"Custom assertion error: {e}")

        return errors


def validate_response(response: ResponseRecord, expect: Expectation, variables: Dict[str, Any]) -> List[str]:
    return ResponseMatcher().validate(response, expect, variables)
