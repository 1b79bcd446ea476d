# api_runner/api_types.py
"""
Shared types, dataclasses and exceptions for the API test runner.

A test case document is parsed once into these dataclasses; results flow
back out through StepResult / ScenarioResult / RunReport, whose ``to_dict``
methods produce the JSON report layout (camelCase keys).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ==================== Exceptions ====================

class APIRunnerError(Exception):
    """Base exception for API runner errors."""
    pass


class TestCaseLoadError(APIRunnerError):
    """Raised when a test case document cannot be read or parsed."""
    __test__ = False


class RequestExecutionError(APIRunnerError):
    """Raised when an HTTP request could not be completed."""
    pass


class RequestTimeoutError(RequestExecutionError):
    """Raised when no response arrived within the configured timeout."""
    def __init__(self, timeout_ms: float):
        self.timeout_ms = timeout_ms
        super().__init__(f"Request timeout after {_format_ms(timeout_ms)}ms")


class StepValidationError(APIRunnerError):
    """Raised when a response violates one or more expectations."""
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Validation failed:\n{lines}")


class PathSyntaxError(APIRunnerError):
    """Raised for a malformed path-query expression."""
    pass


class ExpressionError(APIRunnerError):
    """Raised when a custom expression is rejected or fails to evaluate."""
    pass


class ReportWriteError(APIRunnerError):
    """Raised when a report file cannot be written."""
    pass


def _format_ms(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _object_field(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise TestCaseLoadError(f"'{key}' must be an object, got {type(value).__name__}")
    return dict(value)


def _ms_field(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key) or None
    if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise TestCaseLoadError(f"'{key}' must be a number of milliseconds, got {value!r}")
    return value


# ==================== Test Case Document ====================

@dataclass
class RunConfig:
    """Run-wide settings from the document's ``config`` block."""
    base_url: Optional[str] = None
    timeout: Optional[float] = None  # ms; None = unbounded
    retries: int = 0
    stop_on_failure: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RunConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise TestCaseLoadError("'config' must be an object")
        return cls(
            base_url=data.get("baseUrl") or None,
            timeout=_ms_field(data, "timeout"),
            retries=int(data.get("retries") or 0),
            stop_on_failure=bool(data.get("stopOnFailure") or False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseUrl": self.base_url,
            "timeout": self.timeout,
            "retries": self.retries,
            "stopOnFailure": self.stop_on_failure,
        }


@dataclass
class RequestSpec:
    """HTTP request template; every field may contain ``{{var}}`` placeholders."""
    method: str
    url: Any
    headers: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    has_body: bool = False
    timeout: Optional[float] = None  # ms

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequestSpec":
        return cls(
            method=str(data.get("method") or "GET").upper(),
            url=data.get("url") or "",
            headers=_object_field(data, "headers"),
            query=_object_field(data, "query"),
            body=data.get("body"),
            has_body="body" in data,
            timeout=_ms_field(data, "timeout"),
        )


@dataclass
class Expectation:
    """Expectation block; ``None`` fields are not checked."""
    status: Optional[int] = None
    headers: Optional[Dict[str, Any]] = None
    json: Any = None
    has_json: bool = False
    contains: Any = None
    custom: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expectation":
        return cls(
            status=data.get("status"),
            headers=_object_field(data, "headers") or None,
            json=data.get("json"),
            has_json="json" in data,
            contains=data.get("contains"),
            custom=data.get("custom"),
        )


@dataclass
class Step:
    name: str
    request: RequestSpec
    expect: Optional[Expectation] = None
    extract: Dict[str, str] = field(default_factory=dict)
    delay: Optional[float] = None  # ms

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "Step":
        if not isinstance(data.get("request"), dict):
            raise TestCaseLoadError(f"Step {index + 1} ({data.get('name')!r}) has no request object")
        expect = data.get("expect")
        if expect is not None and not isinstance(expect, dict):
            raise TestCaseLoadError(f"Step {index + 1} ({data.get('name')!r}): 'expect' must be an object")
        return cls(
            name=str(data.get("name") or f"Step {index + 1}"),
            request=RequestSpec.from_dict(data["request"]),
            expect=Expectation.from_dict(expect) if expect is not None else None,
            extract=_object_field(data, "extract"),
            delay=_ms_field(data, "delay"),
        )


@dataclass
class Scenario:
    name: str
    steps: List[Step] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "Scenario":
        raw_steps = data.get("steps") or []
        if not isinstance(raw_steps, list):
            raise TestCaseLoadError(f"Test {data.get('name')!r}: 'steps' must be a list")
        steps = []
        for i, raw in enumerate(raw_steps):
            if not isinstance(raw, dict):
                raise TestCaseLoadError(f"Test {data.get('name')!r}: step {i + 1} must be an object")
            steps.append(Step.from_dict(raw, i))
        return cls(name=str(data.get("name") or f"Test {index + 1}"), steps=steps)


@dataclass
class TestCase:
    """Top-level document: config, global variables and scenarios."""
    __test__ = False

    config: RunConfig = field(default_factory=RunConfig)
    variables: Dict[str, Any] = field(default_factory=dict)
    tests: List[Scenario] = field(default_factory=list)
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any, source: Optional[str] = None) -> "TestCase":
        if not isinstance(data, dict):
            raise TestCaseLoadError("Test case document must be a JSON object")
        variables = data.get("variables") or {}
        if not isinstance(variables, dict):
            raise TestCaseLoadError("'variables' must be an object")
        raw_tests = data.get("tests") or []
        if not isinstance(raw_tests, list):
            raise TestCaseLoadError("'tests' must be a list")
        try:
            tests = []
            for i, raw in enumerate(raw_tests):
                if not isinstance(raw, dict):
                    raise TestCaseLoadError(f"Test {i + 1} must be an object")
                tests.append(Scenario.from_dict(raw, i))
            config = RunConfig.from_dict(data.get("config"))
        except (TypeError, ValueError, AttributeError) as e:
            # wrong field types, e.g. "retries": "two" or "headers": "x"
            raise TestCaseLoadError(f"Invalid test case document: {e}") from e
        return cls(
            config=config,
            variables=dict(variables),
            tests=tests,
            source=source,
        )


# ==================== Results ====================

@dataclass(frozen=True)
class ResponseRecord:
    """Captured HTTP response. ``body`` is parsed JSON or the raw text."""
    status: int
    headers: Dict[str, Any]
    body: Any
    raw_body: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "headers": dict(self.headers),
            "body": self.body,
            "rawBody": self.raw_body,
        }


@dataclass
class StepResult:
    name: str
    success: bool
    error: Optional[str] = None
    response: Optional[ResponseRecord] = None
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "success": self.success,
            "error": self.error,
            "response": self.response.to_dict() if self.response else None,
        }


@dataclass
class ScenarioResult:
    name: str
    steps: List[StepResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(s.success for s in self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "steps": [s.to_dict() for s in self.steps],
            "passed": self.passed,
        }


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class RunReport:
    """Aggregated outcome of a whole run."""
    config: RunConfig
    test_case_file: Optional[str] = None
    tests: List[ScenarioResult] = field(default_factory=list)
    timestamp: str = field(default_factory=_utc_timestamp)

    def add(self, result: ScenarioResult) -> None:
        self.tests.append(result)

    @property
    def total(self) -> int:
        return sum(len(t.steps) for t in self.tests)

    @property
    def passed(self) -> int:
        return sum(1 for t in self.tests for s in t.steps if s.success)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def success_rate(self) -> float:
        total = self.total
        if total == 0:
            return 0
        return round(self.passed / total * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "testCaseFile": self.test_case_file,
            "config": self.config.to_dict(),
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "tests": [t.to_dict() for t in self.tests],
            "successRate": self.success_rate,
            "timestamp": self.timestamp,
        }
