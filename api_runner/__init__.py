# api_runner/__init__.py
"""
Declarative HTTP API test runner.

Load a test case document, run it, write the report::

    from api_runner import APITestEngine, Reporter, load_test_case

    report = APITestEngine().run(load_test_case("test_case.json"))
    Reporter().write_json(report, "test_results.json")
"""

from api_runner.api_test_engine import APITestEngine
from api_runner.api_types import (
    RunConfig,
    RunReport,
    Scenario,
    ScenarioResult,
    Step,
    StepResult,
    TestCase,
)
from api_runner.json_path import extract
from api_runner.loader import load_test_case
from api_runner.matcher import deep_match, validate_response
from api_runner.reporter import Reporter
from api_runner.templating import interpolate

__version__ = "1.0.0"

__all__ = [
    "APITestEngine",
    "Reporter",
    "RunConfig",
    "RunReport",
    "Scenario",
    "ScenarioResult",
    "Step",
    "StepResult",
    "TestCase",
    "deep_match",
    "extract",
    "interpolate",
    "load_test_case",
    "validate_response",
]
