#!/usr/bin/env python3
# api_runner/cli.py
"""
API Test Runner CLI

Usage:
    # Run test_case.json, write test_results.json
    api-test-runner

    # Explicit input/output
    api-test-runner tests/users.json -o results/users.json

    # Extra HTML and Markdown reports
    api-test-runner tests/users.json --html report.html --markdown report.md

    # Override document config
    api-test-runner tests/users.json --base-url http://localhost:8080 --retries 2

Exit codes:
    0   run completed (test failures are reported, not signalled)
    1   test case could not be loaded, or a report could not be written
    130 interrupted
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from api_runner.api_test_engine import APITestEngine
from api_runner.api_types import ReportWriteError, StepResult, TestCaseLoadError
from api_runner.config import RunnerSettings
from api_runner.loader import load_test_case
from api_runner.reporter import Reporter

RULE = "=" * 80

logger = logging.getLogger("api_runner")


# ==================== Logging ====================

class ColoredFormatter(logging.Formatter):
    """Colored console output"""

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(level: str = "WARNING", verbose: bool = False) -> None:
    """Route log records to stderr so console progress on stdout stays readable."""
    handler = logging.StreamHandler(sys.stderr)

    if sys.stderr.isatty():
        formatter = ColoredFormatter("%(asctime)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)-8s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else level.upper())
    root.handlers = [handler]


# ==================== Console progress ====================

class ConsoleProgress:
    """Print run progress; consumes the engine's progress events."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    def _print(self, text: str = "") -> None:
        print(text, file=self.stream)

    def __call__(self, event: Dict[str, Any]) -> None:
        handler = getattr(self, f"_on_{event['event']}", None)
        if handler:
            handler(event)

    def _on_run_start(self, event: Dict[str, Any]) -> None:
        cfg = event["config"]
        self._print("Configuration:")
        self._print(f"  Base URL: {cfg['baseUrl'] or 'N/A'}")
        self._print(f"  Timeout: {cfg['timeout'] or 'N/A'}ms")
        self._print(f"  Retries: {cfg['retries']}")
        self._print(f"  Stop on failure: {str(cfg['stopOnFailure']).lower()}")
        self._print()

    def _on_scenario_start(self, event: Dict[str, Any]) -> None:
        self._print(RULE)
        self._print(f"Test: {event['name']}")
        self._print(RULE)

    def _on_step_start(self, event: Dict[str, Any]) -> None:
        self._print(f"\n[{event['index']}/{event['count']}] {event['name']}")

    def _on_step_retry(self, event: Dict[str, Any]) -> None:
        self._print(f"  ⚠️  Retry attempt {event['attempt']}/{event['retries']}...")

    def _on_step_done(self, event: Dict[str, Any]) -> None:
        result: StepResult = event["result"]
        resp = result.response
        if result.success:
            self._print("  ✓ PASSED")
            if resp:
                self._print(f"    Status: {resp.status}")
                if isinstance(resp.body, (dict, list)):
                    self._print(f"    Response: {json.dumps(resp.body, indent=2, ensure_ascii=False)[:200]}...")
        else:
            self._print(f"  ✗ FAILED: {result.error}")
            if resp:
                self._print(f"    Status: {resp.status}")
                if resp.raw_body:
                    self._print(f"    Response: {resp.raw_body[:200]}...")

    def _on_scenario_done(self, event: Dict[str, Any]) -> None:
        verdict = "PASSED" if event["passed"] else "FAILED"
        self._print(f"\n{'✓' if event['passed'] else '✗'} Test \"{event['name']}\": {verdict}")

    def _on_run_done(self, event: Dict[str, Any]) -> None:
        self._print("\n" + RULE)
        self._print("Test Summary")
        self._print(RULE)
        self._print(f"Total steps: {event['total']}")
        self._print(f"Passed: {event['passed']}")
        self._print(f"Failed: {event['failed']}")
        self._print(f"Success rate: {event['success_rate']:.2f}%")
        self._print(RULE)


# ==================== CLI ====================

def _build_cli() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="api-test-runner",
        description="Run declarative HTTP API tests from a JSON test case document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("test_case_file", nargs="?", default="test_case.json", help="Test case JSON file")
    p.add_argument("--output", "-o", help="JSON report path (default: test_results.json)")
    p.add_argument("--html", help="Also write an HTML report to this path")
    p.add_argument("--markdown", help="Also write a Markdown summary to this path")
    p.add_argument("--base-url", help="Override config.baseUrl")
    p.add_argument("--retries", type=int, help="Override config.retries")
    p.add_argument("--timeout", type=float, help="Override config.timeout (ms)")
    p.add_argument("--stop-on-failure", action="store_true", default=None, help="Override config.stopOnFailure")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_cli().parse_args(argv)
    settings = RunnerSettings()
    setup_logging(level=settings.log_level, verbose=args.verbose)

    print(RULE)
    print("API Test Runner")
    print(RULE)
    print()

    try:
        test_case = load_test_case(args.test_case_file)
    except TestCaseLoadError as e:
        print(f"✗ Failed to load test case: {e}", file=sys.stderr)
        return 1
    print(f"✓ Loaded test case from: {args.test_case_file}")

    cfg = test_case.config
    if args.base_url is not None:
        cfg.base_url = args.base_url
    if args.retries is not None:
        cfg.retries = args.retries
    if args.timeout is not None:
        cfg.timeout = args.timeout
    if args.stop_on_failure:
        cfg.stop_on_failure = True

    engine = APITestEngine(settings=settings, progress_cb=ConsoleProgress())
    try:
        report = engine.run(test_case)
    except KeyboardInterrupt:
        print("\n\n👋 Cancelled by user")
        return 130
    except Exception as exc:
        logger.exception(f"Fatal error: {exc}")
        return 1

    reporter = Reporter()
    try:
        out = reporter.write_json(report, args.output or settings.output_file)
        print(f"\n✓ Test results saved to: {out}")
        if args.html:
            reporter.write_html(report, args.html)
        if args.markdown:
            reporter.write_markdown(report, args.markdown)
    except ReportWriteError as e:
        print(f"\n✗ {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
