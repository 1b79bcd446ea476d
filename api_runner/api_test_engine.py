# api_runner/api_test_engine.py
"""
API Test Engine

Runs a declarative test case document:

✅ Scenarios executed in order, steps executed in order within a scenario
✅ One variable scope per scenario, seeded from the document's globals
✅ Extraction before validation (captured values survive a failed check)
✅ Whole-step retries with linear backoff (1s, 2s, 3s, ...)
✅ Post-step delay for eventually consistent backends
✅ stopOnFailure truncates a scenario, never the run
✅ Cooperative stop() checked between steps
✅ Progress callbacks

Usage:
    engine = APITestEngine()
    report = engine.run(load_test_case("tests.json"))
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from api_runner.api_types import (
    PathSyntaxError,
    ResponseRecord,
    RunConfig,
    RunReport,
    Scenario,
    ScenarioResult,
    Step,
    StepResult,
    StepValidationError,
    TestCase,
)
from api_runner.config import RunnerSettings
from api_runner.http_executor import RequestExecutor
from api_runner.json_path import extract
from api_runner.matcher import ResponseMatcher
from api_runner.schema_validator import SchemaValidator

logger = logging.getLogger(__name__)

BACKOFF_UNIT_MS = 1000

Sleeper = Callable[[float], Awaitable[Any]]


def _has_body(body: Any) -> bool:
    # Empty text, null, 0 and false carry nothing worth extracting from
    if isinstance(body, (dict, list)):
        return True
    return bool(body)


def extract_variables(response: ResponseRecord, extract_map: Dict[str, str], variables: Dict[str, Any]) -> Dict[str, Any]:
    """Evaluate each path against the body and store non-null results in ``variables``."""
    extracted: Dict[str, Any] = {}
    if response is None or not _has_body(response.body):
        return extracted

    for name, path in extract_map.items():
        try:
            value = extract(response.body, str(path))
        except PathSyntaxError as e:
            logger.warning(f"⚠️ Error extracting {name} with JSONPath {path}: {e}")
            continue
        if value is not None:
            extracted[name] = value
            variables[name] = value

    return extracted


class APITestEngine:
    """
    Execute scenarios against a live HTTP endpoint.

    Args:
        settings: environment defaults (user agent, TLS verification, redirects)
        transport: optional httpx transport, used by tests to fake the server
        progress_cb: called with ``{"event": ..., **data}`` dicts
        sleep: coroutine used for backoff and delays (``asyncio.sleep``)
        schema_validator: backs ``schema_valid(schema, value)`` in custom assertions
    """

    def __init__(
        self,
        settings: Optional[RunnerSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        progress_cb: Optional[Callable[[Dict[str, Any]], None]] = None,
        sleep: Optional[Sleeper] = None,
        schema_validator: Optional[SchemaValidator] = None,
    ):
        self.settings = settings or RunnerSettings()
        self.transport = transport
        self._progress_cb = progress_cb
        self._sleep = sleep or asyncio.sleep
        self._stop = False

        validator = schema_validator or SchemaValidator()
        self.matcher = ResponseMatcher(schema_check=validator.is_valid)

    # ==================== Public API ====================

    def stop(self) -> None:
        """Request engine to stop after the step in flight"""
        self._stop = True

    @property
    def stopped(self) -> bool:
        return self._stop

    def run(self, test_case: TestCase) -> RunReport:
        """Synchronous wrapper for run_async"""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            raise RuntimeError("run() called inside running loop; use await run_async()")

        return asyncio.run(self.run_async(test_case))

    async def run_async(self, test_case: TestCase) -> RunReport:
        config = test_case.config
        report = RunReport(config=config, test_case_file=test_case.source)

        self._emit("run_start", tests=len(test_case.tests), config=config.to_dict())

        for scenario in test_case.tests:
            if self._stop:
                logger.warning("⏹️ Stop requested, skipping remaining tests")
                break
            result = await self.run_scenario(scenario, config, test_case.variables)
            report.add(result)

        self._emit(
            "run_done",
            total=report.total,
            passed=report.passed,
            failed=report.failed,
            success_rate=report.success_rate,
        )
        return report

    async def run_scenario(
        self,
        scenario: Scenario,
        config: RunConfig,
        global_variables: Optional[Dict[str, Any]] = None,
    ) -> ScenarioResult:
        """Run one scenario's steps in order with a fresh variable scope."""
        variables: Dict[str, Any] = dict(global_variables or {})
        result = ScenarioResult(name=scenario.name)

        logger.info(f"🧪 Test: {scenario.name} ({len(scenario.steps)} steps)")
        self._emit("scenario_start", name=scenario.name, steps=len(scenario.steps))

        for idx, step in enumerate(scenario.steps, start=1):
            if self._stop:
                break

            self._emit("step_start", scenario=scenario.name, name=step.name, index=idx, count=len(scenario.steps))
            step_result = await self.run_step(step, config, variables)
            result.steps.append(step_result)
            self._emit("step_done", scenario=scenario.name, index=idx, count=len(scenario.steps), result=step_result)

            if not step_result.success and config.stop_on_failure:
                logger.warning(f"⚠️ Stopping {scenario.name!r} on first failure (stopOnFailure: true)")
                break

        logger.info(f"{'✅' if result.passed else '❌'} Test {scenario.name!r}: {'PASSED' if result.passed else 'FAILED'}")
        self._emit("scenario_done", name=scenario.name, passed=result.passed, result=result)
        return result

    async def run_step(self, step: Step, config: RunConfig, variables: Dict[str, Any]) -> StepResult:
        """
        Run a step with retries.

        Each attempt is request -> extract -> validate. Any exception fails
        the attempt; attempt ``n`` (1-based) is followed by a pause of
        ``n * 1000`` ms before the next one.
        """
        retries = max(0, int(config.retries or 0))
        executor = self._executor(config)

        last_response: Optional[ResponseRecord] = None
        last_error: Optional[str] = None

        for attempt in range(retries + 1):
            if attempt > 0:
                backoff_ms = BACKOFF_UNIT_MS * attempt
                logger.info(f"🔁 Retry attempt {attempt}/{retries} for {step.name!r} in {backoff_ms}ms")
                self._emit("step_retry", name=step.name, attempt=attempt, retries=retries, error=last_error)
                await self._sleep(backoff_ms / 1000)

            try:
                last_response = await executor.execute(step.request, variables)

                if step.extract:
                    extracted = extract_variables(last_response, step.extract, variables)
                    if extracted:
                        logger.info(f"✓ Extracted variables: {', '.join(extracted)}")
                    else:
                        logger.warning("⚠️ No variables extracted (check JSONPath expressions)")

                if step.expect:
                    errors = self.matcher.validate(last_response, step.expect, variables)
                    if errors:
                        raise StepValidationError(errors)

            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.debug(f"Attempt {attempt + 1} of {step.name!r} failed: {last_error}")
                continue

            if step.delay:
                await self._sleep(float(step.delay) / 1000)

            return StepResult(name=step.name, success=True, response=last_response, attempts=attempt + 1)

        return StepResult(
            name=step.name,
            success=False,
            error=last_error,
            response=last_response,
            attempts=retries + 1,
        )

    # ==================== Internals ====================

    def _executor(self, config: RunConfig) -> RequestExecutor:
        return RequestExecutor(
            base_url=config.base_url,
            timeout_ms=config.timeout,
            user_agent=self.settings.user_agent,
            verify_ssl=self.settings.verify_ssl,
            follow_redirects=self.settings.follow_redirects,
            transport=self.transport,
        )

    def _emit(self, event: str, **data):
        """Emit progress event"""
        if self._progress_cb:
            try:
                self._progress_cb({"event": event, **data})
            except Exception:
                logger.debug("progress_cb failed", exc_info=True)

