# api_runner/reporter.py
"""
Reporter

✅ Atomic JSON report (the authoritative output)
✅ Optional HTML report (Jinja2 template)
✅ Optional Markdown summary
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Union

from jinja2 import BaseLoader, Environment, select_autoescape

from api_runner.api_types import ReportWriteError, RunReport

logger = logging.getLogger(__name__)

_HTML_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>API Test Report · {{ report.testCaseFile or "run" }}</title>
<meta name="viewport" content="width=device-width,initial-scale=1"/>
<style>
  :root { --bg:#f7fafc; --fg:#111; --muted:#666; --card:#fff; --ok:#1a7f37; --bad:#d00000; }
  * { box-sizing: border-box; }
  body { font-family: Inter, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--fg); margin: 0; padding: 20px; }
  .wrap { max-width: 1100px; margin: 0 auto; }
  .card { background: var(--card); border-radius: 12px; box-shadow: 0 4px 12px rgba(0,0,0,0.08); padding: 20px; margin-bottom: 16px; }
  h1,h2 { margin: 0 0 12px 0; }
  .muted { color: var(--muted); font-size: 13px; }
  .badge { display: inline-block; padding: 4px 12px; border-radius: 6px; font-size: 12px; font-weight: 600; text-transform: uppercase; color: #fff; }
  .badge.success { background: var(--ok); }
  .badge.fail { background: var(--bad); }
  table { width: 100%; border-collapse: collapse; font-size: 14px; }
  th, td { padding: 10px; border-bottom: 1px solid #eee; text-align: left; vertical-align: top; }
  th { background: #eef4ff; font-weight: 600; }
  pre { background: #f0f3f7; padding: 12px; border-radius: 8px; overflow: auto; font-size: 12px; margin: 0; white-space: pre-wrap; }
</style>
</head>
<body>
<div class="wrap">
  <div class="card">
    <h1>API Test Report</h1>
    <div class="muted">{{ report.testCaseFile or "" }} · {{ report.timestamp }}</div>
    <p>
      Total steps: <b>{{ report.total }}</b> ·
      Passed: <b>{{ report.passed }}</b> ·
      Failed: <b>{{ report.failed }}</b> ·
      Success rate: <b>{{ "%.2f"|format(report.successRate) }}%</b>
    </p>
    <div class="muted">
      Base URL: {{ report.config.baseUrl or "N/A" }} ·
      Timeout: {{ report.config.timeout or "N/A" }}{% if report.config.timeout %}ms{% endif %} ·
      Retries: {{ report.config.retries }} ·
      Stop on failure: {{ report.config.stopOnFailure }}
    </div>
  </div>
  {% for test in report.tests %}
  <div class="card">
    <h2>
      <span class="badge {{ 'success' if test.passed else 'fail' }}">{{ 'passed' if test.passed else 'failed' }}</span>
      {{ test.name }}
    </h2>
    <table>
      <tr><th>#</th><th>Step</th><th>Result</th><th>Status</th><th>Error</th></tr>
      {% for step in test.steps %}
      <tr>
        <td>{{ loop.index }}</td>
        <td>{{ step.name }}</td>
        <td><span class="badge {{ 'success' if step.success else 'fail' }}">{{ 'pass' if step.success else 'fail' }}</span></td>
        <td>{{ step.response.status if step.response else "-" }}</td>
        <td>{% if step.error %}<pre>{{ step.error }}</pre>{% endif %}</td>
      </tr>
      {% endfor %}
    </table>
  </div>
  {% endfor %}
</div>
</body>
</html>
"""

_env = Environment(
    loader=BaseLoader(),
    autoescape=select_autoescape(enabled_extensions=("html", "xml"), default_for_string=True),
    enable_async=False,
)


def _as_dict(report: Union[RunReport, Dict[str, Any]]) -> Dict[str, Any]:
    return report.to_dict() if isinstance(report, RunReport) else report


def _json_safe(value: Any) -> Any:
    """Replace NaN and infinities with null, as JSON.stringify does."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


def render_html(report: Union[RunReport, Dict[str, Any]]) -> str:
    return _env.from_string(_HTML_TEMPLATE).render(report=_as_dict(report))


def render_markdown(report: Union[RunReport, Dict[str, Any]]) -> str:
    data = _as_dict(report)
    lines = [
        "# API Test Report",
        "",
        f"**Test case:** {data.get('testCaseFile') or 'N/A'}",
        f"**Timestamp:** {data.get('timestamp')}",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total steps | {data['total']} |",
        f"| Passed | {data['passed']} |",
        f"| Failed | {data['failed']} |",
        f"| Success rate | {data['successRate']:.2f}% |",
        "",
    ]

    for test in data.get("tests", []):
        icon = "✅" if test["passed"] else "❌"
        lines.append(f"## {icon} {test['name']}")
        lines.append("")
        for step in test["steps"]:
            mark = "✓" if step["success"] else "✗"
            status = step["response"]["status"] if step.get("response") else "-"
            lines.append(f"- {mark} {step['name']} (status {status})")
            if step.get("error"):
                first_line = step["error"].splitlines()[0]
                lines.append(f"  - {first_line}")
        lines.append("")

    return "\n".join(lines)


class Reporter:
    """Write run reports to disk. Write failures raise ``ReportWriteError``."""

    def write_json(self, report: Union[RunReport, Dict[str, Any]], path: Union[str, Path]) -> Path:
        out = Path(path).resolve()
        self._atomic_text_write(out, json.dumps(_json_safe(_as_dict(report)), indent=2, ensure_ascii=False, allow_nan=False))
        logger.info(f"✅ JSON report → {out}")
        return out

    def write_html(self, report: Union[RunReport, Dict[str, Any]], path: Union[str, Path]) -> Path:
        out = Path(path).resolve()
        self._atomic_text_write(out, render_html(report))
        logger.info(f"✅ HTML report → {out}")
        return out

    def write_markdown(self, report: Union[RunReport, Dict[str, Any]], path: Union[str, Path]) -> Path:
        out = Path(path).resolve()
        self._atomic_text_write(out, render_markdown(report))
        logger.info(f"✅ Markdown report → {out}")
        return out

    @staticmethod
    def _atomic_text_write(path: Path, text: str) -> None:
        """Atomic file write"""
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                logger.debug(f"Could not remove {tmp}", exc_info=True)
            raise ReportWriteError(f"Failed to save report to {path}: {e}") from e
