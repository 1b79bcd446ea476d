# api_runner/http_executor.py
"""
Request executor: turns a step's request template into one HTTP exchange.

Each call opens its own httpx.AsyncClient, so nothing is pooled or shared
between steps. Tests inject an ``httpx.MockTransport`` through ``transport``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import httpx

from api_runner.api_types import (
    RequestExecutionError,
    RequestSpec,
    RequestTimeoutError,
    ResponseRecord,
)
from api_runner.templating import interpolate, to_json_text, to_text

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "API-Test-Runner/1.0"


def serialize_body(body: Any) -> str:
    """Objects, arrays and null go out as JSON text; anything else as its string form."""
    if body is None or isinstance(body, (dict, list)):
        return to_json_text(body)
    return to_text(body)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {name}")


def parse_body(text: str) -> Any:
    """Strict JSON (no NaN or Infinity tokens); anything else stays raw text."""
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return text


def collect_headers(headers: httpx.Headers) -> Dict[str, Any]:
    """Lower-cased header map; repeats are comma-joined, set-cookie stays a list."""
    out: Dict[str, Any] = {}
    for key, value in headers.multi_items():
        key = key.lower()
        if key == "set-cookie":
            out.setdefault(key, []).append(value)
        elif key in out:
            out[key] = f"{out[key]}, {value}"
        else:
            out[key] = value
    return out


class RequestExecutor:
    """Build and send a single request from a ``RequestSpec`` plus variables."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_ms: Optional[float] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        verify_ssl: bool = True,
        follow_redirects: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or ""
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent
        self.verify_ssl = verify_ssl
        self.follow_redirects = follow_redirects
        self.transport = transport

    # ==================== Request building ====================

    def build_url(self, url: Any, query: Dict[str, Any]) -> httpx.URL:
        raw = to_text(url)
        full = urljoin(self.base_url, raw) if self.base_url else raw
        try:
            target = httpx.URL(full)
        except httpx.InvalidURL as e:
            raise RequestExecutionError(f"Invalid URL: {raw} ({e})") from e

        if target.scheme not in ("http", "https") or not target.host:
            raise RequestExecutionError(f"Invalid URL: {full}")

        for key, value in (query or {}).items():
            target = target.copy_add_param(to_text(key), to_text(value))
        return target

    def build_headers(self, headers: Dict[str, Any], body: Any, has_body: bool) -> httpx.Headers:
        out = httpx.Headers({"User-Agent": self.user_agent})
        for key, value in (headers or {}).items():
            out[to_text(key)] = to_text(value)

        if has_body and (body is None or isinstance(body, (dict, list))) and "content-type" not in out:
            out["Content-Type"] = "application/json"
        return out

    # ==================== Execution ====================

    async def execute(self, request: RequestSpec, variables: Dict[str, Any]) -> ResponseRecord:
        url = self.build_url(interpolate(request.url, variables), interpolate(request.query, variables))
        body = interpolate(request.body, variables) if request.has_body else None
        headers = self.build_headers(interpolate(request.headers, variables), body, request.has_body)
        content = serialize_body(body).encode("utf-8") if request.has_body else None

        timeout_ms = request.timeout or self.timeout_ms
        timeout_s = float(timeout_ms) / 1000 if timeout_ms else None

        logger.debug(f"➡️ {request.method} {url}")
        t0 = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=httpx.Timeout(timeout_s),
                verify=self.verify_ssl,
                follow_redirects=self.follow_redirects,
            ) as client:
                resp = await asyncio.wait_for(
                    client.request(request.method, url, headers=headers, content=content),
                    timeout=timeout_s,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(timeout_ms) from e
        except httpx.HTTPError as e:
            raise RequestExecutionError(f"{type(e).__name__}: {e}") from e

        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        logger.debug(f"⬅️ {resp.status_code} {request.method} {url} ({elapsed_ms}ms)")

        raw = resp.text
        return ResponseRecord(
            status=resp.status_code,
            headers=collect_headers(resp.headers),
            body=parse_body(raw),
            raw_body=raw,
        )
