import functools
import json
import logging

import pytest

from api_runner import cli
from api_runner.api_test_engine import APITestEngine


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def fake_engine(monkeypatch, server, sleeper):
    monkeypatch.setattr(cli, "APITestEngine", functools.partial(APITestEngine, transport=server.transport, sleep=sleeper))
    return server


@pytest.fixture
def case_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    def write(tests, config=None):
        path = tmp_path / "case.json"
        path.write_text(json.dumps({"config": {"baseUrl": "https://api.test", **(config or {})}, "tests": tests}), encoding="utf-8")
        return path

    return write


def _step(url, status=200):
    return {"name": f"GET {url}", "request": {"method": "GET", "url": url}, "expect": {"status": status}}


def test_successful_run_writes_reports(fake_engine, case_file, tmp_path, capsys):
    fake_engine.json("GET", "/health", {"ok": True})
    path = case_file([{"name": "Health", "steps": [_step("/health")]}])

    code = cli.main([str(path), "-o", str(tmp_path / "out.json"), "--html", str(tmp_path / "r.html"), "--markdown", str(tmp_path / "r.md")])

    assert code == 0
    report = json.loads((tmp_path / "out.json").read_text(encoding="utf-8"))
    assert report["total"] == 1
    assert report["passed"] == 1
    assert report["testCaseFile"] == str(path)
    assert (tmp_path / "r.html").exists()
    assert (tmp_path / "r.md").exists()

    out = capsys.readouterr().out
    assert "[1/1] GET /health" in out
    assert "✓ PASSED" in out
    assert 'Test "Health": PASSED' in out
    assert "Success rate: 100.00%" in out


def test_failures_do_not_change_exit_code(fake_engine, case_file, tmp_path, capsys):
    fake_engine.json("GET", "/broken", {}, status=500)
    path = case_file([{"name": "Broken", "steps": [_step("/broken")]}])

    assert cli.main([str(path)]) == 0

    report = json.loads((tmp_path / "test_results.json").read_text(encoding="utf-8"))
    assert report["failed"] == 1
    assert report["successRate"] == 0
    out = capsys.readouterr().out
    assert "✗ FAILED: Validation failed:" in out
    assert 'Test "Broken": FAILED' in out


def test_missing_test_case_exits_1(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert cli.main(["does-not-exist.json"]) == 1
    assert "Failed to load test case" in capsys.readouterr().err
    assert not (tmp_path / "test_results.json").exists()


def test_command_line_overrides(fake_engine, case_file, tmp_path, sleeper):
    fake_engine.json("GET", "/flaky", {}, status=503)
    path = case_file([{"name": "Flaky", "steps": [_step("/flaky"), _step("/flaky")]}], config={"baseUrl": "https://wrong.test"})

    code = cli.main([str(path), "--base-url", "https://api.test", "--retries", "1", "--timeout", "2500", "--stop-on-failure"])

    assert code == 0
    report = json.loads((tmp_path / "test_results.json").read_text(encoding="utf-8"))
    assert report["config"] == {"baseUrl": "https://api.test", "timeout": 2500, "retries": 1, "stopOnFailure": True}
    assert len(report["tests"][0]["steps"]) == 1
    assert sleeper.calls == [1.0]
    assert {r.url.host for r in fake_engine.requests} == {"api.test"}


def test_report_write_failure_exits_1(fake_engine, case_file, tmp_path, capsys):
    fake_engine.json("GET", "/ok", {})
    path = case_file([{"name": "Ok", "steps": [_step("/ok")]}])
    (tmp_path / "blocker").write_text("x")

    assert cli.main([str(path), "-o", str(tmp_path / "blocker" / "out.json")]) == 1
    assert "Failed to save report" in capsys.readouterr().err


def test_interrupt_exits_130(monkeypatch, case_file):
    class Interrupted:
        def __init__(self, **kwargs):
            pass

        def run(self, test_case):
            raise KeyboardInterrupt

    monkeypatch.setattr(cli, "APITestEngine", Interrupted)
    path = case_file([])
    assert cli.main([str(path)]) == 130


def test_output_file_from_environment(fake_engine, case_file, tmp_path, monkeypatch):
    monkeypatch.setenv("API_RUNNER_OUTPUT_FILE", "from-env.json")
    fake_engine.json("GET", "/ok", {})
    path = case_file([{"name": "Ok", "steps": [_step("/ok")]}])

    assert cli.main([str(path)]) == 0
    assert (tmp_path / "from-env.json").exists()


@pytest.mark.parametrize("document", [{"config": "oops", "tests": []}, {"config": {"retries": "two"}, "tests": []}])
def test_malformed_document_exits_1(tmp_path, monkeypatch, capsys, document):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "case.json"
    path.write_text(json.dumps(document), encoding="utf-8")

    assert cli.main([str(path)]) == 1
    assert "Failed to load test case" in capsys.readouterr().err
