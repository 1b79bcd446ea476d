import json

import pytest

from api_runner.api_types import TestCase, TestCaseLoadError
from api_runner.loader import load_test_case


def _write(tmp_path, data, name="case.json"):
    path = tmp_path / name
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return path


def test_loads_document(tmp_path):
    path = _write(tmp_path, {
        "config": {"baseUrl": "https://api.test", "timeout": 3000, "retries": 1, "stopOnFailure": True},
        "variables": {"user": "ada"},
        "tests": [{
            "name": "Users",
            "steps": [{
                "name": "List",
                "request": {"method": "get", "url": "/users", "query": {"page": 1}},
                "expect": {"status": 200, "json": None},
                "extract": {"first": "$[0].id"},
                "delay": 100,
            }],
        }],
    })

    case = load_test_case(path)

    assert case.source == str(path)
    assert case.config.base_url == "https://api.test"
    assert case.config.timeout == 3000
    assert case.config.retries == 1
    assert case.config.stop_on_failure is True
    assert case.variables == {"user": "ada"}

    step = case.tests[0].steps[0]
    assert step.request.method == "GET"
    assert step.request.query == {"page": 1}
    assert step.request.has_body is False
    assert step.expect.has_json is True
    assert step.expect.json is None
    assert step.extract == {"first": "$[0].id"}
    assert step.delay == 100


def test_defaults_for_sparse_document(tmp_path):
    case = load_test_case(_write(tmp_path, {"tests": [{"steps": [{"request": {"url": "https://x.test"}}]}]}))
    assert case.config.base_url is None
    assert case.config.retries == 0
    assert case.tests[0].name == "Test 1"
    step = case.tests[0].steps[0]
    assert step.name == "Step 1"
    assert step.request.method == "GET"
    assert step.expect is None


def test_missing_file(tmp_path):
    with pytest.raises(TestCaseLoadError, match="not found"):
        load_test_case(tmp_path / "nope.json")


def test_invalid_json_reports_position(tmp_path):
    with pytest.raises(TestCaseLoadError, match=r"line 1, column"):
        load_test_case(_write(tmp_path, "{not json"))


@pytest.mark.parametrize(
    "data, message",
    [
        ([], "must be a JSON object"),
        ({"tests": {"a": 1}}, "'tests' must be a list"),
        ({"variables": [1]}, "'variables' must be an object"),
        ({"tests": [{"steps": [{"name": "x"}]}]}, "has no request object"),
        ({"tests": [{"steps": "nope"}]}, "'steps' must be a list"),
        ({"config": "oops"}, "'config' must be an object"),
        ({"config": {"retries": "two"}}, "Invalid test case document"),
        ({"config": {"timeout": "fast"}}, "'timeout' must be a number"),
        ({"tests": [{"steps": [{"request": {"url": "/", "headers": "x"}}]}]}, "'headers' must be an object"),
        ({"tests": [{"steps": [{"request": {"url": "/", "query": [1]}}]}]}, "'query' must be an object"),
        ({"tests": [{"steps": [{"request": {"url": "/"}, "extract": ["ab"]}]}]}, "'extract' must be an object"),
        ({"tests": [{"steps": [{"request": {"url": "/"}, "expect": "200"}]}]}, "'expect' must be an object"),
        ({"tests": [{"steps": [{"request": {"url": "/"}, "delay": "soon"}]}]}, "'delay' must be a number"),
        ({"tests": [{"steps": [{"request": {"url": "/"}, "expect": {"headers": ["x"]}}]}]}, "'headers' must be an object"),
    ],
)
def test_malformed_documents(tmp_path, data, message):
    with pytest.raises(TestCaseLoadError, match=message):
        load_test_case(_write(tmp_path, data))


def test_wrong_field_type_from_dict_raises_load_error():
    with pytest.raises(TestCaseLoadError):
        TestCase.from_dict({"config": {"retries": "two"}, "tests": []})
