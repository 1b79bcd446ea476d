import pytest

from api_runner.api_types import ExpressionError
from api_runner.expressions import ExpressionEvaluator, evaluate, translate

SCOPE = {
    "status": 200,
    "headers": {"content-type": "application/json", "x-count": "3"},
    "json": {"id": 5, "name": "Widget", "tags": ["a", "b"], "owner": None},
    "body": '{"id": 5}',
    "vars": {"expected": 5},
}


def test_translate_keeps_string_literals():
    assert translate("a === 'x && y'") == "a == 'x && y'"
    assert translate("a !== b") == "a != b"
    assert translate("!ok") == "~ok"
    assert translate("a != b") == "a != b"


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("status === 200", True),
        ("status !== 200 || json.id === 5", True),
        ("status == 200 and json.id > 4", True),
        ("!json.owner", True),
        ("json.tags.length === 2", True),
        ("json.tags[1] == 'b'", True),
        ("json.tags.includes('a')", True),
        ("json.name.toLowerCase().startsWith('wid')", True),
        ("json.id == vars.expected", True),
        ("json['name'] + '!'", "Widget!"),
        ("len(json.tags) * 2", 4),
        ("json.owner === null", True),
        ("'id' in json.keys()", True),
        ("matches('^\\\\{', body)", True),
        ("int(headers['x-count']) + 1", 4),
        ("json.tags[5]", None),
        ("json.id if status == 200 else 0", 5),
    ],
)
def test_evaluate(expr, expected):
    assert evaluate(expr, SCOPE) == expected


def test_short_circuit_avoids_null_access():
    assert evaluate("json.owner && json.owner.name", SCOPE) is None


@pytest.mark.parametrize(
    "expr",
    [
        "__import__('os')",
        "open('/etc/passwd')",
        "json.__class__.__mro__",
        "(lambda: 1)()",
        "[x for x in json.tags]",
        "json.name.format(1)",
        "2 ** 10",
        "unknown_name",
        "",
        "status ===",
    ],
)
def test_rejected_expressions(expr):
    with pytest.raises(ExpressionError):
        evaluate(expr, SCOPE)


@pytest.mark.parametrize(
    "expr, scope, expected",
    [
        ("!json.n === 0", {"json": {"n": 5}}, False),
        ("!json.n === false", {"json": {"n": 5}}, True),
        ("!json.items.length === 0", {"json": {"items": []}}, False),
        ("!json.items.length === true", {"json": {"items": []}}, True),
        ("!!json.items.length", {"json": {"items": [1]}}, True),
        ("!(json.n === 5) || json.n > 1", {"json": {"n": 5}}, True),
        ("json.ok && !json.deleted", {"json": {"ok": True, "deleted": False}}, True),
    ],
)
def test_not_binds_like_prefix_operator(expr, scope, expected):
    assert evaluate(expr, scope) is expected


def test_booleans_never_equal_numbers():
    assert evaluate("json.flag === 1", {"json": {"flag": True}}) is False
    assert evaluate("json.flag !== 0", {"json": {"flag": False}}) is True
    assert evaluate("json.n == 1.0", {"json": {"n": 1}}) is True


def test_null_member_access_message():
    with pytest.raises(ExpressionError, match="Cannot read property 'name' of null"):
        evaluate("json.owner.name", SCOPE)


def test_extra_functions():
    evaluator = ExpressionEvaluator({"double": lambda x: x * 2})
    assert evaluator.evaluate("double(json.id)", SCOPE) == 10
    assert evaluator.evaluate("max(json.id, 9)", SCOPE) == 9
