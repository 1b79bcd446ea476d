import pytest

from api_runner.api_types import PathSyntaxError
from api_runner.json_path import extract

BODY = {
    "data": {
        "user": {"id": 42, "name": "Ada", "roles": ["admin", "dev"]},
        "items": [{"id": 1, "sku": "A"}, {"id": 2, "sku": "B"}],
    },
    "meta": {"count": 2},
}


@pytest.mark.parametrize("path", ["$", "", "  $ "])
def test_root_path_returns_document(path):
    assert extract(BODY, path) is BODY


def test_dotted_keys():
    assert extract(BODY, "$.data.user.name") == "Ada"
    assert extract(BODY, "data.user.id") == 42


def test_key_with_index():
    assert extract(BODY, "$.data.items[1].sku") == "B"
    assert extract(BODY, "$.data.user.roles[0]") == "admin"


def test_numeric_segment_indexes_array():
    assert extract(BODY, "$.data.items.0.id") == 1


def test_root_array_index():
    assert extract([{"id": 9}], "$[0].id") == 9


def test_recursive_descent_first_depth_first_match():
    assert extract({"a": {"id": 1}, "b": {"id": 2}}, "$..id") == 1


def test_recursive_descent_prefers_own_key_and_walks_arrays():
    assert extract({"list": [{"x": {"id": 5}}, {"id": 6}], "id": 0}, "$..id") == 0
    assert extract({"list": [{"x": {"id": 5}}, {"id": 6}]}, "$..id") == 5


def test_recursive_descent_from_subtree_then_continue():
    assert extract(BODY, "$.data..items[0].sku") == "A"
    assert extract(BODY, "$..user.roles[1]") == "dev"


def test_recursive_descent_no_match():
    assert extract(BODY, "$..nothing") is None


def test_missing_and_null_short_circuit():
    assert extract(BODY, "$.data.missing.deeper") is None
    assert extract({"a": None}, "$.a.b") is None
    assert extract(BODY, "$.data.items[5].id") is None
    assert extract("plain text", "$.a") is None


def test_malformed_segment_raises():
    with pytest.raises(PathSyntaxError):
        extract(BODY, "$.data.items[x]")
