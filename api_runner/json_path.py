# api_runner/json_path.py
"""
Restricted JSONPath-style extraction.

Supported syntax::

    $                    root
    $.user.name          dotted keys
    $.items[0].id        array index after a key
    $[1].id              array index on the root
    $..id                recursive descent, first depth-first match wins
    $.data..tags[0]      descent from a subtree, then continue

Missing keys, out-of-range indexes and nulls along the way yield ``None``.
"""

from __future__ import annotations

import re
from typing import Any, List, Tuple, Union

from api_runner.api_types import PathSyntaxError

_DESCENT = object()
_SEGMENT_RE = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")

Token = Union[object, Tuple[str, List[int]]]


def _parse_segment(segment: str) -> Tuple[str, List[int]]:
    m = _SEGMENT_RE.match(segment)
    if not m:
        raise PathSyntaxError(f"invalid path segment: {segment!r}")
    key, indexes = m.group(1), m.group(2)
    return key, [int(i) for i in _INDEX_RE.findall(indexes)]


def tokenize(path: str) -> List[Token]:
    body = path.strip()
    if body.startswith("$"):
        body = body[1:]

    tokens: List[Token] = []
    for i, chunk in enumerate(body.split("..")):
        if i > 0:
            tokens.append(_DESCENT)
        for part in chunk.split("."):
            if part:
                tokens.append(_parse_segment(part))
    return tokens


def _get_key(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current.get(key)
    if isinstance(current, list) and key.isdigit():
        idx = int(key)
        return current[idx] if idx < len(current) else None
    return None


def _apply_indexes(current: Any, indexes: List[int]) -> Any:
    for idx in indexes:
        if not isinstance(current, list) or idx >= len(current):
            return None
        current = current[idx]
    return current


def _find_first(node: Any, key: str) -> Tuple[bool, Any]:
    """Depth-first search for ``key``; the node's own key wins over its children."""
    if isinstance(node, list):
        for item in node:
            found, value = _find_first(item, key)
            if found:
                return True, value
    elif isinstance(node, dict):
        if key in node:
            return True, node[key]
        for child in node.values():
            found, value = _find_first(child, key)
            if found:
                return True, value
    return False, None


def extract(data: Any, path: str) -> Any:
    """Evaluate ``path`` against ``data``. Returns ``None`` when nothing matches."""
    if not path or path.strip() == "$":
        return data

    tokens = tokenize(path)
    current = data
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token is _DESCENT:
            if i + 1 >= len(tokens):
                break
            key, indexes = tokens[i + 1]
            if not key:
                raise PathSyntaxError(f"recursive descent needs a key name: {path!r}")
            found, current = _find_first(current, key)
            if not found:
                return None
            current = _apply_indexes(current, indexes)
            i += 2
        else:
            key, indexes = token
            if key:
                current = _get_key(current, key)
            if current is not None:
                current = _apply_indexes(current, indexes)
            i += 1

        if current is None:
            return None

    return current
