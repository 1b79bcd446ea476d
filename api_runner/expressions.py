# api_runner/expressions.py
"""
Sandboxed evaluator for ``custom`` assertions.

Expressions are parsed with :mod:`ast` and interpreted by a whitelist
walker; nothing is ever handed to ``eval``. The grammar covers what
assertions need: literals, boolean logic, comparisons, arithmetic on
numbers, member/index access into the response and a fixed set of helper
functions. JavaScript-flavoured operators (``===``, ``!==``, ``&&``,
``||``, ``!``) and literals (``true``, ``false``, ``null``) are accepted
so existing test documents keep working. ``!`` binds like the JavaScript
prefix operator (``!x === y`` is ``(!x) === y``), and equality never treats
a boolean as equal to a number.

Example::

    status == 201 && json.id > 0 && headers['content-type'].includes('json')
"""

from __future__ import annotations

import ast
import operator
import re
from typing import Any, Callable, Dict, Optional

from api_runner.api_types import ExpressionError
from api_runner.templating import to_text

# `!` becomes `~` so it keeps JS unary precedence; `~` is evaluated as logical not
_JS_OPERATORS = {"===": "==", "!==": "!=", "&&": " and ", "||": " or ", "!": "~"}
_JS_TOKEN_RE = re.compile(r"""("(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')|(===|!==|&&|\|\||!(?!=))""")

_LITERALS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "True": True,
    "False": False,
    "None": None,
}

_COMPARE_OPS = {
    ast.Eq: lambda a, b: _strict_eq(a, b),
    ast.NotEq: lambda a, b: not _strict_eq(a, b),
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_ARITH_OPS = {
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_eq(a: Any, b: Any) -> bool:
    # booleans never equal numbers (true !== 1)
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _matches(pattern: str, text: Any) -> bool:
    return re.search(pattern, to_text(text)) is not None


DEFAULT_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": len,
    "str": to_text,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "min": min,
    "max": max,
    "any": any,
    "all": all,
    "round": round,
    "sorted": sorted,
    "matches": _matches,
}


def translate(expr: str) -> str:
    """Rewrite JS-style operators to their Python spelling, leaving string literals alone."""
    def repl(m: re.Match) -> str:
        if m.group(1):
            return m.group(1)
        return _JS_OPERATORS[m.group(2)]
    return _JS_TOKEN_RE.sub(repl, expr)


class ExpressionEvaluator:
    """Evaluate assertion expressions against a fixed scope."""

    def __init__(self, functions: Optional[Dict[str, Callable[..., Any]]] = None):
        self.functions = dict(DEFAULT_FUNCTIONS)
        if functions:
            self.functions.update(functions)

    def parse(self, expr: str) -> ast.Expression:
        source = translate(expr).strip()
        if not source:
            raise ExpressionError("empty expression")
        try:
            return ast.parse(f"(\n{source}\n)", mode="eval")
        except SyntaxError as e:
            raise ExpressionError(f"syntax error: {e.msg}") from e

    def evaluate(self, expr: str, scope: Dict[str, Any]) -> Any:
        tree = self.parse(expr)
        return self._eval(tree.body, scope)

    # ==================== Node walker ====================

    def _eval(self, node: ast.AST, scope: Dict[str, Any]) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            raise ExpressionError(f"unsupported syntax: {type(node).__name__}")
        return handler(node, scope)

    def _eval_Constant(self, node: ast.Constant, scope):
        if not isinstance(node.value, (str, int, float, bool, type(None))):
            raise ExpressionError(f"unsupported literal: {node.value!r}")
        return node.value

    def _eval_Name(self, node: ast.Name, scope):
        if node.id in scope:
            return scope[node.id]
        if node.id in _LITERALS:
            return _LITERALS[node.id]
        raise ExpressionError(f"{node.id} is not defined")

    def _eval_List(self, node: ast.List, scope):
        return [self._eval(e, scope) for e in node.elts]

    _eval_Tuple = _eval_List

    def _eval_Dict(self, node: ast.Dict, scope):
        if any(k is None for k in node.keys):
            raise ExpressionError("unsupported syntax: dict unpacking")
        return {self._eval(k, scope): self._eval(v, scope) for k, v in zip(node.keys, node.values)}

    def _eval_BoolOp(self, node: ast.BoolOp, scope):
        result = None
        for value_node in node.values:
            result = self._eval(value_node, scope)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def _eval_UnaryOp(self, node: ast.UnaryOp, scope):
        operand = self._eval(node.operand, scope)
        if isinstance(node.op, (ast.Not, ast.Invert)):
            return not operand
        if not _is_number(operand):
            raise ExpressionError(f"bad operand for unary {type(node.op).__name__}: {operand!r}")
        if isinstance(node.op, ast.USub):
            return -operand
        if isinstance(node.op, ast.UAdd):
            return +operand
        raise ExpressionError(f"unsupported operator: {type(node.op).__name__}")

    def _eval_BinOp(self, node: ast.BinOp, scope):
        left = self._eval(node.left, scope)
        right = self._eval(node.right, scope)

        if isinstance(node.op, ast.Add):
            if isinstance(left, str) or isinstance(right, str):
                return to_text(left) + to_text(right)
            if isinstance(left, list) and isinstance(right, list):
                return left + right
            if _is_number(left) and _is_number(right):
                return left + right
            raise ExpressionError(f"cannot add {type(left).__name__} and {type(right).__name__}")

        op = _ARITH_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"unsupported operator: {type(node.op).__name__}")
        if not (_is_number(left) and _is_number(right)):
            raise ExpressionError(f"arithmetic needs numbers, got {left!r} and {right!r}")
        return op(left, right)

    def _eval_Compare(self, node: ast.Compare, scope):
        left = self._eval(node.left, scope)
        for op_node, right_node in zip(node.ops, node.comparators):
            right = self._eval(right_node, scope)
            try:
                ok = _COMPARE_OPS[type(op_node)](left, right)
            except TypeError as e:
                raise ExpressionError(str(e)) from e
            if not ok:
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp, scope):
        if self._eval(node.test, scope):
            return self._eval(node.body, scope)
        return self._eval(node.orelse, scope)

    def _eval_Attribute(self, node: ast.Attribute, scope):
        return self._member(self._eval(node.value, scope), node.attr)

    def _eval_Subscript(self, node: ast.Subscript, scope):
        target = self._eval(node.value, scope)
        if isinstance(node.slice, ast.Slice):
            if not isinstance(target, (list, str)):
                raise ExpressionError(f"cannot slice {type(target).__name__}")
            bounds = [self._eval(b, scope) if b is not None else None
                      for b in (node.slice.lower, node.slice.upper, node.slice.step)]
            return target[slice(*bounds)]
        key = self._eval(node.slice, scope)
        if isinstance(key, str):
            return self._member(target, key)
        if target is None:
            raise ExpressionError(f"Cannot read index {key!r} of null")
        if isinstance(target, (list, str)) and _is_number(key):
            idx = int(key)
            return target[idx] if -len(target) <= idx < len(target) else None
        if isinstance(target, dict):
            return target.get(to_text(key))
        return None

    def _eval_Call(self, node: ast.Call, scope):
        if node.keywords:
            raise ExpressionError("keyword arguments are not supported")
        args = [self._eval(a, scope) for a in node.args]

        if isinstance(node.func, ast.Name):
            fn = self.functions.get(node.func.id)
            if fn is None:
                raise ExpressionError(f"{node.func.id} is not a known function")
            return fn(*args)

        if isinstance(node.func, ast.Attribute):
            receiver = self._eval(node.func.value, scope)
            return self._call_method(receiver, node.func.attr, args)

        raise ExpressionError("unsupported call")

    # ==================== Member helpers ====================

    @staticmethod
    def _member(target: Any, name: str) -> Any:
        if target is None:
            raise ExpressionError(f"Cannot read property '{name}' of null")
        if name == "length" and isinstance(target, (list, str, dict)) and not (
            isinstance(target, dict) and "length" in target
        ):
            return len(target)
        if isinstance(target, dict):
            return target.get(name)
        if isinstance(target, list) and name.isdigit():
            idx = int(name)
            return target[idx] if idx < len(target) else None
        return None

    @staticmethod
    def _call_method(receiver: Any, name: str, args: list) -> Any:
        if isinstance(receiver, str):
            if name == "includes":
                return to_text(args[0]) in receiver
            if name in ("startsWith", "startswith"):
                return receiver.startswith(to_text(args[0]))
            if name in ("endsWith", "endswith"):
                return receiver.endswith(to_text(args[0]))
            if name in ("lower", "toLowerCase"):
                return receiver.lower()
            if name in ("upper", "toUpperCase"):
                return receiver.upper()
        elif isinstance(receiver, list):
            if name == "includes":
                return args[0] in receiver
        elif isinstance(receiver, dict):
            if name == "keys":
                return list(receiver.keys())
            if name == "values":
                return list(receiver.values())
            if name == "get":
                return receiver.get(*args[:2])
        elif receiver is None:
            raise ExpressionError(f"Cannot read property '{name}' of null")
        raise ExpressionError(f"{type(receiver).__name__}.{name} is not a known method")


def evaluate(expr: str, scope: Dict[str, Any], functions: Optional[Dict[str, Callable[..., Any]]] = None) -> Any:
    return ExpressionEvaluator(functions).evaluate(expr, scope)
