"""Choice conditions — a small, sandboxed boolean expression language.

Conditions are authored inside story content, so they are parsed by a fixed
recursive-descent grammar and never handed to ``eval``. Variable lookup is a
mapping access on the engine's variable store; there are no function calls,
no indexing, no arithmetic and no way to reach host objects.

Grammar:

    expression  := or_expr
    or_expr     := and_expr (("||" | "or") and_expr)*
    and_expr    := not_expr (("&&" | "and") not_expr)*
    not_expr    := ("!" | "not") not_expr | comparison
    comparison  := operand (COMPARE operand)?
    operand     := literal | variable | "(" expression ")"
    COMPARE     := "==" | "!=" | "===" | "!==" | "<" | "<=" | ">" | ">="
    literal     := [-]number | 'string' | "string" | true | false | null
    variable    := name ("." name)*

Semantics:

  * ``===``/``!==`` are aliases for ``==``/``!=``.
  * Booleans never equal numbers (``true == 1`` is false).
  * ``<``, ``<=``, ``>``, ``>=`` need two numbers or two strings.
  * ``a.b`` looks up key ``b`` in the mapping stored under ``a``.
  * The value of the whole expression is taken for its truthiness, so a bare
    ``has_key`` is a valid condition. Truthiness follows JSON story data:
    only ``false``, ``null``, ``0``, NaN and ``""`` are false. Empty lists and
    empty objects are true.

``evaluate()`` is fail-closed: a syntax error, an unknown variable, a type
mismatch or an unrepresentable literal all yield ``False``.
"""

from __future__ import annotations

import functools
import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class ConditionError(ValueError):
    """Raised when a condition cannot be parsed or evaluated."""


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<number>-?\d+(?:\.\d+)?)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!()])
    |(?P<name>[A-Za-z_$][A-Za-z0-9_$]*(?:\.[A-Za-z_$][A-Za-z0-9_$]*)*)
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t"}

_KEYWORD_OPS = {"and": "&&", "or": "||", "not": "!"}
_KEYWORD_LITERALS: dict[str, Any] = {"true": True, "false": False, "null": None}

_COMPARE_OPS = {"==", "!=", "===", "!==", "<", "<=", ">", ">="}


@dataclass(frozen=True)
class _Token:
    kind: str  # "number" | "string" | "op" | "name"
    text: str
    pos: int


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(source):
        if source[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(source, pos)
        if m is None:
            raise ConditionError(f"Unexpected character {source[pos]!r} at position {pos}")
        kind = m.lastgroup
        text = m.group()
        if kind == "name" and text in _KEYWORD_OPS:
            kind, text = "op", _KEYWORD_OPS[text]
        tokens.append(_Token(kind, text, pos))
        pos = m.end()
    return tokens


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

class _Node:
    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class _Literal(_Node):
    value: Any

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        return self.value


@dataclass(frozen=True)
class _Variable(_Node):
    path: tuple[str, ...]

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        value: Any = variables
        for i, key in enumerate(self.path):
            if not isinstance(value, Mapping) or key not in value:
                name = ".".join(self.path[: i + 1])
                raise ConditionError(f"Unknown variable {name!r}")
            value = value[key]
        return value


@dataclass(frozen=True)
class _Not(_Node):
    operand: _Node

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        return not _truthy(self.operand.evaluate(variables))


@dataclass(frozen=True)
class _BoolOp(_Node):
    op: str  # "&&" | "||"
    operands: tuple[_Node, ...]

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        if self.op == "&&":
            return all(_truthy(o.evaluate(variables)) for o in self.operands)
        return any(_truthy(o.evaluate(variables)) for o in self.operands)


@dataclass(frozen=True)
class _Compare(_Node):
    op: str
    left: _Node
    right: _Node

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        a = self.left.evaluate(variables)
        b = self.right.evaluate(variables)
        if self.op in ("==", "==="):
            return _equal(a, b)
        if self.op in ("!=", "!=="):
            return not _equal(a, b)

        if not (_is_number(a) and _is_number(b)) and not (
            isinstance(a, str) and isinstance(b, str)
        ):
            raise ConditionError(
                f"Cannot compare {type(a).__name__} {self.op} {type(b).__name__}"
            )
        if self.op == "<":
            return a < b
        if self.op == "<=":
            return a <= b
        if self.op == ">":
            return a > b
        return a >= b


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class _Parser:
    def __init__(self, source: str) -> None:
        self._source = source
        self._tokens = _tokenize(source)
        self._pos = 0

    def parse(self) -> _Node:
        if not self._tokens:
            raise ConditionError("Empty condition")
        node = self._or_expr()
        if self._pos < len(self._tokens):
            tok = self._tokens[self._pos]
            raise ConditionError(f"Unexpected {tok.text!r} at position {tok.pos}")
        return node

    def _peek_op(self) -> str | None:
        if self._pos < len(self._tokens):
            tok = self._tokens[self._pos]
            if tok.kind == "op":
                return tok.text
        return None

    def _next(self) -> _Token:
        if self._pos >= len(self._tokens):
            raise ConditionError(f"Unexpected end of condition {self._source!r}")
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _or_expr(self) -> _Node:
        operands = [self._and_expr()]
        while self._peek_op() == "||":
            self._pos += 1
            operands.append(self._and_expr())
        return operands[0] if len(operands) == 1 else _BoolOp("||", tuple(operands))

    def _and_expr(self) -> _Node:
        operands = [self._not_expr()]
        while self._peek_op() == "&&":
            self._pos += 1
            operands.append(self._not_expr())
        return operands[0] if len(operands) == 1 else _BoolOp("&&", tuple(operands))

    def _not_expr(self) -> _Node:
        if self._peek_op() == "!":
            self._pos += 1
            return _Not(self._not_expr())
        return self._comparison()

    def _comparison(self) -> _Node:
        left = self._operand()
        op = self._peek_op()
        if op in _COMPARE_OPS:
            self._pos += 1
            return _Compare(op, left, self._operand())
        return left

    def _operand(self) -> _Node:
        tok = self._next()
        if tok.kind == "number":
            text = tok.text
            try:
                return _Literal(float(text) if "." in text else int(text))
            except ValueError as e:
                raise ConditionError(f"Number at position {tok.pos} is too large") from e
        if tok.kind == "string":
            return _Literal(_unquote(tok.text))
        if tok.kind == "name":
            if tok.text in _KEYWORD_LITERALS:
                return _Literal(_KEYWORD_LITERALS[tok.text])
            return _Variable(tuple(tok.text.split(".")))
        if tok.text == "(":
            node = self._or_expr()
            closing = self._next()
            if closing.text != ")":
                raise ConditionError(f"Expected ')' at position {closing.pos}")
            return node
        raise ConditionError(f"Unexpected {tok.text!r} at position {tok.pos}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

CACHE_SIZE = 1024


@functools.lru_cache(maxsize=CACHE_SIZE)
def compile_condition(expression: str) -> _Node:
    """Parse ``expression`` into an evaluable tree.

    The most recently used trees are cached by source string. Raises
    ConditionError on syntax errors.
    """
    try:
        return _Parser(expression).parse()
    except RecursionError as e:
        raise ConditionError("Condition is nested too deeply") from e


def validate_condition(expression: str) -> str | None:
    """Return the syntax error message for ``expression``, or None if it parses."""
    try:
        compile_condition(expression)
    except ConditionError as e:
        return str(e)
    return None


def evaluate(expression: str, variables: Mapping[str, Any]) -> bool:
    """Evaluate a condition against a variable snapshot.

    Never raises: any parse or evaluation failure yields False, so an
    unevaluable condition never unlocks a choice. ``variables`` is not mutated.
    """
    if not isinstance(expression, str):
        return False
    try:
        node = compile_condition(expression)
    except ConditionError as e:
        logger.warning("Invalid condition %r: %s", expression, e)
        return False
    try:
        return _truthy(node.evaluate(variables))
    except (ValueError, TypeError, RecursionError) as e:
        logger.debug("Condition %r evaluated to false: %s", expression, e)
        return False
