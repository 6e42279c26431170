"""Portable metadata filter expressions.

Filters are small trees of :class:`Expression` nodes over :class:`Key` and
:class:`Value` operands. They can be built in code::

    from ai_model_toolkit.vectorstores import filters as f

    expr = f.and_(f.eq("genre", "drama"), f.gte("year", 2020))

or parsed from text::

    expr = f.parse("genre == 'drama' && year >= 2020")

Supported operators: ``== != > >= < <= in nin && || !`` (``AND``, ``OR``,
``NOT``, ``IN`` and ``NIN`` are accepted as keywords, case-insensitively).
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from ..exceptions import FilterExpressionError


class ExpressionType(str, enum.Enum):
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    EQ = "EQ"
    NE = "NE"
    GT = "GT"
    GTE = "GTE"
    LT = "LT"
    LTE = "LTE"
    IN = "IN"
    NIN = "NIN"


_LOGICAL = frozenset({ExpressionType.AND, ExpressionType.OR})


@dataclass(frozen=True)
class Key:
    key: str


@dataclass(frozen=True)
class Value:
    value: Any


@dataclass(frozen=True)
class Expression:
    """``left <type> right``; ``NOT`` has no right operand."""

    type: ExpressionType
    left: "Operand"
    right: Optional["Operand"] = None


@dataclass(frozen=True)
class Group:
    """A parenthesised sub-expression."""

    content: Expression


Operand = Union[Key, Value, Expression, Group]
Filter = Union[Expression, Group]


# ---------------------------------------------------------------------------
# Builder helpers
# ---------------------------------------------------------------------------


def _compare(type_: ExpressionType, key: str, value: Any) -> Expression:
    return Expression(type_, Key(key), Value(value))


def eq(key: str, value: Any) -> Expression:
    return _compare(ExpressionType.EQ, key, value)


def ne(key: str, value: Any) -> Expression:
    return _compare(ExpressionType.NE, key, value)


def gt(key: str, value: Any) -> Expression:
    return _compare(ExpressionType.GT, key, value)


def gte(key: str, value: Any) -> Expression:
    return _compare(ExpressionType.GTE, key, value)


def lt(key: str, value: Any) -> Expression:
    return _compare(ExpressionType.LT, key, value)


def lte(key: str, value: Any) -> Expression:
    return _compare(ExpressionType.LTE, key, value)


def in_(key: str, values: Sequence[Any]) -> Expression:
    return _compare(ExpressionType.IN, key, list(values))


def nin(key: str, values: Sequence[Any]) -> Expression:
    return _compare(ExpressionType.NIN, key, list(values))


def and_(left: Filter, right: Filter) -> Expression:
    return Expression(ExpressionType.AND, left, right)


def or_(left: Filter, right: Filter) -> Expression:
    return Expression(ExpressionType.OR, left, right)


def not_(content: Filter) -> Expression:
    return Expression(ExpressionType.NOT, content)


def group(content: Expression) -> Group:
    return Group(content)


# ---------------------------------------------------------------------------
# Text parser
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      | (?P<number>-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)
      | (?P<op>==|!=|>=|<=|&&|\|\||[><!(),\[\]])
      | (?P<word>[A-Za-z_][\w.\-]*)
    )
    """,
    re.VERBOSE,
)

_COMPARISONS = {
    "==": ExpressionType.EQ,
    "!=": ExpressionType.NE,
    ">": ExpressionType.GT,
    ">=": ExpressionType.GTE,
    "<": ExpressionType.LT,
    "<=": ExpressionType.LTE,
}

_KEYWORDS = {"AND": "&&", "OR": "||", "NOT": "!", "IN": "IN", "NIN": "NIN"}

Token = Tuple[str, Any]


def _unescape(quoted: str) -> str:
    return re.sub(r"\\(.)", r"\1", quoted[1:-1])


def _tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise FilterExpressionError(
                f"Unexpected character {text[pos:].lstrip()[:1]!r} at position {pos} "
                f"in filter {text!r}."
            )
        pos = match.end()
        if match.group("string") is not None:
            tokens.append(("value", _unescape(match.group("string"))))
        elif match.group("number") is not None:
            raw = match.group("number")
            number = float(raw) if any(c in raw for c in ".eE") else int(raw)
            tokens.append(("value", number))
        elif match.group("op") is not None:
            tokens.append(("op", match.group("op")))
        else:
            word = match.group("word")
            upper = word.upper()
            if upper in _KEYWORDS:
                tokens.append(("op", _KEYWORDS[upper]))
            elif upper in ("TRUE", "FALSE"):
                tokens.append(("value", upper == "TRUE"))
            else:
                tokens.append(("key", word))
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise FilterExpressionError(f"Unexpected end of filter {self.text!r}.")
        self.pos += 1
        return token

    def _accept(self, op: str) -> bool:
        if self._peek() == ("op", op):
            self.pos += 1
            return True
        return False

    def _expect(self, op: str) -> None:
        if not self._accept(op):
            raise FilterExpressionError(
                f"Expected {op!r} but found {self._describe()} in filter {self.text!r}."
            )

    def _describe(self) -> str:
        token = self._peek()
        return "end of input" if token is None else repr(token[1])

    def parse(self) -> Filter:
        if not self.tokens:
            raise FilterExpressionError("Filter expression is empty.")
        expression = self._or()
        if self._peek() is not None:
            raise FilterExpressionError(
                f"Unexpected {self._describe()} in filter {self.text!r}."
            )
        return expression

    def _or(self) -> Filter:
        left = self._and()
        while self._accept("||"):
            left = or_(left, self._and())
        return left

    def _and(self) -> Filter:
        left = self._unary()
        while self._accept("&&"):
            left = and_(left, self._unary())
        return left

    def _unary(self) -> Filter:
        if self._accept("!"):
            return not_(self._unary())
        if self._accept("("):
            inner = self._or()
            self._expect(")")
            return Group(inner) if isinstance(inner, Expression) else inner
        return self._comparison()

    def _comparison(self) -> Expression:
        kind, key = self._next()
        if kind != "key":
            raise FilterExpressionError(
                f"Expected a metadata key but found {key!r} in filter {self.text!r}."
            )
        kind, op = self._next()
        if kind == "op" and op == "!" and self._peek() == ("op", "IN"):
            # ``NOT IN`` spelled out
            self.pos += 1
            op = "NIN"
        if kind != "op" or (op not in _COMPARISONS and op not in ("IN", "NIN")):
            raise FilterExpressionError(
                f"Expected a comparison operator after {key!r} but found {op!r} "
                f"in filter {self.text!r}."
            )
        if op in ("IN", "NIN"):
            values = self._list()
            return in_(key, values) if op == "IN" else nin(key, values)
        return _compare(_COMPARISONS[op], key, self._value())

    def _value(self) -> Any:
        kind, value = self._next()
        if kind != "value":
            raise FilterExpressionError(
                f"Expected a literal value but found {value!r} in filter {self.text!r}."
            )
        return value

    def _list(self) -> List[Any]:
        self._expect("[")
        values: List[Any] = []
        if self._accept("]"):
            return values
        values.append(self._value())
        while self._accept(","):
            values.append(self._value())
        self._expect("]")
        return values


def parse(text: str) -> Filter:
    """Parse a textual filter such as ``genre == 'drama' && year >= 2020``.

    Raises:
        FilterExpressionError: The text is not a valid filter.
    """
    return _Parser(text).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

_MISSING = object()


def _compare_values(type_: ExpressionType, actual: Any, expected: Any) -> bool:
    if type_ is ExpressionType.EQ:
        return actual is not _MISSING and actual == expected
    if type_ is ExpressionType.NE:
        return actual is _MISSING or actual != expected
    if type_ is ExpressionType.IN:
        return actual is not _MISSING and actual in expected
    if type_ is ExpressionType.NIN:
        return actual is _MISSING or actual not in expected
    if actual is _MISSING or actual is None:
        return False
    try:
        if type_ is ExpressionType.GT:
            return actual > expected
        if type_ is ExpressionType.GTE:
            return actual >= expected
        if type_ is ExpressionType.LT:
            return actual < expected
        return actual <= expected
    except TypeError:
        return False


def evaluate(expression: Filter, metadata: Mapping[str, Any]) -> bool:
    """Whether *metadata* satisfies *expression*.

    A key absent from *metadata* fails every comparison except ``!=`` and
    ``nin``; ordering comparisons between incompatible types are false.
    """
    if isinstance(expression, Group):
        return evaluate(expression.content, metadata)
    type_ = expression.type
    if type_ is ExpressionType.NOT:
        return not evaluate(expression.left, metadata)  # type: ignore[arg-type]
    if type_ in _LOGICAL:
        left = evaluate(expression.left, metadata)  # type: ignore[arg-type]
        if type_ is ExpressionType.AND and not left:
            return False
        if type_ is ExpressionType.OR and left:
            return True
        return evaluate(expression.right, metadata)  # type: ignore[arg-type]

    if not isinstance(expression.left, Key) or not isinstance(expression.right, Value):
        raise FilterExpressionError(
            f"{type_.value} expects a key and a value, got {expression.left!r} "
            f"and {expression.right!r}."
        )
    actual = metadata.get(expression.left.key, _MISSING)
    return _compare_values(type_, actual, expression.right.value)


def to_filter(expression: Union[str, Filter, None]) -> Optional[Filter]:
    """Parse text filters; pass parsed filters and ``None`` through."""
    if expression is None or isinstance(expression, (Expression, Group)):
        return expression
    if isinstance(expression, str):
        return parse(expression) if expression.strip() else None
    raise FilterExpressionError(
        f"Unsupported filter expression of type {type(expression).__name__}."
    )
