"""
sqlodata.odata.filter - $filter expression translation
=======================================================

Translates OData ``$filter`` expressions into SQL ``WHERE`` fragments.

Parsing is an explicit chain:

1. a strict recursive-descent grammar (comparisons, ``and``/``or``/``not``,
   parentheses, ``contains``/``startswith``/``endswith``, ``null``)
2. a permissive single-comparison pattern (case-insensitive operator,
   tolerant of unescaped quotes inside a string literal)
3. an :class:`Unparsed` outcome carrying the reason

What to do with an :class:`Unparsed` result is the caller's decision; see
:class:`FilterPolicy`.

Field names are never interpolated unless they are plain identifiers
(``name`` or ``alias.name``). Literals are always rendered by this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
import re

COMPARATORS = {
    "eq": "=",
    "ne": "!=",
    "gt": ">",
    "ge": ">=",
    "lt": "<",
    "le": "<=",
}

STRING_FUNCTIONS = ("contains", "startswith", "endswith")

FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_PERMISSIVE = re.compile(r"^\s*(\w+)\s+(eq|ne|gt|ge|lt|le)\s+(.+)\s*$", re.IGNORECASE)


class FilterPolicy:
    """What to do with a ``$filter`` that cannot be translated."""

    REJECT = "reject"  # answer 400
    IGNORE = "ignore"  # serve the unfiltered query


@dataclass(frozen=True)
class WhereFragment:
    """A SQL condition, without the ``WHERE`` keyword."""
    sql: str

    def __str__(self) -> str:
        return self.sql


@dataclass(frozen=True)
class Unparsed:
    """An expression neither grammar accepted."""
    expression: str
    reason: str


FilterResult = Union[WhereFragment, Unparsed]


class FilterSyntaxError(ValueError):
    pass


# ---------------- literals ----------------

def quote_string(value: str) -> str:
    """Render a SQL string literal, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def _like_pattern(value: str, prefix: str, suffix: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return quote_string(prefix + escaped + suffix) + " ESCAPE '\\'"


# ---------------- tokenizer ----------------

# (kind, text); kind is one of STRING, NUMBER, NAME, LPAREN, RPAREN, COMMA
Token = Tuple[str, str]


def tokenize(expr: str) -> List[Token]:
    tokens: List[Token] = []
    i, n = 0, len(expr)
    while i < n:
        ch = expr[i]
        if ch.isspace():
            i += 1
        elif ch == "(":
            tokens.append(("LPAREN", ch))
            i += 1
        elif ch == ")":
            tokens.append(("RPAREN", ch))
            i += 1
        elif ch == ",":
            tokens.append(("COMMA", ch))
            i += 1
        elif ch == "'":
            # '' inside a literal is an escaped quote
            buf = []
            i += 1
            while True:
                if i >= n:
                    raise FilterSyntaxError("unterminated string literal")
                if expr[i] == "'":
                    if i + 1 < n and expr[i + 1] == "'":
                        buf.append("'")
                        i += 2
                        continue
                    i += 1
                    break
                buf.append(expr[i])
                i += 1
            tokens.append(("STRING", "".join(buf)))
        elif ch.isdigit() or (ch == "-" and i + 1 < n and expr[i + 1].isdigit()):
            m = re.match(r"-?\d+(\.\d+)?", expr[i:])
            tokens.append(("NUMBER", m.group(0)))
            i += len(m.group(0))
        elif ch.isalpha() or ch == "_":
            m = re.match(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*", expr[i:])
            tokens.append(("NAME", m.group(0)))
            i += len(m.group(0))
        else:
            raise FilterSyntaxError(f"unexpected character {ch!r} at position {i}")
    return tokens


# ---------------- strict grammar ----------------

class _Parser:
    """
    Recursive-descent parser emitting SQL directly.

    Precedence (loosest first): ``or``, ``and``, ``not``, primary. The
    emitted SQL keeps the same precedence, so only parentheses written by
    the caller are reproduced.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self, offset: int = 0) -> Optional[Token]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def next(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise FilterSyntaxError("unexpected end of expression")
        self.pos += 1
        return tok

    def expect(self, kind: str) -> Token:
        tok = self.next()
        if tok[0] != kind:
            raise FilterSyntaxError(f"expected {kind}, found {tok[1]!r}")
        return tok

    def at_keyword(self, word: str) -> bool:
        tok = self.peek()
        return tok is not None and tok[0] == "NAME" and tok[1] == word

    def parse(self) -> str:
        sql = self.parse_or()
        if self.peek() is not None:
            raise FilterSyntaxError(f"unexpected token {self.peek()[1]!r}")
        return sql

    def parse_or(self) -> str:
        parts = [self.parse_and()]
        while self.at_keyword("or"):
            self.next()
            parts.append(self.parse_and())
        return " OR ".join(parts)

    def parse_and(self) -> str:
        parts = [self.parse_not()]
        while self.at_keyword("and"):
            self.next()
            parts.append(self.parse_not())
        return " AND ".join(parts)

    def parse_not(self) -> str:
        if self.at_keyword("not"):
            self.next()
            return f"NOT {self.parse_not()}"
        return self.parse_primary()

    def parse_primary(self) -> str:
        tok = self.peek()
        if tok is None:
            raise FilterSyntaxError("unexpected end of expression")
        if tok[0] == "LPAREN":
            self.next()
            inner = self.parse_or()
            self.expect("RPAREN")
            return f"({inner})"
        nxt = self.peek(1)
        if tok[0] == "NAME" and tok[1] in STRING_FUNCTIONS and nxt and nxt[0] == "LPAREN":
            return self.parse_function()
        return self.parse_comparison()

    def parse_function(self) -> str:
        name = self.next()[1]
        self.expect("LPAREN")
        field = self.parse_field()
        self.expect("COMMA")
        value = self.expect("STRING")[1]
        self.expect("RPAREN")
        if name == "contains":
            return f"{field} LIKE {_like_pattern(value, '%', '%')}"
        if name == "startswith":
            return f"{field} LIKE {_like_pattern(value, '', '%')}"
        return f"{field} LIKE {_like_pattern(value, '%', '')}"

    def parse_field(self) -> str:
        tok = self.expect("NAME")
        if not FIELD_PATTERN.match(tok[1]) or tok[1] in ("true", "false", "null"):
            raise FilterSyntaxError(f"invalid field {tok[1]!r}")
        return tok[1]

    def parse_operand(self) -> Tuple[str, str]:
        """Return ``(kind, sql)``; kind is "null" for the null literal."""
        tok = self.next()
        kind, text = tok
        if kind == "STRING":
            return "value", quote_string(text)
        if kind == "NUMBER":
            return "value", text
        if kind == "NAME":
            if text == "true":
                return "value", "TRUE"
            if text == "false":
                return "value", "FALSE"
            if text == "null":
                return "null", "NULL"
            if text in COMPARATORS or text in ("and", "or", "not"):
                raise FilterSyntaxError(f"unexpected keyword {text!r}")
            if not FIELD_PATTERN.match(text):
                raise FilterSyntaxError(f"invalid field {text!r}")
            return "field", text
        raise FilterSyntaxError(f"unexpected token {text!r}")

    def parse_comparison(self) -> str:
        left_kind, left = self.parse_operand()
        op_tok = self.expect("NAME")
        if op_tok[1] not in COMPARATORS:
            raise FilterSyntaxError(f"unknown operator {op_tok[1]!r}")
        op = op_tok[1]
        right_kind, right = self.parse_operand()

        if "null" in (left_kind, right_kind):
            if left_kind == right_kind:
                raise FilterSyntaxError("cannot compare null with null")
            if op not in ("eq", "ne"):
                raise FilterSyntaxError(f"operator {op!r} is not defined for null")
            subject = right if left_kind == "null" else left
            return f"{subject} IS NULL" if op == "eq" else f"{subject} IS NOT NULL"

        return f"{left} {COMPARATORS[op]} {right}"


def parse_strict(expr: str) -> WhereFragment:
    """
    Parse with the full grammar.

    Raises
    ------
    FilterSyntaxError
        If the expression is not in the grammar
    """
    tokens = tokenize(expr)
    if not tokens:
        raise FilterSyntaxError("empty expression")
    return WhereFragment(_Parser(tokens).parse())


# ---------------- permissive fallback ----------------

def _permissive_value(raw: str) -> Optional[str]:
    raw = raw.strip()
    if len(raw) >= 2 and raw.startswith("'") and raw.endswith("'"):
        return quote_string(raw[1:-1])
    if _NUMBER.match(raw):
        return raw
    low = raw.lower()
    if low in ("true", "false"):
        return low.upper()
    if FIELD_PATTERN.match(raw) and low != "null":
        return raw
    return None


def parse_permissive(expr: str) -> Optional[WhereFragment]:
    """
    Single ``field op value`` comparison, operator matched case-insensitively.

    Returns None when the pattern does not apply.
    """
    m = _PERMISSIVE.match(expr)
    if not m:
        return None
    field, op, raw_value = m.group(1), m.group(2).lower(), m.group(3)
    if not FIELD_PATTERN.match(field):
        return None
    value = _permissive_value(raw_value)
    if value is None:
        return None
    return WhereFragment(f"{field} {COMPARATORS[op]} {value}")


def parse(expr: Optional[str]) -> Optional[FilterResult]:
    """
    Translate a ``$filter`` expression.

    Parameters
    ----------
    expr : str or None
        Raw ``$filter`` value

    Returns
    -------
    WhereFragment, Unparsed or None
        None for an absent or blank filter

    Examples
    --------
    >>> parse("name eq 'O''Brien'")
    WhereFragment(sql="name = 'O''Brien'")
    >>> parse("age gt 21 and active eq true")
    WhereFragment(sql='age > 21 AND active = TRUE')
    >>> parse("name === 'John'")
    Unparsed(expression="name === 'John'", reason="unexpected character '=' at position 5")
    """
    if expr is None or not expr.strip():
        return None
    try:
        return parse_strict(expr)
    except FilterSyntaxError as e:
        reason = str(e)

    fallback = parse_permissive(expr)
    if fallback is not None:
        return fallback
    return Unparsed(expression=expr, reason=reason)
