"""Query language: expression tree, lexer and recursive-descent parser.

Grammar::

    expr         := or_expr
    or_expr      := and_expr ("OR" and_expr)*
    and_expr     := unary (["AND"] unary)*
    unary        := "NOT" unary | atom
    atom         := field_filter | bare_term | "(" expr ")"
    field_filter := IDENT ":" VALUE
    bare_term    := VALUE

``NOT`` binds tighter than ``AND`` (explicit or implied by juxtaposition),
which binds tighter than ``OR``. Operators must be written in upper case.
The parser only builds the tree; terms are normalised at evaluation time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

from mdq.errors import QuerySyntaxError
from mdq.index.mapping import canonical_field

OPERATORS = ("AND", "OR", "NOT")
IDENT_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*\Z")
_VALUE_BREAK = set("()\"")


# ----------------------------------------------------------------------
# expression tree


@dataclass(frozen=True)
class Term:
    text: str

    def __str__(self) -> str:
        return _quote(self.text)


@dataclass(frozen=True)
class FieldFilter:
    field: str
    value: str

    def __str__(self) -> str:
        return f"{self.field}:{_quote(self.value)}"


@dataclass(frozen=True)
class And:
    left: "Query"
    right: "Query"

    def __str__(self) -> str:
        return f"({self.left} AND {self.right})"


@dataclass(frozen=True)
class Or:
    left: "Query"
    right: "Query"

    def __str__(self) -> str:
        return f"({self.left} OR {self.right})"


@dataclass(frozen=True)
class Not:
    expr: "Query"

    def __str__(self) -> str:
        return f"(NOT {self.expr})"


Query = Union[Term, FieldFilter, And, Or, Not]


def _quote(text: str) -> str:
    if not text or text in OPERATORS or any(ch.isspace() or ch in _VALUE_BREAK for ch in text):
        return '"' + text + '"'
    return text


def iter_leaves(query: Query, negated: bool = False) -> Iterator[Tuple[Union[Term, FieldFilter], bool]]:
    """Yield every leaf with a flag telling whether it sits under a NOT."""
    if isinstance(query, (Term, FieldFilter)):
        yield query, negated
    elif isinstance(query, Not):
        yield from iter_leaves(query.expr, not negated)
    else:
        yield from iter_leaves(query.left, negated)
        yield from iter_leaves(query.right, negated)


# ----------------------------------------------------------------------
# lexer


@dataclass(frozen=True)
class Token:
    kind: str  # LPAREN, RPAREN, AND, OR, NOT, WORD, FIELD
    position: int
    value: str = ""
    field: str = ""


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char.isspace():
            index += 1
        elif char == "(":
            tokens.append(Token("LPAREN", index))
            index += 1
        elif char == ")":
            tokens.append(Token("RPAREN", index))
            index += 1
        elif char == '"':
            value, index_after = _read_quoted(text, index)
            tokens.append(Token("WORD", index, value))
            index = index_after
        else:
            start = index
            while index < length and not text[index].isspace() and text[index] not in _VALUE_BREAK:
                index += 1
            raw = text[start:index]
            if raw in OPERATORS:
                tokens.append(Token(raw, start))
                continue
            name, colon, value = raw.partition(":")
            if not colon or not IDENT_PATTERN.match(name):
                tokens.append(Token("WORD", start, raw))
                continue
            if not value:
                if index < length and text[index] == '"':
                    value, index = _read_quoted(text, index)
                else:
                    raise QuerySyntaxError(f"Missing value for field '{name}'", start)
            tokens.append(Token("FIELD", start, value, canonical_field(name)))
    return tokens


def _read_quoted(text: str, start: int) -> Tuple[str, int]:
    end = text.find('"', start + 1)
    if end == -1:
        raise QuerySyntaxError("Unterminated quote", start)
    return text[start + 1 : end], end + 1


# ----------------------------------------------------------------------
# parser


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    def peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def parse(self) -> Query:
        expr = self.parse_or()
        token = self.peek()
        if token is not None:
            if token.kind == "RPAREN":
                raise QuerySyntaxError("Unbalanced parenthesis: unexpected ')'", token.position)
            raise QuerySyntaxError(f"Unexpected '{token.kind}'", token.position)
        return expr

    def parse_or(self) -> Query:
        left = self.parse_and()
        while self._at("OR"):
            operator = self.advance()
            left = Or(left, self._operand_for(operator, self.parse_and))
        return left

    def parse_and(self) -> Query:
        left = self.parse_unary()
        while True:
            if self._at("AND"):
                operator = self.advance()
                left = And(left, self._operand_for(operator, self.parse_unary))
            elif self._at("NOT", "LPAREN", "WORD", "FIELD"):
                left = And(left, self.parse_unary())
            else:
                return left

    def parse_unary(self) -> Query:
        if self._at("NOT"):
            operator = self.advance()
            return Not(self._operand_for(operator, self.parse_unary))
        return self.parse_atom()

    def parse_atom(self) -> Query:
        token = self.peek()
        if token is None:
            raise QuerySyntaxError("Unexpected end of query", len(self.text))
        if token.kind == "WORD":
            self.advance()
            return Term(token.value)
        if token.kind == "FIELD":
            self.advance()
            return FieldFilter(token.field, token.value)
        if token.kind == "LPAREN":
            self.advance()
            if self._at("RPAREN"):
                raise QuerySyntaxError("Empty parentheses", token.position)
            expr = self.parse_or()
            if not self._at("RPAREN"):
                raise QuerySyntaxError("Unbalanced parenthesis: missing ')'", token.position)
            self.advance()
            return expr
        if token.kind == "RPAREN":
            raise QuerySyntaxError("Unbalanced parenthesis: unexpected ')'", token.position)
        raise QuerySyntaxError(f"'{token.kind}' is missing its left operand", token.position)

    def _operand_for(self, operator: Token, parse_operand) -> Query:
        token = self.peek()
        if token is None or token.kind in ("RPAREN", "AND", "OR"):
            raise QuerySyntaxError(f"'{operator.kind}' is missing its right operand", operator.position)
        return parse_operand()

    def _at(self, *kinds: str) -> bool:
        token = self.peek()
        return token is not None and token.kind in kinds


def parse_query(text: str) -> Query:
    """Parse ``text`` into an immutable query tree.

    Raises:
        QuerySyntaxError: on empty input, unbalanced parentheses, dangling
            operators, missing field values or unterminated quotes.
    """
    if not text or not text.strip():
        raise QuerySyntaxError("Empty query")
    return _Parser(text).parse()
