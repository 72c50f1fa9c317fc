"""FUNNELBOARD — Formula Parser.

Tokenizes and parses a custom-metric formula into an expression tree.

Grammar (lowest to highest precedence):

    expr   := term (('+'|'-') term)*
    term   := factor (('*'|'/') factor)*
    factor := '-'? atom
    atom   := number | identifier | call | '(' expr ')'
    call   := identifier '(' expr (',' expr)* ')'

Formulas are user-authored and re-evaluated on every render, so nothing
here hands the text to Python's own eval/compile machinery. The parser
only ever builds the node types below.
"""

import math
import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple, Union

from funnelboard.config import settings
from funnelboard.formula.errors import (
    DisallowedConstructError,
    FormulaSyntaxError,
    UnknownIdentifierError,
)

ALLOWED_CHARS = re.compile(r"[A-Za-z0-9_.+\-*/(),\s]")

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+\.\d*|\.\d+|\d+)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>[+\-*/])
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<comma>,)
  | (?P<dot>\.)
    """,
    re.VERBOSE,
)

# name -> (min args, max args); None means unbounded
FUNCTION_ARITY = {
    "abs": (1, 1),
    "round": (1, 2),
    "max": (2, None),
    "min": (2, None),
}


# ─────────────────────────────────────────────
# TOKENS
# ─────────────────────────────────────────────

NUMBER = "number"
IDENT = "ident"
OP = "op"
LPAREN = "lparen"
RPAREN = "rparen"
COMMA = "comma"
EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(formula: str) -> List[Token]:
    """Split a formula into tokens, rejecting anything outside the language."""
    tokens: List[Token] = []
    pos = 0
    while pos < len(formula):
        match = _TOKEN_PATTERN.match(formula, pos)
        if match is None:
            raise DisallowedConstructError(
                "Formula contains characters that are not allowed",
                formula,
                pos,
                formula[pos],
            )
        kind = match.lastgroup
        text = match.group()
        if kind == "dot":
            raise DisallowedConstructError(
                "Property access is not allowed", formula, pos, text
            )
        if kind == IDENT and text.startswith("__"):
            raise DisallowedConstructError(
                "Reserved names are not allowed", formula, pos, text
            )
        if kind != "ws":
            tokens.append(Token(kind, text, pos))
        pos = match.end()
    tokens.append(Token(EOF, "", len(formula)))
    return tokens


# ─────────────────────────────────────────────
# EXPRESSION TREE
# ─────────────────────────────────────────────


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Identifier:
    name: str
    position: int


@dataclass(frozen=True)
class Negate:
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"
    position: int


@dataclass(frozen=True)
class Call:
    name: str
    args: Tuple["Node", ...]
    position: int


Node = Union[Number, Identifier, Negate, BinaryOp, Call]


@dataclass(frozen=True)
class CompiledFormula:
    """A formula that passed every static check and is ready to evaluate."""

    source: str
    tree: Node
    identifiers: FrozenSet[str]
    node_count: int


# ─────────────────────────────────────────────
# PARSER
# ─────────────────────────────────────────────


class Parser:
    """Recursive-descent parser with depth and node-count limits."""

    def __init__(self, formula: str, max_depth: int, max_nodes: int):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.index = 0
        self.max_depth = max_depth
        self.max_nodes = max_nodes
        self.depth = 0
        self.node_count = 0
        self.identifiers: set[str] = set()

    def parse(self) -> Node:
        tree = self._expr()
        token = self._peek()
        if token.kind != EOF:
            raise FormulaSyntaxError(
                "Unexpected token", self.formula, token.position, token.text
            )
        return tree

    # ── token helpers ──

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != EOF:
            self.index += 1
        return token

    def _expect(self, kind: str, message: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            self._unexpected(token, message)
        return self._advance()

    def _unexpected(self, token: Token, message: Optional[str] = None) -> None:
        if token.kind == EOF:
            raise FormulaSyntaxError(
                "Unexpected end of formula", self.formula, token.position
            )
        raise FormulaSyntaxError(
            message or "Unexpected token", self.formula, token.position, token.text
        )

    def _node(self, node: Node) -> Node:
        self.node_count += 1
        if self.node_count > self.max_nodes:
            raise DisallowedConstructError(
                f"Formula is too large (more than {self.max_nodes} elements)",
                self.formula,
            )
        return node

    # ── grammar ──

    def _expr(self) -> Node:
        self.depth += 1
        if self.depth > self.max_depth:
            raise DisallowedConstructError(
                f"Formula is nested too deeply (more than {self.max_depth} levels)",
                self.formula,
                self._peek().position,
            )
        node = self._term()
        while self._peek().kind == OP and self._peek().text in "+-":
            op = self._advance()
            right = self._term()
            node = self._node(BinaryOp(op.text, node, right, op.position))
        self.depth -= 1
        return node

    def _term(self) -> Node:
        node = self._factor()
        while self._peek().kind == OP and self._peek().text in "*/":
            op = self._advance()
            right = self._factor()
            node = self._node(BinaryOp(op.text, node, right, op.position))
        return node

    def _factor(self) -> Node:
        token = self._peek()
        if token.kind == OP and token.text == "-":
            self._advance()
            return self._node(Negate(self._atom()))
        return self._atom()

    def _atom(self) -> Node:
        token = self._peek()

        if token.kind == NUMBER:
            self._advance()
            value = float(token.text)
            if not math.isfinite(value):
                raise DisallowedConstructError(
                    "Numeric literal out of range",
                    self.formula,
                    token.position,
                    token.text,
                )
            return self._node(Number(value))

        if token.kind == IDENT:
            self._advance()
            if self._peek().kind == LPAREN:
                return self._call(token)
            self.identifiers.add(token.text)
            return self._node(Identifier(token.text, token.position))

        if token.kind == LPAREN:
            self._advance()
            node = self._expr()
            self._expect(RPAREN, "Expected ')'")
            return node

        self._unexpected(token)

    def _call(self, name: Token) -> Node:
        if name.text not in FUNCTION_ARITY:
            raise UnknownIdentifierError(
                "Unknown function", self.formula, name.position, name.text
            )
        self._expect(LPAREN, "Expected '('")
        args = [self._expr()]
        while self._peek().kind == COMMA:
            self._advance()
            args.append(self._expr())
        self._expect(RPAREN, "Expected ')' or ','")

        min_args, max_args = FUNCTION_ARITY[name.text]
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            if max_args is None:
                expected = f"at least {min_args}"
            elif min_args == max_args:
                expected = str(min_args)
            else:
                expected = f"{min_args} to {max_args}"
            raise FormulaSyntaxError(
                f"{name.text}() takes {expected} arguments, got {len(args)}",
                self.formula,
                name.position,
                name.text,
            )
        return self._node(Call(name.text, tuple(args), name.position))


def compile_formula(
    formula: str,
    max_length: Optional[int] = None,
    max_depth: Optional[int] = None,
    max_nodes: Optional[int] = None,
) -> CompiledFormula:
    """Run every static check on a formula and build its expression tree.

    This is the single entry point shared by save-time validation and
    evaluation, so the two can never disagree about what is well formed.

    Raises:
        FormulaSyntaxError: Empty or malformed formula
        UnknownIdentifierError: Call to a function outside the allow-list
        DisallowedConstructError: Forbidden characters or constructs, or
            the formula exceeds the length/depth/node limits
    """
    if not isinstance(formula, str):
        raise FormulaSyntaxError("Formula must be a string")

    max_length = max_length if max_length is not None else settings.formula_max_length
    if len(formula) > max_length:
        raise DisallowedConstructError(
            f"Formula exceeds {max_length} characters", formula
        )

    for pos, char in enumerate(formula):
        if not ALLOWED_CHARS.fullmatch(char):
            raise DisallowedConstructError(
                "Formula contains characters that are not allowed",
                formula,
                pos,
                char,
            )

    if not formula.strip():
        raise FormulaSyntaxError("Formula is empty", formula)

    parser = Parser(
        formula,
        max_depth=max_depth if max_depth is not None else settings.formula_max_depth,
        max_nodes=max_nodes if max_nodes is not None else settings.formula_max_nodes,
    )
    tree = parser.parse()
    return CompiledFormula(
        source=formula,
        tree=tree,
        identifiers=frozenset(parser.identifiers),
        node_count=parser.node_count,
    )
