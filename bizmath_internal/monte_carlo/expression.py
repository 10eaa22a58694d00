"""
PURPOSE: Parse and evaluate small arithmetic formulas with positional placeholders.

Grammar (whitespace ignored):

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := ("-" | "+")* primary
    primary := NUMBER | "{" INDEX "}" | "(" expr ")"

A formula is parsed once into a tree and evaluated either against one value
vector or against numpy columns (one column per placeholder). Division by zero
follows IEEE-754 and yields inf or NaN. Malformed input raises FormulaError.
Parenthesis nesting and operator tree depth are capped so that parsing and
evaluation stay within the interpreter's recursion limit.
"""

import operator
import re
from functools import lru_cache
from typing import Callable, List, NamedTuple, Optional, Sequence, Union

import numpy as np

from .config import MAX_FORMULA_DEPTH, MAX_FORMULA_NESTING
from .errors import FormulaError, InvalidArgument

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<placeholder>\{\s*(?P<index>[^}]*?)\s*\})
  | (?P<op>[-+*/()])
    """,
    re.VERBOSE,
)

_BINARY_OPS = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


class Token(NamedTuple):
    kind: str
    text: str
    position: int


def tokenize(formula: str) -> List[Token]:
    tokens = []
    position = 0
    while position < len(formula):
        match = _TOKEN_PATTERN.match(formula, position)
        if match is None:
            raise FormulaError(f"Unexpected character {formula[position]!r}", formula, position)
        kind = match.lastgroup
        if kind == "placeholder":
            index = match.group("index")
            if not (index.isascii() and index.isdigit()):
                raise FormulaError(f"Invalid placeholder {match.group(0)!r}", formula, position)
            tokens.append(Token("placeholder", index, position))
        elif kind != "ws":
            tokens.append(Token(kind, match.group(0), position))
        position = match.end()
    return tokens


class Node:
    depth = 1

    def evaluate(self, values):
        raise NotImplementedError

    def placeholders(self):
        return set()


class Number(Node):
    def __init__(self, value: float):
        self.value = np.float64(value)

    def evaluate(self, values):
        return self.value

    def __repr__(self):
        return f"Number({float(self.value)!r})"


class Placeholder(Node):
    def __init__(self, index: int):
        self.index = index

    def evaluate(self, values):
        return values[self.index]

    def placeholders(self):
        return {self.index}

    def __repr__(self):
        return f"Placeholder({self.index})"


class Negate(Node):
    def __init__(self, operand: Node):
        self.operand = operand
        self.depth = operand.depth + 1

    def evaluate(self, values):
        return -self.operand.evaluate(values)

    def placeholders(self):
        return self.operand.placeholders()

    def __repr__(self):
        return f"Negate({self.operand!r})"


class BinaryOp(Node):
    def __init__(self, symbol: str, left: Node, right: Node):
        self.symbol = symbol
        self.func: Callable = _BINARY_OPS[symbol]
        self.left = left
        self.right = right
        self.depth = max(left.depth, right.depth) + 1

    def evaluate(self, values):
        return self.func(self.left.evaluate(values), self.right.evaluate(values))

    def placeholders(self):
        return self.left.placeholders() | self.right.placeholders()

    def __repr__(self):
        return f"BinaryOp({self.symbol!r}, {self.left!r}, {self.right!r})"


class _Parser:
    def __init__(self, formula: str):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.pos = 0
        self.nesting = 0

    def _peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _error(self, message: str, token: Optional[Token]) -> FormulaError:
        position = token.position if token is not None else len(self.formula)
        return FormulaError(message, self.formula, position)

    def _checked(self, node: Node, token: Token) -> Node:
        if node.depth > MAX_FORMULA_DEPTH:
            raise self._error(f"Formula is too long (more than {MAX_FORMULA_DEPTH} nested operations)", token)
        return node

    def parse(self) -> Node:
        if not self.tokens:
            raise FormulaError("Formula is empty", self.formula)
        node = self._expr()
        token = self._peek()
        if token is not None:
            raise self._error(f"Unexpected token {token.text!r}", token)
        return node

    def _expr(self) -> Node:
        node = self._term()
        while True:
            token = self._peek()
            if token is None or token.text not in ("+", "-"):
                return node
            self._advance()
            node = self._checked(BinaryOp(token.text, node, self._term()), token)

    def _term(self) -> Node:
        node = self._unary()
        while True:
            token = self._peek()
            if token is None or token.text not in ("*", "/"):
                return node
            self._advance()
            node = self._checked(BinaryOp(token.text, node, self._unary()), token)

    def _unary(self) -> Node:
        negations = 0
        token = self._peek()
        while token is not None and token.text in ("-", "+"):
            if token.text == "-":
                negations += 1
            self._advance()
            token = self._peek()
        node = self._primary()
        if negations % 2:
            return self._checked(Negate(node), token)
        return node

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise self._error("Unexpected end of formula", None)
        if token.kind == "number":
            self._advance()
            return Number(float(token.text))
        if token.kind == "placeholder":
            self._advance()
            return Placeholder(int(token.text))
        if token.text == "(":
            if self.nesting >= MAX_FORMULA_NESTING:
                raise self._error(f"Formula nested too deeply (more than {MAX_FORMULA_NESTING} levels)", token)
            self._advance()
            self.nesting += 1
            node = self._expr()
            self.nesting -= 1
            closing = self._peek()
            if closing is None or closing.text != ")":
                raise self._error("Expected ')'", closing)
            self._advance()
            return node
        raise self._error(f"Unexpected token {token.text!r}", token)


class Formula:
    """A parsed formula, reusable against any value vector of matching arity."""

    def __init__(self, text: str, root: Node):
        self.text = text
        self.root = root
        indexes = root.placeholders()
        self.arity = max(indexes) + 1 if indexes else 0

    def __repr__(self):
        return f"Formula({self.text!r})"

    def _check_supplied(self, supplied: int) -> None:
        if supplied < self.arity:
            raise FormulaError(
                f"Placeholder {{{self.arity - 1}}} has no value ({supplied} supplied)",
                self.text,
            )

    def evaluate(self, values: Sequence[float]) -> float:
        """Evaluate against one value vector; returns a float (possibly inf or NaN)."""
        try:
            vector = np.asarray(values, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidArgument(f"Formula values must be numbers: {exc}") from exc
        if vector.ndim != 1:
            raise InvalidArgument("Formula values must be a flat sequence of numbers")
        self._check_supplied(len(vector))
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            return float(self.root.evaluate(list(vector)))

    def evaluate_many(self, columns: Sequence[np.ndarray], size: Optional[int] = None) -> np.ndarray:
        """
        Evaluate over aligned columns, one per placeholder index.

        Args:
            columns: Sequence of equal-length arrays
            size: Output length, required only when there are no columns

        Returns:
            float64 array with one outcome per row
        """
        self._check_supplied(len(columns))
        if size is None:
            if not columns:
                raise InvalidArgument("size is required when no columns are supplied")
            size = len(columns[0])
        arrays = [np.asarray(column, dtype=np.float64) for column in columns]
        for array in arrays:
            if array.shape != (size,):
                raise InvalidArgument(f"All columns must have length {size}, got shape {array.shape}")
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            result = self.root.evaluate(arrays)
        return np.array(np.broadcast_to(result, (size,)), dtype=np.float64)


@lru_cache(maxsize=256)
def _parse_cached(text: str) -> Formula:
    return Formula(text, _Parser(text).parse())


def parse_formula(formula: Union[str, Formula]) -> Formula:
    """Parse formula text into a Formula; a Formula is returned unchanged."""
    if isinstance(formula, Formula):
        return formula
    if not isinstance(formula, str):
        raise FormulaError(f"Formula must be a string, got {type(formula).__name__}")
    return _parse_cached(formula)


def require_arity(formula: Union[str, Formula], available: int) -> Formula:
    """Parse and check that every placeholder binds to one of ``available`` values."""
    parsed = parse_formula(formula)
    if parsed.arity > available:
        raise FormulaError(
            f"Placeholder {{{parsed.arity - 1}}} is out of range for {available} input(s)",
            parsed.text,
        )
    return parsed


def evaluate(formula: Union[str, Formula], values: Sequence[float]) -> float:
    """Evaluate ``formula`` with ``{i}`` bound to ``values[i]``."""
    return parse_formula(formula).evaluate(values)
