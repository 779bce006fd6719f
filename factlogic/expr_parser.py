"""
Recursive descent parser for fact condition expressions.

Expressions use a small C-family syntax:

    random(0.3)
    hasFact("poisoned") && random(0.5)
    time.isNight || roll("1d20") > 15 ? true : false

The parser emits a Python expression AST. Only these node shapes are ever
produced: constants, bare names, one-level attribute access on a bare name,
calls on a bare name, and boolean / comparison / arithmetic / conditional
operators. Everything else is a CompilationError.
"""

from __future__ import annotations

import ast
import keyword
import re
from dataclasses import dataclass

from .errors import CompilationError

TOKEN_PATTERN = re.compile(
    r"""
    (?P<number>\d+(?:\.\d+)?|\.\d+)
    |(?P<string>'[^']*'|"[^"]*")
    |(?P<name>[A-Za-z_]\w*)
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[!<>+\-*/%?:(),.\[\]])
    """,
    re.VERBOSE | re.ASCII,
)

_WHITESPACE = re.compile(r"\s+", re.ASCII)

LITERALS: dict[str, object] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}

_EQUALITY_OPS = {
    "==": ast.Eq,
    "===": ast.Eq,
    "!=": ast.NotEq,
    "!==": ast.NotEq,
}

_RELATIONAL_OPS = {
    "<": ast.Lt,
    "<=": ast.LtE,
    ">": ast.Gt,
    ">=": ast.GtE,
}

# Operators defined only on numbers. Operands get a unary plus so that
# strings and lists raise instead of repeating or formatting.
_NUMERIC_OPS = {
    "-": ast.Sub,
    "*": ast.Mult,
    "/": ast.Div,
    "%": ast.Mod,
}


@dataclass(frozen=True)
class Token:
    """A lexical token with its offset in the source."""

    kind: str
    value: str
    pos: int


def tokenize(source: str) -> list[Token]:
    """Split an expression into tokens."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        ws = _WHITESPACE.match(source, pos)
        if ws:
            pos = ws.end()
            continue
        m = TOKEN_PATTERN.match(source, pos)
        if m is None:
            ch = source[pos]
            if ch in "'\"":
                raise CompilationError(
                    f"Unterminated string in expression: {source}", expression=source
                )
            raise CompilationError(
                f'Unexpected "{ch}" at position {pos} in expression: {source}',
                expression=source,
            )
        kind = m.lastgroup or "op"
        tokens.append(Token(kind, m.group(), pos))
        pos = m.end()
    tokens.append(Token("end", "", len(source)))
    return tokens


@dataclass
class ParsedExpression:
    """Parser output: the AST and every context name it refers to."""

    tree: ast.Expression
    names: frozenset[str]


class ExpressionParser:
    """
    Precedence climbing, lowest first:

        ternary  := or ('?' ternary ':' ternary)?
        or       := and ('||' and)*
        and      := equality ('&&' equality)*
        equality := relational (('==' | '!=' | '===' | '!==') relational)*
        relational := additive (('<' | '<=' | '>' | '>=') additive)*
        additive := term (('+' | '-') term)*
        term     := unary (('*' | '/' | '%') unary)*
        unary    := ('!' | '-' | '+') unary | primary
        primary  := literal | name ('.' name)? | name '(' args ')' | '(' ternary ')'
    """

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0
        self.names: set[str] = set()

    def _error(self, message: str) -> CompilationError:
        return CompilationError(
            f"{message} in expression: {self.source}", expression=self.source
        )

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _next(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _at_op(self, *values: str) -> bool:
        token = self._peek()
        return token.kind == "op" and token.value in values

    def _expect_op(self, value: str) -> None:
        token = self._next()
        if token.kind != "op" or token.value != value:
            found = token.value or "end of expression"
            raise self._error(f'Expected "{value}" but found "{found}"')

    def parse(self) -> ParsedExpression:
        if self._peek().kind == "end":
            raise self._error("Empty expression")
        body = self._parse_ternary()
        token = self._peek()
        if token.kind != "end":
            raise self._error(f'Unexpected "{token.value}" at position {token.pos}')
        tree = ast.fix_missing_locations(ast.Expression(body=body))
        return ParsedExpression(tree=tree, names=frozenset(self.names))

    def _parse_ternary(self) -> ast.expr:
        test = self._parse_or()
        if not self._at_op("?"):
            return test
        self._next()
        body = self._parse_ternary()
        self._expect_op(":")
        orelse = self._parse_ternary()
        return ast.IfExp(test=test, body=body, orelse=orelse)

    def _parse_or(self) -> ast.expr:
        node = self._parse_and()
        while self._at_op("||"):
            self._next()
            node = ast.BoolOp(op=ast.Or(), values=[node, self._parse_and()])
        return node

    def _parse_and(self) -> ast.expr:
        node = self._parse_equality()
        while self._at_op("&&"):
            self._next()
            node = ast.BoolOp(op=ast.And(), values=[node, self._parse_equality()])
        return node

    def _parse_equality(self) -> ast.expr:
        node = self._parse_relational()
        while self._at_op(*_EQUALITY_OPS):
            op = _EQUALITY_OPS[self._next().value]()
            node = ast.Compare(left=node, ops=[op], comparators=[self._parse_relational()])
        return node

    def _parse_relational(self) -> ast.expr:
        node = self._parse_additive()
        while self._at_op(*_RELATIONAL_OPS):
            op = _RELATIONAL_OPS[self._next().value]()
            node = ast.Compare(left=node, ops=[op], comparators=[self._parse_additive()])
        return node

    def _parse_additive(self) -> ast.expr:
        node = self._parse_term()
        while self._at_op("+", "-"):
            symbol = self._next().value
            right = self._parse_term()
            if symbol == "+":
                node = ast.BinOp(left=node, op=ast.Add(), right=right)
            else:
                node = _numeric(node, _NUMERIC_OPS[symbol](), right)
        return node

    def _parse_term(self) -> ast.expr:
        node = self._parse_unary()
        while self._at_op("*", "/", "%"):
            op = _NUMERIC_OPS[self._next().value]()
            node = _numeric(node, op, self._parse_unary())
        return node

    def _parse_unary(self) -> ast.expr:
        if self._at_op("!"):
            self._next()
            return ast.UnaryOp(op=ast.Not(), operand=self._parse_unary())
        if self._at_op("-"):
            self._next()
            return ast.UnaryOp(op=ast.USub(), operand=self._parse_unary())
        if self._at_op("+"):
            self._next()
            return ast.UnaryOp(op=ast.UAdd(), operand=self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> ast.expr:
        token = self._next()

        if token.kind == "number":
            value = float(token.value) if "." in token.value else int(token.value)
            return ast.Constant(value=value)

        if token.kind == "string":
            return ast.Constant(value=token.value[1:-1])

        if token.kind == "name":
            if token.value in LITERALS:
                return ast.Constant(value=LITERALS[token.value])
            return self._parse_reference(token)

        if token.kind == "op" and token.value == "(":
            node = self._parse_ternary()
            self._expect_op(")")
            return node

        if token.kind == "end":
            raise self._error("Unexpected end")
        raise self._error(f'Unexpected "{token.value}" at position {token.pos}')

    def _parse_reference(self, token: Token) -> ast.expr:
        name = self._check_identifier(token.value)
        self.names.add(name)
        node: ast.expr = ast.Name(id=name, ctx=ast.Load())

        if self._at_op("("):
            self._next()
            node = ast.Call(func=node, args=self._parse_arguments(), keywords=[])
        elif self._at_op("."):
            self._next()
            field_token = self._next()
            if field_token.kind != "name":
                raise self._error(f'Expected a field name after "{name}."')
            attr = self._check_identifier(field_token.value)
            node = ast.Attribute(value=node, attr=attr, ctx=ast.Load())
            if self._at_op("."):
                raise self._error("Only one level of field access is allowed")
            if self._at_op("("):
                raise self._error("Only context functions can be called")

        if self._at_op("("):
            raise self._error("Only context functions can be called")
        if self._at_op("["):
            raise self._error("Indexing is not supported")
        return node

    def _parse_arguments(self) -> list[ast.expr]:
        args: list[ast.expr] = []
        if self._at_op(")"):
            self._next()
            return args
        while True:
            args.append(self._parse_ternary())
            if self._at_op(","):
                self._next()
                continue
            self._expect_op(")")
            return args

    def _check_identifier(self, name: str) -> str:
        if name.startswith("_"):
            raise self._error(f'Identifier "{name}" may not start with an underscore')
        if keyword.iskeyword(name):
            raise self._error(f'"{name}" is a reserved word')
        return name


def _numeric(left: ast.expr, op: ast.operator, right: ast.expr) -> ast.expr:
    return ast.BinOp(
        left=ast.UnaryOp(op=ast.UAdd(), operand=left),
        op=op,
        right=ast.UnaryOp(op=ast.UAdd(), operand=right),
    )


def parse_expression(source: str) -> ParsedExpression:
    """Parse a sanitized expression into a Python expression AST."""
    return ExpressionParser(source).parse()
