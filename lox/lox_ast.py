"""
Abstract syntax tree for Lox.

Two closed families of node classes, Expr and Stmt. Consumers (resolver,
interpreter, AST printer) dispatch on them with `match`.

Nodes compare and hash by identity: the resolver's binding-distance map is
keyed by the node object itself, so two identical-looking expressions at
different places in the source stay distinct.
"""
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from lox.lox_scanner import Token


# =================================================================
# Expressions
# =================================================================

@dataclass(eq=False)
class Expr:
    pass


@dataclass(eq=False)
class Literal(Expr):
    value: Any


@dataclass(eq=False)
class Grouping(Expr):
    expression: Expr


@dataclass(eq=False)
class Unary(Expr):
    operator: Token
    right: Expr


@dataclass(eq=False)
class Binary(Expr):
    left: Expr
    operator: Token
    right: Expr


@dataclass(eq=False)
class Logical(Expr):
    """`and` / `or`; the right operand is evaluated only when needed."""
    left: Expr
    operator: Token
    right: Expr


@dataclass(eq=False)
class Variable(Expr):
    name: Token


@dataclass(eq=False)
class Assign(Expr):
    name: Token
    value: Expr


@dataclass(eq=False)
class Call(Expr):
    callee: Expr
    paren: Token  # closing parenthesis, used to locate runtime errors
    arguments: List[Expr]


@dataclass(eq=False)
class ListLiteral(Expr):
    bracket: Token
    elements: List[Expr]


@dataclass(eq=False)
class MapLiteral(Expr):
    brace: Token
    entries: List[Tuple[Expr, Expr]]


@dataclass(eq=False)
class Subscript(Expr):
    obj: Expr
    bracket: Token
    index: Expr


@dataclass(eq=False)
class SubscriptSet(Expr):
    obj: Expr
    bracket: Token
    index: Expr
    value: Expr


@dataclass(eq=False)
class Get(Expr):
    obj: Expr
    name: Token


@dataclass(eq=False)
class Set(Expr):
    obj: Expr
    name: Token
    value: Expr


@dataclass(eq=False)
class This(Expr):
    keyword: Token


@dataclass(eq=False)
class Super(Expr):
    keyword: Token
    method: Token


# =================================================================
# Statements
# =================================================================

@dataclass(eq=False)
class Stmt:
    pass


@dataclass(eq=False)
class Expression(Stmt):
    expression: Expr


@dataclass(eq=False)
class Print(Stmt):
    expression: Expr


@dataclass(eq=False)
class Var(Stmt):
    name: Token
    initializer: Optional[Expr]


@dataclass(eq=False)
class Block(Stmt):
    statements: List[Stmt]


@dataclass(eq=False)
class If(Stmt):
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt]


@dataclass(eq=False)
class While(Stmt):
    condition: Expr
    body: Stmt


@dataclass(eq=False)
class DoWhile(Stmt):
    keyword: Token
    body: Stmt
    condition: Expr


@dataclass(eq=False)
class Break(Stmt):
    keyword: Token


@dataclass(eq=False)
class Continue(Stmt):
    keyword: Token


@dataclass(eq=False)
class Return(Stmt):
    keyword: Token
    value: Optional[Expr]


@dataclass(eq=False)
class Function(Stmt):
    name: Token
    params: List[Token]
    body: List[Stmt]


@dataclass(eq=False)
class Class(Stmt):
    name: Token
    superclass: Optional[Variable]
    methods: List[Function]


# -----------------------------------------------------------------
# Single-purpose keyword statements. They are parsed and resolved
# but have no runtime effect.
# -----------------------------------------------------------------

@dataclass(eq=False)
class KeywordStatement(Stmt):
    keyword: Token

    def operands(self) -> List[Expr]:
        return []


@dataclass(eq=False)
class SetStatement(KeywordStatement):
    name: Token
    value: Expr

    def operands(self) -> List[Expr]:
        return [self.value]


@dataclass(eq=False)
class BuildStatement(KeywordStatement):
    target: Expr
    arguments: List[Expr]

    def operands(self) -> List[Expr]:
        return [self.target, *self.arguments]


@dataclass(eq=False)
class WalkStatement(KeywordStatement):
    direction: Expr

    def operands(self) -> List[Expr]:
        return [self.direction]


@dataclass(eq=False)
class CheckStatement(KeywordStatement):
    condition: Expr

    def operands(self) -> List[Expr]:
        return [self.condition]


@dataclass(eq=False)
class OtherwiseStatement(KeywordStatement):
    pass


@dataclass(eq=False)
class ThruStatement(KeywordStatement):
    expression: Expr

    def operands(self) -> List[Expr]:
        return [self.expression]
