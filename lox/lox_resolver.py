"""
Static resolution pass.

Walks the parsed program once before it runs, mirroring exactly how the
interpreter creates environments (one per block, one per call, one for
`super` and one for `this` around class methods). For every variable
reference it records how many frames up the binding lives. References that
match no local scope are left out of the map and looked up in the global
frame at run time.

The pass also enforces the static rules: no reading a local in its own
initializer, no duplicate local declarations, `return` only inside functions
(and without a value inside `init`), `this`/`super` only inside suitable
classes, `break`/`continue` only inside loops, and no class inheriting from
itself. Errors are reported and resolution carries on.
"""
import os
import sys
from enum import Enum, auto
from typing import Dict, List

from lox import lox_ast as ast
from lox.lox_errors import ErrorReporter
from lox.lox_scanner import Token


class FunctionType(Enum):
    NONE = auto()
    FUNCTION = auto()
    INITIALIZER = auto()
    METHOD = auto()


class ClassType(Enum):
    NONE = auto()
    CLASS = auto()
    SUBCLASS = auto()


class Resolver:
    def __init__(self, reporter: ErrorReporter = None):
        self.reporter = reporter if reporter is not None else ErrorReporter()
        # Innermost scope last. False = declared, True = defined.
        self.scopes: List[Dict[str, bool]] = []
        self.locals: Dict[ast.Expr, int] = {}
        self.current_function = FunctionType.NONE
        self.current_class = ClassType.NONE
        self.loop_depth = 0

    def _dbg(self, *parts):
        if os.environ.get("LOX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def resolve(self, statements: List[ast.Stmt]) -> Dict[ast.Expr, int]:
        """Resolve a program and return its binding-distance map."""
        self._resolve_statements(statements)
        return self.locals

    # --- Scopes ---

    def _begin_scope(self):
        self.scopes.append({})

    def _end_scope(self):
        self.scopes.pop()

    def _declare(self, name: Token):
        if not self.scopes:
            return
        scope = self.scopes[-1]
        if name.lexeme in scope:
            self.reporter.token_error(name, "Already a variable with this name in this scope.")
        scope[name.lexeme] = False

    def _define(self, name: Token):
        if not self.scopes:
            return
        self.scopes[-1][name.lexeme] = True

    def _resolve_local(self, expr: ast.Expr, name: Token):
        # A name that is declared but not yet defined is still being
        # initialized; the runtime frame does not hold it yet, so the
        # reference binds to the next enclosing declaration.
        for i in range(len(self.scopes) - 1, -1, -1):
            if self.scopes[i].get(name.lexeme) is True:
                distance = len(self.scopes) - 1 - i
                self.locals[expr] = distance
                self._dbg("resolve", name.lexeme, "line", name.line, "distance", distance)
                return
        # Not found: global.

    @staticmethod
    def _is_self_reference(initializer: ast.Expr, name: Token) -> bool:
        while isinstance(initializer, ast.Grouping):
            initializer = initializer.expression
        return isinstance(initializer, ast.Variable) and initializer.name.lexeme == name.lexeme

    # --- Statements ---

    def _resolve_statements(self, statements: List[ast.Stmt]):
        for statement in statements:
            self._resolve_stmt(statement)

    def _resolve_function(self, function: ast.Function, type: FunctionType):
        enclosing_function = self.current_function
        enclosing_loop_depth = self.loop_depth
        self.current_function = type
        self.loop_depth = 0

        self._begin_scope()
        for param in function.params:
            self._declare(param)
            self._define(param)
        self._resolve_statements(function.body)
        self._end_scope()

        self.current_function = enclosing_function
        self.loop_depth = enclosing_loop_depth

    def _resolve_class(self, stmt: ast.Class):
        enclosing_class = self.current_class
        self.current_class = ClassType.CLASS

        self._declare(stmt.name)
        self._define(stmt.name)

        if stmt.superclass is not None:
            if stmt.superclass.name.lexeme == stmt.name.lexeme:
                self.reporter.token_error(stmt.superclass.name, "A class can't inherit from itself.")
            self.current_class = ClassType.SUBCLASS
            self._resolve_expr(stmt.superclass)
            self._begin_scope()
            self.scopes[-1]["super"] = True

        self._begin_scope()
        self.scopes[-1]["this"] = True

        for method in stmt.methods:
            declaration = FunctionType.METHOD
            if method.name.lexeme == "init":
                declaration = FunctionType.INITIALIZER
            self._resolve_function(method, declaration)

        self._end_scope()
        if stmt.superclass is not None:
            self._end_scope()

        self.current_class = enclosing_class

    def _resolve_loop_body(self, body: ast.Stmt):
        self.loop_depth += 1
        try:
            self._resolve_stmt(body)
        finally:
            self.loop_depth -= 1

    def _resolve_stmt(self, stmt: ast.Stmt):
        match stmt:
            case ast.Block(statements):
                self._begin_scope()
                self._resolve_statements(statements)
                self._end_scope()
            case ast.Var(name, initializer):
                self._declare(name)
                if initializer is not None:
                    if self.scopes and self._is_self_reference(initializer, name):
                        self.reporter.token_error(name, "Can't read local variable in its own initializer.")
                    self._resolve_expr(initializer)
                self._define(name)
            case ast.Function(name):
                self._declare(name)
                self._define(name)
                self._resolve_function(stmt, FunctionType.FUNCTION)
            case ast.Class():
                self._resolve_class(stmt)
            case ast.Expression(expression) | ast.Print(expression):
                self._resolve_expr(expression)
            case ast.If(condition, then_branch, else_branch):
                self._resolve_expr(condition)
                self._resolve_stmt(then_branch)
                if else_branch is not None:
                    self._resolve_stmt(else_branch)
            case ast.While(condition, body):
                self._resolve_expr(condition)
                self._resolve_loop_body(body)
            case ast.DoWhile(_, body, condition):
                self._resolve_loop_body(body)
                self._resolve_expr(condition)
            case ast.Break(keyword) | ast.Continue(keyword):
                if self.loop_depth == 0:
                    self.reporter.token_error(
                        keyword, f"Can't use '{keyword.lexeme}' outside of a loop."
                    )
            case ast.Return(keyword, value):
                if self.current_function == FunctionType.NONE:
                    self.reporter.token_error(keyword, "Can't return from top-level code.")
                if value is not None:
                    if self.current_function == FunctionType.INITIALIZER:
                        self.reporter.token_error(keyword, "Can't return a value from an initializer.")
                    self._resolve_expr(value)
            case ast.KeywordStatement():
                for operand in stmt.operands():
                    self._resolve_expr(operand)
            case _:
                raise TypeError(f"Unknown statement node: {stmt!r}")

    # --- Expressions ---

    def _resolve_expr(self, expr: ast.Expr):
        match expr:
            case ast.Variable(name):
                self._resolve_local(expr, name)
            case ast.Assign(name, value):
                self._resolve_expr(value)
                self._resolve_local(expr, name)
            case ast.Literal():
                pass
            case ast.Grouping(inner):
                self._resolve_expr(inner)
            case ast.Unary(_, right):
                self._resolve_expr(right)
            case ast.Binary(left, _, right) | ast.Logical(left, _, right):
                self._resolve_expr(left)
                self._resolve_expr(right)
            case ast.Call(callee, _, arguments):
                self._resolve_expr(callee)
                for argument in arguments:
                    self._resolve_expr(argument)
            case ast.ListLiteral(_, elements):
                for element in elements:
                    self._resolve_expr(element)
            case ast.MapLiteral(_, entries):
                for key, value in entries:
                    self._resolve_expr(key)
                    self._resolve_expr(value)
            case ast.Subscript(obj, _, index):
                self._resolve_expr(obj)
                self._resolve_expr(index)
            case ast.SubscriptSet(obj, _, index, value):
                self._resolve_expr(obj)
                self._resolve_expr(index)
                self._resolve_expr(value)
            case ast.Get(obj, _):
                self._resolve_expr(obj)
            case ast.Set(obj, _, value):
                self._resolve_expr(obj)
                self._resolve_expr(value)
            case ast.This(keyword):
                if self.current_class == ClassType.NONE:
                    self.reporter.token_error(keyword, "Can't use 'this' outside of a class.")
                    return
                self._resolve_local(expr, keyword)
            case ast.Super(keyword, _):
                if self.current_class == ClassType.NONE:
                    self.reporter.token_error(keyword, "Can't use 'super' outside of a class.")
                elif self.current_class != ClassType.SUBCLASS:
                    self.reporter.token_error(keyword, "Can't use 'super' in a class with no superclass.")
                self._resolve_local(expr, keyword)
            case _:
                raise TypeError(f"Unknown expression node: {expr!r}")
