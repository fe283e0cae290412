"""
Tree-walking evaluator for Lox.

Statements are executed by `execute`, which hands back either None (normal
completion) or a ControlSignal. Loops consume break/continue, function calls
consume return, and everything else passes the signal up unchanged.
Expressions are evaluated by `evaluate`. Runtime failures raise
LoxRuntimeError and abort the program.
"""
import math
import os
import sys
from typing import Any, Dict, List, Optional

from lox import lox_ast as ast
from lox.lox_datatypes import (
    Environment, LoxCallable, LoxFunction, LoxClass, LoxInstance, LoxList, LoxMap,
    ControlSignal, ReturnSignal, BreakSignal, ContinueSignal,
    is_truthy, is_number, is_equal,
)
from lox.lox_errors import LoxRuntimeError
from lox.lox_printer import Printer
from lox.lox_scanner import Token, TokenType

MAP_KEY_ERROR = "Map keys must be nil, booleans, numbers, strings, or objects."


def _divide(left: float, right: float) -> float:
    # IEEE-754: x/0 is a signed infinity, 0/0 is NaN.
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _modulo(left: float, right: float) -> float:
    if right == 0 or math.isinf(left):
        return math.nan
    return math.fmod(left, right)


class Interpreter:
    """Executes resolved Lox programs against a persistent global frame."""

    def __init__(self, stdout=None, stdin=None):
        self.globals = Environment()
        self.environment = self.globals
        self.locals: Dict[ast.Expr, int] = {}
        self.side_effects: List[Dict] = []
        self.call_stack: List[Dict] = []
        self.stdout = stdout
        self.stdin = stdin
        self.printer = Printer()

    def _dbg(self, *parts):
        if os.environ.get("LOX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # --- I/O ---

    def write(self, text: str, end: str = "\n"):
        """Record program output and, when a stream is attached, write it now."""
        self.side_effects.append({'topics': ['stdout'], 'message': text})
        if self.stdout is not None:
            self.stdout.write(text + end)
            self.stdout.flush()

    def read_line(self) -> Optional[str]:
        stream = self.stdin if self.stdin is not None else sys.stdin
        line = stream.readline()
        if line == "":
            return None
        return line.rstrip("\r\n")

    # --- Call frames (for runtime error traces) ---

    def _push_frame(self, name, func, args, call_site: Token):
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'line': call_site.line,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    # --- Entry points ---

    def resolve(self, locals_map: Dict[ast.Expr, int]):
        self.locals.update(locals_map)

    def interpret(self, statements: List[ast.Stmt]) -> Any:
        """Run a program and return the value of its last statement if that
        statement is a bare expression."""
        value = None
        for statement in statements:
            value = None
            if isinstance(statement, ast.Expression):
                value = self.evaluate(statement.expression)
                continue
            signal = self.execute(statement)
            if signal is not None:
                raise self._escaped_signal(signal)
        return value

    def _escaped_signal(self, signal: ControlSignal) -> LoxRuntimeError:
        if isinstance(signal, ReturnSignal):
            return LoxRuntimeError(signal.keyword, "Can't return from top-level code.")
        return LoxRuntimeError(
            signal.keyword, f"Can't use '{signal.keyword.lexeme}' outside of a loop."
        )

    # --- Statements ---

    def execute(self, stmt: ast.Stmt) -> Optional[ControlSignal]:
        match stmt:
            case ast.Expression(expression):
                self.evaluate(expression)
            case ast.Print(expression):
                self.write(self.printer.pformat(self.evaluate(expression)))
            case ast.Var(name, initializer):
                value = None
                if initializer is not None:
                    value = self.evaluate(initializer)
                self.environment.define(name.lexeme, value)
            case ast.Block(statements):
                return self.execute_block(statements, Environment(self.environment))
            case ast.If(condition, then_branch, else_branch):
                if is_truthy(self.evaluate(condition)):
                    return self.execute(then_branch)
                if else_branch is not None:
                    return self.execute(else_branch)
            case ast.While(condition, body):
                while is_truthy(self.evaluate(condition)):
                    signal = self.execute(body)
                    if isinstance(signal, BreakSignal):
                        break
                    if isinstance(signal, ReturnSignal):
                        return signal
            case ast.DoWhile(_, body, condition):
                while True:
                    signal = self.execute(body)
                    if isinstance(signal, BreakSignal):
                        break
                    if isinstance(signal, ReturnSignal):
                        return signal
                    if not is_truthy(self.evaluate(condition)):
                        break
            case ast.Break(keyword):
                return BreakSignal(keyword)
            case ast.Continue(keyword):
                return ContinueSignal(keyword)
            case ast.Return(keyword, value):
                result = None
                if value is not None:
                    result = self.evaluate(value)
                return ReturnSignal(keyword, result)
            case ast.Function(name):
                self.environment.define(name.lexeme, LoxFunction(stmt, self.environment))
            case ast.Class():
                self._execute_class(stmt)
            case ast.KeywordStatement(keyword):
                self._dbg("no-op statement", keyword.lexeme, "line", keyword.line)
            case _:
                raise TypeError(f"Unknown statement node: {stmt!r}")
        return None

    def execute_block(self, statements: List[ast.Stmt], environment: Environment) -> Optional[ControlSignal]:
        previous = self.environment
        try:
            self.environment = environment
            for statement in statements:
                signal = self.execute(statement)
                if signal is not None:
                    return signal
            return None
        finally:
            self.environment = previous

    def _execute_class(self, stmt: ast.Class):
        superclass = None
        if stmt.superclass is not None:
            superclass = self.evaluate(stmt.superclass)
            if not isinstance(superclass, LoxClass):
                raise LoxRuntimeError(stmt.superclass.name, "Superclass must be a class.")

        self.environment.define(stmt.name.lexeme, None)

        if superclass is not None:
            self.environment = Environment(self.environment)
            self.environment.define("super", superclass)

        methods = {}
        for method in stmt.methods:
            is_initializer = method.name.lexeme == LoxClass.INITIALIZER
            methods[method.name.lexeme] = LoxFunction(method, self.environment, is_initializer)

        klass = LoxClass(stmt.name.lexeme, superclass, methods)

        if superclass is not None:
            self.environment = self.environment.enclosing

        self.environment.assign(stmt.name, klass)

    # --- Expressions ---

    def evaluate(self, expr: ast.Expr) -> Any:
        match expr:
            case ast.Literal(value):
                return value
            case ast.Grouping(inner):
                return self.evaluate(inner)
            case ast.Unary(operator, right):
                return self._unary(operator, self.evaluate(right))
            case ast.Binary(left, operator, right):
                left_value = self.evaluate(left)
                right_value = self.evaluate(right)
                return self._binary(operator, left_value, right_value)
            case ast.Logical(left, operator, right):
                value = self.evaluate(left)
                if operator.type == TokenType.OR:
                    if is_truthy(value):
                        return value
                elif not is_truthy(value):
                    return value
                return self.evaluate(right)
            case ast.Variable(name):
                return self._look_up_variable(name, expr)
            case ast.Assign(name, value_expr):
                value = self.evaluate(value_expr)
                distance = self.locals.get(expr)
                if distance is not None:
                    self.environment.assign_at(distance, name, value)
                else:
                    self.globals.assign(name, value)
                return value
            case ast.Call():
                return self._call(expr)
            case ast.ListLiteral(_, elements):
                return LoxList([self.evaluate(element) for element in elements])
            case ast.MapLiteral(brace, entries):
                result = LoxMap()
                for key_expr, value_expr in entries:
                    key = self.evaluate(key_expr)
                    value = self.evaluate(value_expr)
                    self._check_key(brace, key)
                    result[key] = value
                return result
            case ast.Subscript(obj, bracket, index):
                container = self.evaluate(obj)
                key = self.evaluate(index)
                return self._subscript_get(container, bracket, key)
            case ast.SubscriptSet(obj, bracket, index, value_expr):
                container = self.evaluate(obj)
                key = self.evaluate(index)
                value = self.evaluate(value_expr)
                self._subscript_set(container, bracket, key, value)
                return value
            case ast.Get(obj, name):
                target = self.evaluate(obj)
                if isinstance(target, LoxInstance):
                    return target.get(name)
                raise LoxRuntimeError(name, "Only instances have properties.")
            case ast.Set(obj, name, value_expr):
                target = self.evaluate(obj)
                if not isinstance(target, LoxInstance):
                    raise LoxRuntimeError(name, "Only instances have fields.")
                value = self.evaluate(value_expr)
                target.set(name, value)
                return value
            case ast.This(keyword):
                return self._look_up_variable(keyword, expr)
            case ast.Super(_, method):
                return self._super(expr, method)
        raise TypeError(f"Unknown expression node: {expr!r}")

    def _look_up_variable(self, name: Token, expr: ast.Expr) -> Any:
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def _super(self, expr: ast.Super, method: Token) -> Any:
        distance = self.locals[expr]
        superclass = self.environment.get_at(distance, "super")
        # `this` lives in the frame just inside the one holding `super`.
        instance = self.environment.get_at(distance - 1, "this")
        found = superclass.find_method(method.lexeme)
        if found is None:
            raise LoxRuntimeError(method, f"Undefined property '{method.lexeme}'.")
        return found.bind(instance)

    def _unary(self, operator: Token, right: Any) -> Any:
        if operator.type == TokenType.BANG:
            return not is_truthy(right)
        if not is_number(right):
            raise LoxRuntimeError(operator, "Operand must be a number.")
        return -right

    def _check_number_operands(self, operator: Token, left: Any, right: Any):
        if not (is_number(left) and is_number(right)):
            raise LoxRuntimeError(operator, "Operands must be numbers.")

    def _binary(self, operator: Token, left: Any, right: Any) -> Any:
        match operator.type:
            case TokenType.EQUAL_EQUAL:
                return is_equal(left, right)
            case TokenType.BANG_EQUAL:
                return not is_equal(left, right)
            case TokenType.PLUS:
                if is_number(left) and is_number(right):
                    return left + right
                if isinstance(left, str) and isinstance(right, str):
                    return left + right
                raise LoxRuntimeError(operator, "Operands must be two numbers or two strings.")

        self._check_number_operands(operator, left, right)
        match operator.type:
            case TokenType.MINUS:
                return left - right
            case TokenType.STAR:
                return left * right
            case TokenType.SLASH:
                return _divide(left, right)
            case TokenType.PERCENT:
                return _modulo(left, right)
            case TokenType.GREATER:
                return left > right
            case TokenType.GREATER_EQUAL:
                return left >= right
            case TokenType.LESS:
                return left < right
            case TokenType.LESS_EQUAL:
                return left <= right
        raise LoxRuntimeError(operator, f"Unknown operator '{operator.lexeme}'.")

    def _call(self, expr: ast.Call) -> Any:
        callee = self.evaluate(expr.callee)
        arguments = [self.evaluate(argument) for argument in expr.arguments]

        if not isinstance(callee, LoxCallable):
            raise LoxRuntimeError(expr.paren, "Can only call functions and classes.")
        if len(arguments) != callee.arity():
            raise LoxRuntimeError(
                expr.paren, f"Expected {callee.arity()} arguments but got {len(arguments)}."
            )

        self._dbg("call", callee.name, "line", expr.paren.line)
        self._push_frame(callee.name, callee, arguments, expr.paren)
        try:
            result = callee.call(self, arguments)
        except LoxRuntimeError as e:
            # Natives raise without a location.
            if e.token is None:
                e.token = expr.paren
            raise
        # Frames are left in place on error so the runner can report them.
        self._pop_frame()
        return result

    # --- Lists and maps ---

    def _check_key(self, token: Token, key: Any):
        if not LoxMap.is_valid_key(key):
            raise LoxRuntimeError(token, MAP_KEY_ERROR)

    def _list_index(self, container: LoxList, token: Token, index: Any) -> int:
        if not is_number(index) or not index.is_integer():
            raise LoxRuntimeError(token, "List index must be an integer.")
        position = int(index)
        if position < 0 or position >= len(container):
            raise LoxRuntimeError(token, "List index out of range.")
        return position

    def _subscript_get(self, container: Any, token: Token, key: Any) -> Any:
        if isinstance(container, LoxList):
            return container[self._list_index(container, token, key)]
        if isinstance(container, LoxMap):
            self._check_key(token, key)
            if key not in container:
                raise LoxRuntimeError(token, f"Undefined key '{self.printer.pformat(key)}'.")
            return container[key]
        raise LoxRuntimeError(token, "Only lists and maps can be subscripted.")

    def _subscript_set(self, container: Any, token: Token, key: Any, value: Any):
        if isinstance(container, LoxList):
            container[self._list_index(container, token, key)] = value
        elif isinstance(container, LoxMap):
            self._check_key(token, key)
            container[key] = value
        else:
            raise LoxRuntimeError(token, "Only lists and maps can be subscripted.")
