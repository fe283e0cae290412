"""
Printers for Lox values and Lox syntax trees.
"""
import math

from lox import lox_ast as ast
from lox.lox_datatypes import (
    LoxList, LoxMap, LoxFunction, LoxClass, LoxInstance, NativeFunction
)


def number_to_text(value: float) -> str:
    """Integral numbers print without a trailing '.0'."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


class Printer:
    """Formats Lox runtime values into the text `print` writes."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format a value.

        Strings are shown bare at the top level and quoted inside containers.
        """
        handler = self._handlers.get(type(obj), self._pformat_other)
        return handler(obj, level)

    def _create_handlers(self):
        return {
            type(None): self._pformat_nil,
            bool: self._pformat_bool,
            float: self._pformat_number,
            int: self._pformat_number,
            str: self._pformat_str,
            LoxList: self._pformat_list,
            LoxMap: self._pformat_map,
            LoxFunction: self._pformat_function,
            NativeFunction: self._pformat_native,
            LoxClass: self._pformat_class,
            LoxInstance: self._pformat_instance,
        }

    def _pformat_nil(self, obj, level):
        return "nil"

    def _pformat_bool(self, obj, level):
        return "true" if obj else "false"

    def _pformat_number(self, obj, level):
        return number_to_text(float(obj))

    def _pformat_str(self, obj, level):
        if level == 0:
            return obj
        return f'"{obj}"'

    def _pformat_list(self, obj, level):
        inner = ", ".join(self.pformat(item, level + 1) for item in obj)
        return f"[{inner}]"

    def _pformat_map(self, obj, level):
        inner = ", ".join(
            f"{self.pformat(key, level + 1)}: {self.pformat(value, level + 1)}"
            for key, value in obj.items()
        )
        return f"{{{inner}}}"

    def _pformat_function(self, obj, level):
        return f"<fn {obj.name}>"

    def _pformat_native(self, obj, level):
        return "<native fn>"

    def _pformat_class(self, obj, level):
        return obj.name

    def _pformat_instance(self, obj, level):
        return f"{obj.klass.name} instance"

    def _pformat_other(self, obj, level):
        return str(obj)


class AstPrinter:
    """Renders syntax trees as parenthesized prefix forms, for debugging."""

    def print(self, node) -> str:
        if isinstance(node, list):
            return " ".join(self.print(stmt) for stmt in node)
        if isinstance(node, ast.Stmt):
            return self._stmt(node)
        return self._expr(node)

    def _parenthesize(self, name: str, *parts) -> str:
        pieces = [name]
        for part in parts:
            if isinstance(part, str):
                pieces.append(part)
            else:
                pieces.append(self.print(part))
        return f"({' '.join(pieces)})"

    def _expr(self, expr: ast.Expr) -> str:
        match expr:
            case ast.Literal(value):
                if isinstance(value, str):
                    return f'"{value}"'
                return Printer().pformat(value)
            case ast.Grouping(inner):
                return self._parenthesize("group", inner)
            case ast.Unary(operator, right):
                return self._parenthesize(operator.lexeme, right)
            case ast.Binary(left, operator, right) | ast.Logical(left, operator, right):
                return self._parenthesize(operator.lexeme, left, right)
            case ast.Variable(name):
                return name.lexeme
            case ast.Assign(name, value):
                return self._parenthesize("=", name.lexeme, value)
            case ast.Call(callee, _, arguments):
                return self._parenthesize("call", callee, *arguments)
            case ast.ListLiteral(_, elements):
                return "[" + ", ".join(self.print(e) for e in elements) + "]"
            case ast.MapLiteral(_, entries):
                inner = ", ".join(f"{self.print(k)}: {self.print(v)}" for k, v in entries)
                return "{" + inner + "}"
            case ast.Subscript(obj, _, index):
                return self._parenthesize("index", obj, index)
            case ast.SubscriptSet(obj, _, index, value):
                return self._parenthesize("index=", obj, index, value)
            case ast.Get(obj, name):
                return self._parenthesize(".", obj, name.lexeme)
            case ast.Set(obj, name, value):
                return self._parenthesize("=", obj, name.lexeme, value)
            case ast.This():
                return "this"
            case ast.Super(_, method):
                return self._parenthesize("super", method.lexeme)
        raise TypeError(f"Unknown expression node: {expr!r}")

    def _stmt(self, stmt: ast.Stmt) -> str:
        match stmt:
            case ast.Expression(expression):
                return self._parenthesize(";", expression)
            case ast.Print(expression):
                return self._parenthesize("print", expression)
            case ast.Var(name, None):
                return self._parenthesize("var", name.lexeme)
            case ast.Var(name, initializer):
                return self._parenthesize("var", name.lexeme, initializer)
            case ast.Block(statements):
                return self._parenthesize("block", *statements)
            case ast.If(condition, then_branch, None):
                return self._parenthesize("if", condition, then_branch)
            case ast.If(condition, then_branch, else_branch):
                return self._parenthesize("if-else", condition, then_branch, else_branch)
            case ast.While(condition, body):
                return self._parenthesize("while", condition, body)
            case ast.DoWhile(_, body, condition):
                return self._parenthesize("do-while", body, condition)
            case ast.Break():
                return "(break)"
            case ast.Continue():
                return "(continue)"
            case ast.Return(_, None):
                return "(return)"
            case ast.Return(_, value):
                return self._parenthesize("return", value)
            case ast.Function(name, params, body):
                param_list = "(" + " ".join(p.lexeme for p in params) + ")"
                return self._parenthesize("fun", name.lexeme, param_list, *body)
            case ast.Class(name, superclass, methods):
                head = [name.lexeme]
                if superclass is not None:
                    head += ["<", superclass.name.lexeme]
                return self._parenthesize("class", *head, *methods)
            case ast.SetStatement(_, name, value):
                return self._parenthesize("set", name.lexeme, value)
            case ast.KeywordStatement(keyword):
                return self._parenthesize(keyword.lexeme, *stmt.operands())
        raise TypeError(f"Unknown statement node: {stmt!r}")
