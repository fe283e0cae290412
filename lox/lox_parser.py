"""
Lox parser: recursive descent from tokens to statement nodes.

Every top-level declaration is parsed inside a recovery point. On a syntax
error the partial statement is dropped, the error is reported, and tokens are
skipped up to the next statement boundary, so one run can report several
independent errors.
"""
from typing import List, Optional

from lox import lox_ast as ast
from lox.lox_errors import ErrorReporter
from lox.lox_scanner import Token, TokenType

MAX_ARGUMENTS = 255

# Keywords that begin a new statement; parsing resumes in front of them.
STATEMENT_STARTERS = {
    TokenType.CLASS,
    TokenType.FUN,
    TokenType.VAR,
    TokenType.FOR,
    TokenType.IF,
    TokenType.WHILE,
    TokenType.DO,
    TokenType.PRINT,
    TokenType.RETURN,
    TokenType.BREAK,
    TokenType.CONTINUE,
    TokenType.SET,
    TokenType.BUILD,
    TokenType.WALK,
    TokenType.CHECK,
    TokenType.OTHERWISE,
    TokenType.THRU,
}


class ParseError(Exception):
    """Unwinds the parser to the enclosing declaration after a reported error."""


class Parser:
    """Recursive descent parser for Lox."""

    def __init__(self, tokens: List[Token], reporter: Optional[ErrorReporter] = None):
        self.tokens = tokens
        self.reporter = reporter if reporter is not None else ErrorReporter()
        self.current = 0

    def parse(self) -> List[ast.Stmt]:
        statements = []
        while not self._is_at_end():
            decl = self._declaration()
            if decl is not None:
                statements.append(decl)
        return statements

    # --- Declarations ---

    def _declaration(self) -> Optional[ast.Stmt]:
        try:
            if self._match(TokenType.CLASS):
                return self._class_declaration()
            if self._match(TokenType.FUN):
                return self._function("function")
            if self._match(TokenType.VAR):
                return self._var_declaration()
            return self._statement()
        except ParseError:
            self._synchronize()
            return None

    def _class_declaration(self) -> ast.Class:
        name = self._consume(TokenType.IDENTIFIER, "Expect class name.")

        superclass = None
        if self._match(TokenType.LESS):
            self._consume(TokenType.IDENTIFIER, "Expect superclass name.")
            superclass = ast.Variable(self._previous())

        self._consume(TokenType.LEFT_BRACE, "Expect '{' before class body.")
        methods = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            methods.append(self._function("method"))
        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after class body.")
        return ast.Class(name, superclass, methods)

    def _function(self, kind: str) -> ast.Function:
        name = self._consume(TokenType.IDENTIFIER, f"Expect {kind} name.")
        self._consume(TokenType.LEFT_PAREN, f"Expect '(' after {kind} name.")
        params: List[Token] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(params) >= MAX_ARGUMENTS:
                    self._error(self._peek(), f"Can't have more than {MAX_ARGUMENTS} parameters.")
                params.append(self._consume(TokenType.IDENTIFIER, "Expect parameter name."))
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after parameters.")
        self._consume(TokenType.LEFT_BRACE, f"Expect '{{' before {kind} body.")
        body = self._block()
        return ast.Function(name, params, body)

    def _var_declaration(self) -> ast.Var:
        name = self._consume(TokenType.IDENTIFIER, "Expect variable name.")
        initializer = None
        if self._match(TokenType.EQUAL):
            initializer = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after variable declaration.")
        return ast.Var(name, initializer)

    # --- Statements ---

    def _statement(self) -> ast.Stmt:
        if self._match(TokenType.PRINT):
            return self._print_statement()
        if self._match(TokenType.IF):
            return self._if_statement()
        if self._match(TokenType.WHILE):
            return self._while_statement()
        if self._match(TokenType.DO):
            return self._do_while_statement()
        if self._match(TokenType.BREAK):
            return self._break_statement()
        if self._match(TokenType.CONTINUE):
            return self._continue_statement()
        if self._match(TokenType.RETURN):
            return self._return_statement()
        if self._match(TokenType.SET):
            return self._set_statement()
        if self._match(TokenType.BUILD):
            return self._build_statement()
        if self._match(TokenType.WALK):
            return self._single_operand_statement(ast.WalkStatement, "walk")
        if self._match(TokenType.CHECK):
            return self._single_operand_statement(ast.CheckStatement, "check")
        if self._match(TokenType.THRU):
            return self._single_operand_statement(ast.ThruStatement, "thru")
        if self._match(TokenType.OTHERWISE):
            keyword = self._previous()
            self._consume(TokenType.SEMICOLON, "Expect ';' after 'otherwise' statement.")
            return ast.OtherwiseStatement(keyword)
        if self._match(TokenType.LEFT_BRACE):
            return ast.Block(self._block())
        return self._expression_statement()

    def _print_statement(self) -> ast.Print:
        value = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after value.")
        return ast.Print(value)

    def _if_statement(self) -> ast.If:
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'if'.")
        condition = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after if condition.")
        then_branch = self._statement()
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._statement()
        return ast.If(condition, then_branch, else_branch)

    def _while_statement(self) -> ast.While:
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after condition.")
        body = self._statement()
        return ast.While(condition, body)

    def _do_while_statement(self) -> ast.DoWhile:
        keyword = self._previous()
        body = self._statement()
        self._consume(TokenType.WHILE, "Expect 'while' after 'do' body.")
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition = self._expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after condition.")
        self._consume(TokenType.SEMICOLON, "Expect ';' after do-while.")
        return ast.DoWhile(keyword, body, condition)

    def _break_statement(self) -> ast.Break:
        keyword = self._previous()
        self._consume(TokenType.SEMICOLON, "Expect ';' after 'break'.")
        return ast.Break(keyword)

    def _continue_statement(self) -> ast.Continue:
        keyword = self._previous()
        self._consume(TokenType.SEMICOLON, "Expect ';' after 'continue'.")
        return ast.Continue(keyword)

    def _return_statement(self) -> ast.Return:
        keyword = self._previous()
        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after return value.")
        return ast.Return(keyword, value)

    def _set_statement(self) -> ast.SetStatement:
        keyword = self._previous()
        name = self._consume(TokenType.IDENTIFIER, "Expect variable name after 'set'.")
        self._consume(TokenType.EQUAL, "Expect '=' after variable name.")
        value = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after 'set' statement.")
        return ast.SetStatement(keyword, name, value)

    def _build_statement(self) -> ast.BuildStatement:
        keyword = self._previous()
        target = ast.Variable(self._consume(TokenType.IDENTIFIER, "Expect name after 'build'."))
        while self._match(TokenType.DOT):
            name = self._consume(TokenType.IDENTIFIER, "Expect property name after '.'.")
            target = ast.Get(target, name)
        arguments: List[ast.Expr] = []
        if self._match(TokenType.LEFT_PAREN):
            if not self._check(TokenType.RIGHT_PAREN):
                while True:
                    arguments.append(self._expression())
                    if not self._match(TokenType.COMMA):
                        break
            self._consume(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        self._consume(TokenType.SEMICOLON, "Expect ';' after 'build' statement.")
        return ast.BuildStatement(keyword, target, arguments)

    def _single_operand_statement(self, node_class, word: str) -> ast.KeywordStatement:
        keyword = self._previous()
        operand = self._expression()
        self._consume(TokenType.SEMICOLON, f"Expect ';' after '{word}' statement.")
        return node_class(keyword, operand)

    def _block(self) -> List[ast.Stmt]:
        statements = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            decl = self._declaration()
            if decl is not None:
                statements.append(decl)
        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after block.")
        return statements

    def _expression_statement(self) -> ast.Expression:
        expr = self._expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after expression.")
        return ast.Expression(expr)

    # --- Expressions, lowest precedence first ---

    def _expression(self) -> ast.Expr:
        return self._assignment()

    def _assignment(self) -> ast.Expr:
        expr = self._or()

        if self._match(TokenType.EQUAL):
            equals = self._previous()
            value = self._assignment()

            match expr:
                case ast.Variable(name):
                    return ast.Assign(name, value)
                case ast.Get(obj, name):
                    return ast.Set(obj, name, value)
                case ast.Subscript(obj, bracket, index):
                    return ast.SubscriptSet(obj, bracket, index, value)
            # Reported but not thrown: the parser is not confused.
            self._error(equals, "Invalid assignment target.")

        return expr

    def _or(self) -> ast.Expr:
        expr = self._and()
        while self._match(TokenType.OR):
            operator = self._previous()
            right = self._and()
            expr = ast.Logical(expr, operator, right)
        return expr

    def _and(self) -> ast.Expr:
        expr = self._equality()
        while self._match(TokenType.AND):
            operator = self._previous()
            right = self._equality()
            expr = ast.Logical(expr, operator, right)
        return expr

    def _binary_level(self, operand, *operators: TokenType) -> ast.Expr:
        expr = operand()
        while self._match(*operators):
            operator = self._previous()
            right = operand()
            expr = ast.Binary(expr, operator, right)
        return expr

    def _equality(self) -> ast.Expr:
        return self._binary_level(self._comparison, TokenType.BANG_EQUAL, TokenType.EQUAL_EQUAL)

    def _comparison(self) -> ast.Expr:
        return self._binary_level(
            self._term,
            TokenType.GREATER, TokenType.GREATER_EQUAL, TokenType.LESS, TokenType.LESS_EQUAL,
        )

    def _term(self) -> ast.Expr:
        return self._binary_level(self._factor, TokenType.MINUS, TokenType.PLUS)

    def _factor(self) -> ast.Expr:
        return self._binary_level(self._unary, TokenType.SLASH, TokenType.STAR, TokenType.PERCENT)

    def _unary(self) -> ast.Expr:
        if self._match(TokenType.BANG, TokenType.MINUS):
            operator = self._previous()
            right = self._unary()
            return ast.Unary(operator, right)
        return self._call()

    def _call(self) -> ast.Expr:
        expr = self._primary()
        while True:
            if self._match(TokenType.LEFT_PAREN):
                expr = self._finish_call(expr)
            elif self._match(TokenType.DOT):
                name = self._consume(TokenType.IDENTIFIER, "Expect property name after '.'.")
                expr = ast.Get(expr, name)
            elif self._match(TokenType.LEFT_BRACKET):
                bracket = self._previous()
                index = self._expression()
                self._consume(TokenType.RIGHT_BRACKET, "Expect ']' after index.")
                expr = ast.Subscript(expr, bracket, index)
            else:
                break
        return expr

    def _finish_call(self, callee: ast.Expr) -> ast.Call:
        arguments: List[ast.Expr] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(arguments) >= MAX_ARGUMENTS:
                    self._error(self._peek(), f"Can't have more than {MAX_ARGUMENTS} arguments.")
                arguments.append(self._expression())
                if not self._match(TokenType.COMMA):
                    break
        paren = self._consume(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        return ast.Call(callee, paren, arguments)

    def _primary(self) -> ast.Expr:
        if self._match(TokenType.FALSE):
            return ast.Literal(False)
        if self._match(TokenType.TRUE):
            return ast.Literal(True)
        if self._match(TokenType.NIL):
            return ast.Literal(None)
        if self._match(TokenType.NUMBER, TokenType.STRING):
            return ast.Literal(self._previous().literal)
        if self._match(TokenType.THIS):
            return ast.This(self._previous())
        if self._match(TokenType.SUPER):
            keyword = self._previous()
            self._consume(TokenType.DOT, "Expect '.' after 'super'.")
            method = self._consume(TokenType.IDENTIFIER, "Expect superclass method name.")
            return ast.Super(keyword, method)
        if self._match(TokenType.IDENTIFIER):
            return ast.Variable(self._previous())
        if self._match(TokenType.LEFT_PAREN):
            expr = self._expression()
            self._consume(TokenType.RIGHT_PAREN, "Expect ')' after expression.")
            return ast.Grouping(expr)
        if self._match(TokenType.LEFT_BRACKET):
            return self._list_literal()
        if self._match(TokenType.LEFT_BRACE):
            return self._map_literal()
        raise self._error(self._peek(), "Expect expression.")

    def _list_literal(self) -> ast.ListLiteral:
        bracket = self._previous()
        elements: List[ast.Expr] = []
        if not self._check(TokenType.RIGHT_BRACKET):
            while True:
                elements.append(self._expression())
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_BRACKET, "Expect ']' after list elements.")
        return ast.ListLiteral(bracket, elements)

    def _map_literal(self) -> ast.MapLiteral:
        brace = self._previous()
        entries = []
        if not self._check(TokenType.RIGHT_BRACE):
            while True:
                key = self._expression()
                self._consume(TokenType.COLON, "Expect ':' after map key.")
                value = self._expression()
                entries.append((key, value))
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after map entries.")
        return ast.MapLiteral(brace, entries)

    # --- Token helpers ---

    def _match(self, *types: TokenType) -> bool:
        for type in types:
            if self._check(type):
                self._advance()
                return True
        return False

    def _check(self, type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._peek().type == type

    def _advance(self) -> Token:
        if not self._is_at_end():
            self.current += 1
        return self._previous()

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        return self.tokens[self.current]

    def _previous(self) -> Token:
        return self.tokens[self.current - 1]

    def _consume(self, type: TokenType, message: str) -> Token:
        if self._check(type):
            return self._advance()
        raise self._error(self._peek(), message)

    def _error(self, token: Token, message: str) -> ParseError:
        self.reporter.token_error(token, message)
        return ParseError(message)

    def _synchronize(self):
        self._advance()
        while not self._is_at_end():
            if self._previous().type == TokenType.SEMICOLON:
                return
            if self._peek().type in STATEMENT_STARTERS:
                return
            self._advance()
