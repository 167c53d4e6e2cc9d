"""Recolon parser: recursive-descent parser producing an AST from tokens."""

from __future__ import annotations

from typing import Iterable

from recolon.lexer import Token, TokenType
from recolon.errors import NestingError, ParseError
from recolon.ast_nodes import (
    Program,
    NumberLiteral,
    StringLiteral,
    BooleanLiteral,
    NilLiteral,
    ArrayLiteral,
    Variable,
    This,
    Borrow,
    Grouping,
    UnaryOp,
    BinaryOp,
    LogicalOp,
    Call,
    FieldAccess,
    IndexAccess,
    Assign,
    FieldAssign,
    IndexAssign,
    VarDecl,
    ExpressionStatement,
    Block,
    IfStatement,
    WhileStatement,
    ForStatement,
    ForInStatement,
    ComposeStatement,
    FunctionDecl,
    ClassDecl,
    ReturnStatement,
    BreakStatement,
    ContinueStatement,
)


_DESCRIPTIONS: dict[TokenType, str] = {
    TokenType.IDENTIFIER: "identifier",
    TokenType.NUMBER: "number",
    TokenType.STRING: "string",
    TokenType.SEMICOLON: "';'",
    TokenType.COMMA: "','",
    TokenType.COLON: "':'",
    TokenType.DOT: "'.'",
    TokenType.EQUALS: "'='",
    TokenType.LPAREN: "'('",
    TokenType.RPAREN: "')'",
    TokenType.LBRACE: "'{'",
    TokenType.RBRACE: "'}'",
    TokenType.LBRACKET: "'['",
    TokenType.RBRACKET: "']'",
    TokenType.IN: "'in'",
    TokenType.EOF: "end of input",
}


def describe(token_type: TokenType) -> str:
    """Human-readable name of a token type for diagnostics."""
    return _DESCRIPTIONS.get(token_type, token_type.name.lower())


def _found(tok: Token) -> str:
    return "end of input" if tok.type == TokenType.EOF else repr(tok.value)


class Parser:
    """Recursive-descent parser for the Recolon language.

    Consumes the token stream produced by the Lexer and produces an AST
    rooted at a ``Program`` node.  Expressions are parsed by precedence
    climbing, one method per binding level.  Any grammar violation raises
    ``ParseError``; no partial tree is ever returned.
    """

    def __init__(self, tokens: Iterable[Token]) -> None:
        self.tokens = [t for t in tokens if t.type != TokenType.COMMENT]
        self.pos: int = 0
        self.loop_depth: int = 0
        self.function_depth: int = 0
        self.method_depth: int = 0

    # -- Navigation helpers ------------------------------------------------

    def current(self) -> Token:
        """Return the token at the current position, or an EOF token if past end."""
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        last = self.tokens[-1] if self.tokens else Token(TokenType.EOF, "", 1, 1)
        return Token(TokenType.EOF, "", last.line, last.column)

    def peek(self, offset: int = 1) -> Token:
        """Look ahead *offset* tokens without consuming."""
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        last = self.tokens[-1] if self.tokens else Token(TokenType.EOF, "", 1, 1)
        return Token(TokenType.EOF, "", last.line, last.column)

    def advance(self) -> Token:
        """Consume and return the current token, then increment pos."""
        tok = self.current()
        self.pos += 1
        return tok

    def expect(self, token_type: TokenType, context: str = "") -> Token:
        """Consume the current token if it matches *token_type*, else raise ParseError."""
        tok = self.current()
        if tok.type != token_type:
            expected = describe(token_type)
            where = f" {context}" if context else ""
            raise ParseError(
                f"Expected {expected}{where} but found {_found(tok)}",
                tok.line,
                tok.column,
                expected=expected,
                found=tok.value,
            )
        return self.advance()

    def match(self, *types: TokenType) -> Token | None:
        """If the current token matches any of *types*, consume and return it; else None."""
        if self.current().type in types:
            return self.advance()
        return None

    def at_end(self) -> bool:
        """Check whether the current token is EOF."""
        return self.current().type == TokenType.EOF

    def error(self, tok: Token, message: str, expected: str = "") -> ParseError:
        return ParseError(message, tok.line, tok.column, expected=expected, found=tok.value)

    # -- Top-level ---------------------------------------------------------

    def parse(self) -> Program:
        """Parse the full token stream into a ``Program`` AST node."""
        body: list = []
        while not self.at_end():
            try:
                body.append(self.parse_declaration())
            except RecursionError:
                tok = self.current()
                raise NestingError(
                    "expression nested too deeply", tok.line, tok.column
                ) from None
        return Program(body=body, line=1, col=1)

    # -- Declarations ------------------------------------------------------

    def parse_declaration(self):
        tok = self.current()
        if tok.type == TokenType.VAR:
            return self.parse_var_decl()
        if tok.type == TokenType.FN:
            return self.parse_function_decl()
        if tok.type in (TokenType.STRUCT, TokenType.CLASS):
            return self.parse_class_decl()
        return self.parse_statement()

    def parse_var_decl(self) -> VarDecl:
        """Parse ``var name [= expression];``."""
        tok = self.expect(TokenType.VAR)
        name_tok = self.expect(TokenType.IDENTIFIER, "after 'var'")
        initializer = None
        if self.match(TokenType.EQUALS):
            initializer = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "after variable declaration")
        return VarDecl(name=name_tok.value, initializer=initializer, line=tok.line, col=tok.column)

    def parse_function_decl(self) -> FunctionDecl:
        """Parse a function declaration.

        ::

            fn name(param, ...) {
                <body>
            }

        Parameter types are never declared; several declarations may
        share a name and are told apart by arity when called.
        """
        tok = self.expect(TokenType.FN)
        name_tok = self.expect(TokenType.IDENTIFIER, "after 'fn'")
        self.expect(TokenType.LPAREN, "after function name")

        params: list[str] = []
        if self.current().type != TokenType.RPAREN:
            params.append(self.expect(TokenType.IDENTIFIER, "in parameter list").value)
            while self.match(TokenType.COMMA):
                param_tok = self.expect(TokenType.IDENTIFIER, "in parameter list")
                if param_tok.value in params:
                    raise self.error(param_tok, f"Duplicate parameter {param_tok.value!r}")
                params.append(param_tok.value)
        self.expect(TokenType.RPAREN, "after parameters")

        saved_loop_depth = self.loop_depth
        self.loop_depth = 0
        self.function_depth += 1
        try:
            body = self.parse_block()
        finally:
            self.function_depth -= 1
            self.loop_depth = saved_loop_depth

        return FunctionDecl(
            name=name_tok.value,
            params=params,
            body=body,
            line=tok.line,
            col=tok.column,
        )

    def parse_class_decl(self) -> ClassDecl:
        """Parse a struct or class declaration.

        ::

            class Name : Parent {
                var field = default;
                fn method(args) { ... }
            }
        """
        tok = self.advance()  # consume STRUCT / CLASS
        name_tok = self.expect(TokenType.IDENTIFIER, f"after '{tok.value}'")

        parent: str | None = None
        if self.match(TokenType.COLON):
            parent = self.expect(TokenType.IDENTIFIER, "as parent name").value
            if parent == name_tok.value:
                raise self.error(name_tok, f"{name_tok.value!r} cannot inherit from itself")

        self.expect(TokenType.LBRACE, f"before {tok.value} body")
        fields: list[VarDecl] = []
        methods: list[FunctionDecl] = []
        while self.current().type != TokenType.RBRACE and not self.at_end():
            member = self.current()
            if member.type == TokenType.VAR:
                fields.append(self.parse_var_decl())
            elif member.type == TokenType.FN:
                self.method_depth += 1
                try:
                    methods.append(self.parse_function_decl())
                finally:
                    self.method_depth -= 1
            else:
                raise self.error(
                    member,
                    f"Expected field or method declaration but found {_found(member)}",
                    expected="'var' or 'fn'",
                )
        self.expect(TokenType.RBRACE, f"after {tok.value} body")

        return ClassDecl(
            name=name_tok.value,
            kind=tok.value,
            parent=parent,
            fields=fields,
            methods=methods,
            line=tok.line,
            col=tok.column,
        )

    # -- Statements --------------------------------------------------------

    def parse_statement(self):
        """Parse a single statement, dispatching on the leading token."""
        tok = self.current()

        if tok.type == TokenType.IF:
            return self.parse_if()
        if tok.type == TokenType.WHILE:
            return self.parse_while()
        if tok.type == TokenType.FOR:
            return self.parse_for()
        if tok.type == TokenType.COMPOSE:
            return self.parse_compose()
        if tok.type == TokenType.RETURN:
            return self.parse_return()
        if tok.type == TokenType.BREAK:
            return self.parse_loop_jump(BreakStatement, "break")
        if tok.type == TokenType.CONTINUE:
            return self.parse_loop_jump(ContinueStatement, "continue")
        if tok.type == TokenType.LBRACE:
            body = self.parse_block()
            return Block(body=body, line=tok.line, col=tok.column)

        return self.parse_expression_statement()

    def parse_expression_statement(self) -> ExpressionStatement:
        tok = self.current()
        expression = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "after expression")
        return ExpressionStatement(expression=expression, line=tok.line, col=tok.column)

    def parse_block(self) -> list:
        """Parse ``{ <declarations> }`` and return the statement list."""
        self.expect(TokenType.LBRACE, "to open block")
        stmts = []
        while self.current().type != TokenType.RBRACE and not self.at_end():
            stmts.append(self.parse_declaration())
        self.expect(TokenType.RBRACE, "to close block")
        return stmts

    def parse_loop_body(self) -> list:
        self.loop_depth += 1
        try:
            return self.parse_block()
        finally:
            self.loop_depth -= 1

    def parse_if(self) -> IfStatement:
        """Parse an if / elif / else statement."""
        tok = self.expect(TokenType.IF)
        condition = self.parse_expression()
        body = self.parse_block()

        elifs: list[tuple] = []
        else_body: list | None = None

        while self.match(TokenType.ELIF):
            elif_condition = self.parse_expression()
            elifs.append((elif_condition, self.parse_block()))

        if self.match(TokenType.ELSE):
            else_body = self.parse_block()

        return IfStatement(
            condition=condition,
            body=body,
            elifs=elifs,
            else_body=else_body,
            line=tok.line,
            col=tok.column,
        )

    def parse_while(self) -> WhileStatement:
        tok = self.expect(TokenType.WHILE)
        condition = self.parse_expression()
        body = self.parse_loop_body()
        return WhileStatement(condition=condition, body=body, line=tok.line, col=tok.column)

    def parse_for(self):
        """Parse either loop form.

        ::

            for (initializer; condition; increment) { ... }
            for name in iterable { ... }
        """
        tok = self.expect(TokenType.FOR)

        if self.current().type == TokenType.IDENTIFIER and self.peek().type == TokenType.IN:
            var_tok = self.advance()
            self.advance()  # consume IN
            iterable = self.parse_expression()
            body = self.parse_loop_body()
            return ForInStatement(
                variable=var_tok.value,
                iterable=iterable,
                body=body,
                line=tok.line,
                col=tok.column,
            )

        self.expect(TokenType.LPAREN, "after 'for'")

        initializer = None
        if self.match(TokenType.SEMICOLON):
            initializer = None
        elif self.current().type == TokenType.VAR:
            initializer = self.parse_var_decl()
        else:
            initializer = self.parse_expression_statement()

        condition = None
        if self.current().type != TokenType.SEMICOLON:
            condition = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "after loop condition")

        increment = None
        if self.current().type != TokenType.RPAREN:
            increment = self.parse_expression()
        self.expect(TokenType.RPAREN, "after for clauses")

        body = self.parse_loop_body()
        return ForStatement(
            initializer=initializer,
            condition=condition,
            increment=increment,
            body=body,
            line=tok.line,
            col=tok.column,
        )

    def parse_compose(self) -> ComposeStatement:
        """Parse ``compose { ... }``, repeating until a ``break`` runs."""
        tok = self.expect(TokenType.COMPOSE)
        body = self.parse_loop_body()
        return ComposeStatement(body=body, line=tok.line, col=tok.column)

    def parse_return(self) -> ReturnStatement:
        tok = self.expect(TokenType.RETURN)
        if self.function_depth == 0:
            raise self.error(tok, "'return' outside of a function")
        value = None
        if self.current().type != TokenType.SEMICOLON:
            value = self.parse_expression()
        self.expect(TokenType.SEMICOLON, "after return value")
        return ReturnStatement(value=value, line=tok.line, col=tok.column)

    def parse_loop_jump(self, node_type, keyword: str):
        tok = self.advance()
        if self.loop_depth == 0:
            raise self.error(tok, f"'{keyword}' outside of a loop")
        self.expect(TokenType.SEMICOLON, f"after '{keyword}'")
        return node_type(line=tok.line, col=tok.column)

    # -- Expression parsing (precedence climbing) --------------------------

    def parse_expression(self):
        """Entry point for expression parsing, at the lowest precedence."""
        return self.parse_assignment()

    def parse_assignment(self):
        """Parse right-associative assignment to a name, field, or index."""
        target = self.parse_or()

        if self.current().type != TokenType.EQUALS:
            return target

        eq_tok = self.advance()
        value = self.parse_assignment()

        if isinstance(target, Variable):
            return Assign(name=target.name, value=value, line=target.line, col=target.col)
        if isinstance(target, FieldAccess):
            return FieldAssign(
                object=target.object,
                field_name=target.field_name,
                value=value,
                line=target.line,
                col=target.col,
            )
        if isinstance(target, IndexAccess):
            return IndexAssign(
                object=target.object,
                index=target.index,
                value=value,
                line=target.line,
                col=target.col,
            )
        raise self.error(eq_tok, "Invalid assignment target")

    def parse_or(self):
        """Parse ``or`` expressions (lowest precedence binary)."""
        left = self.parse_and()
        while self.current().type == TokenType.OR:
            op_tok = self.advance()
            right = self.parse_and()
            left = LogicalOp(left=left, op="or", right=right, line=op_tok.line, col=op_tok.column)
        return left

    def parse_and(self):
        """Parse ``and`` expressions."""
        left = self.parse_equality()
        while self.current().type == TokenType.AND:
            op_tok = self.advance()
            right = self.parse_equality()
            left = LogicalOp(left=left, op="and", right=right, line=op_tok.line, col=op_tok.column)
        return left

    def _parse_binary_level(self, operand, operators: dict[TokenType, str]):
        left = operand()
        while self.current().type in operators:
            op_tok = self.advance()
            right = operand()
            left = BinaryOp(
                left=left,
                op=operators[op_tok.type],
                right=right,
                line=op_tok.line,
                col=op_tok.column,
            )
        return left

    def parse_equality(self):
        """Parse ``==`` and ``!=``."""
        return self._parse_binary_level(self.parse_relational, {
            TokenType.DOUBLE_EQUALS: "==",
            TokenType.NOT_EQUALS: "!=",
        })

    def parse_relational(self):
        """Parse ``>``, ``<``, ``>=``, ``<=``."""
        return self._parse_binary_level(self.parse_additive, {
            TokenType.GT: ">",
            TokenType.LT: "<",
            TokenType.GTE: ">=",
            TokenType.LTE: "<=",
        })

    def parse_additive(self):
        """Parse ``+`` and ``-``."""
        return self._parse_binary_level(self.parse_multiplicative, {
            TokenType.PLUS: "+",
            TokenType.MINUS: "-",
        })

    def parse_multiplicative(self):
        """Parse ``*`` and ``/``."""
        return self._parse_binary_level(self.parse_unary, {
            TokenType.STAR: "*",
            TokenType.SLASH: "/",
        })

    def parse_unary(self):
        """Parse prefix ``-``, ``!`` and the borrow marker ``&``."""
        tok = self.current()
        if tok.type in (TokenType.MINUS, TokenType.BANG):
            self.advance()
            operand = self.parse_unary()
            return UnaryOp(op=tok.value, operand=operand, line=tok.line, col=tok.column)
        if tok.type == TokenType.AMPERSAND:
            self.advance()
            name_tok = self.expect(TokenType.IDENTIFIER, "after '&'")
            return Borrow(name=name_tok.value, line=tok.line, col=tok.column)
        return self.parse_postfix()

    def parse_postfix(self):
        """Parse postfix chains: calls ``(args)``, ``.field`` and ``[index]``."""
        node = self.parse_primary()

        while True:
            if self.current().type == TokenType.LPAREN:
                node = self._parse_call(node)
            elif self.current().type == TokenType.DOT:
                self.advance()  # consume '.'
                field_tok = self.expect(TokenType.IDENTIFIER, "after '.'")
                node = FieldAccess(
                    object=node,
                    field_name=field_tok.value,
                    line=field_tok.line,
                    col=field_tok.column,
                )
            elif self.current().type == TokenType.LBRACKET:
                lbracket = self.advance()
                index = self.parse_expression()
                self.expect(TokenType.RBRACKET, "after index")
                node = IndexAccess(object=node, index=index, line=lbracket.line, col=lbracket.column)
            else:
                break

        return node

    def _parse_call(self, callee) -> Call:
        """Parse a function call ``(arg1, arg2, ...)``."""
        lparen = self.expect(TokenType.LPAREN)
        args: list = []

        if self.current().type != TokenType.RPAREN:
            args.append(self.parse_expression())
            while self.match(TokenType.COMMA):
                args.append(self.parse_expression())

        self.expect(TokenType.RPAREN, "after arguments")
        return Call(callee=callee, args=args, line=lparen.line, col=lparen.column)

    def parse_primary(self):
        """Parse primary (atomic) expressions."""
        tok = self.current()

        if tok.type == TokenType.NUMBER:
            self.advance()
            return NumberLiteral(value=tok.literal, line=tok.line, col=tok.column)

        if tok.type == TokenType.STRING:
            self.advance()
            return StringLiteral(value=tok.literal, line=tok.line, col=tok.column)

        if tok.type in (TokenType.TRUE, TokenType.FALSE):
            self.advance()
            return BooleanLiteral(value=tok.type == TokenType.TRUE, line=tok.line, col=tok.column)

        if tok.type == TokenType.NIL:
            self.advance()
            return NilLiteral(line=tok.line, col=tok.column)

        if tok.type == TokenType.THIS:
            if self.method_depth == 0:
                raise self.error(tok, "'this' outside of a method")
            self.advance()
            return This(line=tok.line, col=tok.column)

        # log and err are keywords but resolve like any other callable name
        if tok.type in (TokenType.IDENTIFIER, TokenType.LOG, TokenType.ERR):
            self.advance()
            return Variable(name=tok.value, line=tok.line, col=tok.column)

        if tok.type == TokenType.LPAREN:
            self.advance()  # consume '('
            inner = self.parse_expression()
            self.expect(TokenType.RPAREN, "after grouped expression")
            return Grouping(expression=inner, line=tok.line, col=tok.column)

        if tok.type == TokenType.LBRACKET:
            return self._parse_array_literal()

        raise self.error(tok, f"Expected expression but found {_found(tok)}", expected="expression")

    def _parse_array_literal(self) -> ArrayLiteral:
        """Parse ``[expr, expr, ...]``."""
        tok = self.expect(TokenType.LBRACKET)
        elements: list = []

        if self.current().type != TokenType.RBRACKET:
            elements.append(self.parse_expression())
            while self.match(TokenType.COMMA):
                elements.append(self.parse_expression())

        self.expect(TokenType.RBRACKET, "after array elements")
        return ArrayLiteral(elements=elements, line=tok.line, col=tok.column)
