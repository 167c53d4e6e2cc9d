"""Tests for the Recolon parser: expressions, statements and declarations."""

import pytest

from recolon.lexer import Lexer
from recolon.parser import Parser
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
from recolon.errors import NestingError, ParseError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse(src: str) -> Program:
    """Convenience: lex + parse source and return the Program AST."""
    tokens = Lexer(src).tokenize()
    return Parser(tokens).parse()


def first(src: str):
    """Parse and return the first statement."""
    return parse(src).body[0]


def expr(src: str):
    """Parse a single expression statement and return its expression."""
    stmt = first(src + ";")
    assert isinstance(stmt, ExpressionStatement)
    return stmt.expression


# ---------------------------------------------------------------------------
# Literals and primaries
# ---------------------------------------------------------------------------

class TestPrimary:
    def test_number(self):
        node = expr("42")
        assert isinstance(node, NumberLiteral)
        assert node.value == 42.0

    def test_string(self):
        node = expr('"hi"')
        assert isinstance(node, StringLiteral)
        assert node.value == "hi"

    def test_booleans_and_nil(self):
        assert expr("True").value is True
        assert expr("false").value is False
        assert isinstance(expr("Nil"), NilLiteral)

    def test_variable(self):
        node = expr("count")
        assert isinstance(node, Variable)
        assert node.name == "count"
        assert node.moves is False

    def test_log_is_a_variable(self):
        node = expr("log")
        assert isinstance(node, Variable)
        assert node.name == "log"

    def test_grouping_kept(self):
        node = expr("(1)")
        assert isinstance(node, Grouping)
        assert isinstance(node.expression, NumberLiteral)

    def test_array_literal(self):
        node = expr("[1, 2, 3]")
        assert isinstance(node, ArrayLiteral)
        assert [e.value for e in node.elements] == [1.0, 2.0, 3.0]

    def test_empty_array(self):
        assert expr("[]").elements == []

    def test_borrow(self):
        node = expr("&items")
        assert isinstance(node, Borrow)
        assert node.name == "items"

    def test_positions(self):
        node = first("\n  var x = 1;")
        assert (node.line, node.col) == (2, 3)


# ---------------------------------------------------------------------------
# Operator precedence
# ---------------------------------------------------------------------------

class TestPrecedence:
    def test_multiplication_binds_tighter(self):
        node = expr("1 + 2 * 3")
        assert isinstance(node, BinaryOp)
        assert node.op == "+"
        assert isinstance(node.right, BinaryOp)
        assert node.right.op == "*"

    def test_left_associative(self):
        node = expr("10 - 4 - 3")
        assert node.op == "-"
        assert isinstance(node.left, BinaryOp)
        assert node.left.op == "-"
        assert node.right.value == 3.0

    def test_relational_above_equality(self):
        node = expr("a < b == c > d")
        assert node.op == "=="
        assert node.left.op == "<"
        assert node.right.op == ">"

    def test_and_binds_tighter_than_or(self):
        node = expr("a or b and c")
        assert isinstance(node, LogicalOp)
        assert node.op == "or"
        assert isinstance(node.right, LogicalOp)
        assert node.right.op == "and"

    def test_equality_inside_and(self):
        node = expr("a == 1 and b != 2")
        assert node.op == "and"
        assert node.left.op == "=="
        assert node.right.op == "!="

    def test_unary(self):
        node = expr("-x * 2")
        assert node.op == "*"
        assert isinstance(node.left, UnaryOp)
        assert node.left.op == "-"

    def test_double_negation(self):
        node = expr("!!done")
        assert isinstance(node, UnaryOp)
        assert isinstance(node.operand, UnaryOp)

    def test_grouping_overrides(self):
        node = expr("(1 + 2) * 3")
        assert node.op == "*"
        assert isinstance(node.left, Grouping)


# ---------------------------------------------------------------------------
# Postfix: calls, fields, indexing
# ---------------------------------------------------------------------------

class TestPostfix:
    def test_call(self):
        node = expr("greet(name, 2)")
        assert isinstance(node, Call)
        assert node.callee.name == "greet"
        assert len(node.args) == 2

    def test_call_no_args(self):
        assert expr("clock()").args == []

    def test_field_access(self):
        node = expr("math.pi")
        assert isinstance(node, FieldAccess)
        assert node.object.name == "math"
        assert node.field_name == "pi"

    def test_method_call_chain(self):
        node = expr("Square(3).describe()")
        assert isinstance(node, Call)
        assert isinstance(node.callee, FieldAccess)
        assert node.callee.field_name == "describe"
        assert isinstance(node.callee.object, Call)

    def test_index(self):
        node = expr("items[i + 1]")
        assert isinstance(node, IndexAccess)
        assert node.index.op == "+"

    def test_nested_index(self):
        node = expr("grid[0][1]")
        assert isinstance(node.object, IndexAccess)


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------

class TestAssignment:
    def test_assign(self):
        node = expr("x = 5")
        assert isinstance(node, Assign)
        assert node.name == "x"

    def test_right_associative(self):
        node = expr("a = b = 1")
        assert isinstance(node.value, Assign)

    def test_field_assign(self):
        node = expr("p.x = 1")
        assert isinstance(node, FieldAssign)
        assert node.field_name == "x"

    def test_index_assign(self):
        node = expr("items[0] = 1")
        assert isinstance(node, IndexAssign)

    def test_invalid_target(self):
        with pytest.raises(ParseError) as exc:
            parse("1 + 2 = 3;")
        assert "Invalid assignment target" in str(exc.value)

    def test_call_is_not_a_target(self):
        with pytest.raises(ParseError):
            parse("f() = 3;")


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class TestStatements:
    def test_var_decl(self):
        node = first("var x = 1;")
        assert isinstance(node, VarDecl)
        assert node.name == "x"
        assert node.initializer.value == 1.0
        assert node.ownership is None

    def test_var_without_initializer(self):
        assert first("var x;").initializer is None

    def test_missing_semicolon(self):
        with pytest.raises(ParseError) as exc:
            parse("var x = 1")
        assert exc.value.expected == "';'"
        assert "end of input" in str(exc.value)

    def test_block(self):
        node = first("{ var x = 1; log(x); }")
        assert isinstance(node, Block)
        assert len(node.body) == 2

    def test_if_elif_else(self):
        node = first("if a { log(1); } elif b { log(2); } elif c { log(3); } else { log(4); }")
        assert isinstance(node, IfStatement)
        assert len(node.body) == 1
        assert len(node.elifs) == 2
        assert node.elifs[0][0].name == "b"
        assert len(node.else_body) == 1

    def test_if_without_else(self):
        node = first("if (x > 1) { log(x); }")
        assert node.else_body is None
        assert isinstance(node.condition, Grouping)

    def test_while(self):
        node = first("while i < 3 { i = i + 1; }")
        assert isinstance(node, WhileStatement)
        assert node.condition.op == "<"

    def test_for(self):
        node = first("for (var i = 0; i < 3; i = i + 1) { log(i); }")
        assert isinstance(node, ForStatement)
        assert isinstance(node.initializer, VarDecl)
        assert node.condition.op == "<"
        assert isinstance(node.increment, Assign)

    def test_for_empty_clauses(self):
        node = first("for (;;) { break; }")
        assert node.initializer is None
        assert node.condition is None
        assert node.increment is None

    def test_for_expression_initializer(self):
        node = first("for (i = 0; i < 3;) { log(i); }")
        assert isinstance(node.initializer, ExpressionStatement)

    def test_for_in(self):
        node = first("for item in items { log(item); }")
        assert isinstance(node, ForInStatement)
        assert node.variable == "item"
        assert node.iterable.name == "items"

    def test_compose(self):
        node = first("compose { break; }")
        assert isinstance(node, ComposeStatement)
        assert isinstance(node.body[0], BreakStatement)

    def test_continue(self):
        node = first("while True { continue; }")
        assert isinstance(node.body[0], ContinueStatement)

    def test_break_outside_loop(self):
        with pytest.raises(ParseError) as exc:
            parse("break;")
        assert "outside of a loop" in str(exc.value)

    def test_break_inside_function_inside_loop(self):
        with pytest.raises(ParseError):
            parse("while True { fn f() { break; } }")

    def test_return_outside_function(self):
        with pytest.raises(ParseError) as exc:
            parse("return 1;")
        assert "outside of a function" in str(exc.value)


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

class TestFunctions:
    def test_function_decl(self):
        node = first("fn add(a, b) { return a + b; }")
        assert isinstance(node, FunctionDecl)
        assert node.name == "add"
        assert node.params == ["a", "b"]
        assert isinstance(node.body[0], ReturnStatement)

    def test_no_params(self):
        assert first("fn f() { }").params == []

    def test_bare_return(self):
        node = first("fn f() { return; }")
        assert node.body[0].value is None

    def test_duplicate_param(self):
        with pytest.raises(ParseError) as exc:
            parse("fn f(a, a) { }")
        assert "Duplicate parameter" in str(exc.value)

    def test_same_name_twice(self):
        program = parse("fn greet(n) { } fn greet(n, g) { }")
        assert [len(f.params) for f in program.body] == [1, 2]


class TestClasses:
    def test_class_with_members(self):
        node = first("class Point { var x = 0; var y = 0; fn norm() { return this.x; } }")
        assert isinstance(node, ClassDecl)
        assert node.kind == "class"
        assert node.parent is None
        assert [f.name for f in node.fields] == ["x", "y"]
        assert [m.name for m in node.methods] == ["norm"]

    def test_struct_with_parent(self):
        node = first("struct Square : Shape { }")
        assert node.kind == "struct"
        assert node.parent == "Shape"

    def test_this_in_method(self):
        method = first("class A { fn get() { return this.v; } }").methods[0]
        assert isinstance(method.body[0].value.object, This)

    def test_this_outside_method(self):
        with pytest.raises(ParseError) as exc:
            parse("log(this);")
        assert "'this' outside of a method" in str(exc.value)

    def test_self_inheritance(self):
        with pytest.raises(ParseError):
            parse("class A : A { }")

    def test_statement_in_class_body(self):
        with pytest.raises(ParseError) as exc:
            parse("class A { log(1); }")
        assert exc.value.expected == "'var' or 'fn'"


class TestErrors:
    def test_unclosed_block(self):
        with pytest.raises(ParseError) as exc:
            parse("if x { log(x);")
        assert exc.value.expected == "'}'"

    def test_unexpected_token(self):
        with pytest.raises(ParseError) as exc:
            parse("var = 3;")
        assert exc.value.expected == "identifier"
        assert exc.value.found == "="
        assert (exc.value.line, exc.value.column) == (1, 5)

    def test_missing_expression(self):
        with pytest.raises(ParseError) as exc:
            parse("log(1 + );")
        assert "Expected expression" in str(exc.value)

    def test_comment_tokens_are_ignored(self):
        tokens = Lexer("var x = 1; # note", keep_comments=True).tokenize()
        program = Parser(tokens).parse()
        assert len(program.body) == 1

    def test_deeply_nested_parentheses(self):
        src = "log(" + "(" * 600 + "1" + ")" * 600 + ");"
        with pytest.raises(NestingError) as exc:
            parse(src)
        assert exc.value.line == 1
        assert "nested too deeply" in str(exc.value)

    def test_long_flat_sum_parses(self):
        program = parse("log(" + " + ".join(["1"] * 3000) + ");")
        assert len(program.body) == 1
