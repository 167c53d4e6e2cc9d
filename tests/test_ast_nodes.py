"""Tests for Recolon AST node definitions."""

import dataclasses

from recolon.ast_nodes import (
    Node,
    Program,
    NumberLiteral,
    ArrayLiteral,
    Variable,
    Borrow,
    BinaryOp,
    Call,
    VarDecl,
    IfStatement,
    FunctionDecl,
    ClassDecl,
    ComposeStatement,
)


class TestNodeBase:
    def test_node_has_line_and_col(self):
        """Every node should carry source location info."""
        node = NumberLiteral(value=1.0, line=5, col=10)
        assert node.line == 5
        assert node.col == 10

    def test_default_line_col_zero(self):
        node = NumberLiteral(value=0.0)
        assert node.line == 0
        assert node.col == 0

    def test_node_is_dataclass(self):
        assert dataclasses.is_dataclass(NumberLiteral)

    def test_every_node_is_a_node(self):
        for cls in (Program, Variable, Borrow, BinaryOp, Call, VarDecl, ClassDecl):
            assert issubclass(cls, Node)


class TestDefaults:
    def test_program_body_not_shared(self):
        a, b = Program(), Program()
        a.body.append(NumberLiteral(value=1.0))
        assert b.body == []

    def test_array_elements_not_shared(self):
        assert ArrayLiteral().elements is not ArrayLiteral().elements

    def test_analysis_annotations_default(self):
        assert VarDecl(name="x").ownership is None
        assert Variable(name="x").moves is False

    def test_if_defaults(self):
        node = IfStatement()
        assert node.elifs == []
        assert node.else_body is None

    def test_class_defaults(self):
        node = ClassDecl(name="Point")
        assert node.kind == "class"
        assert node.parent is None
        assert node.fields == []
        assert node.methods == []

    def test_function_params(self):
        node = FunctionDecl(name="add", params=["a", "b"])
        assert node.params == ["a", "b"]

    def test_compose_has_only_a_body(self):
        fields = {f.name for f in dataclasses.fields(ComposeStatement)}
        assert fields == {"line", "col", "body"}

    def test_equality_is_structural(self):
        assert BinaryOp(left=NumberLiteral(value=1.0), op="+", right=NumberLiteral(value=2.0)) == \
            BinaryOp(left=NumberLiteral(value=1.0), op="+", right=NumberLiteral(value=2.0))
