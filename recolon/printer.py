"""Recolon source printer: walks the AST and emits canonical Recolon source.

Parentheses appear only where the source had them (``Grouping`` nodes),
so re-lexing the output reproduces the original token sequence.
"""

from __future__ import annotations

from decimal import Decimal

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
from recolon.errors import PrintError


class SourcePrinter:
    """Render a Recolon AST back into source text."""

    def __init__(self, program: Program) -> None:
        self.program = program
        self.indent_level: int = 0

    def render(self) -> str:
        lines: list[str] = []
        for stmt in self.program.body:
            try:
                lines.extend(self._emit_statement(stmt))
            except RecursionError:
                raise PrintError(
                    "statement nested too deeply to print", stmt.line, stmt.col
                ) from None
        return "\n".join(lines) + "\n" if lines else ""

    def _indent(self) -> str:
        return "    " * self.indent_level

    # -- Statement emission ------------------------------------------------

    def _emit_statement(self, node) -> list[str]:
        """Emit a statement, returning a list of lines."""
        if isinstance(node, VarDecl):
            return [f"{self._indent()}{self._var_decl(node)}"]
        if isinstance(node, ExpressionStatement):
            return [f"{self._indent()}{self._emit_expr(node.expression)};"]
        if isinstance(node, Block):
            return self._emit_block("", node.body)
        if isinstance(node, IfStatement):
            return self._emit_if(node)
        if isinstance(node, WhileStatement):
            return self._emit_block(f"while {self._emit_expr(node.condition)} ", node.body)
        if isinstance(node, ForStatement):
            return self._emit_block(self._for_header(node), node.body)
        if isinstance(node, ForInStatement):
            iterable = self._emit_expr(node.iterable)
            return self._emit_block(f"for {node.variable} in {iterable} ", node.body)
        if isinstance(node, ComposeStatement):
            return self._emit_block("compose ", node.body)
        if isinstance(node, FunctionDecl):
            params = ", ".join(node.params)
            return self._emit_block(f"fn {node.name}({params}) ", node.body)
        if isinstance(node, ClassDecl):
            return self._emit_class(node)
        if isinstance(node, ReturnStatement):
            if node.value is None:
                return [f"{self._indent()}return;"]
            return [f"{self._indent()}return {self._emit_expr(node.value)};"]
        if isinstance(node, BreakStatement):
            return [f"{self._indent()}break;"]
        if isinstance(node, ContinueStatement):
            return [f"{self._indent()}continue;"]

        raise PrintError(
            f"Unsupported statement type: {type(node).__name__}",
            getattr(node, "line", 0),
            getattr(node, "col", 0),
        )

    def _var_decl(self, node: VarDecl) -> str:
        if node.initializer is None:
            return f"var {node.name};"
        return f"var {node.name} = {self._emit_expr(node.initializer)};"

    def _emit_block(self, header: str, body: list) -> list[str]:
        """Emit ``header{``, the indented body, then the closing brace."""
        lines = [f"{self._indent()}{header}{{"]
        self.indent_level += 1
        for stmt in body:
            lines.extend(self._emit_statement(stmt))
        self.indent_level -= 1
        lines.append(f"{self._indent()}}}")
        return lines

    def _emit_if(self, node: IfStatement) -> list[str]:
        lines = self._emit_block(f"if {self._emit_expr(node.condition)} ", node.body)
        for condition, body in node.elifs:
            branch = self._emit_block("", body)
            lines[-1] += f" elif {self._emit_expr(condition)} {{"
            lines.extend(branch[1:])
        if node.else_body is not None:
            branch = self._emit_block("", node.else_body)
            lines[-1] += " else {"
            lines.extend(branch[1:])
        return lines

    def _for_header(self, node: ForStatement) -> str:
        if isinstance(node.initializer, VarDecl):
            init = self._var_decl(node.initializer)
        elif isinstance(node.initializer, ExpressionStatement):
            init = f"{self._emit_expr(node.initializer.expression)};"
        else:
            init = ";"
        condition = self._emit_expr(node.condition) if node.condition is not None else ""
        increment = self._emit_expr(node.increment) if node.increment is not None else ""
        return f"for ({init} {condition}; {increment}) "

    def _emit_class(self, node: ClassDecl) -> list[str]:
        header = f"{node.kind} {node.name}"
        if node.parent is not None:
            header += f": {node.parent}"
        members = sorted(node.fields + node.methods, key=lambda m: (m.line, m.col))
        return self._emit_block(f"{header} ", members)

    # -- Expression emission -----------------------------------------------

    def _emit_expr(self, node) -> str:
        if isinstance(node, NumberLiteral):
            return self._emit_number(node)
        if isinstance(node, StringLiteral):
            return f'"{node.value}"'
        if isinstance(node, BooleanLiteral):
            return "True" if node.value else "False"
        if isinstance(node, NilLiteral):
            return "Nil"
        if isinstance(node, ArrayLiteral):
            return "[" + ", ".join(self._emit_expr(el) for el in node.elements) + "]"
        if isinstance(node, Variable):
            return node.name
        if isinstance(node, This):
            return "this"
        if isinstance(node, Borrow):
            return f"&{node.name}"
        if isinstance(node, Grouping):
            return f"({self._emit_expr(node.expression)})"
        if isinstance(node, UnaryOp):
            return f"{node.op}{self._emit_expr(node.operand)}"
        if isinstance(node, (BinaryOp, LogicalOp)):
            return f"{self._emit_expr(node.left)} {node.op} {self._emit_expr(node.right)}"
        if isinstance(node, Call):
            args = ", ".join(self._emit_expr(arg) for arg in node.args)
            return f"{self._emit_expr(node.callee)}({args})"
        if isinstance(node, FieldAccess):
            return f"{self._emit_expr(node.object)}.{node.field_name}"
        if isinstance(node, IndexAccess):
            return f"{self._emit_expr(node.object)}[{self._emit_expr(node.index)}]"
        if isinstance(node, Assign):
            return f"{node.name} = {self._emit_expr(node.value)}"
        if isinstance(node, FieldAssign):
            return f"{self._emit_expr(node.object)}.{node.field_name} = {self._emit_expr(node.value)}"
        if isinstance(node, IndexAssign):
            target = f"{self._emit_expr(node.object)}[{self._emit_expr(node.index)}]"
            return f"{target} = {self._emit_expr(node.value)}"

        raise PrintError(
            f"Unsupported expression type: {type(node).__name__}",
            getattr(node, "line", 0),
            getattr(node, "col", 0),
        )

    def _emit_number(self, node: NumberLiteral) -> str:
        """Emit a number: int form for whole numbers, plain decimal otherwise."""
        if node.value == int(node.value):
            return str(int(node.value))
        text = repr(node.value)
        if "e" in text:
            text = format(Decimal(text), "f")
        return text
