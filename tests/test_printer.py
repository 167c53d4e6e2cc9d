"""Tests for the Recolon source printer."""

import os

import pytest

from recolon.ast_nodes import Program
from recolon.errors import PrintError
from recolon.lexer import Lexer, TokenType
from recolon.printer import SourcePrinter
from recolon.runner import format_source, parse_source

EXAMPLES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "examples")


def fmt(src: str) -> str:
    return format_source(src)


def token_stream(src: str) -> list:
    """Token types and values, comparing numbers by value rather than spelling."""
    stream = []
    for tok in Lexer(src).tokenize():
        if tok.type == TokenType.NUMBER:
            stream.append((tok.type, tok.literal))
        else:
            stream.append((tok.type, tok.value))
    return stream


class TestLayout:
    def test_empty_program(self):
        assert fmt("") == ""

    def test_statement_spacing(self):
        assert fmt("var x=1+2*3;log(x);") == "var x = 1 + 2 * 3;\nlog(x);\n"

    def test_function(self):
        assert fmt("fn add(a,b){return a+b;}") == (
            "fn add(a, b) {\n"
            "    return a + b;\n"
            "}\n"
        )

    def test_if_elif_else(self):
        src = "if x { log(1); } elif y { log(2); } else { log(3); }"
        assert fmt(src) == (
            "if x {\n"
            "    log(1);\n"
            "} elif y {\n"
            "    log(2);\n"
            "} else {\n"
            "    log(3);\n"
            "}\n"
        )

    def test_nested_blocks(self):
        src = "while True { if done { break; } }"
        assert fmt(src) == (
            "while True {\n"
            "    if done {\n"
            "        break;\n"
            "    }\n"
            "}\n"
        )

    def test_for_header(self):
        assert fmt("for(var i=0;i<3;i=i+1){log(i);}") == (
            "for (var i = 0; i < 3; i = i + 1) {\n"
            "    log(i);\n"
            "}\n"
        )

    def test_for_in_and_compose(self):
        assert fmt("for x in xs {continue;} compose {break;}") == (
            "for x in xs {\n"
            "    continue;\n"
            "}\n"
            "compose {\n"
            "    break;\n"
            "}\n"
        )

    def test_class_members_keep_source_order(self):
        src = "class Square:Shape{var side=1; fn area(){return this.side*this.side;} var tag;}"
        assert fmt(src) == (
            "class Square: Shape {\n"
            "    var side = 1;\n"
            "    fn area() {\n"
            "        return this.side * this.side;\n"
            "    }\n"
            "    var tag;\n"
            "}\n"
        )

    def test_struct_keyword_kept(self):
        assert fmt("struct P { }").startswith("struct P {")

    def test_empty_block(self):
        assert fmt("{}") == "{\n}\n"

    def test_grouping_kept(self):
        assert fmt("log((1+2)*3);") == "log((1 + 2) * 3);\n"

    def test_literals(self):
        assert fmt('var a=[1,"s",true,nil,&b];') == 'var a = [1, "s", True, Nil, &b];\n'

    def test_numbers(self):
        assert fmt("var x = 1.50; var y = 2.0;") == "var x = 1.5;\nvar y = 2;\n"

    def test_comments_are_dropped(self):
        assert fmt("# heading\nlog(1); # trailing\n") == "log(1);\n"

    def test_unary_and_postfix(self):
        assert fmt("log(-a[0]); log(!p.ok); s.items[1] = f(x)(y);") == (
            "log(-a[0]);\nlog(!p.ok);\ns.items[1] = f(x)(y);\n"
        )


class TestRoundTrip:
    @pytest.mark.parametrize("name", sorted(
        n for n in os.listdir(EXAMPLES_DIR) if n.endswith(".rcn")
    ))
    def test_examples_preserve_tokens(self, name):
        with open(os.path.join(EXAMPLES_DIR, name), encoding="utf-8") as f:
            source = f.read()
        assert token_stream(fmt(source)) == token_stream(source)

    def test_idempotent(self):
        src = "fn f(a){if a>1{return a;}elif a<0{return -a;}return 0;} log(f(2));"
        once = fmt(src)
        assert fmt(once) == once

    def test_printer_on_parsed_program(self):
        program = parse_source("var x = 1;")
        assert SourcePrinter(program).render() == "var x = 1;\n"


class TestErrors:
    def test_unsupported_node(self):
        with pytest.raises(PrintError) as exc:
            SourcePrinter(Program(body=[object()])).render()
        assert "Unsupported statement type" in str(exc.value)

    def test_deeply_nested_expression(self):
        program = parse_source("log(" + " + ".join(["1"] * 3000) + ");")
        with pytest.raises(PrintError) as exc:
            SourcePrinter(program).render()
        assert "nested too deeply to print" in str(exc.value)
        assert (exc.value.line, exc.value.column) == (1, 1)
