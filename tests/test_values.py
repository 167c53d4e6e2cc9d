"""Tests for recolon_runtime.values."""

import math

import pytest

from recolon.ast_nodes import FunctionDecl
from recolon_runtime.exceptions import EvaluationError, EvaluationErrorKind
from recolon_runtime.values import (
    BoundMethod,
    Builtin,
    ClassValue,
    Function,
    Instance,
    Module,
    OverloadSet,
    display,
    format_number,
    is_truthy,
    type_name,
    values_equal,
)


def fn(name: str, arity: int) -> Function:
    params = [f"p{i}" for i in range(arity)]
    return Function(FunctionDecl(name=name, params=params, body=[], line=1, col=1), None)


def klass(name: str, parent=None, methods=None) -> ClassValue:
    return ClassValue(name, "class", parent, [], methods or {}, None)


class TestOverloads:
    def test_resolve_by_arity(self):
        one, two = fn("f", 1), fn("f", 2)
        overloads = OverloadSet("f", [one, two])
        assert overloads.resolve(1) is one
        assert overloads.resolve(2) is two
        assert overloads.resolve(3) is None

    def test_latest_declaration_wins(self):
        first, second = fn("f", 1), fn("f", 1)
        assert OverloadSet("f", [first, second]).resolve(1) is second

    def test_extend_leaves_original(self):
        base = OverloadSet("f", [fn("f", 1)])
        extended = base.extend(fn("f", 2))
        assert base.arities() == [1]
        assert extended.arities() == [1, 2]

    def test_repr(self):
        assert repr(OverloadSet("f", [fn("f", 2)])) == "<fn f/2>"
        assert repr(OverloadSet("f", [fn("f", 0), fn("f", 1)])) == "<fn f>"


class TestBuiltin:
    def test_fixed_arity(self):
        b = Builtin("len", 1, 1, lambda interp, args: None)
        assert b.accepts(1)
        assert not b.accepts(2)
        assert b.arity == "1"

    def test_range_arity(self):
        b = Builtin("math.lgm", 1, 2, lambda interp, args: None)
        assert b.accepts(2)
        assert not b.accepts(0)
        assert b.arity == "1..2"

    def test_variadic(self):
        b = Builtin("math.max", 1, None, lambda interp, args: None)
        assert b.accepts(10)
        assert b.arity == "1+"


class TestClasses:
    def test_lineage(self):
        base = klass("Shape")
        child = klass("Square", parent=base)
        assert child.lineage() == [child, base]

    def test_find_method_walks_upward(self):
        area = fn("area", 0)
        base = klass("Shape", methods={"area": [area]})
        child = klass("Square", parent=base)
        assert child.find_method("area", 0) is area
        assert child.find_method("area", 1) is None
        assert child.has_method("area")

    def test_override_by_arity_only(self):
        base_one = fn("m", 1)
        child_zero = fn("m", 0)
        base = klass("A", methods={"m": [base_one]})
        child = klass("B", parent=base, methods={"m": [child_zero]})
        assert child.find_method("m", 0) is child_zero
        assert child.find_method("m", 1) is base_one

    def test_instance_fields(self):
        inst = Instance(klass("P"), {"x": 1.0})
        inst.set("x", 2.0)
        assert inst.get("x") == 2.0

    def test_instance_method_access(self):
        inst = Instance(klass("P", methods={"m": [fn("m", 0)]}), {})
        method = inst.get("m")
        assert isinstance(method, BoundMethod)
        assert method.instance is inst

    def test_instance_unknown_member(self):
        inst = Instance(klass("P"), {})
        with pytest.raises(EvaluationError) as exc:
            inst.get("nope")
        assert exc.value.kind == EvaluationErrorKind.FIELD_NOT_FOUND
        with pytest.raises(EvaluationError):
            inst.set("nope", 1.0)


class TestDisplay:
    @pytest.mark.parametrize("value,expected", [
        (None, "nil"),
        (True, "true"),
        (False, "false"),
        (3.0, "3"),
        (-0.5, "-0.5"),
        (1e15, "1000000000000000"),
        (99999999999999991611392.0, "1e+23"),
        (-1e16, "-1e+16"),
        ("text", "text"),
        ([1.0, "a", None], '[1, "a", nil]'),
        ([], "[]"),
    ])
    def test_display(self, value, expected):
        assert display(value) == expected

    def test_non_finite_numbers(self):
        assert format_number(math.inf) == "inf"
        assert format_number(math.nan) == "nan"

    def test_instance(self):
        inst = Instance(klass("Point"), {"x": 4.0, "y": 0.0})
        assert display(inst) == "Point { x: 4, y: 0 }"
        assert display([inst]) == "[Point { x: 4, y: 0 }]"

    def test_cycle(self):
        items = [1.0]
        items.append(items)
        assert display(items) == "[1, [...]]"

    def test_shared_element_is_not_a_cycle(self):
        inner = [1.0]
        assert display([inner, inner]) == "[[1], [1]]"

    def test_module(self):
        assert display(Module("math", {})) == "<module math>"


class TestPredicates:
    @pytest.mark.parametrize("value,name", [
        (None, "Nil"),
        (True, "Bool"),
        (1.0, "Number"),
        ("s", "String"),
        ([], "Array"),
        (fn("f", 0), "Function"),
        (klass("C"), "Class"),
        (Module("math", {}), "Module"),
    ])
    def test_type_name(self, value, name):
        assert type_name(value) == name

    @pytest.mark.parametrize("value", [None, False, 0.0, ""])
    def test_falsy(self, value):
        assert not is_truthy(value)

    @pytest.mark.parametrize("value", [True, 1.0, -1.0, "0", [], Instance(klass("C"), {})])
    def test_truthy(self, value):
        assert is_truthy(value)

    def test_equality(self):
        items = [1.0]
        assert values_equal(1.0, 1.0)
        assert values_equal("a", "a")
        assert values_equal(None, None)
        assert values_equal(items, items)
        assert not values_equal([1.0], [1.0])
        assert not values_equal(1.0, True)
        assert not values_equal(0.0, None)
