"""Runtime value types.

Numbers are Python floats, Strings are str, Booleans are bool, Nil is None
and Arrays are plain lists (shared by reference).  Everything else gets a
small class here.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, Callable

from recolon.ast_nodes import FunctionDecl, VarDecl
from recolon_runtime.exceptions import EvaluationError, EvaluationErrorKind


class Function:
    """A user-declared function closing over its defining environment."""

    def __init__(self, decl: FunctionDecl, closure):
        self.decl = decl
        self.closure = closure

    @property
    def name(self) -> str:
        return self.decl.name

    @property
    def arity(self) -> int:
        return len(self.decl.params)

    def __repr__(self) -> str:
        return f"<fn {self.name}/{self.arity}>"


class OverloadSet:
    """Every visible declaration of one function name, oldest first."""

    def __init__(self, name: str, functions: list[Function]):
        self.name = name
        self.functions = functions

    def resolve(self, argc: int) -> Function | None:
        """Pick the most recently declared function taking *argc* arguments."""
        for fn in reversed(self.functions):
            if fn.arity == argc:
                return fn
        return None

    def extend(self, fn: Function) -> OverloadSet:
        return OverloadSet(self.name, self.functions + [fn])

    def arities(self) -> list[int]:
        """Distinct parameter counts, for overload diagnostics."""
        return sorted({fn.arity for fn in self.functions})

    def __repr__(self) -> str:
        if len(self.functions) == 1:
            return repr(self.functions[0])
        return f"<fn {self.name}>"


class Builtin:
    """A standard-library callable. ``max_arity=None`` means variadic."""

    def __init__(self, name: str, min_arity: int, max_arity: int | None,
                 fn: Callable[..., Any]):
        self.name = name
        self.min_arity = min_arity
        self.max_arity = max_arity
        self.fn = fn

    def accepts(self, argc: int) -> bool:
        if argc < self.min_arity:
            return False
        return self.max_arity is None or argc <= self.max_arity

    @property
    def arity(self) -> str:
        if self.max_arity is None:
            return f"{self.min_arity}+"
        if self.max_arity == self.min_arity:
            return str(self.min_arity)
        return f"{self.min_arity}..{self.max_arity}"

    def __repr__(self) -> str:
        return f"<builtin {self.name}>"


class Module:
    """A read-only namespace such as ``math``."""

    def __init__(self, name: str, members: dict[str, Any]):
        self.name = name
        self.members = MappingProxyType(dict(members))

    def get(self, member: str) -> Any:
        if member not in self.members:
            raise EvaluationError(
                EvaluationErrorKind.FIELD_NOT_FOUND,
                f"Module {self.name!r} has no member {member!r}",
            )
        return self.members[member]

    def __repr__(self) -> str:
        return f"<module {self.name}>"


class ClassValue:
    """A struct or class: field defaults, per-name method overloads, parent."""

    def __init__(self, name: str, kind: str, parent: ClassValue | None,
                 fields: list[VarDecl], methods: dict[str, list[Function]], closure):
        self.name = name
        self.kind = kind
        self.parent = parent
        self.fields = fields
        self.methods = methods
        self.closure = closure

    def lineage(self) -> list[ClassValue]:
        """This class followed by its ancestors, most-derived first."""
        chain = []
        klass = self
        while klass is not None:
            chain.append(klass)
            klass = klass.parent
        return chain

    def has_method(self, name: str) -> bool:
        return any(name in klass.methods for klass in self.lineage())

    def find_method(self, name: str, argc: int) -> Function | None:
        """First method named *name* taking *argc* arguments, walking upward."""
        for klass in self.lineage():
            for fn in reversed(klass.methods.get(name, [])):
                if fn.arity == argc:
                    return fn
        return None

    def __repr__(self) -> str:
        return f"<{self.kind} {self.name}>"


class Instance:
    """An object whose field key set is fixed when it is constructed."""

    def __init__(self, klass: ClassValue, fields: dict[str, Any]):
        self.klass = klass
        self.fields = fields

    def get(self, name: str) -> Any:
        if name in self.fields:
            return self.fields[name]
        if self.klass.has_method(name):
            return BoundMethod(self, name)
        raise EvaluationError(
            EvaluationErrorKind.FIELD_NOT_FOUND,
            f"{self.klass.name} has no field or method {name!r}",
        )

    def set(self, name: str, value: Any) -> None:
        if name not in self.fields:
            raise EvaluationError(
                EvaluationErrorKind.FIELD_NOT_FOUND,
                f"{self.klass.name} has no field {name!r}",
            )
        self.fields[name] = value

    def __repr__(self) -> str:
        return display(self)


class BoundMethod:
    """``instance.name`` waiting to be called; overloads resolve at call time."""

    def __init__(self, instance: Instance, name: str):
        self.instance = instance
        self.name = name

    def __repr__(self) -> str:
        return f"<method {self.instance.klass.name}.{self.name}>"


CALLABLE_TYPES = (Function, OverloadSet, Builtin, BoundMethod)


# -- Helpers -------------------------------------------------------------------

def is_number(value: Any) -> bool:
    return type(value) is float


# Integral values at or above this magnitude print in exponent form.
_EXACT_LIMIT = 1e16


def format_number(value: float) -> str:
    if math.isfinite(value) and value == int(value) and abs(value) < _EXACT_LIMIT:
        return str(int(value))
    return repr(value)


def display(value: Any) -> str:
    """Render a value the way ``log`` prints it."""
    return _display(value, top_level=True, seen=set())


def _display(value: Any, top_level: bool, seen: set) -> str:
    if value is None:
        return "nil"
    if type(value) is bool:
        return "true" if value else "false"
    if type(value) is float:
        return format_number(value)
    if type(value) is str:
        return value if top_level else f'"{value}"'
    if isinstance(value, (list, Instance)):
        if id(value) in seen:
            return "[...]" if isinstance(value, list) else f"{value.klass.name} {{...}}"
        seen.add(id(value))
        try:
            if isinstance(value, list):
                return "[" + ", ".join(_display(v, False, seen) for v in value) + "]"
            if not value.fields:
                return f"{value.klass.name} {{}}"
            inner = ", ".join(
                f"{k}: {_display(v, False, seen)}" for k, v in value.fields.items()
            )
            return f"{value.klass.name} {{ {inner} }}"
        finally:
            seen.discard(id(value))
    return repr(value)


def type_name(value: Any) -> str:
    if value is None:
        return "Nil"
    if type(value) is bool:
        return "Bool"
    if type(value) is float:
        return "Number"
    if type(value) is str:
        return "String"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, CALLABLE_TYPES):
        return "Function"
    if isinstance(value, ClassValue):
        return "Class"
    if isinstance(value, Instance):
        return "Instance"
    if isinstance(value, Module):
        return "Module"
    return type(value).__name__


def is_truthy(value: Any) -> bool:
    """``False``, ``Nil``, ``0`` and ``""`` are falsy."""
    if value is None:
        return False
    if type(value) is bool:
        return value
    if type(value) is float:
        return value != 0.0
    if type(value) is str:
        return value != ""
    return True


def values_equal(left: Any, right: Any) -> bool:
    """Value equality for scalars, identity for everything else."""
    if left is None or right is None:
        return left is right
    if type(left) is not type(right):
        return False
    if type(left) in (bool, float, str):
        return left == right
    return left is right
