"""Recolon standard library.

The table is rebuilt for every run and installed into a sealed root
environment, so programs can shadow these names but never rebind them.
Built-in callables receive the running interpreter (for its output streams
and random generator) followed by the evaluated argument list.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

from recolon_runtime.environment import Environment
from recolon_runtime.exceptions import EvaluationError, EvaluationErrorKind
from recolon_runtime.values import Builtin, Module, display, is_number, type_name


@dataclass(frozen=True)
class BuiltinInfo:
    name: str
    arity: str
    kind: str  # function, constant or module


def _bad(message: str) -> EvaluationError:
    return EvaluationError(EvaluationErrorKind.BAD_ARGUMENT, message)


def _number(fn_name: str, value: Any) -> float:
    if not is_number(value):
        raise _bad(f"{fn_name} expects a Number, got {type_name(value)}")
    return value


def _array(fn_name: str, value: Any) -> list:
    if not isinstance(value, list):
        raise _bad(f"{fn_name} expects an Array, got {type_name(value)}")
    return value


# -- Global functions ----------------------------------------------------------

def _log(interp, args):
    print(display(args[0]), file=interp.stdout)


def _err(interp, args):
    print(display(args[0]), file=interp.stderr)


def _clock(interp, args):
    return time.time()


def _len(interp, args):
    value = args[0]
    if isinstance(value, (list, str)):
        return float(len(value))
    raise _bad(f"len expects an Array or String, got {type_name(value)}")


def _push(interp, args):
    _array("push", args[0]).append(args[1])


def _pop(interp, args):
    items = _array("pop", args[0])
    if not items:
        raise EvaluationError(EvaluationErrorKind.INDEX_OUT_OF_RANGE, "pop from empty Array")
    return items.pop()


def _type(interp, args):
    return type_name(args[0])


def _str(interp, args):
    return display(args[0])


# -- math ----------------------------------------------------------------------

def _unary(name: str, op: Callable[[float], float]) -> Builtin:
    def call(interp, args):
        x = _number(f"math.{name}", args[0])
        try:
            return float(op(x))
        except (ValueError, OverflowError) as e:
            raise _bad(f"math.{name}: {e}") from e

    return Builtin(f"math.{name}", 1, 1, call)


def _integral(op: Callable[[float], int]) -> Callable[[float], float]:
    def apply(x: float) -> float:
        if not math.isfinite(x):
            return x
        return float(op(x))

    return apply


def _round_half_away(x: float) -> float:
    return math.copysign(math.floor(abs(x) + 0.5), x)


def _sqrt(x: float) -> float:
    if x < 0:
        raise ValueError("square root of a negative number")
    return math.sqrt(x)


def _extreme(name: str, pick: Callable) -> Builtin:
    def call(interp, args):
        return pick(_number(f"math.{name}", a) for a in args)

    return Builtin(f"math.{name}", 1, None, call)


def _random(interp, args):
    low = _number("math.random", args[0])
    high = _number("math.random", args[1])
    if low > high:
        raise _bad(f"math.random: low ({display(low)}) is greater than high ({display(high)})")
    return interp.rng.uniform(low, high)


def _pow(interp, args):
    base = _number("math.pow", args[0])
    exp = _number("math.pow", args[1])
    try:
        return math.pow(base, exp)
    except (ValueError, OverflowError) as e:
        raise _bad(f"math.pow: {e}") from e


def _lgm(interp, args):
    x = _number("math.lgm", args[0])
    if x <= 0:
        raise _bad("math.lgm: logarithm of a non-positive number")
    if len(args) == 1:
        return math.log(x)
    base = _number("math.lgm", args[1])
    if base <= 0 or base == 1:
        raise _bad(f"math.lgm: invalid base {display(base)}")
    if base == 2:
        return math.log2(x)
    if base == 10:
        return math.log10(x)
    return math.log(x, base)


def _math_module() -> Module:
    return Module("math", {
        "pi": math.pi,
        "e": math.e,
        "tau": math.tau,
        "nan": math.nan,
        "floor": _unary("floor", _integral(math.floor)),
        "ceil": _unary("ceil", _integral(math.ceil)),
        "round": _unary("round", _integral(_round_half_away)),
        "sqrt": _unary("sqrt", _sqrt),
        "abs": _unary("abs", abs),
        "min": _extreme("min", min),
        "max": _extreme("max", max),
        "random": Builtin("math.random", 2, 2, _random),
        "pow": Builtin("math.pow", 2, 2, _pow),
        "lgm": Builtin("math.lgm", 1, 2, _lgm),
        "sin": _unary("sin", math.sin),
        "cos": _unary("cos", math.cos),
        "tan": _unary("tan", math.tan),
        "degrees": _unary("degrees", math.degrees),
        "radians": _unary("radians", math.radians),
    })


def build_stdlib() -> Mapping[str, Any]:
    """Construct the immutable global table in registration order."""
    return MappingProxyType({
        "log": Builtin("log", 1, 1, _log),
        "err": Builtin("err", 1, 1, _err),
        "clock": Builtin("clock", 0, 0, _clock),
        "len": Builtin("len", 1, 1, _len),
        "push": Builtin("push", 2, 2, _push),
        "pop": Builtin("pop", 1, 1, _pop),
        "type": Builtin("type", 1, 1, _type),
        "str": Builtin("str", 1, 1, _str),
        "math": _math_module(),
    })


def install(table: Mapping[str, Any]) -> Environment:
    """Create the sealed root environment holding *table*."""
    root = Environment()
    for name, value in table.items():
        root.define(name, value)
    root.sealed = True
    return root


def _describe(name: str, value: Any) -> BuiltinInfo:
    if isinstance(value, Builtin):
        return BuiltinInfo(name, value.arity, "function")
    if isinstance(value, Module):
        return BuiltinInfo(name, "-", "module")
    return BuiltinInfo(name, "-", "constant")


def list_builtins() -> list[BuiltinInfo]:
    """Every standard-library symbol, modules followed by their members."""
    infos = []
    for name, value in build_stdlib().items():
        infos.append(_describe(name, value))
        if isinstance(value, Module):
            for member, member_value in value.members.items():
                infos.append(_describe(f"{name}.{member}", member_value))
    return infos


BORROWING_CALLEES = frozenset(build_stdlib())
