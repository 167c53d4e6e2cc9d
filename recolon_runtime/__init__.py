"""Recolon Runtime: executes ownership-checked Recolon programs."""

from recolon_runtime.config import get_config
from recolon_runtime.environment import Binding, Environment
from recolon_runtime.interpreter import Interpreter
from recolon_runtime.stdlib import BuiltinInfo, build_stdlib, list_builtins
from recolon_runtime.values import display, is_truthy, type_name
from recolon_runtime.exceptions import (
    RecolonRuntimeError,
    EvaluationError,
    EvaluationErrorKind,
    RecolonConfigError,
)

__all__ = [
    "Interpreter", "Environment", "Binding", "get_config",
    "BuiltinInfo", "build_stdlib", "list_builtins",
    "display", "is_truthy", "type_name",
    "RecolonRuntimeError", "EvaluationError", "EvaluationErrorKind",
    "RecolonConfigError",
]
