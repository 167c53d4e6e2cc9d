"""Recolon runtime exception types.

Every failure during evaluation surfaces as an EvaluationError carrying an
EvaluationErrorKind and the source position of the offending node.
"""

from enum import Enum


class EvaluationErrorKind(Enum):
    UNDEFINED_VARIABLE = "UndefinedVariable"
    NO_MATCHING_OVERLOAD = "NoMatchingOverload"
    FIELD_NOT_FOUND = "FieldNotFound"
    DIVISION_BY_ZERO = "DivisionByZero"
    BAD_ARGUMENT = "BadArgument"
    TYPE_MISMATCH = "TypeMismatch"
    INDEX_OUT_OF_RANGE = "IndexOutOfRange"
    NOT_CALLABLE = "NotCallable"
    USE_AFTER_MOVE = "UseAfterMove"
    READ_ONLY_BINDING = "ReadOnlyBinding"
    STACK_OVERFLOW = "StackOverflow"


class RecolonRuntimeError(Exception):
    """Base runtime error."""
    pass


class EvaluationError(RecolonRuntimeError):
    """A Recolon program failed while executing."""

    def __init__(self, kind: EvaluationErrorKind, message: str, line: int = 0, column: int = 0):
        self.kind = kind
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, Col {column}: {message}")

    @property
    def label(self) -> str:
        return f"EvaluationError[{self.kind.value}]"

    def at(self, line: int, column: int) -> "EvaluationError":
        """Return this error positioned at a node, unless it already has one."""
        if self.line:
            return self
        return EvaluationError(self.kind, self.message, line, column)


class RecolonConfigError(RecolonRuntimeError):
    """Configuration error."""
    pass
