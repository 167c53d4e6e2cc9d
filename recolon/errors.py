"""Recolon compile-time error types with source location info."""

from __future__ import annotations

from enum import Enum


class RecolonError(Exception):
    def __init__(self, message: str, line: int = 0, column: int = 0):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, Col {column}: {message}")

    @property
    def label(self) -> str:
        """Short name used as the prefix of a diagnostic line."""
        return type(self).__name__


class LexError(RecolonError):
    pass


class ParseError(RecolonError):
    def __init__(self, message: str, line: int = 0, column: int = 0,
                 expected: str = "", found: str = ""):
        self.expected = expected
        self.found = found
        super().__init__(message, line, column)


class PrintError(RecolonError):
    pass


class NestingError(RecolonError):
    """Source nested deeper than the compiler can follow."""
    pass


class OwnershipErrorKind(Enum):
    USE_AFTER_MOVE = "UseAfterMove"
    CONFLICTING_BORROW = "ConflictingBorrow"


class OwnershipError(RecolonError):
    def __init__(self, kind: OwnershipErrorKind, message: str, line: int = 0,
                 column: int = 0, name: str = ""):
        self.kind = kind
        self.name = name
        super().__init__(message, line, column)

    @property
    def label(self) -> str:
        return f"OwnershipError[{self.kind.value}]"


class OwnershipErrors(RecolonError):
    """Raised once per program with every ownership violation found."""

    def __init__(self, errors: list[OwnershipError]):
        self.errors = errors
        first = errors[0]
        super().__init__(
            f"{len(errors)} ownership error(s); first: {first.message}",
            first.line,
            first.column,
        )


def format_diagnostic(error: Exception) -> str:
    """Render any pipeline error as a single diagnostic line."""
    label = getattr(error, "label", type(error).__name__)
    return f"{label}: {error}"
