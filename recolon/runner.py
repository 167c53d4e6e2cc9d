"""Recolon pipeline entry points: lex, parse, analyze, then evaluate."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import TextIO

from recolon.ast_nodes import Program
from recolon.errors import OwnershipErrors, RecolonError, format_diagnostic
from recolon.lexer import Lexer
from recolon.ownership import OwnershipAnalyzer
from recolon.parser import Parser
from recolon.printer import SourcePrinter
from recolon_runtime.config import get_config
from recolon_runtime.exceptions import EvaluationError
from recolon_runtime.interpreter import Interpreter
from recolon_runtime.stdlib import BORROWING_CALLEES, BuiltinInfo
from recolon_runtime.stdlib import list_builtins as _list_builtins

EXIT_OK = 0
EXIT_USAGE = 64
EXIT_COMPILE_ERROR = 65
EXIT_RUNTIME_ERROR = 70


@dataclass
class RunResult:
    exit_code: int
    stdout: str
    stderr: str


def parse_source(source: str) -> Program:
    """Lex and parse without ownership analysis."""
    tokens = Lexer(source).tokenize()
    return Parser(tokens).parse()


def compile_source(source: str, config: dict | None = None) -> Program:
    """Lex, parse and ownership-check *source*; raises a RecolonError subclass."""
    if config is None:
        config = get_config()
    max_errors = config.get("ownership", {}).get("max_errors", 20)
    program = parse_source(source)
    return OwnershipAnalyzer(
        program, borrowing_callees=BORROWING_CALLEES, max_errors=max_errors
    ).analyze()


def diagnostics_for(error: Exception) -> list[str]:
    """One diagnostic line per reported problem."""
    if isinstance(error, OwnershipErrors):
        return [format_diagnostic(e) for e in error.errors]
    return [format_diagnostic(error)]


def check_source(source: str, config: dict | None = None) -> list[str]:
    """Return the compile-time diagnostics for *source* (empty when clean)."""
    try:
        compile_source(source, config)
    except RecolonError as e:
        return diagnostics_for(e)
    return []


def format_source(source: str) -> str:
    """Parse *source* and print it back in canonical layout."""
    return SourcePrinter(parse_source(source)).render()


def run_source(source: str, stdout: TextIO, stderr: TextIO, config: dict | None = None) -> int:
    """Compile and execute *source*, writing program output and diagnostics
    to the given streams. Returns the process exit code."""
    if config is None:
        config = get_config()

    try:
        program = compile_source(source, config)
    except RecolonError as e:
        for line in diagnostics_for(e):
            print(line, file=stderr)
        return EXIT_COMPILE_ERROR

    try:
        Interpreter(stdout, stderr, config).run(program)
    except EvaluationError as e:
        print(format_diagnostic(e), file=stderr)
        return EXIT_RUNTIME_ERROR
    return EXIT_OK


def compile_and_run(source: str, config: dict | None = None) -> RunResult:
    """Run *source* with captured output."""
    stdout = io.StringIO()
    stderr = io.StringIO()
    code = run_source(source, stdout, stderr, config)
    return RunResult(code, stdout.getvalue(), stderr.getvalue())


def list_builtins() -> list[BuiltinInfo]:
    return _list_builtins()
