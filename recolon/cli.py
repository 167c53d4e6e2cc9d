"""Recolon CLI: recolon run, check, fmt, tokens, builtins."""
import sys
import os

from recolon.errors import RecolonError, format_diagnostic
from recolon.lexer import Lexer
from recolon_runtime.config import get_config
from recolon_runtime.exceptions import RecolonConfigError
from recolon.runner import (
    EXIT_COMPILE_ERROR,
    EXIT_USAGE,
    check_source,
    format_source,
    list_builtins,
    run_source,
)

FILE_COMMANDS = ("run", "check", "fmt", "tokens")


def _usage():
    print("Usage: recolon <command> [file.rcn]", file=sys.stderr)
    print("Commands: run, check, fmt, tokens, builtins", file=sys.stderr)
    sys.exit(EXIT_USAGE)


def main():
    if len(sys.argv) < 2:
        _usage()

    command = sys.argv[1]

    if command == "builtins":
        for info in list_builtins():
            print(f"{info.name:<16} {info.kind:<9} {info.arity}")
        sys.exit(0)

    if command not in FILE_COMMANDS:
        print(f"Unknown command: {command}", file=sys.stderr)
        _usage()

    if len(sys.argv) < 3:
        print(f"Usage: recolon {command} <file.rcn>", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    filepath = sys.argv[2]
    if not os.path.exists(filepath):
        print(f"Error: file not found: {filepath}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    with open(filepath, encoding="utf-8") as f:
        source = f.read()

    if command in ("run", "check"):
        try:
            config = get_config()
        except RecolonConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(EXIT_USAGE)

    if command == "run":
        sys.exit(run_source(source, sys.stdout, sys.stderr, config))

    if command == "check":
        problems = check_source(source, config)
        for line in problems:
            print(line, file=sys.stderr)
        if problems:
            sys.exit(EXIT_COMPILE_ERROR)
        print(f"OK: {filepath}")
        sys.exit(0)

    try:
        if command == "fmt":
            sys.stdout.write(format_source(source))
        elif command == "tokens":
            for tok in Lexer(source, keep_comments=True).scan():
                print(f"{tok.line}:{tok.column}\t{tok.type.name}\t{tok.value}")
    except RecolonError as e:
        print(format_diagnostic(e), file=sys.stderr)
        sys.exit(EXIT_COMPILE_ERROR)


if __name__ == "__main__":
    main()
