"""Recolon MCP Server: exposes Recolon interpreter tools via MCP protocol."""

import os

from mcp.server.fastmcp import FastMCP

from recolon.errors import RecolonError, format_diagnostic
from recolon.runner import EXIT_OK, check_source, compile_and_run, format_source
from recolon_runtime.exceptions import RecolonConfigError

mcp = FastMCP("recolon")


def _read_source(filepath: str) -> tuple[str | None, str | None]:
    """Return (source, error message)."""
    try:
        with open(filepath, encoding="utf-8") as f:
            return f.read(), None
    except FileNotFoundError:
        return None, f"Error: file not found: {filepath}"
    except OSError as e:
        return None, f"Error reading file: {e}"


@mcp.tool()
def recolon_write(filepath: str, source: str) -> str:
    """Write Recolon source code to a file. Use this to create new .rcn programs.

    Args:
        filepath: Path to the .rcn file to create (e.g. "shapes.rcn")
        source: The Recolon source code to write
    """
    return write_recolon_file(filepath, source)


def write_recolon_file(filepath: str, source: str) -> str:
    """Core logic for writing a recolon file, callable without MCP."""
    if not filepath.endswith(".rcn"):
        return "Error: filepath must end with .rcn"
    try:
        os.makedirs(os.path.dirname(filepath) if os.path.dirname(filepath) else ".", exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(source)
        return f"Saved: {filepath}"
    except OSError as e:
        return f"Error writing file: {e}"


@mcp.tool()
def recolon_check(filepath: str) -> str:
    """Check a Recolon file without running it: syntax plus ownership rules.

    Args:
        filepath: Path to the .rcn file to check
    """
    return check_recolon_file(filepath)


def check_recolon_file(filepath: str) -> str:
    """Core logic for checking a recolon file, callable without MCP."""
    source, error = _read_source(filepath)
    if error:
        return error

    try:
        problems = check_source(source)
    except RecolonConfigError as e:
        return f"Error: {e}"
    if problems:
        return "\n".join(problems)
    return f"OK: {filepath}"


@mcp.tool()
def recolon_format(filepath: str) -> str:
    """Return a Recolon file reformatted into canonical layout.

    Args:
        filepath: Path to the .rcn file to format
    """
    return format_recolon_file(filepath)


def format_recolon_file(filepath: str) -> str:
    """Core logic for formatting a recolon file, callable without MCP."""
    source, error = _read_source(filepath)
    if error:
        return error

    try:
        return format_source(source)
    except RecolonError as e:
        return format_diagnostic(e)


@mcp.tool()
def recolon_run(filepath: str) -> str:
    """Run a Recolon program and return its output.

    Args:
        filepath: Path to the .rcn file to run
    """
    return run_recolon_file(filepath)


def run_recolon_file(filepath: str) -> str:
    """Core logic for running a recolon file, callable without MCP."""
    source, error = _read_source(filepath)
    if error:
        return error

    try:
        result = compile_and_run(source)
    except RecolonConfigError as e:
        return f"Error: {e}"
    output = result.stdout
    if result.stderr:
        output += f"\n[stderr]: {result.stderr}"
    if result.exit_code != EXIT_OK:
        output += f"\n[exit code]: {result.exit_code}"
    return output if output else "(program produced no output)"


RECOLON_LANGUAGE_GUIDE = """\
# Writing Recolon Programs

Recolon is a small scripting language with a Rust-style ownership check.
Use the recolon_write tool to create .rcn files, recolon_check to validate them,
then recolon_run to execute them.

## Syntax Reference

### Variables
```
var name = "Recolon";
var count = 3;
var done = False;
var nothing = Nil;
var items = [1, 2, 3];
```

### Output
```
log("Hello " + name);     # standard output
err("something odd");     # standard error, does not stop the program
```

### Comments
```
# This is a comment
```

### Control flow
```
if count > 2 {
    log("big");
} elif count > 0 {
    log("small");
} else {
    log("none");
}

while count > 0 { count = count - 1; }
for (var i = 0; i < 3; i = i + 1) { log(i); }
for item in items { log(item); }
compose {
    if count >= 3 { break; }
    count = count + 1;
}
```

### Functions and overloading
```
fn greet(name) { log("Hello " + name); }
fn greet(name, greeting) { log(greeting + " " + name); }
greet("Ada");            # picks the one-argument version
greet("Ada", "Hi");      # picks the two-argument version
```
When two declarations take the same number of arguments, the later one wins.

### Structs and classes
```
class Shape {
    var name = "shape";
    fn area() { return 0; }
    fn describe() { log(this.name + " with area " + this.area()); }
}

class Square : Shape {
    var side = 1;
    fn init(side) { this.side = side; this.name = "square"; }
    fn area() { return this.side * this.side; }
}

Square(3).describe();    # square with area 9
```

### Ownership
Arrays and instances have a single owner. Assigning one to a new variable or
passing it to a function moves it; the old name can no longer be used.
```
var a = [1, 2, 3];
var b = a;        # a is moved into b
log(a);           # OwnershipError[UseAfterMove]
```
Borrow with `&` to keep using the original:
```
var a = [1, 2, 3];
var view = &a;
log(view);
log(a);           # fine
```
A borrowed value cannot be mutated or moved while the borrow is alive.

### Math
`math.pi`, `math.e`, `math.tau`, `math.nan`, `math.floor`, `math.ceil`,
`math.round`, `math.sqrt`, `math.abs`, `math.min`, `math.max`,
`math.random(low, high)`, `math.pow(base, exp)`, `math.lgm(x, base)`,
`math.sin`, `math.cos`, `math.tan`, `math.degrees`, `math.radians`.

Other built-ins: `len`, `push`, `pop`, `type`, `str`, `clock`.
"""


@mcp.prompt()
def recolon_guide() -> str:
    """Language guide for writing Recolon programs."""
    return RECOLON_LANGUAGE_GUIDE


if __name__ == "__main__":
    mcp.run(transport="stdio")
