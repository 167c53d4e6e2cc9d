# tests/test_cli.py
import subprocess
import sys
import os
import tempfile

RECOLON_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
EXAMPLES_DIR = os.path.join(RECOLON_DIR, "examples")


def run_recolon(args: list[str], cwd: str = RECOLON_DIR) -> subprocess.CompletedProcess:
    env = dict(os.environ)
    env["PYTHONPATH"] = RECOLON_DIR + os.pathsep + env.get("PYTHONPATH", "")
    return subprocess.run(
        [sys.executable, "-m", "recolon.cli"] + args,
        capture_output=True, text=True, cwd=cwd, env=env,
    )


def write_temp(source: str) -> str:
    with tempfile.NamedTemporaryFile(suffix=".rcn", mode="w", delete=False) as f:
        f.write(source)
    return f.name


def test_recolon_no_args():
    result = run_recolon([])
    assert result.returncode == 64
    assert "Usage" in result.stderr


def test_recolon_unknown_command():
    result = run_recolon(["foobar"])
    assert result.returncode == 64
    assert "Unknown command" in result.stderr


def test_recolon_command_without_file():
    result = run_recolon(["run"])
    assert result.returncode == 64


def test_recolon_missing_file():
    result = run_recolon(["run", "/nonexistent/file.rcn"])
    assert result.returncode == 64
    assert "file not found" in result.stderr


def test_recolon_run_hello():
    result = run_recolon(["run", os.path.join(EXAMPLES_DIR, "hello.rcn")])
    assert result.returncode == 0
    assert result.stdout == "Hello from Recolon v1\nready\n"
    assert result.stderr == "this line goes to stderr\n"


def test_recolon_run_runtime_error():
    path = write_temp('log("before");\nlog(1 / 0);\n')
    result = run_recolon(["run", path])
    os.unlink(path)
    assert result.returncode == 70
    assert result.stdout == "before\n"
    assert "EvaluationError[DivisionByZero]: Line 2, Col 7" in result.stderr


def test_recolon_run_ownership_error():
    path = write_temp("var a = [1, 2, 3]; var b = a; log(a);")
    result = run_recolon(["run", path])
    os.unlink(path)
    assert result.returncode == 65
    assert result.stdout == ""
    assert result.stderr.strip() == (
        "OwnershipError[UseAfterMove]: Line 1, Col 35: use of moved value 'a'"
    )


def test_recolon_check_valid():
    path = write_temp("var x = 1;\nlog(x);\n")
    result = run_recolon(["check", path])
    os.unlink(path)
    assert result.returncode == 0
    assert result.stdout.strip() == f"OK: {path}"


def test_recolon_check_does_not_run():
    path = write_temp('log("should not print");')
    result = run_recolon(["check", path])
    os.unlink(path)
    assert "should not print" not in result.stdout


def test_recolon_check_parse_error():
    path = write_temp("var x = ;")
    result = run_recolon(["check", path])
    os.unlink(path)
    assert result.returncode == 65
    assert result.stderr.startswith("ParseError: Line 1, Col 9")


def test_recolon_check_lists_every_ownership_error():
    path = write_temp("var a = [1]; var b = a;\nlog(a);\nlog(a);\n")
    result = run_recolon(["check", path])
    os.unlink(path)
    assert result.returncode == 65
    assert len(result.stderr.strip().splitlines()) == 2


def test_recolon_fmt():
    path = write_temp("fn f(a){return a*2;}\nlog(f(2));")
    result = run_recolon(["fmt", path])
    os.unlink(path)
    assert result.returncode == 0
    assert result.stdout == "fn f(a) {\n    return a * 2;\n}\nlog(f(2));\n"


def test_recolon_fmt_parse_error():
    path = write_temp("fn f( {")
    result = run_recolon(["fmt", path])
    os.unlink(path)
    assert result.returncode == 65
    assert result.stderr.startswith("ParseError")


def test_recolon_tokens():
    path = write_temp("var x = 1; # note")
    result = run_recolon(["tokens", path])
    os.unlink(path)
    assert result.returncode == 0
    lines = result.stdout.splitlines()
    assert lines[0] == "1:1\tVAR\tvar"
    assert lines[-2] == "1:12\tCOMMENT\t# note"
    assert lines[-1].split("\t")[1] == "EOF"


def test_recolon_tokens_lex_error():
    path = write_temp("var x = @;")
    result = run_recolon(["tokens", path])
    os.unlink(path)
    assert result.returncode == 65
    assert result.stderr.startswith("LexError: Line 1, Col 9")


def test_recolon_builtins():
    result = run_recolon(["builtins"])
    assert result.returncode == 0
    rows = [line.split() for line in result.stdout.splitlines()]
    assert rows[0] == ["log", "function", "1"]
    assert ["math", "module", "-"] in rows
    assert ["math.max", "function", "1+"] in rows


def test_recolon_reads_config_from_cwd():
    with tempfile.TemporaryDirectory() as tmpdir:
        with open(os.path.join(tmpdir, "recolon.config"), "w") as f:
            f.write("runtime:\n  max_call_depth: 5\n")
        path = os.path.join(tmpdir, "deep.rcn")
        with open(path, "w") as f:
            f.write("fn down(n) { return down(n + 1); }\ndown(0);\n")
        result = run_recolon(["run", path], cwd=tmpdir)
    assert result.returncode == 70
    assert "Maximum call depth of 5" in result.stderr


def test_recolon_invalid_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        with open(os.path.join(tmpdir, "recolon.config"), "w") as f:
            f.write("runtime:\n  max_call_depth: zero\n")
        path = os.path.join(tmpdir, "ok.rcn")
        with open(path, "w") as f:
            f.write("log(1);\n")
        result = run_recolon(["run", path], cwd=tmpdir)
    assert result.returncode == 64
    assert result.stderr.startswith("Error: runtime.max_call_depth")
