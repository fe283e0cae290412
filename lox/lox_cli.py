import os
import sys
from pathlib import Path

from lox.lox_printer import Printer
from lox.lox_runtime import ScriptRunner, EXIT_RUNTIME_ERROR

EXIT_USAGE = 64
EXIT_NO_INPUT = 66
DEFAULT_RECURSION_LIMIT = 10000


def read_line(prompt: str) -> str:
    """Prompt and read one line; returns '' at end of input."""
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def _report_error(result):
    print(result.format_error(), file=sys.stderr)
    if result.stacktrace and os.environ.get("LOX_DEBUG"):
        print("Lox stacktrace: " + " ".join(result.stacktrace), file=sys.stderr)


def _configure_recursion_limit():
    limit = os.environ.get("LOX_RECURSION_LIMIT", "")
    sys.setrecursionlimit(int(limit) if limit.isdigit() else DEFAULT_RECURSION_LIMIT)


def run_script_file(file_path: str) -> int:
    """Run a Lox script file non-interactively and return its exit status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        print(f"Error: could not read file: {file_path}", file=sys.stderr)
        return EXIT_NO_INPUT

    runner = ScriptRunner(stdout=sys.stdout, stdin=sys.stdin)
    try:
        result = runner.handle_script(source)
    except RecursionError:
        print("Fatal: stack overflow.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    if result.status == 'error':
        _report_error(result)
    return result.exit_code


def repl() -> int:
    print("Lox REPL")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner(stdout=sys.stdout, stdin=sys.stdin)
    printer = Printer()

    while True:
        raw = read_line("> ")
        if raw == "":
            print("\nExiting.")
            break
        line = raw.strip()
        if not line:
            continue
        if line == "exit":
            print("Exiting.")
            break

        try:
            result = runner.handle_script(line)
        except RecursionError:
            print("Fatal: stack overflow.", file=sys.stderr)
            continue

        if result.status == 'error':
            _report_error(result)
            continue

        if result.value is not None:
            print(printer.pformat(result.value))
    return 0


def main(argv=None) -> int:
    """Run a script file when provided, otherwise start the interactive REPL."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) > 1:
        print("Usage: lox [script]", file=sys.stderr)
        return EXIT_USAGE
    _configure_recursion_limit()
    if args:
        return run_script_file(args[0])
    return repl()


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nExiting.")
