import inspect
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from lox.lox_datatypes import LoxList, LoxMap, NativeFunction
from lox.lox_errors import ErrorReporter, LoxRuntimeError
from lox.lox_interpreter import Interpreter, MAP_KEY_ERROR
from lox.lox_parser import Parser
from lox.lox_printer import AstPrinter, Printer
from lox.lox_resolver import Resolver
from lox.lox_scanner import Scanner, Token

# ===================================================================
# 1. The Standard Library
# ===================================================================


def _expect_map(value, native: str):
    if not isinstance(value, LoxMap):
        raise LoxRuntimeError(None, f"{native}() expects a map as its first argument.")


def _expect_list(value, native: str):
    if not isinstance(value, LoxList):
        raise LoxRuntimeError(None, f"{native}() expects a list as its first argument.")


class StdLib:
    """Python implementations of the Lox native functions.

    Every method named `_<name>` is bound into the global frame as `<name>`.
    Errors are raised without a token; the call site supplies one.
    """
    def __init__(self, interpreter: Interpreter):
        self.interpreter = interpreter

    def _clock(self):
        return time.time()

    def _input(self, prompt):
        self.interpreter.write(Printer().pformat(prompt), end="")
        return self.interpreter.read_line()

    def _remove(self, container, key):
        _expect_map(container, "remove")
        if not LoxMap.is_valid_key(key):
            raise LoxRuntimeError(None, MAP_KEY_ERROR)
        return container.pop(key, None)

    def _contains(self, container, key):
        _expect_map(container, "contains")
        return key in container

    def _len(self, value):
        if isinstance(value, (str, LoxList, LoxMap)):
            return float(len(value))
        raise LoxRuntimeError(None, "len() expects a list, map or string.")

    def _push(self, target, value):
        _expect_list(target, "push")
        target.append(value)
        return None

    def _pop(self, target):
        _expect_list(target, "pop")
        if not target:
            raise LoxRuntimeError(None, "Can't pop from an empty list.")
        return target.pop()


# ===================================================================
# 2. Script Execution
# ===================================================================

EXIT_OK = 0
EXIT_STATIC_ERROR = 65
EXIT_RUNTIME_ERROR = 70


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_phase: Optional[Literal['static', 'runtime']] = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    diagnostics: List[str] = field(default_factory=list)
    side_effects: List[Dict] = field(default_factory=list)
    stacktrace: List[str] = field(default_factory=list)

    def format_error(self) -> str:
        """Static errors render one diagnostic per line; runtime errors render
        the message followed by the offending line."""
        if self.status != 'error':
            return ""
        if self.error_phase == 'static':
            return "\n".join(self.diagnostics)
        msg = str(self.error_message or "Unknown error")
        if self.error_token is not None:
            return f"{msg}\n[line {self.error_token.line}]"
        return msg

    @property
    def output(self) -> List[str]:
        return [e['message'] for e in self.side_effects if 'stdout' in e.get('topics', [])]

    @property
    def exit_code(self) -> int:
        if self.status == 'success':
            return EXIT_OK
        if self.error_phase == 'static':
            return EXIT_STATIC_ERROR
        return EXIT_RUNTIME_ERROR


class ScriptRunner:
    """Scans, parses, resolves, and executes Lox code.

    One runner owns one interpreter, so globals defined by one call to
    `handle_script` are visible to the next.
    """

    def __init__(self, stdout=None, stdin=None, load_natives: bool = True):
        self.interpreter = Interpreter(stdout=stdout, stdin=stdin)
        self.reporter = ErrorReporter()
        if load_natives:
            self._load_natives()

    def _load_natives(self):
        stdlib = StdLib(self.interpreter)
        for name, member in inspect.getmembers(stdlib):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                lox_name = name[1:]
                self.interpreter.globals.define(lox_name, NativeFunction(lox_name, member))

    def _dbg(self, *parts):
        if os.environ.get("LOX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _format_stacktrace(self) -> List[str]:
        pf = Printer().pformat
        frames = []
        for frame in self.interpreter.call_stack:
            args_s = " ".join(pf(a, 1) for a in frame.get('args') or [])
            frame_str = f"({frame.get('name')}"
            if args_s:
                frame_str += f" {args_s}"
            frame_str += ")"
            frames.append(frame_str)
        return frames

    def _static_failure(self) -> ExecutionResult:
        diagnostics = self.reporter.formatted()
        for msg in diagnostics:
            self.interpreter.side_effects.append({'topics': ['stderr'], 'message': msg})
        return ExecutionResult(
            status='error',
            error_phase='static',
            error_message="\n".join(diagnostics),
            diagnostics=diagnostics,
            side_effects=self.interpreter.side_effects,
        )

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script.

        Language errors never raise; they come back as an error result.
        Host stack exhaustion (RecursionError) propagates.
        """
        # Each run gets fresh records; earlier results keep their own lists.
        self.interpreter.side_effects = []
        self.interpreter.call_stack = []
        self.reporter = ErrorReporter()

        # 1. Scan and parse
        tokens = Scanner(source_code, self.reporter).scan_tokens()
        statements = Parser(tokens, self.reporter).parse()
        if self.reporter.had_error:
            return self._static_failure()

        if os.environ.get("LOX_DEBUG"):
            self._dbg("ast", AstPrinter().print(statements))

        # 2. Resolve
        locals_map = Resolver(self.reporter).resolve(statements)
        if self.reporter.had_error:
            return self._static_failure()
        self.interpreter.resolve(locals_map)

        # 3. Evaluate
        try:
            value = self.interpreter.interpret(statements)
        except LoxRuntimeError as e:
            err_msg = e.format()
            self.interpreter.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_phase='runtime',
                error_message=e.message,
                error_token=e.token,
                side_effects=self.interpreter.side_effects,
                stacktrace=self._format_stacktrace(),
            )

        return ExecutionResult(
            status='success',
            value=value,
            side_effects=self.interpreter.side_effects,
        )
