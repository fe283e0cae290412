"""
Error types shared by every stage of the Lox pipeline.

Static problems (scanning, parsing, resolving) are accumulated in an
ErrorReporter owned by the driver. Runtime problems are raised as a single
exception type, LoxRuntimeError, which aborts the running program.
"""
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from lox.lox_scanner import Token


@dataclass
class Diagnostic:
    """A single reported static error."""
    line: int
    where: str
    message: str

    def format(self) -> str:
        return f"[line {self.line}] Error{self.where}: {self.message}"


@dataclass
class ErrorReporter:
    """Accumulates static errors for one run of the pipeline."""
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def had_error(self) -> bool:
        return bool(self.diagnostics)

    def error(self, line: int, message: str):
        self.diagnostics.append(Diagnostic(line, "", message))

    def token_error(self, token: 'Token', message: str):
        # Imported lazily; the scanner module imports this one.
        from lox.lox_scanner import TokenType
        if token.type == TokenType.EOF:
            where = " at end"
        else:
            where = f" at '{token.lexeme}'"
        self.diagnostics.append(Diagnostic(token.line, where, message))

    def formatted(self) -> List[str]:
        return [d.format() for d in self.diagnostics]

    def reset(self):
        self.diagnostics.clear()


class LoxRuntimeError(Exception):
    """Raised by the evaluator; carries the token that locates the failure.

    Natives raise it without a token and the call site fills one in.
    """
    def __init__(self, token: Optional['Token'], message: str):
        super().__init__(message)
        self.token = token
        self.message = message

    @property
    def line(self) -> Optional[int]:
        return self.token.line if self.token is not None else None

    def format(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message}\n[line {self.line}]"
