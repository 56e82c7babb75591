"""
LC-3 Core - Program Images and Parse Results

Program      what the assembler and the raw loader produce: an origin, a
             list of machine words, and a label -> address table.
ParseResult  the final outcome of assembling or raw-loading: either a
             Program or one user-facing diagnostic string.
Ok / Err     the value-or-diagnostic type threaded between the
             intermediate assembler stages.

None of these raise for bad user input. ParseResult.unwrap() is the one
place a diagnostic becomes an exception, for callers that want one.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


# ──────────────────────────────────────────────
# Exceptions
# ──────────────────────────────────────────────

class Lc3Error(Exception):
    """Base class for lc3_core exceptions."""


class AssemblyError(Lc3Error):
    """A diagnostic raised out of a failed ParseResult."""

    def __init__(self, message: str, line_num: Optional[int] = None):
        self.message = message
        self.line_num = line_num
        super().__init__(message)


# ──────────────────────────────────────────────
# Stage results
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Err:
    message: str


Result = Union[Ok, Err]


def line_error(line_num: int, message: str) -> Err:
    """Diagnostic tagged with a 1-based source line number."""
    return Err(f"Line {line_num}: {message}")


# ──────────────────────────────────────────────
# Program
# ──────────────────────────────────────────────

@dataclass
class Program:
    orig: int
    machine_code: List[int] = field(default_factory=list)
    symbol_table: Dict[str, int] = field(default_factory=dict)

    def symbol_lines(self) -> List[str]:
        """Symbol table as 'xADDR  NAME' lines, ordered by address."""
        entries = sorted(self.symbol_table.items(), key=lambda kv: (kv[1], kv[0]))
        return [f"x{addr:04X}  {name}" for name, addr in entries]

    def __len__(self) -> int:
        return len(self.machine_code)


# ──────────────────────────────────────────────
# ParseResult
# ──────────────────────────────────────────────

class ParseResult:
    """Success{program} or Failure{message}, checked at construction."""

    __slots__ = ('success', 'program', 'message')

    def __init__(self, success: bool, program: Optional[Program] = None,
                 message: Optional[str] = None):
        if success:
            if not isinstance(program, Program):
                raise TypeError("successful ParseResult requires a Program")
            if message is not None:
                raise TypeError("successful ParseResult cannot carry a message")
        else:
            if not isinstance(message, str):
                raise TypeError("failed ParseResult requires a string message")
            if program is not None:
                raise TypeError("failed ParseResult cannot carry a Program")
        self.success = success
        self.program = program
        self.message = message

    @classmethod
    def ok(cls, program: Program) -> 'ParseResult':
        return cls(True, program=program)

    @classmethod
    def failure(cls, message: str) -> 'ParseResult':
        return cls(False, message=message)

    @classmethod
    def from_result(cls, result: Result) -> 'ParseResult':
        if isinstance(result, Err):
            return cls.failure(result.message)
        return cls.ok(result.value)

    def unwrap(self) -> Program:
        """Return the Program, or raise AssemblyError with the diagnostic."""
        if self.success:
            return self.program
        raise AssemblyError(self.message, _line_number_of(self.message))

    def __bool__(self):
        return self.success

    def __repr__(self):
        if self.success:
            return (f"ParseResult.ok(orig=x{self.program.orig:04X}, "
                    f"{len(self.program.machine_code)} words)")
        return f"ParseResult.failure({self.message!r})"


def _line_number_of(message: str) -> Optional[int]:
    if message.startswith("Line "):
        head = message[5:].split(":", 1)[0]
        if head.isdigit():
            return int(head)
    return None
