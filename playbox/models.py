"""Internal models for the execution relay."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from playbox.errors import SubmissionInvalid

DEFAULT_MAX_CODE_LENGTH = 10000


def utf16_length(text: str) -> int:
    # surrogatepass: lone surrogates from a JSON payload count as one unit
    return len(text.encode("utf-16-le", errors="surrogatepass")) // 2


@dataclass(frozen=True)
class Submission:
    """Untrusted source text accepted for execution."""
    code: str

    @property
    def length(self) -> int:
        return utf16_length(self.code)

    @classmethod
    def parse(cls, value: Any, max_length: int = DEFAULT_MAX_CODE_LENGTH) -> "Submission":
        """Validate a raw payload value and wrap it.

        Raises SubmissionInvalid when the value is missing, not a string,
        empty, or longer than max_length characters. Characters are counted
        in UTF-16 code units, the way the browser editor counts them, so a
        character outside the Basic Multilingual Plane counts twice.
        """
        if not value or not isinstance(value, str):
            raise SubmissionInvalid("Code is required and must be a string")
        if utf16_length(value) > max_length:
            raise SubmissionInvalid(f"Code too long (max {max_length:,} characters)")
        return cls(code=value)


@dataclass
class ExecResult:
    """Result of one confined run."""
    success: bool
    output: str
    stderr: str
    exit_code: Optional[int]

    @classmethod
    def from_exit(cls, exit_code: Optional[int], stdout: str, stderr: str) -> "ExecResult":
        # No status (or a negative, signal-style one) means the process was
        # killed rather than exiting
        if exit_code is not None and exit_code < 0:
            exit_code = None
        # stderr is only surfaced on failure
        success = exit_code == 0
        return cls(
            success=success,
            output=stdout,
            stderr="" if success else stderr,
            exit_code=exit_code,
        )

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "output": self.output,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
        }


@dataclass
class EngineStatus:
    """Availability of the container engine API."""
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None


class OutcomeKind(str, Enum):
    """How a supervised container run ended."""
    EXITED = "exited"
    TIMED_OUT = "timed_out"
    SPAWN_FAILED = "spawn_failed"


@dataclass
class RunOutcome:
    """Tagged result of a supervised container run."""
    kind: OutcomeKind
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None

    @classmethod
    def exited(cls, exit_code: Optional[int], stdout: str, stderr: str) -> "RunOutcome":
        return cls(OutcomeKind.EXITED, exit_code=exit_code, stdout=stdout, stderr=stderr)

    @classmethod
    def timed_out(cls, stdout: str = "", stderr: str = "") -> "RunOutcome":
        return cls(OutcomeKind.TIMED_OUT, stdout=stdout, stderr=stderr)

    @classmethod
    def spawn_failed(cls, error: str) -> "RunOutcome":
        return cls(OutcomeKind.SPAWN_FAILED, error=error)
