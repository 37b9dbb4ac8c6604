from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ExecutionStatus(StrEnum):
    """Classification of one execution attempt.

    Example:
        ```python
        status = ExecutionStatus.COMPILE_ERROR
        ```
    """

    SUCCESS = "success"
    NOT_SUPPORTED = "not_supported"
    EMPTY_INPUT = "empty_input"
    COMPILE_ERROR = "compile_error"
    RUNTIME_ERROR = "runtime_error"
    TIMEOUT = "timeout"
    SERVICE_ERROR = "service_error"
    PARSE_ERROR = "parse_error"
    INTERPRETER_INIT_ERROR = "interpreter_init_error"


@dataclass(slots=True)
class ExecutionRequest:
    """Inbound request: untrusted code, declared language and optional stdin.

    Example:
        ```python
        req = ExecutionRequest(code="def solve(x): return x * 2", language="py", stdin="21")
        ```
    """

    code: str
    language: str
    stdin: str = ""

    def is_blank(self) -> bool:
        """Return True when the code carries no non-whitespace characters.

        Example:
            ```python
            ExecutionRequest(code="   ", language="py").is_blank()
            ```
        """
        return not self.code or not self.code.strip()


@dataclass(slots=True)
class ExecutionOutcome:
    """Raw result returned by an execution engine, before normalization.

    Example:
        ```python
        out = ExecutionOutcome(ExecutionStatus.SUCCESS, stdout="42\\n", duration_ms=3.1)
        ```
    """

    status: ExecutionStatus
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    duration_ms: float | None = None


@dataclass(slots=True)
class ExecutionResult:
    """Canonical result handed back to the grading / run-submission caller.

    Example:
        ```python
        result = ExecutionResult(success=True, output="42", error=None, language="python", version="3.11.9")
        ```
    """

    success: bool
    output: str
    error: str | None
    language: str
    version: str
    execution_time_ms: float | None = None
    status: ExecutionStatus = ExecutionStatus.SUCCESS
    truncated: bool = False
