from __future__ import annotations

import asyncio
import json
import subprocess
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .types import ExecutionOutcome, ExecutionRequest, ExecutionStatus

if TYPE_CHECKING:
    from ..registry import LanguageConfig

_WORKER_KINDS = {
    "success": ExecutionStatus.SUCCESS,
    "syntax_error": ExecutionStatus.COMPILE_ERROR,
    "runtime_error": ExecutionStatus.RUNTIME_ERROR,
}


def _worker_path() -> Path:
    """Return the absolute path to the worker module file.

    Example:
        ```python
        path = _worker_path()
        ```
    """
    return Path(__file__).resolve().parents[1] / "worker.py"


class LocalEngine:
    """Execute Python code directly in an isolated worker interpreter.

    The worker is a separate ``python -I`` process so a runaway submission is
    bounded by a wall-clock watchdog instead of stalling the caller.

    Example:
        ```python
        engine = LocalEngine(timeout_seconds=5, entry_points=["solve", "main"])
        ```
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 5,
        memory_limit_mb: int = 256,
        max_output_kb: int = 64,
        entry_points: list[str] | None = None,
        blocked_imports: list[str] | None = None,
        blocked_builtins: list[str] | None = None,
        python_executable: str | None = None,
    ) -> None:
        """Initialize worker limits and the entry-point candidate list.

        Example:
            ```python
            engine = LocalEngine(timeout_seconds=2, blocked_imports=["os"])
            ```
        """
        if timeout_seconds <= 0:
            raise ValueError("LocalEngine requires a positive 'timeout_seconds'")
        self._timeout_seconds = timeout_seconds
        self._memory_limit_mb = memory_limit_mb
        self._max_output_kb = max_output_kb
        self._entry_points = list(entry_points or ["solve", "solution", "main", "run"])
        self._blocked_imports = list(blocked_imports or [])
        self._blocked_builtins = list(blocked_builtins or [])
        self._python = python_executable or sys.executable

    def build_payload(self, request: ExecutionRequest) -> dict[str, Any]:
        """Build the JSON request sent to the worker.

        Example:
            ```python
            payload = engine.build_payload(ExecutionRequest(code="print(1)", language="py"))
            ```
        """
        return {
            "code": request.code,
            "stdin": request.stdin or "",
            "entry_points": self._entry_points,
            "memory_limit_mb": self._memory_limit_mb,
            "max_output_kb": self._max_output_kb,
            "blocked_imports": self._blocked_imports,
            "blocked_builtins": self._blocked_builtins,
        }

    async def execute(self, config: LanguageConfig, request: ExecutionRequest) -> ExecutionOutcome:
        """Run the worker on a thread so the event loop stays responsive.

        Example:
            ```python
            outcome = await engine.execute(resolve("py"), ExecutionRequest(code=src, language="py"))
            ```
        """
        return await asyncio.to_thread(self.run, request)

    def run(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Execute one request in the worker process and wait for it.

        Example:
            ```python
            outcome = engine.run(ExecutionRequest(code="def solve(x): return x * 2", language="py", stdin="21"))
            ```
        """
        cmd = [self._python, "-I", str(_worker_path())]
        started = time.perf_counter()
        try:
            completed = subprocess.run(
                cmd,
                input=json.dumps(self.build_payload(request)),
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return ExecutionOutcome(
                ExecutionStatus.TIMEOUT,
                error=f"Execution timed out after {self._timeout_seconds:g}s",
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        duration_ms = (time.perf_counter() - started) * 1000

        raw = completed.stdout.strip()
        try:
            parsed = json.loads(raw) if raw else None
        except json.JSONDecodeError:
            parsed = None
        if not isinstance(parsed, dict):
            return ExecutionOutcome(
                ExecutionStatus.PARSE_ERROR,
                stderr=completed.stderr,
                error="Runner returned invalid JSON",
                duration_ms=duration_ms,
            )

        status = _WORKER_KINDS.get(str(parsed.get("kind")), ExecutionStatus.RUNTIME_ERROR)
        if status is ExecutionStatus.SUCCESS:
            stdout = str(parsed.get("output", ""))
        else:
            stdout = str(parsed.get("stdout", ""))
        return ExecutionOutcome(
            status,
            stdout=stdout,
            stderr=str(parsed.get("stderr", "")) or completed.stderr,
            error=parsed.get("error") or None,
            duration_ms=duration_ms,
        )
