from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from .types import ExecutionOutcome, ExecutionRequest, ExecutionStatus

if TYPE_CHECKING:
    from ..registry import LanguageConfig

logger = logging.getLogger(__name__)

_KILL_SIGNALS = {"SIGKILL", "SIGXCPU"}


def _stage_timed_out(stage: dict[str, Any]) -> bool:
    """Return True when the service killed a stage for exceeding its budget.

    Example:
        ```python
        _stage_timed_out({"code": None, "signal": "SIGKILL"})
        ```
    """
    return stage.get("status") == "TO" or (
        stage.get("code") is None and stage.get("signal") in _KILL_SIGNALS
    )


def _text(stage: dict[str, Any], key: str) -> str:
    """Return a stage field as text, treating null as empty.

    Example:
        ```python
        _text({"stdout": None}, "stdout")  # ""
        ```
    """
    value = stage.get(key)
    return value if isinstance(value, str) else ""


def classify_response(payload: Any, *, compile_timeout_ms: int, run_timeout_ms: int) -> ExecutionOutcome:
    """Classify a decoded Piston response body.

    Compile failures win over run failures; a run stage that exited cleanly is
    a success even when it wrote to stderr.

    Example:
        ```python
        outcome = classify_response({"run": {"code": 0, "stdout": "hi\\n"}}, compile_timeout_ms=10000, run_timeout_ms=5000)
        ```
    """
    if not isinstance(payload, dict):
        return ExecutionOutcome(ExecutionStatus.PARSE_ERROR, error="Malformed response from execution service")
    compile_stage = payload.get("compile")
    run_stage = payload.get("run")
    if compile_stage is not None and not isinstance(compile_stage, dict):
        return ExecutionOutcome(ExecutionStatus.PARSE_ERROR, error="Malformed compile stage in response")
    if run_stage is not None and not isinstance(run_stage, dict):
        return ExecutionOutcome(ExecutionStatus.PARSE_ERROR, error="Malformed run stage in response")
    if compile_stage is None and run_stage is None:
        message = payload.get("message")
        return ExecutionOutcome(
            ExecutionStatus.PARSE_ERROR,
            error=str(message) if message else "Execution service returned no result",
        )

    if compile_stage and compile_stage.get("code") != 0:
        if _stage_timed_out(compile_stage):
            return ExecutionOutcome(
                ExecutionStatus.TIMEOUT,
                stderr=_text(compile_stage, "stderr"),
                error=f"Compilation timed out (limit {compile_timeout_ms}ms)",
            )
        return ExecutionOutcome(
            ExecutionStatus.COMPILE_ERROR,
            stderr=_text(compile_stage, "stderr"),
            error=(
                _text(compile_stage, "stderr")
                or _text(compile_stage, "stdout")
                or _text(compile_stage, "output")
                or "Compilation error"
            ),
        )

    run_stage = run_stage or {}
    if run_stage and run_stage.get("code") != 0:
        if _stage_timed_out(run_stage):
            return ExecutionOutcome(
                ExecutionStatus.TIMEOUT,
                stdout=_text(run_stage, "stdout"),
                stderr=_text(run_stage, "stderr"),
                error=f"Execution timed out (limit {run_timeout_ms}ms)",
            )
        code = run_stage.get("code")
        signal = run_stage.get("signal")
        fallback = f"Runtime error (signal {signal})" if signal else f"Runtime error (exit code {code})"
        return ExecutionOutcome(
            ExecutionStatus.RUNTIME_ERROR,
            stdout=_text(run_stage, "stdout"),
            stderr=_text(run_stage, "stderr"),
            error=_text(run_stage, "stderr") or fallback,
        )

    stderr = _text(run_stage, "stderr")
    return ExecutionOutcome(
        ExecutionStatus.SUCCESS,
        stdout=_text(run_stage, "stdout") or _text(run_stage, "output"),
        stderr=stderr,
        error=stderr or None,
    )


class RemoteEngine:
    """Execute code on a Piston-compatible compile-and-run service.

    One POST per request, no retries. The client deadline is independent of
    the compile/run budgets passed to the service.

    Example:
        ```python
        engine = RemoteEngine(endpoint="https://emkc.org/api/v2/piston", client_timeout_seconds=15)
        ```
    """

    def __init__(
        self,
        *,
        endpoint: str,
        client_timeout_seconds: float = 15,
        compile_timeout_ms: int = 10000,
        run_timeout_ms: int = 5000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the remote client settings.

        Example:
            ```python
            engine = RemoteEngine(endpoint="http://localhost:2000/api/v2", transport=httpx.MockTransport(handler))
            ```
        """
        cleaned = endpoint.strip().rstrip("/")
        if not cleaned:
            raise ValueError("RemoteEngine requires a non-empty 'endpoint'")
        if compile_timeout_ms < run_timeout_ms:
            raise ValueError("compile_timeout_ms must not be smaller than run_timeout_ms")
        self._endpoint = cleaned
        self._client_timeout_seconds = client_timeout_seconds
        self._compile_timeout_ms = compile_timeout_ms
        self._run_timeout_ms = run_timeout_ms
        self._transport = transport

    @property
    def execute_url(self) -> str:
        """Return the full execute URL.

        Example:
            ```python
            url = engine.execute_url
            ```
        """
        return f"{self._endpoint}/execute"

    def build_payload(self, config: LanguageConfig, request: ExecutionRequest) -> dict[str, Any]:
        """Build the JSON body sent to the execution service.

        Example:
            ```python
            body = engine.build_payload(resolve("java"), ExecutionRequest(code=src, language="java"))
            ```
        """
        return {
            "language": config.runtime,
            "version": config.version,
            "files": [{"name": config.source_file_name, "content": request.code}],
            "stdin": request.stdin or "",
            "args": [],
            "compile_timeout": self._compile_timeout_ms,
            "run_timeout": self._run_timeout_ms,
        }

    async def execute(self, config: LanguageConfig, request: ExecutionRequest) -> ExecutionOutcome:
        """Run one request remotely and classify the response.

        Example:
            ```python
            outcome = await engine.execute(resolve("cpp"), ExecutionRequest(code=src, language="cpp"))
            ```
        """
        started = time.perf_counter()
        outcome = await self._execute(config, request)
        outcome.duration_ms = (time.perf_counter() - started) * 1000
        return outcome

    async def _execute(self, config: LanguageConfig, request: ExecutionRequest) -> ExecutionOutcome:
        """Send the request under the client deadline.

        Example:
            ```python
            outcome = await engine._execute(resolve("go"), request)
            ```
        """
        payload = self.build_payload(config, request)
        try:
            async with asyncio.timeout(self._client_timeout_seconds):
                async with httpx.AsyncClient(
                    transport=self._transport,
                    timeout=httpx.Timeout(self._client_timeout_seconds),
                ) as client:
                    response = await client.post(self.execute_url, json=payload)
        except (TimeoutError, httpx.TimeoutException):
            return ExecutionOutcome(
                ExecutionStatus.TIMEOUT,
                error=f"Execution timed out after {self._client_timeout_seconds:g}s. Please try again.",
            )
        except httpx.HTTPError as exc:
            logger.warning("Execution service request failed: %s", exc)
            return ExecutionOutcome(
                ExecutionStatus.SERVICE_ERROR,
                error="Failed to connect to code execution service. Please try again.",
            )

        if not response.is_success:
            logger.warning("Execution service answered %s for %s", response.status_code, config.name)
            return ExecutionOutcome(
                ExecutionStatus.SERVICE_ERROR,
                error=f"Server error: {response.status_code}",
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return ExecutionOutcome(
                ExecutionStatus.PARSE_ERROR,
                error="Execution service returned invalid JSON",
            )
        return classify_response(
            body,
            compile_timeout_ms=self._compile_timeout_ms,
            run_timeout_ms=self._run_timeout_ms,
        )
