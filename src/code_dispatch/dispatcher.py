from __future__ import annotations

import asyncio
import logging

from .execution.embedded_engine import EmbeddedEngine
from .execution.engine import ExecutionEngine
from .execution.local_engine import LocalEngine
from .execution.remote_engine import RemoteEngine
from .execution.types import ExecutionOutcome, ExecutionRequest, ExecutionResult, ExecutionStatus
from .normalizer import failure, normalize
from .registry import LanguageConfig, LocalInterpreter, NotSupported, resolve
from .settings import DispatchSettings

logger = logging.getLogger(__name__)

EMPTY_INPUT_MESSAGE = "No code provided. Please write your solution first."
NO_LANGUAGE_MESSAGE = "No language specified."


class Dispatcher:
    """Route requests to the remote service or a local interpreter.

    Example:
        ```python
        dispatcher = Dispatcher(DispatchSettings(local_execution=False))
        result = await dispatcher.execute("print(1)", "python")
        ```
    """

    def __init__(
        self,
        settings: DispatchSettings | None = None,
        *,
        remote: ExecutionEngine | None = None,
        local: ExecutionEngine | None = None,
        embedded: ExecutionEngine | None = None,
    ) -> None:
        """Build engines from settings unless they are injected.

        Example:
            ```python
            dispatcher = Dispatcher(remote=RemoteEngine(endpoint="http://localhost:2000/api/v2"))
            ```
        """
        self.settings = settings or DispatchSettings()
        s = self.settings
        self._remote = remote or RemoteEngine(
            endpoint=s.endpoint,
            client_timeout_seconds=s.client_timeout_seconds,
            compile_timeout_ms=s.compile_timeout_ms,
            run_timeout_ms=s.run_timeout_ms,
        )
        self._local = local or LocalEngine(
            timeout_seconds=s.local_timeout_seconds,
            memory_limit_mb=s.memory_limit_mb,
            max_output_kb=s.max_output_kb,
            entry_points=s.entry_points,
            blocked_imports=s.blocked_imports,
            blocked_builtins=s.blocked_builtins,
        )
        self._embedded = embedded or EmbeddedEngine(
            timeout_seconds=s.local_timeout_seconds,
            entry_points=s.entry_points,
        )

    def select_engine(self, config: LanguageConfig) -> tuple[ExecutionEngine, bool]:
        """Return (engine, runs_locally) for a resolved language.

        Example:
            ```python
            engine, local = dispatcher.select_engine(resolve("java"))
            ```
        """
        if config.interpreter is not None and self.settings.runs_locally(config.name):
            if config.interpreter is LocalInterpreter.PYTHON:
                return self._local, True
            return self._embedded, True
        return self._remote, False

    async def execute(self, code: str, language: str, stdin: str = "") -> ExecutionResult:
        """Validate, resolve, run and normalize one request.

        Never raises for user or backend failures; caller cancellation still
        propagates.

        Example:
            ```python
            result = await dispatcher.execute("def solve(x): return x * 2", "py", "21")
            ```
        """
        request = ExecutionRequest(code=code or "", language=language or "", stdin=stdin or "")
        logger.debug("Dispatching %s, input: %r", request.language, request.stdin[:50])

        if request.is_blank():
            return failure(ExecutionStatus.EMPTY_INPUT, EMPTY_INPUT_MESSAGE)
        if not request.language.strip():
            return failure(ExecutionStatus.NOT_SUPPORTED, NO_LANGUAGE_MESSAGE)

        resolved = resolve(request.language)
        if isinstance(resolved, NotSupported):
            return failure(ExecutionStatus.NOT_SUPPORTED, resolved.message)

        engine, local = self.select_engine(resolved)
        try:
            outcome = await engine.execute(resolved, request)
        except Exception as exc:
            logger.exception("Execution backend failed for %s", resolved.name)
            status = ExecutionStatus.RUNTIME_ERROR if local else ExecutionStatus.SERVICE_ERROR
            outcome = ExecutionOutcome(status, error=str(exc) or "Failed to execute code")

        result = normalize(
            outcome,
            resolved,
            max_output_kb=self.settings.max_output_kb,
            local=local,
        )
        logger.debug(
            "Result for %s: success=%s status=%s", resolved.name, result.success, result.status.value
        )
        return result


_DEFAULT_DISPATCHER: Dispatcher | None = None


def default_dispatcher() -> Dispatcher:
    """Return the shared dispatcher built from bundled settings and the environment.

    Example:
        ```python
        dispatcher = default_dispatcher()
        ```
    """
    global _DEFAULT_DISPATCHER
    if _DEFAULT_DISPATCHER is None:
        _DEFAULT_DISPATCHER = Dispatcher(DispatchSettings.from_env())
    return _DEFAULT_DISPATCHER


async def execute(
    code: str,
    language: str,
    stdin: str = "",
    *,
    dispatcher: Dispatcher | None = None,
) -> ExecutionResult:
    """Execute untrusted code and return a normalized result.

    Example:
        ```python
        from code_dispatch import execute
        result = await execute("function solve(x){return x*2}", "javascript", "21")
        ```
    """
    return await (dispatcher or default_dispatcher()).execute(code, language, stdin)


def execute_sync(
    code: str,
    language: str,
    stdin: str = "",
    *,
    dispatcher: Dispatcher | None = None,
) -> ExecutionResult:
    """Blocking wrapper around `execute` for scripts and the CLI.

    Example:
        ```python
        result = execute_sync("print('hi')", "python")
        ```
    """
    return asyncio.run(execute(code, language, stdin, dispatcher=dispatcher))
