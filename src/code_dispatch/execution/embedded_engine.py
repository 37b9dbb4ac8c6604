from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from py_mini_racer import JSEvalException, JSParseException, JSTimeoutException, MiniRacer

from .types import ExecutionOutcome, ExecutionRequest, ExecutionStatus

if TYPE_CHECKING:
    from ..registry import LanguageConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InterpreterInitError(RuntimeError):
    """Raised when the embedded runtime failed to load.

    Example:
        ```python
        raise InterpreterInitError("Failed to load JavaScript runtime: missing library")
        ```
    """


class LazyInterpreter(Generic[T]):
    """Process-wide cell that builds an expensive runtime exactly once.

    The first caller installs a shared future and starts the load on a
    background thread; concurrent callers await that same future. A failed
    load clears the cell so a later call starts a fresh attempt.

    Example:
        ```python
        cell = LazyInterpreter(MiniRacer, name="javascript")
        ctx = await cell.get()
        ```
    """

    def __init__(self, factory: Callable[[], T], *, name: str) -> None:
        """Store the factory; nothing is loaded until first use.

        Example:
            ```python
            cell = LazyInterpreter(lambda: object(), name="dummy")
            ```
        """
        self._factory = factory
        self._name = name
        self._lock = threading.Lock()
        self._future: concurrent.futures.Future[T] | None = None
        self.load_count = 0

    def _start(self) -> concurrent.futures.Future[T]:
        """Return the in-flight or finished load, starting one if the cell is empty.

        Example:
            ```python
            future = cell._start()
            ```
        """
        with self._lock:
            if self._future is not None:
                return self._future
            future: concurrent.futures.Future[T] = concurrent.futures.Future()
            self._future = future
            self.load_count += 1
        threading.Thread(
            target=self._load_into,
            args=(future,),
            name=f"{self._name}-interpreter-load",
            daemon=True,
        ).start()
        return future

    def _load_into(self, future: concurrent.futures.Future[T]) -> None:
        """Run the factory and publish its result on the shared future.

        Example:
            ```python
            cell._load_into(concurrent.futures.Future())
            ```
        """
        logger.info("Loading %s interpreter", self._name)
        started = time.perf_counter()
        try:
            instance = self._factory()
        except Exception as exc:
            logger.exception("Failed to load %s interpreter", self._name)
            with self._lock:
                if self._future is future:
                    self._future = None
            future.set_exception(
                InterpreterInitError(f"Failed to load {self._name} runtime: {exc}")
            )
            return
        logger.info(
            "%s interpreter ready in %.0fms", self._name, (time.perf_counter() - started) * 1000
        )
        future.set_result(instance)

    async def get(self) -> T:
        """Return the runtime, awaiting the single shared load if needed.

        Example:
            ```python
            ctx = await cell.get()
            ```
        """
        future = self._start()
        return await asyncio.shield(asyncio.wrap_future(future))

    def get_blocking(self, timeout: float | None = None) -> T:
        """Return the runtime from synchronous code.

        Example:
            ```python
            ctx = cell.get_blocking(timeout=30)
            ```
        """
        return self._start().result(timeout=timeout)

    def preload(self) -> None:
        """Start loading in the background without waiting.

        Example:
            ```python
            cell.preload()
            ```
        """
        self._start()

    @property
    def is_ready(self) -> bool:
        """Return True once a load finished successfully.

        Example:
            ```python
            if cell.is_ready: ...
            ```
        """
        future = self._future
        return future is not None and future.done() and future.exception() is None


class JavaScriptRuntime:
    """The loaded V8 engine; every evaluation gets a fresh context.

    Globals, ``globalThis`` writes and patched built-ins die with the
    context, so one run never sees another run's state. Separate contexts
    evaluate in parallel.

    Example:
        ```python
        runtime = JavaScriptRuntime()
        ```
    """

    def __init__(self, context_factory: Callable[[], MiniRacer] = MiniRacer) -> None:
        """Store the factory used to create one context per evaluation.

        Example:
            ```python
            runtime = JavaScriptRuntime(MiniRacer)
            ```
        """
        self._context_factory = context_factory

    def evaluate(self, script: str, timeout_seconds: float) -> Any:
        """Evaluate a script in a new context and dispose of it afterwards.

        Example:
            ```python
            value = runtime.evaluate("1 + 1", timeout_seconds=1)
            ```
        """
        with self._context_factory() as context:
            return context.eval(script, timeout_sec=timeout_seconds)


def _load_javascript_runtime() -> JavaScriptRuntime:
    """Load the V8 library once by creating and evaluating a throwaway context.

    Example:
        ```python
        runtime = _load_javascript_runtime()
        ```
    """
    with MiniRacer() as warmup:
        warmup.eval("0")
    return JavaScriptRuntime(MiniRacer)


JAVASCRIPT_INTERPRETER: LazyInterpreter[JavaScriptRuntime] = LazyInterpreter(
    _load_javascript_runtime, name="javascript"
)

_CONSOLE_SHIM = """\
  var __cd_logs = [];
  var __cd_errors = [];
  var __cd_fmt = function (args) {
    return Array.prototype.map.call(args, function (a) {
      if (typeof a === "object" && a !== null) {
        try { return JSON.stringify(a); } catch (e) { return String(a); }
      }
      return String(a);
    }).join(" ");
  };
  var console = {
    log: function () { __cd_logs.push(__cd_fmt(arguments)); },
    info: function () { __cd_logs.push(__cd_fmt(arguments)); },
    debug: function () { __cd_logs.push(__cd_fmt(arguments)); },
    warn: function () { __cd_errors.push(__cd_fmt(arguments)); },
    error: function () { __cd_errors.push(__cd_fmt(arguments)); }
  };
"""

_INVOKE = """\
    if (Array.isArray(__cd_entry) && typeof __cd_entry[1] === "function") {
      var __cd_fn = __cd_entry[1];
      __cd_report.found = __cd_entry[0];
      var __cd_value = (Array.isArray(__cd_input) && __cd_fn.length > 1 && __cd_input.length === __cd_fn.length)
        ? __cd_fn.apply(null, __cd_input)
        : __cd_fn(__cd_input);
      if (__cd_value !== undefined) {
        __cd_report.has_result = true;
        __cd_report.result = typeof __cd_value === "object" ? JSON.stringify(__cd_value) : String(__cd_value);
      }
    }
  } catch (e) {
    __cd_report.error = (e instanceof Error) ? e.name + ": " + e.message : String(e);
  }
  return JSON.stringify(__cd_report);
})()
"""


def build_script(code: str, stdin: str, entry_points: list[str]) -> str:
    """Wrap user code in an isolated scope with console capture and input parsing.

    The probe closure is declared ahead of the user code and records what it
    finds in the harness scope, so a top-level ``return`` in the submission
    only skips discovery.

    Example:
        ```python
        script = build_script("function solve(x){return x*2}", "21", ["solve"])
        ```
    """
    raw_literal = json.dumps((stdin or "").strip())
    probes = ", ".join(
        f'["{name}", typeof {name} === "function" ? {name} : undefined]' for name in entry_points
    )
    prelude = (
        "(function () {\n"
        + _CONSOLE_SHIM
        + f"  var __cd_raw = {raw_literal};\n"
        + "  var __cd_input;\n"
        + "  try { __cd_input = JSON.parse(__cd_raw); } catch (e) { __cd_input = __cd_raw; }\n"
        + "  var __cd_report = {found: null, has_result: false, result: \"\","
        + " logs: __cd_logs, errors: __cd_errors, error: null};\n"
        + "  var __cd_entry = null;\n"
        + "  try {\n"
        + "    (function (console, input_data) {\n"
        + "      var __cd_probe = function () {\n"
        + f"        var __cd_candidates = [{probes}];\n"
        + "        for (var __cd_i = 0; __cd_i < __cd_candidates.length; __cd_i++) {\n"
        + "          if (__cd_candidates[__cd_i][1]) { return __cd_candidates[__cd_i]; }\n"
        + "        }\n"
        + "        return null;\n"
        + "      };\n"
    )
    epilogue = (
        "\n;\n"
        + "      __cd_entry = __cd_probe();\n"
        + "    })(console, __cd_input);\n"
    )
    return prelude + code + epilogue + _INVOKE


def _last_line(lines: list[str]) -> str:
    """Return the last non-empty captured console line.

    Example:
        ```python
        _last_line(["a", "", "b"])  # "b"
        ```
    """
    for line in reversed(lines):
        if line.strip():
            return line.strip()
    return ""


def outcome_from_report(report: Any) -> ExecutionOutcome:
    """Convert the harness report into an outcome.

    Example:
        ```python
        outcome = outcome_from_report({"has_result": True, "result": "42", "logs": [], "errors": []})
        ```
    """
    if not isinstance(report, dict):
        return ExecutionOutcome(ExecutionStatus.PARSE_ERROR, error="Interpreter returned an invalid report")
    logs = [str(line) for line in report.get("logs") or []]
    errors = [str(line) for line in report.get("errors") or []]
    stderr = "\n".join(errors)
    if report.get("error"):
        return ExecutionOutcome(
            ExecutionStatus.RUNTIME_ERROR,
            stdout="\n".join(logs),
            stderr=stderr,
            error=str(report["error"]),
        )
    output = str(report.get("result", "")) if report.get("has_result") else _last_line(logs)
    return ExecutionOutcome(ExecutionStatus.SUCCESS, stdout=output, stderr=stderr)


class EmbeddedEngine:
    """Execute JavaScript in the shared, lazily loaded V8 runtime.

    Example:
        ```python
        engine = EmbeddedEngine(timeout_seconds=5, entry_points=["solve", "main"])
        ```
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 5,
        entry_points: list[str] | None = None,
        interpreter: LazyInterpreter[JavaScriptRuntime] | None = None,
    ) -> None:
        """Initialize the engine against the process-wide interpreter cell.

        Example:
            ```python
            engine = EmbeddedEngine(interpreter=LazyInterpreter(_load_javascript_runtime, name="test"))
            ```
        """
        if timeout_seconds <= 0:
            raise ValueError("EmbeddedEngine requires a positive 'timeout_seconds'")
        self._timeout_seconds = timeout_seconds
        self._entry_points = list(entry_points or ["solve", "solution", "main", "run"])
        self._interpreter = interpreter or JAVASCRIPT_INTERPRETER

    async def execute(self, config: LanguageConfig, request: ExecutionRequest) -> ExecutionOutcome:
        """Load the runtime if needed, then run one request.

        Example:
            ```python
            outcome = await engine.execute(resolve("js"), ExecutionRequest(code=src, language="js", stdin="21"))
            ```
        """
        started = time.perf_counter()
        try:
            runtime = await self._interpreter.get()
        except InterpreterInitError as exc:
            return ExecutionOutcome(ExecutionStatus.INTERPRETER_INIT_ERROR, error=str(exc))
        script = build_script(request.code, request.stdin, self._entry_points)
        outcome = await asyncio.to_thread(self._evaluate, runtime, script)
        outcome.duration_ms = (time.perf_counter() - started) * 1000
        return outcome

    def _evaluate(self, runtime: JavaScriptRuntime, script: str) -> ExecutionOutcome:
        """Evaluate the wrapped script and map V8 failures to outcomes.

        Example:
            ```python
            outcome = engine._evaluate(runtime, build_script("console.log(1)", "", ["solve"]))
            ```
        """
        try:
            raw = runtime.evaluate(script, self._timeout_seconds)
        except JSParseException as exc:
            return ExecutionOutcome(ExecutionStatus.COMPILE_ERROR, error=f"SyntaxError: {exc}")
        except JSTimeoutException:
            return ExecutionOutcome(
                ExecutionStatus.TIMEOUT,
                error=f"Execution timed out after {self._timeout_seconds:g}s",
            )
        except JSEvalException as exc:
            return ExecutionOutcome(ExecutionStatus.RUNTIME_ERROR, error=str(exc))
        try:
            report = json.loads(raw) if isinstance(raw, str) else None
        except json.JSONDecodeError:
            report = None
        return outcome_from_report(report)


def preload_interpreter() -> None:
    """Start loading the JavaScript runtime in the background.

    Example:
        ```python
        preload_interpreter()
        ```
    """
    JAVASCRIPT_INTERPRETER.preload()


def is_interpreter_loaded() -> bool:
    """Return True when the JavaScript runtime is ready.

    Example:
        ```python
        is_interpreter_loaded()
        ```
    """
    return JAVASCRIPT_INTERPRETER.is_ready
