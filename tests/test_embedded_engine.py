from __future__ import annotations

import asyncio
import json
import threading
import time

import pytest

from code_dispatch.execution.embedded_engine import (
    JAVASCRIPT_INTERPRETER,
    EmbeddedEngine,
    InterpreterInitError,
    JavaScriptRuntime,
    LazyInterpreter,
    build_script,
    is_interpreter_loaded,
    outcome_from_report,
    preload_interpreter,
)
from code_dispatch.execution.types import ExecutionRequest, ExecutionStatus
from code_dispatch.registry import resolve

JS = resolve("javascript")


def _run(engine: EmbeddedEngine, code: str, stdin: str = ""):
    return asyncio.run(engine.execute(JS, ExecutionRequest(code=code, language="javascript", stdin=stdin)))


def test_concurrent_first_calls_share_one_load() -> None:
    calls = 0
    guard = threading.Lock()

    def factory() -> object:
        nonlocal calls
        with guard:
            calls += 1
        time.sleep(0.2)
        return object()

    cell: LazyInterpreter[object] = LazyInterpreter(factory, name="counting")
    assert not cell.is_ready

    async def burst() -> list[object]:
        return await asyncio.gather(*(cell.get() for _ in range(5)))

    results = asyncio.run(burst())

    assert calls == 1
    assert cell.load_count == 1
    assert all(result is results[0] for result in results)
    assert cell.is_ready
    assert cell.get_blocking(timeout=1) is results[0]


def test_failed_load_is_reported_then_retried() -> None:
    attempts = 0

    def factory() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise OSError("libmini_racer.so not found")
        return "runtime"

    cell: LazyInterpreter[str] = LazyInterpreter(factory, name="flaky")

    with pytest.raises(InterpreterInitError, match="Failed to load flaky runtime"):
        asyncio.run(cell.get())
    assert not cell.is_ready

    assert asyncio.run(cell.get()) == "runtime"
    assert cell.load_count == 2


def test_failed_load_becomes_interpreter_init_error() -> None:
    def factory():
        raise OSError("no V8 for this platform")

    engine = EmbeddedEngine(interpreter=LazyInterpreter(factory, name="javascript"))
    outcome = _run(engine, "function solve(x){return x}", "1")

    assert outcome.status is ExecutionStatus.INTERPRETER_INIT_ERROR
    assert "no V8 for this platform" in (outcome.error or "")


def test_build_script_embeds_input_as_literal() -> None:
    script = build_script("function solve(x){return x}", '  "quoted" \n', ["solve", "main"])
    assert json.dumps('"quoted"') in script
    assert 'typeof solve === "function"' in script
    assert 'typeof main === "function"' in script


def test_outcome_from_report_prefers_result_over_logs() -> None:
    with_result = outcome_from_report(
        {"found": "solve", "has_result": True, "result": "42", "logs": ["debug"], "errors": []}
    )
    assert with_result.status is ExecutionStatus.SUCCESS
    assert with_result.stdout == "42"

    logs_only = outcome_from_report(
        {"found": None, "has_result": False, "result": "", "logs": ["first", "last", ""], "errors": ["warn"]}
    )
    assert logs_only.stdout == "last"
    assert logs_only.stderr == "warn"

    thrown = outcome_from_report({"error": "TypeError: x is not a function", "logs": ["partial"]})
    assert thrown.status is ExecutionStatus.RUNTIME_ERROR
    assert thrown.error == "TypeError: x is not a function"

    assert outcome_from_report("garbage").status is ExecutionStatus.PARSE_ERROR


def test_javascript_entry_point_and_console_fallback() -> None:
    engine = EmbeddedEngine(timeout_seconds=5)

    solved = _run(engine, "function solve(x) { return x * 2; }", "21")
    assert solved.status is ExecutionStatus.SUCCESS
    assert solved.stdout == "42"

    spread = _run(engine, "const solution = (a, b) => a + b;", "[2, 40]")
    assert spread.stdout == "42"

    printed = _run(engine, 'console.log("warming up"); console.log("hello");')
    assert printed.status is ExecutionStatus.SUCCESS
    assert printed.stdout == "hello"


def test_javascript_runs_do_not_share_globals() -> None:
    engine = EmbeddedEngine(timeout_seconds=5)
    _run(engine, "var leaked = 1; function solve() { return leaked; }", "")
    second = _run(engine, 'function solve() { return typeof leaked; }', "")
    assert second.stdout == "undefined"


def test_implicit_globals_do_not_reach_later_runs() -> None:
    engine = EmbeddedEngine(timeout_seconds=5)
    _run(engine, 'solve = function (x) { return "from-previous-user"; }; globalThis.main = solve;', "1")

    printed = _run(engine, 'console.log("hello");')
    assert printed.status is ExecutionStatus.SUCCESS
    assert printed.stdout == "hello"


def test_patched_builtins_do_not_reach_later_runs() -> None:
    engine = EmbeddedEngine(timeout_seconds=5)
    _run(engine, "JSON.parse = function () { return 999; }; Array.isArray = function () { return true; };")

    solved = _run(engine, "function solve(x) { return x * 2; }", "21")
    assert solved.stdout == "42"


def test_each_evaluation_gets_a_fresh_context() -> None:
    created: list[object] = []

    class _Context:
        def __enter__(self):
            created.append(self)
            return self

        def __exit__(self, *exc_info) -> None:
            return None

        def eval(self, script: str, timeout_sec: float) -> str:
            return json.dumps({"has_result": True, "result": str(len(created)), "logs": [], "errors": []})

    runtime = JavaScriptRuntime(_Context)
    runtime.evaluate("1", timeout_seconds=1)
    runtime.evaluate("1", timeout_seconds=1)
    assert len(created) == 2
    assert created[0] is not created[1]


def test_quick_run_is_not_queued_behind_a_looping_run() -> None:
    engine = EmbeddedEngine(timeout_seconds=2)
    looping = ExecutionRequest(code="while (true) {}", language="javascript")
    quick = ExecutionRequest(code="function solve(x) { return x; }", language="javascript", stdin="7")

    async def race():
        loop_task = asyncio.create_task(engine.execute(JS, looping))
        await asyncio.sleep(0.2)
        started = time.perf_counter()
        quick_outcome = await engine.execute(JS, quick)
        elapsed = time.perf_counter() - started
        return quick_outcome, elapsed, await loop_task

    JAVASCRIPT_INTERPRETER.get_blocking(timeout=30)
    quick_outcome, elapsed, loop_outcome = asyncio.run(race())

    assert quick_outcome.stdout == "7"
    assert elapsed < 1.0
    assert loop_outcome.status is ExecutionStatus.TIMEOUT


def test_top_level_return_does_not_choose_the_entry_point() -> None:
    engine = EmbeddedEngine(timeout_seconds=5)
    outcome = _run(
        engine,
        'console.log("printed");\nreturn ["solve", function () { return "hijack"; }];',
        "1",
    )
    assert outcome.status is ExecutionStatus.SUCCESS
    assert outcome.stdout == "printed"


def test_javascript_throw_and_syntax_error() -> None:
    engine = EmbeddedEngine(timeout_seconds=5)

    thrown = _run(engine, 'function solve(x) { throw new Error("boom"); }', "1")
    assert thrown.status is ExecutionStatus.RUNTIME_ERROR
    assert thrown.error == "Error: boom"

    broken = _run(engine, "function solve(x) { return x * ; }", "1")
    assert broken.status is not ExecutionStatus.SUCCESS
    assert "SyntaxError" in (broken.error or "")


def test_javascript_infinite_loop_times_out() -> None:
    engine = EmbeddedEngine(timeout_seconds=0.5)
    outcome = _run(engine, "while (true) {}")
    assert outcome.status is ExecutionStatus.TIMEOUT


def test_preload_warms_the_shared_runtime() -> None:
    preload_interpreter()
    JAVASCRIPT_INTERPRETER.get_blocking(timeout=30)
    assert is_interpreter_loaded()

    loads = JAVASCRIPT_INTERPRETER.load_count
    preload_interpreter()
    assert JAVASCRIPT_INTERPRETER.load_count == loads
