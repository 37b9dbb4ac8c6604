"""Isolated Python worker for the direct-evaluation path.

Reads one JSON request on stdin, runs the user code in a fresh namespace and
writes one JSON response on stdout. Only the standard library is imported
here because the worker runs under ``python -I``.
"""

from __future__ import annotations

import contextlib
import inspect
import io
import json
import sys
import traceback
from typing import Any, Callable

_resource: Any
try:
    import resource as _resource_module  # POSIX only
    _resource = _resource_module
except ImportError:  # pragma: no cover - platform specific
    _resource = None


def _set_limits(memory_limit_mb: int) -> list[str]:
    """Apply an address-space limit to the worker process.

    Example:
        ```python
        problems = _set_limits(256)
        ```
    """
    errors: list[str] = []
    if _resource is None:
        errors.append("RLIMIT limits unavailable on this platform")
        return errors

    mem_bytes = int(memory_limit_mb) * 1024 * 1024

    try:
        _, current_hard = _resource.getrlimit(_resource.RLIMIT_AS)
        if current_hard in (-1, _resource.RLIM_INFINITY):
            target_hard = mem_bytes
        else:
            target_hard = min(mem_bytes, current_hard)
        target_soft = min(mem_bytes, target_hard)
        _resource.setrlimit(_resource.RLIMIT_AS, (target_soft, target_hard))
    except (ValueError, OSError) as exc:
        errors.append(f"RLIMIT_AS not applied: {exc}")

    return errors


def _safe_import_factory(blocked_imports: set[str]) -> Callable[..., Any]:
    """Build an ``__import__`` replacement that rejects blocked modules.

    Example:
        ```python
        safe_import = _safe_import_factory({"os"})
        ```
    """

    def _safe_import(
        name: str,
        globals: dict[str, Any] | None = None,
        locals: dict[str, Any] | None = None,
        fromlist: Any = (),
        level: int = 0,
    ) -> Any:
        """Import a module unless its root package is blocked.

        Example:
            ```python
            math = _safe_import("math")
            ```
        """
        if name == "importlib" or name.startswith("importlib."):
            raise ImportError("Import 'importlib' is blocked by policy")
        if name.split(".")[0] in blocked_imports:
            raise ImportError(f"Import '{name}' is blocked by policy")
        return __import__(name, globals, locals, fromlist, level)

    return _safe_import


def _build_safe_builtins(blocked_builtins: set[str], safe_import: Any) -> dict[str, Any]:
    """Return the builtins mapping exposed to user code.

    Example:
        ```python
        builtins = _build_safe_builtins({"eval"}, _safe_import_factory(set()))
        ```
    """
    raw_builtins = __builtins__
    if isinstance(raw_builtins, dict):
        builtins_obj: dict[str, Any] = raw_builtins
    else:
        builtins_obj = vars(raw_builtins)

    safe = {name: value for name, value in builtins_obj.items() if name not in blocked_builtins}
    safe["__import__"] = safe_import
    return safe


def parse_input(raw: str) -> Any:
    """Parse stdin as JSON, falling back to the trimmed raw string.

    Example:
        ```python
        parse_input("[1, 2]")  # [1, 2]
        ```
    """
    text = (raw or "").strip()
    try:
        return json.loads(text)
    except ValueError:
        return text


def find_entry_point(namespace: dict[str, Any], candidates: list[str]) -> tuple[str, Callable[..., Any]] | None:
    """Return the first candidate name bound to a callable, in list order.

    Example:
        ```python
        found = find_entry_point({"solve": abs}, ["solve", "main"])
        ```
    """
    for name in candidates:
        value = namespace.get(name)
        if callable(value):
            return name, value
    return None


def _positional_arity(func: Callable[..., Any]) -> int | None:
    """Return the number of positional parameters, or None if unknowable.

    Example:
        ```python
        _positional_arity(lambda a, b: a + b)  # 2
        ```
    """
    try:
        params = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):
        return None
    kinds = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    return sum(1 for param in params if param.kind in kinds)


def invoke_entry_point(func: Callable[..., Any], value: Any) -> Any:
    """Call the entry point once, spreading a list that matches its arity.

    Example:
        ```python
        invoke_entry_point(lambda a, b: a + b, [1, 2])  # 3
        ```
    """
    arity = _positional_arity(func)
    if isinstance(value, list) and arity is not None and arity > 1 and len(value) == arity:
        return func(*value)
    return func(value)


def render_value(value: Any) -> str:
    """Render a returned value as output text.

    Example:
        ```python
        render_value({"a": 1})  # '{"a": 1}'
        ```
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, dict)):
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def last_line(text: str) -> str:
    """Return the last non-empty line of captured output.

    Example:
        ```python
        last_line("a\\nb\\n")  # "b"
        ```
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


def _normalize_system_exit(exit_code: Any) -> tuple[bool, int, str | None]:
    """Map a SystemExit code to (ok, exit code, error).

    Example:
        ```python
        _normalize_system_exit(0)  # (True, 0, None)
        ```
    """
    if exit_code in (None, 0):
        return True, 0, None
    if isinstance(exit_code, int):
        return False, exit_code, f"SystemExit: {exit_code}"
    return False, 1, f"SystemExit: {exit_code}"


def _clip_utf8(text: str, limit_bytes: int) -> str:
    """Clip text to a UTF-8 byte limit without splitting a character.

    Example:
        ```python
        _clip_utf8("héllo", 2)  # "h"
        ```
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= limit_bytes:
        return text
    return encoded[:limit_bytes].decode("utf-8", errors="ignore")


def _response(
    kind: str,
    *,
    output: str = "",
    stdout: str = "",
    stderr: str = "",
    error: str | None = None,
    entry_point: str | None = None,
) -> dict[str, Any]:
    """Build the JSON response written back to the engine.

    Example:
        ```python
        resp = _response("success", output="42")
        ```
    """
    return {
        "kind": kind,
        "output": output,
        "stdout": stdout,
        "stderr": stderr,
        "error": error,
        "entry_point": entry_point,
    }


def run_request(req: dict[str, Any]) -> tuple[dict[str, Any], int]:
    """Execute one request dictionary and return (response, exit code).

    Example:
        ```python
        resp, code = run_request({"code": "def solve(x): return x * 2", "stdin": "21"})
        ```
    """
    code: str = req.get("code", "")
    raw_stdin: str = req.get("stdin", "") or ""
    entry_points = list(req.get("entry_points", ["solve", "solution", "main", "run"]))
    max_output_bytes = int(req.get("max_output_kb", 64)) * 1024
    blocked_imports = set(req.get("blocked_imports", []))
    blocked_builtins = set(req.get("blocked_builtins", []))

    try:
        byte_code = compile(code, "<user_code>", "exec")
    except SyntaxError as e:
        return _response("syntax_error", error=f"SyntaxError: {e}"), 1

    parsed_input = parse_input(raw_stdin)
    exec_globals: dict[str, Any] = {
        "__builtins__": _build_safe_builtins(blocked_builtins, _safe_import_factory(blocked_imports)),
        "__name__": "__main__",
        "input_data": parsed_input,
    }
    stdout_buffer = io.StringIO()
    stderr_buffer = io.StringIO()
    found: tuple[str, Callable[..., Any]] | None = None
    result: Any = None
    system_exit: SystemExit | None = None

    saved_stdin = sys.stdin
    sys.stdin = io.StringIO(raw_stdin)
    try:
        with (
            contextlib.redirect_stdout(stdout_buffer),
            contextlib.redirect_stderr(stderr_buffer),
        ):
            exec(byte_code, exec_globals, exec_globals)
            found = find_entry_point(exec_globals, entry_points)
            if found is not None:
                result = invoke_entry_point(found[1], parsed_input)
    except SystemExit as exc:
        system_exit = exc
    except Exception as exc:
        stderr_buffer.write(traceback.format_exc())
        return (
            _response(
                "runtime_error",
                stdout=_clip_utf8(stdout_buffer.getvalue(), max_output_bytes),
                stderr=_clip_utf8(stderr_buffer.getvalue(), max_output_bytes),
                error=f"{type(exc).__name__}: {exc}",
                entry_point=found[0] if found else None,
            ),
            1,
        )
    finally:
        sys.stdin = saved_stdin

    stdout_text = _clip_utf8(stdout_buffer.getvalue(), max_output_bytes)
    stderr_text = _clip_utf8(stderr_buffer.getvalue(), max_output_bytes)

    if system_exit is not None:
        ok, exit_code, error = _normalize_system_exit(system_exit.code)
        if isinstance(system_exit.code, str):
            stderr_text += f"{system_exit.code}\n"
        if not ok:
            return (
                _response("runtime_error", stdout=stdout_text, stderr=stderr_text, error=error),
                exit_code,
            )

    if found is not None and result is not None:
        output = render_value(result)
    else:
        output = last_line(stdout_text)

    return (
        _response(
            "success",
            output=_clip_utf8(output, max_output_bytes),
            stdout=stdout_text,
            stderr=stderr_text,
            entry_point=found[0] if found else None,
        ),
        0,
    )


def main() -> int:
    """Worker entry point: JSON request on stdin, JSON response on stdout.

    Example:
        ```python
        raise SystemExit(main())
        ```
    """
    req = json.loads(sys.stdin.read() or "{}")
    try:
        _set_limits(memory_limit_mb=int(req.get("memory_limit_mb", 256)))
        resp, exit_code = run_request(req)
    except MemoryError:
        resp, exit_code = _response("runtime_error", error="Memory limit exceeded"), 2
    except Exception as e:
        resp, exit_code = _response("runtime_error", error=str(e)), 1
    sys.stdout.write(json.dumps(resp, default=str))
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
