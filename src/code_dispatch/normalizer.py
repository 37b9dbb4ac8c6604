from __future__ import annotations

from .execution.types import ExecutionOutcome, ExecutionResult, ExecutionStatus
from .registry import LanguageConfig

UNKNOWN = "unknown"


def _clip(text: str, limit_bytes: int) -> tuple[str, bool]:
    """Clip text to a UTF-8 byte limit and report whether it was cut.

    A multi-byte character that would straddle the limit is dropped whole.

    Example:
        ```python
        text, cut = _clip("x" * 10, 4)  # ("xxxx", True)
        ```
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= limit_bytes:
        return text, False
    return encoded[:limit_bytes].decode("utf-8", errors="ignore"), True


def normalize(
    outcome: ExecutionOutcome,
    config: LanguageConfig,
    *,
    max_output_kb: int,
    local: bool = False,
) -> ExecutionResult:
    """Turn a backend outcome into the canonical result.

    Language and version always come from the resolved config. Only remote
    runtime errors keep partial output; every other failure reports through
    `error` alone.

    Example:
        ```python
        result = normalize(outcome, resolve("java"), max_output_kb=64)
        ```
    """
    limit = max(1, max_output_kb) * 1024
    success = outcome.status is ExecutionStatus.SUCCESS
    partial = not local and outcome.status is ExecutionStatus.RUNTIME_ERROR

    if success or partial:
        output, output_cut = _clip(outcome.stdout or "", limit)
    else:
        output, output_cut = "", False

    error_text = outcome.error or ""
    if not error_text and not success:
        error_text = outcome.stderr or outcome.status.value.replace("_", " ").capitalize()
    error, error_cut = _clip(error_text, limit)

    version = config.local_version if local and config.local_version else config.version
    return ExecutionResult(
        success=success,
        output=output,
        error=error or None,
        language=config.name,
        version=version,
        execution_time_ms=outcome.duration_ms,
        status=outcome.status,
        truncated=output_cut or error_cut,
    )


def failure(
    status: ExecutionStatus,
    message: str,
    config: LanguageConfig | None = None,
) -> ExecutionResult:
    """Build a failed result for errors raised before any backend ran.

    Example:
        ```python
        result = failure(ExecutionStatus.EMPTY_INPUT, "No code provided.")
        ```
    """
    return ExecutionResult(
        success=False,
        output="",
        error=message,
        language=config.name if config else UNKNOWN,
        version=config.version if config else UNKNOWN,
        status=status,
    )
