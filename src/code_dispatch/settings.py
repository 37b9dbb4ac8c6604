from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

ENV_ENDPOINT = "CODE_DISPATCH_ENDPOINT"
ENV_LOCAL_EXECUTION = "CODE_DISPATCH_LOCAL_EXECUTION"


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read settings TOML and return the dispatch table as a dictionary.

    Example:
        ```python
        raw = _read_settings_toml(Path("/tmp/dispatch.toml"))
        ```
    """
    if not path.exists():
        return {
            "endpoint": "https://emkc.org/api/v2/piston",
            "client_timeout_seconds": 15,
            "compile_timeout_ms": 10000,
            "run_timeout_ms": 5000,
            "local_execution": True,
            "local_languages": ["python", "javascript"],
            "local_timeout_seconds": 5,
            "memory_limit_mb": 256,
            "max_output_kb": 64,
            "entry_points": ["solve", "solution", "main", "run"],
            "blocked_imports": [
                "os", "subprocess", "socket", "ctypes", "importlib", "shutil", "multiprocessing",
            ],
            "blocked_builtins": ["eval", "exec", "open", "compile", "breakpoint"],
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    table = raw.get("dispatch", raw)
    if not isinstance(table, dict):
        raise ValueError("Settings config must be a TOML table")
    return table


def _list_of_str(value: Any, field_name: str) -> list[str]:
    """Validate and normalize a list-of-strings settings field.

    Example:
        ```python
        names = _list_of_str(["solve", "main"], "entry_points")
        ```
    """
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{field_name}' must be a list of strings")
    out: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"'{field_name}' must contain only strings")
        out.append(item)
    return out


def _parse_bool(value: str | None, default: bool) -> bool:
    """Parse an environment flag.

    Example:
        ```python
        enabled = _parse_bool("yes", default=False)
        ```
    """
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


_DEFAULT_RAW = _read_settings_toml(_default_settings_path())
DEFAULT_ENDPOINT = str(_DEFAULT_RAW.get("endpoint", "https://emkc.org/api/v2/piston"))
DEFAULT_CLIENT_TIMEOUT_SECONDS = float(_DEFAULT_RAW.get("client_timeout_seconds", 15))
DEFAULT_COMPILE_TIMEOUT_MS = int(_DEFAULT_RAW.get("compile_timeout_ms", 10000))
DEFAULT_RUN_TIMEOUT_MS = int(_DEFAULT_RAW.get("run_timeout_ms", 5000))
DEFAULT_LOCAL_EXECUTION = bool(_DEFAULT_RAW.get("local_execution", True))
DEFAULT_LOCAL_LANGUAGES = _list_of_str(_DEFAULT_RAW.get("local_languages", []), "local_languages")
DEFAULT_LOCAL_TIMEOUT_SECONDS = float(_DEFAULT_RAW.get("local_timeout_seconds", 5))
DEFAULT_MEMORY_LIMIT_MB = int(_DEFAULT_RAW.get("memory_limit_mb", 256))
DEFAULT_MAX_OUTPUT_KB = int(_DEFAULT_RAW.get("max_output_kb", 64))
DEFAULT_ENTRY_POINTS = _list_of_str(_DEFAULT_RAW.get("entry_points", []), "entry_points")
DEFAULT_BLOCKED_IMPORTS = _list_of_str(_DEFAULT_RAW.get("blocked_imports", []), "blocked_imports")
DEFAULT_BLOCKED_BUILTINS = _list_of_str(
    _DEFAULT_RAW.get("blocked_builtins", []), "blocked_builtins"
)


@dataclass(slots=True)
class DispatchSettings:
    """Backend selection, budgets and local guardrails for the dispatcher.

    Example:
        ```python
        settings = DispatchSettings(local_execution=False, client_timeout_seconds=10)
        ```
    """

    endpoint: str = DEFAULT_ENDPOINT
    client_timeout_seconds: float = DEFAULT_CLIENT_TIMEOUT_SECONDS
    compile_timeout_ms: int = DEFAULT_COMPILE_TIMEOUT_MS
    run_timeout_ms: int = DEFAULT_RUN_TIMEOUT_MS
    local_execution: bool = DEFAULT_LOCAL_EXECUTION
    local_languages: list[str] = field(default_factory=lambda: DEFAULT_LOCAL_LANGUAGES.copy())
    local_timeout_seconds: float = DEFAULT_LOCAL_TIMEOUT_SECONDS
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    entry_points: list[str] = field(default_factory=lambda: DEFAULT_ENTRY_POINTS.copy())
    blocked_imports: list[str] = field(default_factory=lambda: DEFAULT_BLOCKED_IMPORTS.copy())
    blocked_builtins: list[str] = field(default_factory=lambda: DEFAULT_BLOCKED_BUILTINS.copy())
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate budgets and entry-point names after initialization.

        Example:
            ```python
            DispatchSettings(compile_timeout_ms=10000, run_timeout_ms=5000)
            ```
        """
        if not self.endpoint.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        if self.client_timeout_seconds <= 0 or self.local_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.run_timeout_ms <= 0 or self.compile_timeout_ms < self.run_timeout_ms:
            raise ValueError("compile_timeout_ms must be >= run_timeout_ms > 0")
        if self.max_output_kb <= 0:
            raise ValueError("max_output_kb must be positive")
        if not self.entry_points:
            raise ValueError("entry_points must name at least one function")
        for name in self.entry_points:
            if not name.isidentifier():
                raise ValueError(f"Invalid entry point name: {name!r}")
        self.endpoint = self.endpoint.rstrip("/")
        self.local_languages = [lang.strip().lower() for lang in self.local_languages if lang.strip()]

    def runs_locally(self, language: str) -> bool:
        """Return True when local execution is enabled for a canonical language.

        Example:
            ```python
            DispatchSettings().runs_locally("python")
            ```
        """
        return self.local_execution and language in self.local_languages

    @classmethod
    def from_file(cls, config_path: str) -> "DispatchSettings":
        """Create settings from a TOML file.

        Example:
            ```python
            settings = DispatchSettings.from_file("/etc/code-dispatch.toml")
            ```
        """
        raw = _read_settings_toml(Path(config_path))
        return cls(
            endpoint=str(raw.get("endpoint", DEFAULT_ENDPOINT)),
            client_timeout_seconds=float(
                raw.get("client_timeout_seconds", DEFAULT_CLIENT_TIMEOUT_SECONDS)
            ),
            compile_timeout_ms=int(raw.get("compile_timeout_ms", DEFAULT_COMPILE_TIMEOUT_MS)),
            run_timeout_ms=int(raw.get("run_timeout_ms", DEFAULT_RUN_TIMEOUT_MS)),
            local_execution=bool(raw.get("local_execution", DEFAULT_LOCAL_EXECUTION)),
            local_languages=_list_of_str(
                raw.get("local_languages", DEFAULT_LOCAL_LANGUAGES), "local_languages"
            ),
            local_timeout_seconds=float(
                raw.get("local_timeout_seconds", DEFAULT_LOCAL_TIMEOUT_SECONDS)
            ),
            memory_limit_mb=int(raw.get("memory_limit_mb", DEFAULT_MEMORY_LIMIT_MB)),
            max_output_kb=int(raw.get("max_output_kb", DEFAULT_MAX_OUTPUT_KB)),
            entry_points=_list_of_str(raw.get("entry_points", DEFAULT_ENTRY_POINTS), "entry_points"),
            blocked_imports=_list_of_str(
                raw.get("blocked_imports", DEFAULT_BLOCKED_IMPORTS), "blocked_imports"
            ),
            blocked_builtins=_list_of_str(
                raw.get("blocked_builtins", DEFAULT_BLOCKED_BUILTINS), "blocked_builtins"
            ),
            config_path=config_path,
        )

    def with_env(self, environ: dict[str, str] | None = None) -> "DispatchSettings":
        """Return a copy with endpoint / backend selection overridden from the environment.

        Example:
            ```python
            settings = DispatchSettings().with_env({"CODE_DISPATCH_LOCAL_EXECUTION": "false"})
            ```
        """
        env = os.environ if environ is None else environ
        return replace(
            self,
            endpoint=env.get(ENV_ENDPOINT) or self.endpoint,
            local_execution=_parse_bool(env.get(ENV_LOCAL_EXECUTION), self.local_execution),
        )

    @classmethod
    def from_env(cls, config_path: str | None = None) -> "DispatchSettings":
        """Load settings from an optional file, then apply environment overrides.

        Example:
            ```python
            settings = DispatchSettings.from_env()
            ```
        """
        base = cls.from_file(config_path) if config_path else cls()
        return base.with_env()
