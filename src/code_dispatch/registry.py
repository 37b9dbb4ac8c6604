"""Static language table.

The table is compiled in so that resolving a language never needs a round
trip to the remote service's runtime listing.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from enum import StrEnum


class LocalInterpreter(StrEnum):
    """Local execution path available for a language.

    Example:
        ```python
        kind = LocalInterpreter.PYTHON
        ```
    """

    PYTHON = "python"
    JAVASCRIPT = "javascript"


LOCAL_VERSIONS = {
    LocalInterpreter.PYTHON: platform.python_version(),
    LocalInterpreter.JAVASCRIPT: "v8",
}


@dataclass(frozen=True, slots=True)
class LanguageConfig:
    """Execution parameters for one canonical language.

    Example:
        ```python
        cfg = LanguageConfig("java", "Java", "java", "15.0.2", "Main.java")
        ```
    """

    name: str
    display_name: str
    runtime: str
    version: str
    source_file_name: str
    interpreter: LocalInterpreter | None = None
    aliases: tuple[str, ...] = ()

    @property
    def local_version(self) -> str | None:
        """Return the version label of the local interpreter, if any.

        Example:
            ```python
            resolve("py").local_version
            ```
        """
        if self.interpreter is None:
            return None
        return LOCAL_VERSIONS[self.interpreter]


@dataclass(frozen=True, slots=True)
class NotSupported:
    """Lookup failure carrying the identifier and the supported set.

    Example:
        ```python
        miss = NotSupported("cobol", ("JavaScript", "Python"))
        ```
    """

    identifier: str
    supported: tuple[str, ...]

    @property
    def message(self) -> str:
        """Return the user-facing error naming the supported languages.

        Example:
            ```python
            text = NotSupported("cobol", ("Python",)).message
            ```
        """
        return (
            f'Language "{self.identifier}" is not supported. '
            f"Supported: {', '.join(self.supported)}"
        )


LANGUAGES: tuple[LanguageConfig, ...] = (
    LanguageConfig(
        "javascript", "JavaScript", "javascript", "18.15.0", "script.js",
        LocalInterpreter.JAVASCRIPT, ("js", "node"),
    ),
    LanguageConfig(
        "python", "Python", "python", "3.10.0", "main.py",
        LocalInterpreter.PYTHON, ("py", "python3"),
    ),
    LanguageConfig("java", "Java", "java", "15.0.2", "Main.java"),
    LanguageConfig("cpp", "C++", "c++", "10.2.0", "main.cpp", aliases=("c++",)),
    LanguageConfig("c", "C", "c", "10.2.0", "main.c"),
    LanguageConfig("typescript", "TypeScript", "typescript", "5.0.3", "script.ts", aliases=("ts",)),
    LanguageConfig("ruby", "Ruby", "ruby", "3.0.1", "main.rb", aliases=("rb",)),
    LanguageConfig("go", "Go", "go", "1.16.2", "main.go", aliases=("golang",)),
    LanguageConfig("rust", "Rust", "rust", "1.68.2", "main.rs", aliases=("rs",)),
    LanguageConfig("php", "PHP", "php", "8.2.3", "main.php"),
)

_BY_IDENTIFIER: dict[str, LanguageConfig] = {
    key: cfg for cfg in LANGUAGES for key in (cfg.name, *cfg.aliases)
}
_SUPPORTED_DISPLAY = tuple(cfg.display_name for cfg in LANGUAGES)


def normalize_language(identifier: str) -> str:
    """Return the lookup key for a raw identifier.

    Example:
        ```python
        normalize_language("  C++ ")  # "c++"
        ```
    """
    return (identifier or "").strip().lower()


def resolve(identifier: str) -> LanguageConfig | NotSupported:
    """Resolve an identifier or alias to its language config.

    Example:
        ```python
        cfg = resolve("JS")
        ```
    """
    cfg = _BY_IDENTIFIER.get(normalize_language(identifier))
    if cfg is None:
        return NotSupported(identifier=identifier, supported=_SUPPORTED_DISPLAY)
    return cfg


def is_supported(identifier: str) -> bool:
    """Return True when the identifier resolves.

    Example:
        ```python
        is_supported("golang")
        ```
    """
    return normalize_language(identifier) in _BY_IDENTIFIER


def is_local_language(identifier: str) -> bool:
    """Return True when the language has a local interpreter path.

    Example:
        ```python
        is_local_language("py")
        ```
    """
    cfg = _BY_IDENTIFIER.get(normalize_language(identifier))
    return cfg is not None and cfg.interpreter is not None


def supported_languages() -> tuple[LanguageConfig, ...]:
    """Return every canonical language config in table order.

    Example:
        ```python
        names = [cfg.name for cfg in supported_languages()]
        ```
    """
    return LANGUAGES
