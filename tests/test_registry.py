import pytest

from code_dispatch.registry import (
    LocalInterpreter,
    NotSupported,
    is_local_language,
    is_supported,
    resolve,
    supported_languages,
)


@pytest.mark.parametrize(
    ("identifier", "name", "runtime", "source_file"),
    [
        ("js", "javascript", "javascript", "script.js"),
        ("Node", "javascript", "javascript", "script.js"),
        ("python3", "python", "python", "main.py"),
        ("  JAVA ", "java", "java", "Main.java"),
        ("c++", "cpp", "c++", "main.cpp"),
        ("golang", "go", "go", "main.go"),
        ("rs", "rust", "rust", "main.rs"),
    ],
)
def test_aliases_resolve_to_canonical_config(identifier: str, name: str, runtime: str, source_file: str) -> None:
    cfg = resolve(identifier)
    assert not isinstance(cfg, NotSupported)
    assert cfg.name == name
    assert cfg.runtime == runtime
    assert cfg.source_file_name == source_file


def test_unknown_language_lists_supported_set() -> None:
    miss = resolve("brainfuck")
    assert isinstance(miss, NotSupported)
    assert miss.identifier == "brainfuck"
    assert miss.message.startswith('Language "brainfuck" is not supported. Supported: JavaScript, Python')
    assert not is_supported("brainfuck")
    assert not is_supported("")


def test_only_python_and_javascript_have_local_interpreters() -> None:
    local = {cfg.name: cfg.interpreter for cfg in supported_languages() if cfg.interpreter is not None}
    assert local == {"python": LocalInterpreter.PYTHON, "javascript": LocalInterpreter.JAVASCRIPT}
    assert is_local_language("PY")
    assert not is_local_language("java")


def test_canonical_names_and_aliases_are_unique() -> None:
    keys = [key for cfg in supported_languages() for key in (cfg.name, *cfg.aliases)]
    assert len(keys) == len(set(keys))
    assert all(key == key.lower() for key in keys)


def test_remote_languages_have_no_local_version() -> None:
    java = resolve("java")
    python = resolve("python")
    assert not isinstance(java, NotSupported) and not isinstance(python, NotSupported)
    assert java.local_version is None
    assert python.local_version
    assert python.version == "3.10.0"
