from __future__ import annotations

import json
from pathlib import Path

import pytest
from rich.console import Console

from cdx import cli
from code_dispatch.execution.types import ExecutionResult, ExecutionStatus


class _FakeDispatcher:
    instances: list["_FakeDispatcher"] = []

    def __init__(self, settings=None, **kwargs) -> None:
        self.settings = settings
        self.calls: list[tuple[str, str, str]] = []
        _FakeDispatcher.instances.append(self)

    def select_engine(self, config):
        return object(), config.interpreter is not None and self.settings.local_execution

    async def execute(self, code: str, language: str, stdin: str = "") -> ExecutionResult:
        self.calls.append((code, language, stdin))
        if "raise" in code:
            return ExecutionResult(
                success=False,
                output="",
                error="ValueError: nope",
                language="python",
                version="3.12.0",
                status=ExecutionStatus.RUNTIME_ERROR,
            )
        return ExecutionResult(
            success=True,
            output=str(int(stdin or "0") * 2),
            error=None,
            language="python",
            version="3.12.0",
            execution_time_ms=3.0,
        )


@pytest.fixture(autouse=True)
def _patch_dispatcher(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeDispatcher.instances = []
    monkeypatch.setattr(cli, "Dispatcher", _FakeDispatcher)
    monkeypatch.setattr(cli, "_CONSOLE", Console(width=200))
    monkeypatch.delenv("CODE_DISPATCH_LOCAL_EXECUTION", raising=False)
    monkeypatch.delenv("CODE_DISPATCH_ENDPOINT", raising=False)


def _source(tmp_path: Path, code: str = "def solve(x):\n    return x * 2\n") -> str:
    path = tmp_path / "solution.py"
    path.write_text(code, encoding="utf-8")
    return str(path)


def test_cli_run_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", _source(tmp_path), "--language", "py", "--stdin", "21", "--json"])
    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["success"] is True
    assert payload["output"] == "42"
    assert payload["status"] == "success"
    assert _FakeDispatcher.instances[0].calls[0][1:] == ("py", "21")


def test_cli_run_reads_stdin_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    stdin_file = tmp_path / "input.txt"
    stdin_file.write_text("5", encoding="utf-8")
    code = cli.main(["run", _source(tmp_path), "-l", "python", "--stdin-file", str(stdin_file)])
    assert code == 0
    assert "10" in capsys.readouterr().out


def test_cli_run_failure_exit_code(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", _source(tmp_path, "raise ValueError('nope')"), "-l", "python"])
    assert code == 1
    assert "ValueError: nope" in capsys.readouterr().out


def test_cli_remote_flag_disables_local_execution(tmp_path: Path) -> None:
    cli.main(["--remote", "run", _source(tmp_path), "-l", "python", "--stdin", "1"])
    assert _FakeDispatcher.instances[0].settings.local_execution is False


def test_cli_grade(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cases = tmp_path / "cases.json"
    cases.write_text(json.dumps([{"input": 21, "expected": 42}, {"input": "2", "expected": "5"}]))
    code = cli.main(["grade", _source(tmp_path), "-l", "python", "--cases", str(cases)])
    output = capsys.readouterr().out
    assert code == 1
    assert "1/2 passed" in output


def test_cli_grade_rejects_malformed_cases(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cases = tmp_path / "cases.json"
    cases.write_text(json.dumps({"input": 1}))
    code = cli.main(["grade", _source(tmp_path), "-l", "python", "--cases", str(cases)])
    assert code == 2
    assert "JSON list of objects" in capsys.readouterr().out


def test_cli_languages_lists_backends(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["languages"])
    output = capsys.readouterr().out
    assert code == 0
    assert "JavaScript" in output
    assert "embedded" in output
    assert "remote" in output


def test_cli_help_renders(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    output = capsys.readouterr().out
    assert exc.value.code == 0
    assert "Usage:" in output
    assert "code-dispatch CLI" in output
    assert "Quick Examples:" in output


def test_cli_unknown_command_errors(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["explode"])
    assert exc.value.code == 2
    assert "Error:" in capsys.readouterr().out
