from __future__ import annotations

import asyncio

import pytest

from code_dispatch.execution.types import ExecutionResult, ExecutionStatus
from code_dispatch.grading import GradeReport, TestCase, outputs_match, run_test_cases


class _ScriptedDispatcher:
    def __init__(self, outputs: list[ExecutionResult], local: bool = True) -> None:
        self.outputs = list(outputs)
        self.local = local
        self.inputs: list[str] = []

    def select_engine(self, config):
        return object(), self.local

    async def execute(self, code: str, language: str, stdin: str = "") -> ExecutionResult:
        self.inputs.append(stdin)
        return self.outputs.pop(0)


def _ok(output: str) -> ExecutionResult:
    return ExecutionResult(success=True, output=output, error=None, language="python", version="3.12.0")


def _failed(error: str) -> ExecutionResult:
    return ExecutionResult(
        success=False,
        output="",
        error=error,
        language="python",
        version="3.12.0",
        status=ExecutionStatus.RUNTIME_ERROR,
    )


@pytest.mark.parametrize(
    ("actual", "expected", "matches"),
    [
        ("42\n", "42", True),
        ("True", "true", True),
        ("3.50", "3.5", True),
        ("42 apples", "42", True),
        ("41", "42", False),
        ("abc", "42", False),
    ],
)
def test_outputs_match(actual: str, expected: str, matches: bool) -> None:
    assert outputs_match(actual, expected) is matches


def test_test_case_from_dict_serializes_structured_values() -> None:
    case = TestCase.from_dict({"input": [1, 2], "expected": 3})
    assert case.input == "[1, 2]"
    assert case.expected == "3"
    assert TestCase.from_dict({"input": "raw", "expected_output": "x"}).expected == "x"


def test_run_test_cases_grades_each_case_in_order() -> None:
    dispatcher = _ScriptedDispatcher([_ok("42"), _ok("7"), _failed("ZeroDivisionError: division by zero")])
    cases = [TestCase("21", "42"), TestCase("4", "8"), TestCase("0", "0")]

    report = asyncio.run(run_test_cases("def solve(x): ...", "py", cases, dispatcher=dispatcher))

    assert dispatcher.inputs == ["21", "4", "0"]
    assert report.language == "python"
    assert [outcome.passed for outcome in report.outcomes] == [True, False, False]
    assert report.outcomes[1].error == "Wrong answer"
    assert report.outcomes[2].error == "ZeroDivisionError: division by zero"
    assert report.passed_count == 1
    assert not report.all_passed
    assert report.summary() == '1/3 passed. Test 2: expected "8", got "7"'


def test_run_test_cases_pauses_between_remote_runs(monkeypatch: pytest.MonkeyPatch) -> None:
    pauses: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        pauses.append(seconds)

    monkeypatch.setattr("code_dispatch.grading.asyncio.sleep", fake_sleep)
    dispatcher = _ScriptedDispatcher([_ok("1"), _ok("2"), _ok("3")], local=False)
    cases = [TestCase("1", "1"), TestCase("2", "2"), TestCase("3", "3")]

    report = asyncio.run(run_test_cases("class Main {}", "java", cases, dispatcher=dispatcher))

    assert report.all_passed
    assert report.summary() == "All 3 test cases passed!"
    assert pauses == [0.3, 0.3]


def test_previews_are_clipped() -> None:
    long_input = "9" * 200
    dispatcher = _ScriptedDispatcher([_ok("x" * 200)])
    report = asyncio.run(
        run_test_cases("x", "python", [TestCase(long_input, "y" * 200)], dispatcher=dispatcher)
    )
    outcome = report.outcomes[0]
    assert len(outcome.input) == len(outcome.expected) == len(outcome.actual) == 50
    assert dispatcher.inputs == [long_input]


def test_no_cases_is_an_error_report() -> None:
    report = asyncio.run(run_test_cases("x", "python", [], dispatcher=_ScriptedDispatcher([])))
    assert report.error == "No test cases available"
    assert not report.all_passed
    assert report.summary() == "No test cases available"
    assert GradeReport(language="python").first_failure is None
