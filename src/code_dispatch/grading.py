"""Pass/fail framing for running a submission against test cases."""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from .dispatcher import Dispatcher, default_dispatcher
from .registry import NotSupported, resolve

_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
REMOTE_PAUSE_SECONDS = 0.3
PREVIEW_CHARS = 50


def _number_prefix(text: str) -> float | None:
    """Parse the leading number of a string, or None when there is none.

    Example:
        ```python
        _number_prefix("3.50 units")  # 3.5
        ```
    """
    match = _NUMBER_PREFIX.match(text)
    if match is None:
        return None
    return float(match.group(0))


def outputs_match(actual: str, expected: str) -> bool:
    """Compare program output with the expected answer.

    Trimmed exact match, case-insensitive match, or equal leading numbers.

    Example:
        ```python
        outputs_match("42\\n", "42.0")  # True
        ```
    """
    got = (actual or "").strip()
    want = (expected or "").strip()
    if got == want or got.lower() == want.lower():
        return True
    got_num = _number_prefix(got)
    want_num = _number_prefix(want)
    if got_num is None or want_num is None:
        return False
    return got_num == want_num


@dataclass(slots=True)
class TestCase:
    """One input/expected-output pair.

    Example:
        ```python
        case = TestCase(input="21", expected="42")
        ```
    """

    __test__ = False

    input: str
    expected: str

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "TestCase":
        """Build a case from a mapping with ``input`` and ``expected`` keys.

        Example:
            ```python
            case = TestCase.from_dict({"input": [1, 2], "expected": 3})
            ```
        """
        value = raw.get("input", "")
        expected = raw.get("expected", raw.get("expected_output", ""))
        return cls(
            input=value if isinstance(value, str) else _to_text(value),
            expected=expected if isinstance(expected, str) else _to_text(expected),
        )


def _to_text(value: Any) -> str:
    """Render a structured test value the way stdin expects it.

    Example:
        ```python
        _to_text([1, 2])  # "[1, 2]"
        ```
    """
    return json.dumps(value)


@dataclass(slots=True)
class TestCaseOutcome:
    """Result of one test case, with previews clipped for display.

    Example:
        ```python
        outcome = TestCaseOutcome(index=1, input="21", expected="42", actual="42", passed=True)
        ```
    """

    __test__ = False

    index: int
    input: str
    expected: str
    actual: str
    passed: bool
    error: str | None = None


@dataclass(slots=True)
class GradeReport:
    """Aggregate of a graded submission.

    Example:
        ```python
        report = GradeReport(language="python", outcomes=[])
        ```
    """

    language: str
    outcomes: list[TestCaseOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def passed_count(self) -> int:
        """Return the number of passing cases.

        Example:
            ```python
            report.passed_count
            ```
        """
        return sum(1 for outcome in self.outcomes if outcome.passed)

    @property
    def all_passed(self) -> bool:
        """Return True when there was at least one case and all of them passed.

        Example:
            ```python
            report.all_passed
            ```
        """
        return self.error is None and bool(self.outcomes) and self.passed_count == len(self.outcomes)

    @property
    def first_failure(self) -> TestCaseOutcome | None:
        """Return the first failing case, if any.

        Example:
            ```python
            failed = report.first_failure
            ```
        """
        return next((outcome for outcome in self.outcomes if not outcome.passed), None)

    def summary(self) -> str:
        """Return a one-line human summary.

        Example:
            ```python
            print(report.summary())
            ```
        """
        if self.error:
            return self.error
        total = len(self.outcomes)
        if self.all_passed:
            return f"All {total} test cases passed!"
        failed = self.first_failure
        if failed is None:
            return "No test cases available"
        return (
            f"{self.passed_count}/{total} passed. Test {failed.index}: "
            f'expected "{failed.expected}", got "{failed.actual or failed.error}"'
        )


async def run_test_cases(
    code: str,
    language: str,
    cases: Iterable[TestCase],
    *,
    dispatcher: Dispatcher | None = None,
    remote_pause_seconds: float = REMOTE_PAUSE_SECONDS,
) -> GradeReport:
    """Run a submission against each case in order and grade the outputs.

    Remote runs are spaced out by a short pause to stay under the service's
    rate limit.

    Example:
        ```python
        report = await run_test_cases(src, "py", [TestCase("21", "42")])
        ```
    """
    active = dispatcher or default_dispatcher()
    case_list = list(cases)
    resolved = resolve(language)
    language_name = resolved.name if not isinstance(resolved, NotSupported) else "unknown"
    report = GradeReport(language=language_name)
    if not case_list:
        report.error = "No test cases available"
        return report

    remote = isinstance(resolved, NotSupported) or not active.select_engine(resolved)[1]
    for index, case in enumerate(case_list, start=1):
        if remote and index > 1 and remote_pause_seconds > 0:
            await asyncio.sleep(remote_pause_seconds)
        result = await active.execute(code, language, case.input)
        expected = case.expected.strip()
        if not result.success:
            report.outcomes.append(
                TestCaseOutcome(
                    index=index,
                    input=case.input[:PREVIEW_CHARS],
                    expected=expected[:PREVIEW_CHARS],
                    actual="",
                    passed=False,
                    error=result.error or "Execution failed",
                )
            )
            continue
        actual = result.output.strip()
        passed = outputs_match(actual, expected)
        report.outcomes.append(
            TestCaseOutcome(
                index=index,
                input=case.input[:PREVIEW_CHARS],
                expected=expected[:PREVIEW_CHARS],
                actual=actual[:PREVIEW_CHARS],
                passed=passed,
                error=None if passed else "Wrong answer",
            )
        )
    return report
