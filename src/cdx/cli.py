from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter

from code_dispatch import Dispatcher, DispatchSettings, ExecutionResult, TestCase, run_test_cases
from code_dispatch.execution.capabilities import capabilities_for_backend
from code_dispatch.registry import supported_languages

_CONSOLE = Console(no_color=False)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="cdx")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for running and grading code.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="cdx",
        description=(
            "code-dispatch CLI\n"
            "Run a source file through the same dispatcher the grading service uses."
        ),
        epilog=(
            "Quick Examples:\n"
            "  cdx run solution.py --language python --stdin 21\n"
            "  cdx run Main.java --language java --stdin-file input.txt\n"
            "  cdx grade solution.js --language js --cases cases.json\n"
            "  cdx languages"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--settings",
        help="Path to a settings TOML file ([dispatch] table).",
    )
    parser.add_argument(
        "--remote",
        action="store_true",
        help="Send every language to the remote service, even local-capable ones.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Execute one source file.",
        description="Execute one source file and print the normalized result.",
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("source", help="Path to the source file.")
    run_cmd.add_argument("-l", "--language", required=True, help="Language id or alias, e.g. py, js, c++.")
    stdin_group = run_cmd.add_mutually_exclusive_group()
    stdin_group.add_argument("--stdin", default="", help="Literal stdin / test input.")
    stdin_group.add_argument("--stdin-file", help="Read stdin / test input from a file.")
    run_cmd.add_argument("--json", action="store_true", help="Print the result as JSON.")

    grade_cmd = sub.add_parser(
        "grade",
        help="Run a source file against JSON test cases.",
        description=(
            "Run a source file against test cases.\n"
            'CASES is a JSON list of {"input": ..., "expected": ...} objects.'
        ),
        formatter_class=_HELP_FORMATTER,
    )
    grade_cmd.add_argument("source", help="Path to the source file.")
    grade_cmd.add_argument("-l", "--language", required=True, help="Language id or alias.")
    grade_cmd.add_argument("--cases", required=True, help="Path to the JSON test cases file.")

    sub.add_parser(
        "languages",
        help="List supported languages and where they run.",
        description="List supported languages, aliases, backend and runtime versions.",
        formatter_class=_HELP_FORMATTER,
    )
    return parser


def build_dispatcher(args: argparse.Namespace) -> Dispatcher:
    """Create a Dispatcher from global CLI flags.

    Example:
        ```python
        dispatcher = build_dispatcher(args)
        ```
    """
    settings = DispatchSettings.from_env(args.settings)
    if args.remote:
        settings = replace(settings, local_execution=False)
    return Dispatcher(settings)


def _read_text(path: str) -> str:
    """Read a UTF-8 text file given on the command line.

    Example:
        ```python
        code = _read_text("solution.py")
        ```
    """
    return Path(path).read_text(encoding="utf-8")


def _print_result(result: ExecutionResult) -> None:
    """Render one execution result in a panel.

    Example:
        ```python
        _print_result(result)
        ```
    """
    body = Text()
    body.append(result.output or "(No output)")
    if result.error:
        body.append("\n\n")
        body.append(result.error, style="red")
    timing = f"{result.execution_time_ms:.0f}ms" if result.execution_time_ms is not None else "n/a"
    title = f"{result.language} {result.version} | {result.status.value} | {timing}"
    _CONSOLE.print(Panel(body, title=title, border_style="green" if result.success else "red"))


def _print_languages(dispatcher: Dispatcher) -> None:
    """Render the language table.

    Example:
        ```python
        _print_languages(Dispatcher())
        ```
    """
    table = Table(title="Supported Languages")
    table.add_column("Language", style="cyan")
    table.add_column("Aliases", style="magenta")
    table.add_column("Backend")
    table.add_column("Version")
    table.add_column("Timeout")
    table.add_column("Cancellable")
    for cfg in supported_languages():
        _, local = dispatcher.select_engine(cfg)
        if local:
            backend = "local" if cfg.interpreter == "python" else "embedded"
            version = cfg.local_version or cfg.version
        else:
            backend, version = "remote", cfg.version
        caps = capabilities_for_backend(backend)
        table.add_row(
            cfg.display_name,
            ", ".join(cfg.aliases) or "-",
            backend,
            version,
            "yes" if caps.supports_timeout else "no",
            "yes" if caps.supports_cancellation else "no",
        )
    _CONSOLE.print(table)


def _load_cases(path: str) -> list[TestCase]:
    """Load test cases from a JSON list.

    Example:
        ```python
        cases = _load_cases("cases.json")
        ```
    """
    raw: Any = json.loads(_read_text(path))
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise ValueError("Test cases file must contain a JSON list of objects")
    return [TestCase.from_dict(item) for item in raw]


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `cdx` CLI command handler.

    Example:
        ```python
        code = main(["run", "solution.py", "--language", "python", "--stdin", "21"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    dispatcher = build_dispatcher(args)

    if args.command == "languages":
        _print_languages(dispatcher)
        return 0
    if args.command == "run":
        stdin = _read_text(args.stdin_file) if args.stdin_file else args.stdin
        result = asyncio.run(dispatcher.execute(_read_text(args.source), args.language, stdin))
        if args.json:
            payload = {
                "success": result.success,
                "output": result.output,
                "error": result.error,
                "language": result.language,
                "version": result.version,
                "executionTime": result.execution_time_ms,
                "status": result.status.value,
            }
            _CONSOLE.print_json(json.dumps(payload))
        else:
            _print_result(result)
        return 0 if result.success else 1
    if args.command == "grade":
        try:
            cases = _load_cases(args.cases)
        except ValueError as exc:
            _CONSOLE.print(Panel.fit(str(exc), style="bold red"))
            return 2
        report = asyncio.run(
            run_test_cases(_read_text(args.source), args.language, cases, dispatcher=dispatcher)
        )
        table = Table(title=f"Test Results: {report.passed_count}/{len(report.outcomes)} passed")
        table.add_column("#", style="cyan")
        table.add_column("Input")
        table.add_column("Expected")
        table.add_column("Got")
        table.add_column("Result")
        for outcome in report.outcomes:
            table.add_row(
                str(outcome.index),
                outcome.input,
                outcome.expected,
                outcome.actual or (outcome.error or ""),
                "[green]passed[/green]" if outcome.passed else "[red]failed[/red]",
            )
        _CONSOLE.print(table)
        style = "bold green" if report.all_passed else "bold red"
        _CONSOLE.print(Panel.fit(report.summary(), style=style))
        return 0 if report.all_passed else 1

    parser.error("Unhandled command")
