import ast
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"


def _functions(package: str) -> list[tuple[str, ast.FunctionDef | ast.AsyncFunctionDef]]:
    found = []
    for path in sorted((SRC / package).rglob("*.py")):
        if "__pycache__" in path.parts:
            continue
        module = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(module):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                found.append((f"{path.relative_to(SRC)}:{node.lineno}:{node.name}", node))
    return found


@pytest.mark.parametrize("package", ["code_dispatch", "cdx"])
def test_every_function_documents_an_example(package: str) -> None:
    functions = _functions(package)
    assert functions

    problems = []
    for location, node in functions:
        doc = ast.get_docstring(node)
        if not doc:
            problems.append(f"{location}: missing docstring")
        elif "Example:" not in doc:
            problems.append(f"{location}: docstring has no Example section")

    assert not problems, "\n".join(problems)
