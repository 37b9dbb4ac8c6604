from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from .types import ExecutionOutcome, ExecutionRequest

if TYPE_CHECKING:
    from ..registry import LanguageConfig


class ExecutionEngine(Protocol):
    async def execute(self, config: LanguageConfig, request: ExecutionRequest) -> ExecutionOutcome:
        """Execute one request for a resolved language and return the raw outcome.

        Example:
            ```python
            outcome = await engine.execute(resolve("cpp"), ExecutionRequest(code=src, language="cpp"))
            ```
        """
        ...
