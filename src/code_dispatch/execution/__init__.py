from .embedded_engine import EmbeddedEngine, InterpreterInitError, LazyInterpreter
from .engine import ExecutionEngine
from .local_engine import LocalEngine
from .remote_engine import RemoteEngine
from .types import ExecutionOutcome, ExecutionRequest, ExecutionResult, ExecutionStatus

__all__ = [
    "EmbeddedEngine",
    "ExecutionEngine",
    "ExecutionOutcome",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionStatus",
    "InterpreterInitError",
    "LazyInterpreter",
    "LocalEngine",
    "RemoteEngine",
]
