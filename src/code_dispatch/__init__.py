from .dispatcher import Dispatcher, default_dispatcher, execute, execute_sync
from .execution.embedded_engine import EmbeddedEngine, is_interpreter_loaded, preload_interpreter
from .execution.local_engine import LocalEngine
from .execution.remote_engine import RemoteEngine
from .execution.types import ExecutionRequest, ExecutionResult, ExecutionStatus
from .grading import GradeReport, TestCase, TestCaseOutcome, outputs_match, run_test_cases
from .registry import LanguageConfig, NotSupported, resolve, supported_languages
from .settings import DispatchSettings

__all__ = [
    "DispatchSettings",
    "Dispatcher",
    "EmbeddedEngine",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionStatus",
    "GradeReport",
    "LanguageConfig",
    "LocalEngine",
    "NotSupported",
    "RemoteEngine",
    "TestCase",
    "TestCaseOutcome",
    "default_dispatcher",
    "execute",
    "execute_sync",
    "is_interpreter_loaded",
    "outputs_match",
    "preload_interpreter",
    "resolve",
    "run_test_cases",
    "supported_languages",
]
