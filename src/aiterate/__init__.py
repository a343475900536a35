"""
aiterate - generate tests and an implementation with an LLM, then run and repair until they pass.
"""
import importlib.metadata

__version__ = importlib.metadata.version("aiterate")

from .completion import CompletionService
from .controller import IterationController
from .errors import (
    AiterateError,
    ConfigurationError,
    CorruptRecordError,
    DependencyResolutionError,
    EmptyGenerationError,
    ExecutionLaunchError,
    MalformedRepairResponse,
    PersistenceError,
    RunCancelledError,
    ServiceError,
    SessionNotFoundError,
    UnsupportedLanguageError,
)
from .generator import CodeGenerator, parse_repair_response, slugify, strip_code_block
from .languages import Language
from .models import Iteration, RepairResult, RunResult, RunStatus, Session, TestResult
from .process import CancelToken, CommandRunner
from .store import SessionStore

__all__ = [
    "IterationController",
    "CodeGenerator",
    "CompletionService",
    "SessionStore",
    "CommandRunner",
    "CancelToken",
    "Language",
    "Session",
    "Iteration",
    "TestResult",
    "RepairResult",
    "RunResult",
    "RunStatus",
    "strip_code_block",
    "slugify",
    "parse_repair_response",
    "AiterateError",
    "ConfigurationError",
    "UnsupportedLanguageError",
    "ServiceError",
    "EmptyGenerationError",
    "MalformedRepairResponse",
    "ExecutionLaunchError",
    "DependencyResolutionError",
    "RunCancelledError",
    "PersistenceError",
    "SessionNotFoundError",
    "CorruptRecordError",
]
