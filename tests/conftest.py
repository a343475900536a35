"""Pytest configuration and shared fixtures for aiterate tests."""

import os
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest

from aiterate.errors import ServiceError
from aiterate.generator import CodeGenerator
from aiterate.process import CommandResult
from aiterate.store import SessionStore

# ============================================================================
# Sample Sources
# ============================================================================

GO_TESTS = """package main

import "testing"

func TestAdd_PositiveNumbers(t *testing.T) {
	if got := Add(2, 3); got != 5 {
		t.Errorf("Add(2, 3) = %d; want 5", got)
	}
}
"""

GO_BROKEN_IMPL = """package main

func Add(a, b int) int {
	return a - b
}
"""

GO_FIXED_IMPL = """package main

// Add returns the sum of a and b.
func Add(a, b int) int {
	return a + b
}
"""

GO_FAILURE_OUTPUT = """=== RUN   TestAdd_PositiveNumbers
    main_test.go:6: Add(2, 3) = -1; want 5
--- FAIL: TestAdd_PositiveNumbers (0.00s)
FAIL
"""


def fenced(code: str, tag: str = "go") -> str:
    return f"```{tag}\n{code}\n```"


def repair_response(code: str, tests: str) -> str:
    return f"---IMPLEMENTATION---\n{fenced(code)}\n---TESTS---\n{fenced(tests)}\n---END---"


# ============================================================================
# Fakes
# ============================================================================


class ScriptedCompletion:
    """Completion service double answering prompts from a script.

    Each entry is either a string (returned) or an exception (raised). Prompts
    asking for a directory name are answered separately so scripts only list
    generation and repair responses.
    """

    def __init__(self, responses: list[str | Exception], directory_name: str | Exception = "add-two-integers"):
        self.responses = list(responses)
        self.directory_name = directory_name
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if "directory name" in prompt:
            answer = self.directory_name
        elif not self.responses:
            raise ServiceError("script exhausted")
        else:
            answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeRunner:
    """Command runner double: records every command, scripts the test-command results."""

    def __init__(self, test_results: list[CommandResult] | Callable[[int], CommandResult] | None = None):
        self.test_results = test_results if test_results is not None else []
        self.calls: list[tuple[list[str], Path]] = []
        self.test_runs = 0
        self.snapshots: list[dict[str, str]] = []

    def _is_test_command(self, args: list[str]) -> bool:
        return "test" in args[1:3] or "pytest" in args

    def run(self, args: list[str], cwd) -> CommandResult:
        cwd = Path(cwd)
        self.calls.append((list(args), cwd))
        if not self._is_test_command(args):
            return CommandResult(output="", exit_code=0)

        self.test_runs += 1
        self.snapshots.append(
            {p.name: p.read_text() for p in cwd.iterdir() if p.name.startswith("main")}
        )
        if callable(self.test_results):
            return self.test_results(self.test_runs)
        return self.test_results.pop(0)

    @property
    def work_dirs(self) -> set[Path]:
        return {cwd for _, cwd in self.calls}


PASS = CommandResult(output="ok  \ttemp\t0.002s\n", exit_code=0)
FAIL = CommandResult(output=GO_FAILURE_OUTPUT, exit_code=1)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    """Session store rooted in a temporary directory."""
    return SessionStore(tmp_path / "sessions")


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def make_generator() -> Callable[..., tuple[CodeGenerator, ScriptedCompletion]]:
    def _make(responses: list[str | Exception], **kwargs) -> tuple[CodeGenerator, ScriptedCompletion]:
        completion = ScriptedCompletion(responses, **kwargs)
        return CodeGenerator(completion), completion  # type: ignore[arg-type]

    return _make


@pytest.fixture
def mock_env_credentials():
    """Mock environment with an OpenAI key and model set."""
    with patch.dict(
        os.environ, {"OPENAI_API_KEY": "sk-test", "AITERATE_MODEL": "openai:gpt-4o"}
    ):
        yield
