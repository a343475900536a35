"""Data model for sessions, iterations and run outcomes."""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from aiterate.languages import Language, get_profile


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TestResult(BaseModel):
    """Outcome of one test-tool invocation.

    A failing run is a normal result, not an error.
    """

    __test__ = False  # not a pytest test class

    success: bool = Field(description="True iff the test process exited with status zero")
    output: str = Field(default="", description="Combined stdout and stderr of the test run")
    exit_code: int = Field(default=0, description="Process exit status (-1 when killed on timeout)")
    timed_out: bool = Field(default=False, description="Whether the run hit its deadline")

    model_config = {"frozen": True}


class Iteration(BaseModel):
    """One recorded run cycle: the source snapshot and what the test tool said about it."""

    number: int = Field(ge=1, description="1-based position within the session")
    test_code: str
    code: str
    output: str
    success: bool
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}


class Session(BaseModel):
    """Durable record of one generate/repair run for a single task description."""

    id: str
    description: str
    language: Language
    iterations: list[Iteration] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def latest(self) -> Iteration | None:
        return self.iterations[-1] if self.iterations else None

    @property
    def passed(self) -> bool:
        return any(iteration.success for iteration in self.iterations)

    def next_iteration_number(self) -> int:
        return len(self.iterations) + 1


class RepairResult(BaseModel):
    """Corrected implementation and test source from a joint-repair call."""

    code: str = Field(min_length=1)
    test_code: str = Field(min_length=1)

    model_config = {"frozen": True}


class RunStatus(str, Enum):
    PASSED = "passed"
    EXHAUSTED = "exhausted"


class RunResult(BaseModel):
    """Final outcome of an ``IterationController`` run."""

    session_id: str
    language: Language
    status: RunStatus
    iterations: int
    output_dir: Path
    code: str
    test_code: str
    last_output: str = ""

    @property
    def passed(self) -> bool:
        return self.status is RunStatus.PASSED

    def print(self, *, show_code: bool = True, theme: str = "monokai") -> None:
        """Pretty print the run outcome with syntax highlighting."""
        try:
            from rich.console import Console
            from rich.panel import Panel
            from rich.syntax import Syntax
        except ImportError:
            self._print_simple(show_code=show_code)
            return

        console = Console()
        profile = get_profile(self.language)
        lexer = profile.language.value

        if show_code:
            console.print(
                Panel(
                    Syntax(self.test_code, lexer, theme=theme, line_numbers=True),
                    title=f"[yellow]🧪 {profile.test_file}[/yellow]",
                )
            )
            console.print(
                Panel(
                    Syntax(self.code, lexer, theme=theme, line_numbers=True),
                    title=f"[green]🛠  {profile.code_file}[/green]",
                )
            )

        if self.passed:
            console.print(
                f"[bold green]✅ All tests passed after {self.iterations} iteration(s).[/bold green]"
            )
            console.print(f"Files saved to: [cyan]{self.output_dir}[/cyan]")
        else:
            console.print(
                f"[bold red]❌ Tests still failing after {self.iterations} iteration(s).[/bold red]"
            )
            if self.last_output:
                console.print(Panel(self.last_output.strip(), title="[red]Last test output[/red]"))
            console.print(f"[yellow]Last attempt saved to: {self.output_dir} (NOT PASSING)[/yellow]")
        console.print(f"[dim]Session: {self.session_id}[/dim]")

    def _print_simple(self, *, show_code: bool = True) -> None:
        """Fallback simple print without rich library."""
        if show_code:
            print(f"\nTests:\n{self.test_code}")
            print(f"\nImplementation:\n{self.code}")
        if self.passed:
            print(f"\nPASSED after {self.iterations} iteration(s). Files saved to: {self.output_dir}")
        else:
            print(f"\nLast test output:\n{self.last_output}")
            print(
                f"\nFAILED after {self.iterations} iteration(s). "
                f"Last attempt saved to: {self.output_dir} (NOT PASSING)"
            )
        print(f"Session: {self.session_id}")
