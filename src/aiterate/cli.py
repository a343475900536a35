"""Command-line interface for aiterate.

Usage:
    aiterate new                         Prompt for a description and language, then iterate
    aiterate new "add two integers" -l go
    aiterate history                     List stored sessions
    aiterate show <session_id>           Show a session's iterations
"""

import signal
from pathlib import Path
from typing import NoReturn

import click
import dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .completion import CompletionService
from .config import Settings
from .controller import IterationController
from .errors import AiterateError, RunCancelledError
from .generator import CodeGenerator
from .languages import get_profile, parse_language, supported_tags
from .models import Iteration, Session
from .monitoring import enable_monitoring
from .process import CancelToken, CommandRunner
from .store import SessionStore

dotenv.load_dotenv()
console = Console()


def _fail(message: str) -> NoReturn:
    click.secho(f"ERROR: {message}", fg="red", err=True)
    raise SystemExit(1)


def _load_settings(**overrides) -> Settings:
    try:
        return Settings.from_env(**overrides)
    except AiterateError as e:
        _fail(str(e))


def build_controller(
    settings: Settings,
    output_root: Path,
    cancel_token: CancelToken,
    on_iteration=None,
) -> IterationController:
    """Wire the collaborators for one run from ``settings``.

    Raises:
        ConfigurationError: If the model credential is missing.
        PersistenceError: If the session store cannot be initialized.
    """
    completion = CompletionService(
        settings.model, timeout=settings.request_timeout, cancel_token=cancel_token
    )
    store = SessionStore(settings.home)
    runner = CommandRunner(timeout=settings.command_timeout, cancel_token=cancel_token)
    return IterationController(
        CodeGenerator(completion),
        store,
        runner,
        output_root=output_root,
        max_iterations=settings.max_iterations,
        cancel_token=cancel_token,
        on_iteration=on_iteration,
    )


def _iteration_reporter(total: int, verbose: bool):
    def report(iteration: Iteration) -> None:
        if iteration.success:
            console.print(f"[green]Iteration {iteration.number}/{total}: ✅ tests passed[/green]")
            return
        console.print(f"[yellow]Iteration {iteration.number}/{total}: ❌ tests failed[/yellow]")
        if verbose and iteration.output.strip():
            console.print(Panel(iteration.output.strip(), title="Test output", border_style="yellow"))
        if iteration.number < total:
            console.print("[dim]Attempting to fix implementation and tests...[/dim]")

    return report


@click.group()
@click.version_option(package_name="aiterate")
def main():
    """aiterate: AI-powered code generation with test-driven iteration.

    Tests are generated from your description first, then an implementation,
    and both are repaired until the tests pass.
    """
    enable_monitoring()


@main.command()
@click.argument("description", required=False)
@click.option("--language", "-l", help=f"Target language ({', '.join(supported_tags())})")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory in which the generated function directory is created",
)
@click.option("--max-iterations", type=int, help="Maximum test-run cycles (default 5)")
@click.option("--model", help="pydantic-ai model name, e.g. openai:gpt-4o")
@click.option("--verbose", "-v", is_flag=True, help="Show test output of failing iterations")
@click.option("--no-code", is_flag=True, help="Do not print the final source files")
def new(
    description: str | None,
    language: str | None,
    output_dir: Path,
    max_iterations: int | None,
    model: str | None,
    verbose: bool,
    no_code: bool,
):
    """Create a new function with AI-generated tests and implementation."""
    settings = _load_settings(model=model, max_iterations=max_iterations)
    cancel_token = CancelToken()

    try:
        controller = build_controller(
            settings,
            output_dir,
            cancel_token,
            on_iteration=_iteration_reporter(settings.max_iterations, verbose),
        )
    except AiterateError as e:
        _fail(str(e))

    if not description:
        description = click.prompt(
            "Enter a description of the function you want to create", default="", show_default=False
        ).strip()
    if not description:
        _fail("description is required")

    if not language:
        language = click.prompt(
            f"Enter the programming language ({', '.join(supported_tags())})",
            default="",
            show_default=False,
        ).strip()
    if not language:
        _fail("language is required")

    try:
        lang = parse_language(language)
    except AiterateError as e:
        _fail(str(e))

    previous_handler = signal.signal(signal.SIGTERM, lambda *_: cancel_token.cancel())
    try:
        console.print(
            f"[blue]Generating {get_profile(lang).display_name} tests and implementation "
            f"(up to {settings.max_iterations} iterations)...[/blue]"
        )
        result = controller.run(description, lang)
    except RunCancelledError as e:
        click.secho(f"Cancelled: {e}", fg="yellow", err=True)
        raise SystemExit(130)
    except KeyboardInterrupt:
        click.secho("Cancelled by user", fg="yellow", err=True)
        raise SystemExit(130)
    except AiterateError as e:
        _fail(str(e))
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    result.print(show_code=not no_code)


@main.command()
def history():
    """List stored sessions, most recent first."""
    settings = _load_settings()
    try:
        sessions = SessionStore(settings.home).list_sessions()
    except AiterateError as e:
        _fail(str(e))

    if not sessions:
        console.print("[dim]No sessions stored[/dim]")
        return

    table = Table(title="Sessions", box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Language", style="magenta")
    table.add_column("Iterations", justify="right")
    table.add_column("Status")
    table.add_column("Updated", style="dim")
    table.add_column("Description")

    for session in sessions:
        latest = session.latest
        if latest is None:
            status = "[dim]no runs[/dim]"
        elif latest.success:
            status = "[green]passed[/green]"
        else:
            status = "[red]not passing[/red]"
        description = session.description
        if len(description) > 50:
            description = description[:50] + "..."
        table.add_row(
            session.id,
            str(session.language),
            str(len(session.iterations)),
            status,
            session.updated_at.strftime("%Y-%m-%d %H:%M"),
            description,
        )
    console.print(table)


def _print_iteration(session: Session, iteration: Iteration) -> None:
    profile = get_profile(session.language)
    lexer = profile.language.value
    status = "[green]passed[/green]" if iteration.success else "[red]failed[/red]"
    console.print(
        f"\n[bold]Iteration {iteration.number}[/bold] - {status} "
        f"[dim]{iteration.timestamp.isoformat()}[/dim]"
    )
    console.print(Panel(Syntax(iteration.test_code, lexer, line_numbers=True), title=profile.test_file))
    console.print(Panel(Syntax(iteration.code, lexer, line_numbers=True), title=profile.code_file))
    if iteration.output.strip():
        console.print(Panel(iteration.output.strip(), title="Test output", border_style="dim"))


@main.command()
@click.argument("session_id")
@click.option("--iteration", "-i", "number", type=int, help="Only show this iteration")
def show(session_id: str, number: int | None):
    """Show the recorded iterations of a session."""
    settings = _load_settings()
    try:
        session = SessionStore(settings.home).get_session(session_id)
    except AiterateError as e:
        _fail(str(e))

    info = Table.grid(padding=(0, 2))
    info.add_column(style="bold")
    info.add_column()
    info.add_row("Session", session.id)
    info.add_row("Description", session.description)
    info.add_row("Language", str(session.language))
    info.add_row("Iterations", str(len(session.iterations)))
    info.add_row("Status", "passed" if session.passed else "not passing")
    console.print(Panel(info, title="Session", border_style="blue"))

    iterations = session.iterations
    if number is not None:
        iterations = [it for it in iterations if it.number == number]
        if not iterations:
            _fail(f"Session {session.id} has no iteration {number}")

    for iteration in iterations:
        _print_iteration(session, iteration)


if __name__ == "__main__":
    main()
