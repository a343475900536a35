"""Iteration controller: the generate -> write -> run -> record -> repair loop.

States::

    GeneratingInitial -> Running -> Passed
                                 -> Repairing -> Running -> ... -> Passed | Exhausted

Example:
    controller = IterationController(generator, store, CommandRunner(), output_root=Path("."))
    result = controller.run("add two integers", "go")
    result.print()
"""

from collections.abc import Callable
from pathlib import Path

import logfire

from aiterate.config import DEFAULT_MAX_ITERATIONS
from aiterate.dependencies import DependencyUpdater
from aiterate.executor import TestExecutor
from aiterate.generator import CodeGenerator
from aiterate.languages import Language, get_profile, parse_language
from aiterate.models import Iteration, RunResult, RunStatus
from aiterate.process import CancelToken, CommandRunner
from aiterate.store import SessionStore
from aiterate.workspace import Workspace


class IterationController:
    """Runs one session to success or exhaustion.

    Collaborators are passed in; the controller holds no process-wide state. The
    workspace is owned by a single ``run`` call and removed on every exit path.
    """

    def __init__(
        self,
        generator: CodeGenerator,
        store: SessionStore,
        runner: CommandRunner,
        output_root: str | Path = ".",
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        cancel_token: CancelToken | None = None,
        on_iteration: Callable[[Iteration], None] | None = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.generator = generator
        self.store = store
        self.runner = runner
        self.output_root = Path(output_root)
        self.max_iterations = max_iterations
        self.cancel_token = cancel_token or CancelToken()
        self.on_iteration = on_iteration

    def _write(self, workspace: Workspace, test_code: str, code: str) -> None:
        workspace.write_sources(test_code, code)
        if workspace.profile.scans_dependencies:
            DependencyUpdater(workspace.path, self.runner).update(code, test_code, workspace.language)

    def run(self, description: str, language: Language | str) -> RunResult:
        """Run the full loop for ``description`` in ``language``.

        Exhaustion is a normal outcome (``RunStatus.EXHAUSTED``); the last attempt is
        still recorded and copied out.

        Raises:
            UnsupportedLanguageError: Before any session or workspace is created.
            ServiceError, EmptyGenerationError, MalformedRepairResponse,
            ExecutionLaunchError, DependencyResolutionError, PersistenceError,
            RunCancelledError: Fatal, the run is aborted.
        """
        language = parse_language(language)
        profile = get_profile(language)
        session = self.store.create_session(description, language)

        with logfire.span(
            "Iteration session {session_id}",
            session_id=session.id,
            language=str(language),
            max_iterations=self.max_iterations,
        ):
            with Workspace(language, self.runner) as workspace:
                executor = TestExecutor(workspace.path, self.runner)

                # GeneratingInitial: tests first, then code conditioned on them
                self.cancel_token.raise_if_cancelled("test generation")
                test_code = self.generator.generate_tests(description, language)
                self.cancel_token.raise_if_cancelled("implementation generation")
                code = self.generator.generate_implementation(description, test_code, language)
                self._write(workspace, test_code, code)

                status = RunStatus.EXHAUSTED
                output = ""
                number = 0
                for number in range(1, self.max_iterations + 1):
                    self.cancel_token.raise_if_cancelled("test run")
                    logfire.info(
                        "Running tests (iteration {number}/{total})",
                        number=number,
                        total=self.max_iterations,
                    )
                    result = executor.run_tests(language)
                    output = result.output

                    iteration = self.store.add_iteration(
                        session.id, test_code, code, result.output, result.success
                    )
                    if self.on_iteration is not None:
                        self.on_iteration(iteration)

                    if result.success:
                        status = RunStatus.PASSED
                        logfire.info("All tests passed", iteration=number)
                        break

                    if number == self.max_iterations:
                        break

                    # Repairing: both files are replaced, never reused when the response is malformed
                    self.cancel_token.raise_if_cancelled("repair")
                    repair = self.generator.fix_both(code, test_code, result.output, language)
                    code, test_code = repair.code, repair.test_code
                    self._write(workspace, test_code, code)

                if status is RunStatus.EXHAUSTED:
                    logfire.warn(
                        "Failed to generate passing implementation",
                        iterations=number,
                        session_id=session.id,
                    )

                output_dir = self.output_root / self.generator.generate_directory_name(description)
                workspace.copy_to(output_dir)

        return RunResult(
            session_id=session.id,
            language=profile.language,
            status=status,
            iterations=number,
            output_dir=output_dir,
            code=code,
            test_code=test_code,
            last_output=output,
        )
