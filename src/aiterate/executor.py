"""Run the generated tests inside a workspace and classify pass/fail."""

from pathlib import Path

import logfire

from aiterate.languages import Language, get_profile
from aiterate.models import TestResult
from aiterate.process import CommandRunner


class TestExecutor:
    """Invokes a language's canonical test command rooted at ``work_dir``."""

    __test__ = False  # not a pytest test class

    def __init__(self, work_dir: str | Path, runner: CommandRunner):
        self.work_dir = Path(work_dir)
        self.runner = runner

    def run_tests(self, language: Language | str) -> TestResult:
        """Run the tests and capture combined output.

        A non-zero exit (including a timed-out run) yields ``success=False``; only a
        failure to launch the tool is raised.

        Raises:
            UnsupportedLanguageError: For an unknown tag, before any process is spawned.
            ExecutionLaunchError: If the toolchain cannot be started.
        """
        profile = get_profile(language)
        with logfire.span("Running tests", language=str(profile.language), work_dir=str(self.work_dir)):
            result = self.runner.run(profile.test_command, self.work_dir)
            test_result = TestResult(
                success=result.ok,
                output=result.output,
                exit_code=result.exit_code,
                timed_out=result.timed_out,
            )
            if test_result.success:
                logfire.info("Tests passed", language=str(profile.language))
            else:
                logfire.warn(
                    "Tests failed",
                    language=str(profile.language),
                    exit_code=result.exit_code,
                    timed_out=result.timed_out,
                )
            return test_result
