"""Ephemeral per-run workspace holding one test file and one implementation file."""

import shutil
import tempfile
from pathlib import Path

import logfire

from aiterate.errors import DependencyResolutionError, ExecutionLaunchError, PersistenceError
from aiterate.languages import Language, LanguageProfile, get_profile
from aiterate.process import CommandRunner


class Workspace:
    """Temporary directory seeded with the language manifest.

    Use as a context manager; the directory is removed on exit whatever the outcome:

        with Workspace(Language.GO, runner) as ws:
            ws.write_sources(test_code, code)
    """

    def __init__(self, language: Language | str, runner: CommandRunner, prefix: str = "aiterate-"):
        self.profile: LanguageProfile = get_profile(language)
        self.runner = runner
        self.prefix = prefix
        self._path: Path | None = None

    @property
    def language(self) -> Language:
        return self.profile.language

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Workspace is not open")
        return self._path

    @property
    def test_path(self) -> Path:
        return self.path / self.profile.test_file

    @property
    def code_path(self) -> Path:
        return self.path / self.profile.code_file

    def open(self) -> Path:
        """Create the directory and seed manifest files, running the language setup commands.

        Raises:
            ExecutionLaunchError: If the directory cannot be created or a setup tool is missing.
            DependencyResolutionError: If a setup command exits non-zero.
        """
        try:
            self._path = Path(tempfile.mkdtemp(prefix=self.prefix))
        except OSError as e:
            raise ExecutionLaunchError(f"Failed to create workspace: {e}") from e
        logfire.info("Created temporary workspace", path=str(self._path), language=str(self.language))

        try:
            for name, content in self.profile.manifest_files.items():
                (self._path / name).write_text(content)
            for command in self.profile.setup_commands:
                result = self.runner.run(command, self._path)
                if not result.ok:
                    raise DependencyResolutionError(
                        f"Workspace setup command {' '.join(command)!r} failed:\n{result.output}"
                    )
        except BaseException:
            self.close()
            raise
        return self._path

    def close(self) -> None:
        if self._path is not None:
            shutil.rmtree(self._path, ignore_errors=True)
            logfire.info("Removed workspace", path=str(self._path))
            self._path = None

    def __enter__(self) -> "Workspace":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write_sources(self, test_code: str, code: str) -> None:
        logfire.info(
            "Writing workspace sources",
            test_file=str(self.test_path),
            code_file=str(self.code_path),
        )
        self.test_path.write_text(test_code)
        self.code_path.write_text(code)

    def read_sources(self) -> tuple[str, str]:
        """Return ``(test_code, code)`` as currently on disk."""
        return self.test_path.read_text(), self.code_path.read_text()

    def copy_to(self, destination: Path) -> list[Path]:
        """Copy the two canonical source files into ``destination`` (created if needed).

        Raises:
            PersistenceError: If the output directory or files cannot be written.
        """
        copied: list[Path] = []
        try:
            destination.mkdir(parents=True, exist_ok=True)
            for name in self.profile.source_files:
                target = destination / name
                shutil.copyfile(self.path / name, target)
                copied.append(target)
        except OSError as e:
            raise PersistenceError(f"Failed to copy final files to {destination}: {e}") from e
        logfire.info("Copied final files", destination=str(destination), files=[p.name for p in copied])
        return copied
