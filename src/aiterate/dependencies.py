"""Reconcile a workspace's dependency manifest with the imports of generated source.

Only languages whose profile sets ``scans_dependencies`` (Go) are affected; the
updater is a no-op for the others.
"""

import re
from pathlib import Path

import logfire

from aiterate.errors import DependencyResolutionError
from aiterate.languages import Language, get_profile
from aiterate.process import CommandRunner

_IMPORT_BLOCK = re.compile(r"\bimport\s*\(([^)]*)\)")
_IMPORT_SINGLE = re.compile(r'\bimport\s+(?:[\w.]+\s+)?"([^"]+)"')
_QUOTED = re.compile(r'"([^"]+)"')
_LINE_COMMENT = re.compile(r"//[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)


def scan_go_imports(*sources: str) -> list[str]:
    """Return the sorted, de-duplicated import paths of Go ``sources``.

    Handles single imports, parenthesised blocks, aliased, blank (``_``) and dot
    imports, and ignores commented-out lines.
    """
    imports: set[str] = set()
    for source in sources:
        source = _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", source))
        for block in _IMPORT_BLOCK.findall(source):
            imports.update(_QUOTED.findall(block))
        imports.update(_IMPORT_SINGLE.findall(source))
    return sorted(p for p in imports if p.strip())


def is_go_standard_package(path: str) -> bool:
    """Standard library paths have no dot in their first element (``net/http``, ``fmt``)."""
    return "." not in path.split("/", 1)[0]


def external_packages(*sources: str) -> list[str]:
    return [p for p in scan_go_imports(*sources) if not is_go_standard_package(p)]


class DependencyUpdater:
    """Fetches external packages referenced by generated Go code, then tidies ``go.mod``."""

    def __init__(self, work_dir: str | Path, runner: CommandRunner):
        self.work_dir = Path(work_dir)
        self.runner = runner

    def update(self, code: str, test_code: str, language: Language | str = Language.GO) -> list[str]:
        """Resolve dependencies for ``code`` and ``test_code``.

        Returns:
            The external packages that were fetched.

        Raises:
            DependencyResolutionError: If fetching a package or tidying the manifest fails.
            ExecutionLaunchError: If the toolchain cannot be started.
        """
        profile = get_profile(language)
        if not profile.scans_dependencies:
            return []

        with logfire.span("Updating dependencies", work_dir=str(self.work_dir)):
            packages = external_packages(code, test_code)
            if not packages:
                logfire.info("No external dependencies found")

            for package in packages:
                logfire.info("Adding dependency", package=package)
                result = self.runner.run(["go", "get", package], self.work_dir)
                if not result.ok:
                    raise DependencyResolutionError(
                        f"Failed to add dependency {package}:\n{result.output}"
                    )

            result = self.runner.run(["go", "mod", "tidy"], self.work_dir)
            if not result.ok:
                raise DependencyResolutionError(f"Failed to run go mod tidy:\n{result.output}")

            logfire.info("Dependencies updated", packages=packages)
            return packages
