"""Prompt building and response cleaning for test and implementation generation.

Flow used by the iteration controller:
1. ``generate_tests`` writes tests from the description (tests first)
2. ``generate_implementation`` writes code that should pass those tests
3. ``fix_both`` repairs implementation and tests together from the failing output

Example:
    from aiterate.completion import CompletionService
    from aiterate.generator import CodeGenerator

    generator = CodeGenerator(CompletionService(model="openai:gpt-4o"))
    tests = generator.generate_tests("add two integers", "go")
    code = generator.generate_implementation("add two integers", tests, "go")
"""

import re

import logfire

from aiterate.completion import CompletionService
from aiterate.errors import EmptyGenerationError, MalformedRepairResponse, RunCancelledError
from aiterate.languages import Language, get_profile
from aiterate.models import RepairResult

DEFAULT_DIRECTORY_NAME = "generated-function"
MAX_DIRECTORY_NAME_LENGTH = 30

IMPLEMENTATION_MARKER = "---IMPLEMENTATION---"
TESTS_MARKER = "---TESTS---"
END_MARKER = "---END---"

_FENCE = "```"
_MARKER = re.compile(r"---\s*(IMPLEMENTATION|TESTS|END)\s*---")


def strip_code_block(text: str) -> str:
    """Remove one surrounding Markdown code fence and outer whitespace.

    ``"```go\\npackage main\\n```"`` -> ``"package main"``. A response made of only an
    opening fence yields ``""``; text without a leading fence is only trimmed.
    """
    text = text.strip()
    if not text.startswith(_FENCE):
        return text

    lines = text.split("\n")
    if len(lines) <= 1:
        return ""

    # drop the opening fence (and its language tag), then the last closing fence
    lines = lines[1:]
    for i in range(len(lines) - 1, -1, -1):
        if lines[i].strip() == _FENCE:
            lines = lines[:i]
            break

    return "\n".join(lines).strip()


def slugify(text: str) -> str:
    """Turn free text into a directory-safe name made of ``[a-z0-9-]``.

    Runs of other characters collapse into one hyphen, hyphens are trimmed from the
    ends, and a name not starting with a letter gets an ``fn-`` prefix.
    """
    name = text.strip().lower()
    name = "".join(c if ("a" <= c <= "z" or "0" <= c <= "9" or c == "-") else "-" for c in name)
    name = re.sub(r"-{2,}", "-", name).strip("-")
    if not name:
        return ""
    if not ("a" <= name[0] <= "z"):
        name = f"fn-{name}"
    return name[:MAX_DIRECTORY_NAME_LENGTH].rstrip("-")


def parse_repair_response(response: str) -> RepairResult:
    """Extract the implementation and tests sections of a joint-repair response.

    Sections are introduced by ``---IMPLEMENTATION---`` and ``---TESTS---`` and run to
    the next marker (``---END---`` is optional). Each section is fence-cleaned.

    Raises:
        MalformedRepairResponse: If either section is absent or empty.
    """
    sections: dict[str, str] = {}
    matches = list(_MARKER.finditer(response))
    for i, match in enumerate(matches):
        label = match.group(1)
        if label == "END" or label in sections:
            continue
        end = matches[i + 1].start() if i + 1 < len(matches) else len(response)
        sections[label] = strip_code_block(response[match.end() : end])

    missing = [
        name
        for name, label in (("implementation", "IMPLEMENTATION"), ("tests", "TESTS"))
        if not sections.get(label)
    ]
    if missing:
        raise MalformedRepairResponse(missing, response)

    return RepairResult(code=sections["IMPLEMENTATION"], test_code=sections["TESTS"])


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


class CodeGenerator:
    """Generates tests and implementations through a ``CompletionService``."""

    def __init__(self, completion: CompletionService):
        self.completion = completion

    def _generate(self, prompt: str, kind: str) -> str:
        code = strip_code_block(self.completion.complete(prompt))
        if not code:
            logfire.error("Model returned empty source", kind=kind)
            raise EmptyGenerationError(kind)
        return code

    def generate_tests(self, description: str, language: Language | str) -> str:
        """Generate test source only for ``description``.

        Raises:
            ServiceError: If the completion call fails.
            EmptyGenerationError: If the cleaned response is empty.
        """
        profile = get_profile(language)
        with logfire.span("Generating tests", language=str(profile.language)):
            prompt = f"""Generate comprehensive test cases in {profile.display_name} for the following functionality:
{description}

The tests should:
{_numbered(profile.test_guidelines)}

Cover normal cases, boundary cases, and error conditions.
Return ONLY the test code without any explanation."""
            return self._generate(prompt, "test source")

    def generate_implementation(
        self, description: str, test_code: str, language: Language | str
    ) -> str:
        """Generate an implementation consistent with ``test_code``."""
        profile = get_profile(language)
        with logfire.span("Generating implementation", language=str(profile.language)):
            prompt = f"""Given these {profile.display_name} tests:
{test_code}

The functionality being tested: {description}

Generate a {profile.display_name} implementation that passes all tests. It will be saved as `{profile.code_file}` next to `{profile.test_file}`. The implementation should:
{_numbered(profile.impl_guidelines)}

Return ONLY the implementation code without any explanation."""
            return self._generate(prompt, "implementation")

    def fix_implementation(
        self, code: str, test_code: str, test_output: str, language: Language | str
    ) -> str:
        """Repair the implementation only, keeping the tests as they are."""
        profile = get_profile(language)
        with logfire.span("Fixing implementation", language=str(profile.language)):
            prompt = f"""The following {profile.display_name} code failed some tests:

Current Implementation:
{code}

Test Code:
{test_code}

Test Output (errors):
{test_output}

Fix the implementation to make all tests pass. Return ONLY the fixed implementation code without any explanation."""
            return self._generate(prompt, "implementation")

    def fix_both(
        self, code: str, test_code: str, test_output: str, language: Language | str
    ) -> RepairResult:
        """Joint repair: ask for corrected implementation and tests in one response.

        Raises:
            ServiceError: If the completion call fails.
            MalformedRepairResponse: If the response lacks either section.
        """
        profile = get_profile(language)
        with logfire.span("Fixing implementation and tests", language=str(profile.language)):
            prompt = f"""The following {profile.display_name} code and tests failed:

Current Implementation:
{code}

Current Test Code:
{test_code}

Test Output (errors):
{test_output}

Fix BOTH the implementation and test code to make all tests pass. Return the fixed code in this exact format:

{IMPLEMENTATION_MARKER}
[Your fixed implementation code here]
{TESTS_MARKER}
[Your fixed test code here]
{END_MARKER}"""
            response = self.completion.complete(prompt)
            try:
                repair = parse_repair_response(response)
            except MalformedRepairResponse as e:
                logfire.error("Malformed repair response", missing=e.missing, response=response[:500])
                raise
            logfire.info(
                "Repair parsed", code_chars=len(repair.code), test_chars=len(repair.test_code)
            )
            return repair

    def generate_directory_name(self, description: str) -> str:
        """Ask the model for a short output directory name.

        Never fails: any problem falls back to ``DEFAULT_DIRECTORY_NAME``.
        """
        prompt = f"""Given this function description:
"{description}"

Generate a short, descriptive directory name that:
1. Is under {MAX_DIRECTORY_NAME_LENGTH} characters
2. Uses only lowercase letters, numbers, and hyphens
3. Describes the main purpose of the function
4. Starts with a letter

Return ONLY the directory name, nothing else."""
        try:
            name = slugify(strip_code_block(self.completion.complete(prompt)))
        except RunCancelledError:
            raise
        except Exception as e:
            logfire.warn("Directory name generation failed, using fallback", error=str(e))
            return DEFAULT_DIRECTORY_NAME

        if not name:
            logfire.warn("Model returned an unusable directory name, using fallback")
            return DEFAULT_DIRECTORY_NAME
        return name
