"""Supported target languages and their toolchain capabilities.

Every per-language decision (file names, test command, workspace manifest,
dependency scanning, prompt guidance) is looked up here once instead of
branching on language tags across the code base.
"""

import sys
from enum import Enum

from pydantic import BaseModel, Field

from aiterate.errors import UnsupportedLanguageError


class Language(str, Enum):
    GO = "go"
    PYTHON = "python"

    def __str__(self) -> str:
        return self.value


class LanguageProfile(BaseModel):
    """Toolchain capabilities of one target language."""

    language: Language
    display_name: str
    extension: str = Field(description="File extension without the leading dot")
    test_command: list[str] = Field(description="Test invocation, run from the workspace root")
    manifest_files: dict[str, str] = Field(
        default_factory=dict, description="Files seeded into a fresh workspace (name -> content)"
    )
    setup_commands: list[list[str]] = Field(
        default_factory=list, description="Commands run once after the manifest is seeded"
    )
    scans_dependencies: bool = Field(
        default=False, description="Whether generated imports must be declared in the manifest"
    )
    test_guidelines: list[str] = Field(default_factory=list)
    impl_guidelines: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def code_file(self) -> str:
        return f"main.{self.extension}"

    @property
    def test_file(self) -> str:
        return f"main_test.{self.extension}"

    @property
    def source_files(self) -> tuple[str, str]:
        return self.test_file, self.code_file


# go test kills a hung test binary itself before the runner deadline is reached
GO_TEST_TIMEOUT = "4m"

GO_MOD = """module temp

go 1.21

require (
	github.com/stretchr/testify v1.8.4
)
"""

PROFILES: dict[Language, LanguageProfile] = {
    Language.GO: LanguageProfile(
        language=Language.GO,
        display_name="Go",
        extension="go",
        test_command=["go", "test", "-v", "-timeout", GO_TEST_TIMEOUT, "./..."],
        manifest_files={"go.mod": GO_MOD},
        setup_commands=[["go", "mod", "tidy"]],
        scans_dependencies=True,
        test_guidelines=[
            'Use the "testing" package',
            'Include package declaration ("package main" for single file programs)',
            "Include all necessary imports",
            "Cover normal cases, edge cases, and error conditions",
            "Follow Go testing best practices",
            "Use descriptive test names (e.g., TestAdd_PositiveNumbers)",
        ],
        impl_guidelines=[
            'Include package declaration ("package main" for single file programs)',
            "Include all necessary imports",
            "Handle all test cases including edge cases",
            "Follow Go best practices",
            "Include error handling",
            "Include comments for exported functions",
        ],
    ),
    Language.PYTHON: LanguageProfile(
        language=Language.PYTHON,
        display_name="Python",
        extension="py",
        test_command=[sys.executable, "-m", "pytest", "main_test.py", "-v"],
        manifest_files={"requirements.txt": "pytest>=7.0.0\n"},
        setup_commands=[[sys.executable, "-m", "pip", "install", "-r", "requirements.txt"]],
        test_guidelines=[
            "Use pytest for testing",
            "Import the code under test from the `main` module (e.g., `from main import add`)",
            "Include necessary imports (pytest, math, etc.)",
            "Cover normal cases, edge cases, and error conditions",
            "Follow Python testing best practices",
            "Use descriptive test names (e.g., test_add_positive_numbers)",
            "Use pytest fixtures if needed",
            "Include type hints and docstrings",
        ],
        impl_guidelines=[
            "Include all necessary imports",
            "Use type hints for function parameters and return values",
            "Include proper docstrings",
            "Handle all test cases including edge cases",
            "Follow PEP 8 style guidelines",
            "Include error handling",
            "Use modern Python features (f-strings, walrus operator where appropriate)",
        ],
    ),
}


def supported_tags() -> list[str]:
    return [language.value for language in Language]


def parse_language(tag: "str | Language") -> Language:
    """Resolve a user-supplied tag (case and surrounding whitespace ignored) to a ``Language``.

    Raises:
        UnsupportedLanguageError: If the tag is not one of the supported languages.
    """
    if isinstance(tag, Language):
        return tag
    try:
        return Language(str(tag).strip().lower())
    except ValueError:
        raise UnsupportedLanguageError(tag, supported_tags()) from None


def get_profile(language: "str | Language") -> LanguageProfile:
    return PROFILES[parse_language(language)]
