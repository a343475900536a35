"""Custom exception types for the aiterate generate-test-repair workflow."""


class AiterateError(Exception):
    """Base class for every fatal aiterate error.

    A failing test run is not an error: it is reported through ``TestResult.success``
    and drives the repair step of the loop.
    """

    pass


class ConfigurationError(AiterateError):
    """Raised when the run cannot be set up.

    This is raised when:
    - The credential for the selected model provider is missing
    - No model name is configured
    - A numeric setting (timeouts, iteration cap) is not a positive number
    """

    pass


class UnsupportedLanguageError(ConfigurationError):
    """Raised for a language tag outside the supported set, before any process is spawned."""

    def __init__(self, language: object, supported: list[str]):
        self.language = language
        self.supported = supported
        super().__init__(
            f"Unsupported language: {language}. Supported languages: {', '.join(supported)}"
        )


class ServiceError(AiterateError):
    """Raised when the completion service call fails or returns no content."""

    pass


class GenerationError(AiterateError):
    """Raised when a model response cannot be turned into usable source."""

    pass


class EmptyGenerationError(GenerationError):
    """Raised when a generated source is empty after code-fence cleaning.

    Empty source is never written into the workspace or run.
    """

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"The model returned an empty {kind}")


class MalformedRepairResponse(GenerationError):
    """Raised when a joint-repair response lacks the implementation or the tests section.

    The run is aborted instead of continuing with the previous code.
    """

    def __init__(self, missing: list[str], response: str = ""):
        self.missing = missing
        self.response = response
        super().__init__(f"Repair response is missing or has an empty {' and '.join(missing)} section")


class ExecutionLaunchError(AiterateError):
    """Raised when a toolchain command cannot be started (missing binary, bad working directory)."""

    pass


class DependencyResolutionError(AiterateError):
    """Raised when resolving or reconciling workspace dependencies fails.

    Tests are never run against an unresolved dependency set.
    """

    pass


class RunCancelledError(AiterateError):
    """Raised when a run is cancelled through its ``CancelToken``."""

    pass


class PersistenceError(AiterateError):
    """Raised when a session record cannot be read or written."""

    pass


class SessionNotFoundError(PersistenceError):
    """Raised when no record exists for a session id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class CorruptRecordError(PersistenceError):
    """Raised when a session record exists but cannot be deserialized."""

    pass
