"""Runtime settings, read from the environment (and a local ``.env`` file)."""

import os
from pathlib import Path

import dotenv
from pydantic import BaseModel, Field, ValidationError

from aiterate.errors import ConfigurationError

DEFAULT_MODEL = "openai:gpt-4o"
DEFAULT_MAX_ITERATIONS = 5
DEFAULT_STORAGE_DIR = ".aiterate"

# Provider prefix of a pydantic-ai model name -> environment variable holding its credential
PROVIDER_CREDENTIALS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "google-gla": "GEMINI_API_KEY",
    "groq": "GROQ_API_KEY",
    "mistral": "MISTRAL_API_KEY",
}


class Settings(BaseModel):
    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    home: Path = Field(default_factory=lambda: Path.home() / DEFAULT_STORAGE_DIR)
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, gt=0)
    request_timeout: float = Field(default=120.0, gt=0, description="Seconds per completion call")
    command_timeout: float = Field(default=300.0, gt=0, description="Seconds per toolchain command")

    @classmethod
    def from_env(cls, load_env: bool = True, **overrides) -> "Settings":
        """Build settings from ``AITERATE_*`` variables, with explicit overrides on top.

        Raises:
            ConfigurationError: If a value does not validate.
        """
        if load_env:
            dotenv.load_dotenv()

        values: dict = {}
        if model := os.getenv("AITERATE_MODEL") or os.getenv("MODEL_NAME"):
            values["model"] = model
        if home := os.getenv("AITERATE_HOME"):
            values["home"] = Path(home).expanduser()
        for key in ("max_iterations", "request_timeout", "command_timeout"):
            if raw := os.getenv(f"AITERATE_{key.upper()}"):
                values[key] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def credential_env_var(model: str) -> str | None:
    """Return the environment variable the model's provider needs, if known."""
    provider = model.split(":", 1)[0] if ":" in model else "openai"
    return PROVIDER_CREDENTIALS.get(provider)


def require_credential(model: str) -> None:
    """Fail early when the provider credential for ``model`` is not set.

    Raises:
        ConfigurationError: If the provider's API key variable is missing or empty.
    """
    env_var = credential_env_var(model)
    if env_var and not os.getenv(env_var):
        raise ConfigurationError(f"{env_var} environment variable is not set")
