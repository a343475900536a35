"""Completion service: send one prompt to a generative model, get raw text back.

Example:
    from aiterate.completion import CompletionService

    service = CompletionService(model="openai:gpt-4o")
    text = service.complete("Write a Go function that adds two integers.")
"""

from typing import Any, cast

import logfire
from pydantic_ai import Agent
from pydantic_ai.models import Model

from aiterate.config import DEFAULT_MODEL, require_credential
from aiterate.errors import ConfigurationError, RunCancelledError, ServiceError
from aiterate.process import CancelToken

SYSTEM_PROMPT = "You are a helpful programming assistant that generates code and tests."
DEFAULT_TEMPERATURE = 0.2


class CompletionService:
    """Thin synchronous wrapper over a pydantic-ai ``Agent`` with plain-text output."""

    def __init__(
        self,
        model: str | Model | None = DEFAULT_MODEL,
        *,
        timeout: float | None = 120.0,
        temperature: float = DEFAULT_TEMPERATURE,
        cancel_token: CancelToken | None = None,
    ):
        if not model:
            raise ConfigurationError("A model name must be provided (AITERATE_MODEL or MODEL_NAME)")
        if isinstance(model, str):
            require_credential(model)

        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.cancel_token = cancel_token
        self._agent: Agent[None, str] | Any = None

        logfire.info("CompletionService initialized", model=self.model_name)

    @property
    def model_name(self) -> str:
        return self.model if isinstance(self.model, str) else self.model.model_name

    @property
    def agent(self) -> Agent[None, str]:
        """Lazily built agent; model resolution happens on first use."""
        if self._agent is None:
            self._agent = Agent(self.model, output_type=str, system_prompt=SYSTEM_PROMPT)
        return cast(Agent[None, str], self._agent)

    def complete(self, prompt: str) -> str:
        """Return the model's raw text response for ``prompt``.

        Raises:
            ServiceError: If the call fails or the response has no content.
            RunCancelledError: If the cancel token was set before the call.
        """
        if self.cancel_token is not None and self.cancel_token.cancelled:
            raise RunCancelledError("Run cancelled before completion request")

        settings: dict[str, Any] = {"temperature": self.temperature}
        if self.timeout is not None:
            settings["timeout"] = self.timeout

        with logfire.span("Completion request", model=self.model_name, prompt_chars=len(prompt)):
            try:
                result = self.agent.run_sync(prompt, model_settings=settings)  # type: ignore[arg-type]
            except Exception as e:
                logfire.error("Completion request failed", model=self.model_name, error=str(e))
                raise ServiceError(f"Failed to generate completion: {e}") from e

            text = result.output
            if not isinstance(text, str) or not text.strip():
                logfire.error("Completion returned no content", model=self.model_name)
                raise ServiceError("No completion content returned")

            logfire.info("Completion received", response_chars=len(text))
            return text
