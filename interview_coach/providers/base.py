from typing import Any

from interview_coach.core.constants import DEFAULT_LLM_TIMEOUT
from interview_coach.core.logging import span

from .exceptions import parse_json_response


class Provider:
    """One request/response call to a generative model, returning parsed JSON."""

    vendor = "base"

    def __init__(self, model: str, timeout: float = DEFAULT_LLM_TIMEOUT):
        self.model = model
        self.timeout = timeout

    @staticmethod
    def from_id(model_id: str, timeout: float = DEFAULT_LLM_TIMEOUT) -> "Provider":
        # parse like "openai:gpt-4o-mini" / "anthropic:claude-3-5-haiku-latest" / "google:gemini-2.5-flash"
        if ":" not in model_id:
            raise ValueError(
                f"Model ID must be in format 'vendor:model', got: '{model_id}'. Use 'openai:gpt-4o-mini' or similar."
            )

        vendor, model = model_id.split(":", 1)
        if vendor == "openai":
            from . import openai as impl
        elif vendor == "anthropic":
            from . import anthropic as impl
        elif vendor == "google":
            from . import google as impl
        else:
            raise ValueError(f"Unknown provider '{vendor}'")
        return impl.ProviderImpl(model, timeout=timeout)

    @property
    def model_id(self) -> str:
        return f"{self.vendor}:{self.model}"

    def complete_json(
        self,
        system: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 600,
        operation: str = "complete",
    ) -> Any:
        """Send one prompt and return the decoded JSON payload.

        Raises:
            ProviderError: on transport, timeout, overload or parse problems
        """
        with span(
            f"llm.{operation}",
            component="provider",
            operation=operation,
            provider=self.vendor,
            model=self.model,
            prompt_len=len(prompt),
        ):
            content = self._complete(system, prompt, temperature, max_tokens)
            return parse_json_response(
                content,
                {"operation": operation, "provider": self.vendor, "model": self.model},
            )

    def _complete(self, system: str, prompt: str, temperature: float, max_tokens: int) -> str:
        """Return the raw text of the model's reply."""
        raise NotImplementedError
