import os

import openai
from openai import OpenAI

from interview_coach.core.constants import DEFAULT_LLM_TIMEOUT

from .base import Provider
from .exceptions import (
    OverloadedError,
    ProviderConnectionError,
    ProviderResponseError,
    ProviderTimeoutError,
    extract_content_from_response,
)


class ProviderImpl(Provider):
    vendor = "openai"

    def __init__(self, model: str, timeout: float = DEFAULT_LLM_TIMEOUT):
        super().__init__(model, timeout=timeout)
        self.client = OpenAI(
            api_key=os.environ.get("OPENAI_API_KEY"),
            timeout=timeout,
            max_retries=0,
        )

    def _complete(self, system: str, prompt: str, temperature: float, max_tokens: int) -> str:
        try:
            response = self.client.responses.create(
                model=self.model,
                input=prompt,
                instructions=system,
                temperature=temperature,
                max_output_tokens=max_tokens,
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(f"OpenAI request timed out after {self.timeout}s") from e
        except openai.RateLimitError as e:
            raise OverloadedError(f"OpenAI rate limited: {e}") from e
        except openai.APIConnectionError as e:
            raise ProviderConnectionError(f"OpenAI connection failed: {e}") from e
        except openai.APIStatusError as e:
            if e.status_code >= 500:
                raise OverloadedError(f"OpenAI server error {e.status_code}") from e
            raise ProviderResponseError(f"OpenAI rejected request ({e.status_code}): {e.message}") from e

        return extract_content_from_response(response, self.vendor)
