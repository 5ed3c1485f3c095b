import os

import anthropic
from anthropic import Anthropic

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
    vendor = "anthropic"

    def __init__(self, model: str, timeout: float = DEFAULT_LLM_TIMEOUT):
        super().__init__(model, timeout=timeout)
        self.client = Anthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY"),
            timeout=timeout,
            max_retries=0,
        )

    def _complete(self, system: str, prompt: str, temperature: float, max_tokens: int) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as e:
            raise ProviderTimeoutError(f"Anthropic request timed out after {self.timeout}s") from e
        except anthropic.RateLimitError as e:
            raise OverloadedError(f"Anthropic rate limited: {e}") from e
        except anthropic.APIConnectionError as e:
            raise ProviderConnectionError(f"Anthropic connection failed: {e}") from e
        except anthropic.APIStatusError as e:
            # 529 is Anthropic's "overloaded"
            if e.status_code >= 500:
                raise OverloadedError(f"Anthropic server error {e.status_code}") from e
            raise ProviderResponseError(f"Anthropic rejected request ({e.status_code}): {e.message}") from e

        return extract_content_from_response(response, self.vendor)
