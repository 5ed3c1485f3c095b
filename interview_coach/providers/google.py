import os

import httpx
from google import genai
from google.genai import errors, types

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
    vendor = "google"

    def __init__(self, model: str, timeout: float = DEFAULT_LLM_TIMEOUT):
        super().__init__(model, timeout=timeout)
        # http_options timeout is in milliseconds
        self.client = genai.Client(
            api_key=os.environ.get("GEMINI_API_KEY"),
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def _complete(self, system: str, prompt: str, temperature: float, max_tokens: int) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                    response_mime_type="application/json",
                ),
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Gemini request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderConnectionError(f"Gemini connection failed: {e}") from e
        except errors.ServerError as e:
            raise OverloadedError(f"Gemini server error {e.code}") from e
        except errors.APIError as e:
            if e.code == 429:
                raise OverloadedError(f"Gemini rate limited: {e.message}") from e
            raise ProviderResponseError(f"Gemini rejected request ({e.code}): {e.message}") from e

        return extract_content_from_response(response, self.vendor)
