import json
import logging
import random
import re
import time
from collections.abc import Callable
from typing import Any, TypeVar

from interview_coach.core.logging import log_event

T = TypeVar("T")

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class ProviderError(Exception):
    """Base exception for provider operations."""

    pass


class ProviderConnectionError(ProviderError):
    """Raised when provider connection fails."""

    pass


class ProviderTimeoutError(ProviderConnectionError):
    """Raised when a provider call exceeds its time budget."""

    pass


class OverloadedError(ProviderError):
    """Raised when provider is overloaded (429/529 errors)."""

    pass


class ProviderResponseError(ProviderError):
    """Raised when provider returns invalid response."""

    pass


class ProviderParseError(ProviderError):
    """Raised when response cannot be parsed."""

    pass


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with +/-10% jitter for the given zero-based attempt."""
    delay = min(base_delay * (2**attempt), max_delay)
    jitter = delay * random.uniform(-0.1, 0.1)
    return max(0.0, delay + jitter)


def retry_with_exponential_backoff(
    operation_func: Callable[[], T],
    max_retries: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_on: tuple[type[Exception], ...] = (ProviderError,),
    operation: str = "unknown",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Retry an operation with exponential backoff.

    Args:
        operation_func: Function to execute
        max_retries: Number of retries after the first attempt
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries
        retry_on: Exception types that trigger a retry
        operation: Operation name for logging
        sleep: Sleep function, replaceable in tests

    Returns:
        Result from operation_func

    Raises:
        The last exception once all retries are exhausted
    """
    attempts = max_retries + 1
    for attempt in range(attempts):
        try:
            return operation_func()
        except retry_on as e:
            if attempt == attempts - 1:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            log_event(
                "llm.retry",
                component="provider",
                operation=operation,
                attempt=attempt + 1,
                max_attempts=attempts,
                delay_s=round(delay, 3),
                error_type=type(e).__name__,
                error_msg=str(e),
                level=logging.WARNING,
            )
            sleep(delay)
    raise AssertionError("unreachable")


def strip_code_fences(content: str) -> str:
    """Remove markdown code fences models like to wrap JSON in."""
    return _CODE_FENCE.sub("", content.strip()).strip()


def parse_json_response(content: str, error_context: dict[str, Any]) -> Any:
    """
    Parse JSON response with unified error handling.

    Args:
        content: The JSON content to parse
        error_context: Context for error logging

    Returns:
        Parsed JSON data

    Raises:
        ProviderParseError: If parsing fails
    """
    if not content or not content.strip():
        raise ProviderParseError("Empty response content")

    cleaned = strip_code_fences(content)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        log_event(
            "llm.json_parse_error",
            component="provider",
            operation=error_context.get("operation", "unknown"),
            provider=error_context.get("provider", "unknown"),
            model=error_context.get("model", "unknown"),
            error_msg=str(e),
            content_length=len(content),
            level=logging.WARNING,
        )
        raise ProviderParseError(f"Invalid JSON response: {e}") from e


def extract_content_from_response(response: Any, provider: str) -> str:
    """
    Extract text content from provider-specific response format.

    Args:
        response: The provider response object
        provider: Provider name for format handling

    Returns:
        Extracted text content

    Raises:
        ProviderResponseError: If content extraction fails
    """
    try:
        if provider == "openai":
            return getattr(response, "output_text", "") or ""
        elif provider == "anthropic":
            content = ""
            if hasattr(response, "content") and response.content:
                for block in response.content:
                    if getattr(block, "type", None) == "text":
                        content += block.text
            return content
        elif provider == "google":
            return getattr(response, "text", "") or ""
        else:
            raise ProviderResponseError(f"Unknown provider: {provider}")
    except (AttributeError, TypeError) as e:
        raise ProviderResponseError(f"Failed to extract content: {e}") from e
