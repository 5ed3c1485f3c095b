from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import openai
import pytest

from interview_coach.providers.base import Provider
from interview_coach.providers.exceptions import (
    OverloadedError,
    ProviderConnectionError,
    ProviderParseError,
    ProviderResponseError,
    ProviderTimeoutError,
    backoff_delay,
    extract_content_from_response,
    parse_json_response,
    retry_with_exponential_backoff,
    strip_code_fences,
)

REQUEST = httpx.Request("POST", "https://api.example.test/v1")


class CannedProvider(Provider):
    vendor = "canned"

    def __init__(self, reply):
        super().__init__("canned-1")
        self.reply = reply
        self.seen = []

    def _complete(self, system, prompt, temperature, max_tokens):
        self.seen.append((system, prompt, temperature, max_tokens))
        return self.reply


class TestJsonParsing:
    @pytest.mark.parametrize(
        "content",
        [
            '{"score": 7}',
            '```json\n{"score": 7}\n```',
            '```\n{"score": 7}\n```',
            '  \n{"score": 7}\n  ',
        ],
    )
    def test_accepts_plain_and_fenced(self, content):
        assert parse_json_response(content, {"operation": "evaluate_answer"}) == {"score": 7}

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_content(self, content):
        with pytest.raises(ProviderParseError, match="Empty"):
            parse_json_response(content, {})

    def test_invalid_json(self):
        with pytest.raises(ProviderParseError, match="Invalid JSON"):
            parse_json_response("The score is seven", {"operation": "evaluate_answer"})

    def test_strip_code_fences_leaves_plain_text(self):
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'


class TestRetryHelper:
    def test_returns_first_success(self):
        sleeps = []
        func = MagicMock(side_effect=[OverloadedError("busy"), "ok"])

        assert retry_with_exponential_backoff(func, sleep=sleeps.append) == "ok"
        assert func.call_count == 2
        assert len(sleeps) == 1

    def test_reraises_last_error(self):
        sleeps = []
        func = MagicMock(side_effect=[ProviderConnectionError("a"), ProviderConnectionError("b"), ProviderTimeoutError("c")])

        with pytest.raises(ProviderTimeoutError, match="c"):
            retry_with_exponential_backoff(func, max_retries=2, sleep=sleeps.append)

        assert func.call_count == 3
        assert len(sleeps) == 2

    def test_other_errors_are_not_retried(self):
        func = MagicMock(side_effect=KeyError("boom"))

        with pytest.raises(KeyError):
            retry_with_exponential_backoff(func, sleep=lambda s: None)

        assert func.call_count == 1

    def test_backoff_is_capped(self):
        for attempt in range(10):
            assert backoff_delay(attempt, 0.5, 4.0) <= 4.4

    def test_backoff_jitter_bounds(self):
        assert 1.8 <= backoff_delay(2, 0.5, 10.0) <= 2.2


class TestExtractContent:
    def test_openai(self):
        assert extract_content_from_response(SimpleNamespace(output_text='{"a": 1}'), "openai") == '{"a": 1}'

    def test_anthropic_joins_text_blocks(self):
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"a": '),
                SimpleNamespace(type="tool_use", text="ignored"),
                SimpleNamespace(type="text", text="1}"),
            ]
        )

        assert extract_content_from_response(response, "anthropic") == '{"a": 1}'

    def test_google(self):
        assert extract_content_from_response(SimpleNamespace(text=None), "google") == ""

    def test_unknown_vendor(self):
        with pytest.raises(ProviderResponseError):
            extract_content_from_response(SimpleNamespace(), "mystery")


class TestProviderFactory:
    @pytest.mark.parametrize("model_id", ["gpt-4o-mini", "acme:model-1"])
    def test_rejects_bad_ids(self, model_id):
        with pytest.raises(ValueError):
            Provider.from_id(model_id)

    def test_builds_openai(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        provider = Provider.from_id("openai:gpt-4o-mini", timeout=12)

        assert provider.model_id == "openai:gpt-4o-mini"
        assert provider.timeout == 12

    def test_builds_anthropic(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")

        provider = Provider.from_id("anthropic:claude-3-5-haiku-latest")

        assert provider.vendor == "anthropic"
        assert provider.model == "claude-3-5-haiku-latest"


class TestCompleteJson:
    def test_parses_reply_and_passes_settings(self):
        provider = CannedProvider('```json\n{"question": "Why?"}\n```')

        data = provider.complete_json("sys", "prompt", temperature=0.3, max_tokens=50, operation="generate_question")

        assert data == {"question": "Why?"}
        assert provider.seen == [("sys", "prompt", 0.3, 50)]

    def test_unparseable_reply(self):
        with pytest.raises(ProviderParseError):
            CannedProvider("sorry, I cannot help").complete_json("sys", "prompt")

    def test_base_provider_is_abstract(self):
        with pytest.raises(NotImplementedError):
            Provider("m").complete_json("sys", "prompt")


class TestOpenAIErrorMapping:
    @pytest.fixture
    def provider(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        provider = Provider.from_id("openai:gpt-4o-mini")
        provider.client = MagicMock()
        return provider

    @pytest.mark.parametrize(
        "error, expected",
        [
            (openai.APITimeoutError(request=REQUEST), ProviderTimeoutError),
            (openai.APIConnectionError(request=REQUEST), ProviderConnectionError),
            (
                openai.RateLimitError("slow down", response=httpx.Response(429, request=REQUEST), body=None),
                OverloadedError,
            ),
            (
                openai.InternalServerError("oops", response=httpx.Response(503, request=REQUEST), body=None),
                OverloadedError,
            ),
            (
                openai.BadRequestError("bad", response=httpx.Response(400, request=REQUEST), body=None),
                ProviderResponseError,
            ),
        ],
    )
    def test_sdk_errors_are_mapped(self, provider, error, expected):
        provider.client.responses.create.side_effect = error

        with pytest.raises(expected):
            provider.complete_json("sys", "prompt")

    def test_successful_reply(self, provider):
        provider.client.responses.create.return_value = SimpleNamespace(output_text='{"score": 9}')

        assert provider.complete_json("sys", "prompt", max_tokens=600) == {"score": 9}
        kwargs = provider.client.responses.create.call_args.kwargs
        assert kwargs["instructions"] == "sys"
        assert kwargs["max_output_tokens"] == 600


class TestAnthropicErrorMapping:
    @pytest.fixture
    def provider(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        provider = Provider.from_id("anthropic:claude-3-5-haiku-latest")
        provider.client = MagicMock()
        return provider

    def test_overloaded_529(self, provider):
        provider.client.messages.create.side_effect = anthropic.APIStatusError(
            "overloaded", response=httpx.Response(529, request=REQUEST), body=None
        )

        with pytest.raises(OverloadedError):
            provider.complete_json("sys", "prompt")

    def test_timeout(self, provider):
        provider.client.messages.create.side_effect = anthropic.APITimeoutError(request=REQUEST)

        with pytest.raises(ProviderTimeoutError):
            provider.complete_json("sys", "prompt")

    def test_text_blocks(self, provider):
        provider.client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"summary": "ok"}')]
        )

        assert provider.complete_json("sys", "prompt") == {"summary": "ok"}
