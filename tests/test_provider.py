from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from repocards.config import PromptSettings, ProviderSettings
from repocards.errors import (
    CardValidationError,
    ProviderConfigError,
    ProviderHTTPError,
    ProviderPayloadError,
    ProviderTimeoutError,
    StructuredOutputRejected,
)
from repocards.provider import ProviderClient

URL = "https://api.example.test/v1/chat/completions"
MESSAGES = [
    {"role": "system", "content": "Group files into cards."},
    {"role": "user", "content": "src/auth/login.ts | Backend | auth | 120"},
]
GOOD_BODY = json.dumps(
    {"cards": [{"title": "Sistema de Auth", "screens": [{"name": "Backend", "files": ["src/auth/login.ts"]}]}]}
)


def _status_error(cls, status, message):
    request = httpx.Request("POST", URL)
    return cls(message, response=httpx.Response(status, request=request), body=None)


class _StubCompletions:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class _StubClient:
    def __init__(self, outcomes):
        self.completions = _StubCompletions(outcomes)
        self.chat = SimpleNamespace(completions=self.completions)


def _provider(outcomes):
    stub = _StubClient(outcomes)
    settings = ProviderSettings(model="test-model", timeout_seconds=12.5)
    prompt = PromptSettings(json_only_suffix="Return ONLY valid JSON.")
    return ProviderClient(settings, prompt, client=stub), stub.completions


def test_first_attempt_uses_structured_output():
    provider, calls = _provider([GOOD_BODY])
    drafts = provider.generate_drafts(MESSAGES)

    assert [draft.title for draft in drafts] == ["Sistema de Auth"]
    assert len(calls.calls) == 1
    call = calls.calls[0]
    assert call["response_format"] == {"type": "json_object"}
    assert call["model"] == "test-model"
    assert call["timeout"] == 12.5
    assert call["temperature"] == 0.0


def test_malformed_json_triggers_one_plain_retry():
    provider, calls = _provider(["{not json", GOOD_BODY])
    drafts = provider.generate_drafts(MESSAGES)

    assert len(drafts) == 1
    assert len(calls.calls) == 2
    retry = calls.calls[1]
    assert "response_format" not in retry
    assert retry["messages"][0]["content"].endswith("Return ONLY valid JSON.")
    assert retry["messages"][1] == MESSAGES[1]
    # Caller's messages are untouched.
    assert MESSAGES[0]["content"] == "Group files into cards."


def test_bad_request_triggers_retry():
    error = _status_error(openai.BadRequestError, 400, "Invalid parameter")
    provider, calls = _provider([error, GOOD_BODY])
    assert len(provider.generate_drafts(MESSAGES)) == 1
    assert len(calls.calls) == 2


def test_response_format_rejection_triggers_retry():
    error = _status_error(openai.UnprocessableEntityError, 422, "response_format json_object is not supported")
    provider, calls = _provider([error, GOOD_BODY])
    assert len(provider.generate_drafts(MESSAGES)) == 1
    assert len(calls.calls) == 2


def test_fenced_json_is_accepted():
    provider, calls = _provider([f"```json\n{GOOD_BODY}\n```"])
    assert len(provider.generate_drafts(MESSAGES)) == 1


def test_empty_message_is_retried():
    provider, calls = _provider(["", GOOD_BODY])
    assert len(provider.generate_drafts(MESSAGES)) == 1
    assert len(calls.calls) == 2


def test_at_most_two_calls_then_error_propagates():
    provider, calls = _provider(["{broken", "still broken", GOOD_BODY])
    with pytest.raises(ProviderPayloadError) as excinfo:
        provider.generate_drafts(MESSAGES)
    assert len(calls.calls) == 2
    assert isinstance(excinfo.value.__cause__, json.JSONDecodeError)
    assert "not valid JSON" in str(excinfo.value)


def test_retry_failure_with_rejection_propagates():
    first = _status_error(openai.BadRequestError, 400, "response_format unsupported")
    second = _status_error(openai.BadRequestError, 400, "still unsupported")
    provider, calls = _provider([first, second])
    with pytest.raises(StructuredOutputRejected) as excinfo:
        provider.generate_drafts(MESSAGES)
    assert excinfo.value.status_code == 400
    assert len(calls.calls) == 2


def test_server_error_is_not_retried():
    error = _status_error(openai.InternalServerError, 500, "upstream exploded")
    provider, calls = _provider([error, GOOD_BODY])
    with pytest.raises(ProviderHTTPError) as excinfo:
        provider.generate_drafts(MESSAGES)
    assert excinfo.value.status_code == 500
    assert "LLM HTTP 500" in str(excinfo.value)
    assert len(calls.calls) == 1


def test_timeout_aborts_the_batch():
    error = openai.APITimeoutError(request=httpx.Request("POST", URL))
    provider, calls = _provider([error, GOOD_BODY])
    with pytest.raises(ProviderTimeoutError):
        provider.generate_drafts(MESSAGES)
    assert len(calls.calls) == 1


def test_schema_failure_is_not_retried():
    provider, calls = _provider([json.dumps({"cards": []}), GOOD_BODY])
    with pytest.raises(CardValidationError):
        provider.generate_drafts(MESSAGES)
    assert len(calls.calls) == 1


def test_missing_api_key_is_a_config_error():
    with pytest.raises(ProviderConfigError):
        ProviderClient(ProviderSettings(api_key=None))
