"""Chat-completion client with a single structured-output fallback.

The first call asks for ``response_format={"type": "json_object"}``. If the
provider rejects that directive (HTTP 400, or an error naming
``response_format``/``json_object``) or answers with a body that is not JSON,
exactly one more call is made without the directive and with a "JSON only"
instruction appended to the system message. Nothing else is retried; the SDK's
own retries are disabled so a batch costs at most two calls.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

import openai
from openai import OpenAI
from tenacity import Retrying, before_sleep_log, retry_if_exception, stop_after_attempt

from repocards.config import PromptSettings, ProviderSettings
from repocards.errors import (
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    ProviderPayloadError,
    ProviderTimeoutError,
    StructuredOutputRejected,
)
from repocards.models import CardDraft
from repocards.normalize import normalize_provider_output
from repocards.prompts import with_json_only
from repocards.schema_validator import SchemaValidator

LOGGER = logging.getLogger(__name__)

MAX_PROVIDER_CALLS = 2
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_STRUCTURED_HINTS = ("response_format", "json_object")


def _is_retry_eligible(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


def _strip_code_fence(content: str) -> str:
    match = _FENCE_RE.match(content.strip())
    return match.group(1) if match else content


class ProviderClient:
    """Thin wrapper over ``OpenAI().chat.completions`` returning parsed JSON."""

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        prompt: Optional[PromptSettings] = None,
        client: Any = None,
    ) -> None:
        self.settings = settings or ProviderSettings()
        self.prompt = prompt or PromptSettings()
        if client is None:
            if not self.settings.api_key:
                raise ProviderConfigError("Set GROK_API_KEY or OPENAI_API_KEY to call the provider")
            client = OpenAI(api_key=self.settings.api_key, base_url=self.settings.base_url, max_retries=0)
        self._client = client

    def complete(self, messages: Sequence[Dict[str, str]], *, structured: bool = True) -> Any:
        """One provider call. Returns the parsed JSON body or raises ``ProviderError``."""

        kwargs: Dict[str, Any] = {
            "model": self.settings.model,
            "temperature": self.settings.temperature,
            "messages": list(messages),
            "timeout": self.settings.timeout_seconds,
        }
        if structured:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            resp = self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(f"Provider call timed out after {self.settings.timeout_seconds}s") from exc
        except openai.APIStatusError as exc:
            message = str(exc)
            if exc.status_code == 400 or any(hint in message for hint in _STRUCTURED_HINTS):
                raise StructuredOutputRejected(message, status_code=exc.status_code) from exc
            raise ProviderHTTPError(message, status_code=exc.status_code) from exc
        except openai.APIConnectionError as exc:
            raise ProviderHTTPError(f"Connection to provider failed: {exc}") from exc

        content = resp.choices[0].message.content if resp.choices else None
        if not content or not content.strip():
            raise ProviderPayloadError("Provider returned an empty message")
        try:
            return json.loads(_strip_code_fence(content))
        except json.JSONDecodeError as exc:
            preview = content[:200].replace("\n", " ")
            raise ProviderPayloadError(
                f"Provider response is not valid JSON ({exc.msg} at char {exc.pos}): {preview!r}"
            ) from exc

    def generate_drafts(
        self,
        messages: Sequence[Dict[str, str]],
        validator: Optional[SchemaValidator] = None,
        normalizer: Callable[[Any], Dict[str, List[Dict[str, Any]]]] = normalize_provider_output,
    ) -> List[CardDraft]:
        """Call, normalize and validate; fall back once without structured output."""

        validator = validator or SchemaValidator()
        for attempt in Retrying(
            stop=stop_after_attempt(MAX_PROVIDER_CALLS),
            retry=retry_if_exception(_is_retry_eligible),
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                structured = attempt.retry_state.attempt_number == 1
                batch = messages if structured else with_json_only(messages, self.prompt.json_only_suffix)
                raw = self.complete(batch, structured=structured)
                drafts = validator.validate(normalizer(raw))
                LOGGER.info("Provider produced %s valid cards (structured=%s)", len(drafts), structured)
                return drafts
        raise ProviderError("Provider retry loop ended without a result")  # pragma: no cover
