"""Exception hierarchy for the card generation pipeline.

Callers either get a validated card list or exactly one of these errors.
``ProviderError.retryable`` marks the failures that earn the single
structured-output fallback call.
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class RepoCardsError(Exception):
    """Base class for every error raised by the pipeline."""


class CardValidationError(RepoCardsError, ValueError):
    """Normalized provider output failed the strict card schema."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        summary = "; ".join(self.errors[:5])
        if len(self.errors) > 5:
            summary += f" (+{len(self.errors) - 5} more)"
        super().__init__(f"Card validation failed: {summary}")


class ProviderError(RepoCardsError):
    """The text-generation provider call failed."""

    retryable = False

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"LLM HTTP {status_code}: {message}"
        super().__init__(message)


class ProviderHTTPError(ProviderError):
    """Non-retryable transport or HTTP failure."""


class StructuredOutputRejected(ProviderError):
    """The provider refused the ``response_format`` directive (or answered 400)."""

    retryable = True


class ProviderPayloadError(ProviderError):
    """The provider answered, but the body was empty or not JSON."""

    retryable = True


class ProviderTimeoutError(ProviderError):
    """The provider call exceeded its timeout."""


class ProviderConfigError(ProviderError):
    """No API key or client could be configured."""
