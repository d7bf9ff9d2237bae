"""User-facing classification of AI provider failures.

``classify_error`` maps any exception raised while talking to an AI provider
to a fixed, presentable payload: a machine-readable ``type``, a short
``title`` and ``message``, and the ``action`` the UI should offer. Matching is
on the exception class first, then on its message (case-insensitive).

Payload table
-------------
===================  ======================  ================
type                 matched by              action
===================  ======================  ================
``rate_limit``       "rate limit"            ``retry_later``
``quota_exceeded``   "quota exceeded"        ``contact_support``
``invalid_api_key``  "invalid api key"       ``contact_admin``
``openai_error``     other OpenAI errors     ``retry``
``provider_error``   other provider errors   ``retry``
``unknown_error``    anything else           ``retry``
===================  ======================  ================
"""

from __future__ import annotations

from typing import Literal

import openai
from pydantic import BaseModel, ConfigDict

type ErrorType = Literal[
    "rate_limit",
    "quota_exceeded",
    "invalid_api_key",
    "openai_error",
    "provider_error",
    "unknown_error",
]
type ErrorAction = Literal["retry", "retry_later", "contact_support", "contact_admin"]


class ProviderError(Exception):
    """Raised by an AI provider integration."""


class OpenAIProviderError(ProviderError):
    """Provider error that originated in the OpenAI integration."""


class ErrorDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ErrorType
    title: str
    message: str
    action: ErrorAction
    retry_after: int | None = None

    def to_payload(self) -> dict[str, object]:
        """Serializable form; ``retry_after`` is omitted when unset."""

        return self.model_dump(exclude_none=True)


RATE_LIMIT = ErrorDetails(
    type="rate_limit",
    title="AI Service Temporarily Unavailable",
    message="We're experiencing high demand. Please try again in a few minutes.",
    action="retry_later",
    retry_after=60,
)
QUOTA_EXCEEDED = ErrorDetails(
    type="quota_exceeded",
    title="AI Usage Limit Reached",
    message=(
        "You've reached your AI usage limit for this period. "
        "Please try again later or contact support."
    ),
    action="contact_support",
)
INVALID_API_KEY = ErrorDetails(
    type="invalid_api_key",
    title="AI Configuration Issue",
    message="AI service is not properly configured. Please contact your administrator.",
    action="contact_admin",
)
OPENAI_ERROR = ErrorDetails(
    type="openai_error",
    title="AI Service Error",
    message="We're having trouble connecting to our AI service. Please try again.",
    action="retry",
)
PROVIDER_ERROR = ErrorDetails(
    type="provider_error",
    title="AI Service Unavailable",
    message="AI features are currently unavailable. Please try again later.",
    action="retry",
)
UNKNOWN_ERROR = ErrorDetails(
    type="unknown_error",
    title="Something Went Wrong",
    message="We encountered an unexpected error. Please try again.",
    action="retry",
)

_OPENAI_MESSAGE_RULES: tuple[tuple[str, ErrorDetails], ...] = (
    ("rate limit", RATE_LIMIT),
    ("quota exceeded", QUOTA_EXCEEDED),
    ("invalid api key", INVALID_API_KEY),
)


def _is_openai_error(exc: BaseException) -> bool:
    return isinstance(exc, (openai.OpenAIError, OpenAIProviderError))


def classify_error(exc: BaseException) -> ErrorDetails:
    """Return the user-facing payload for ``exc``. Never raises."""

    if _is_openai_error(exc):
        text = str(exc).lower()
        for needle, details in _OPENAI_MESSAGE_RULES:
            if needle in text:
                return details
        return OPENAI_ERROR
    if isinstance(exc, ProviderError):
        return PROVIDER_ERROR
    return UNKNOWN_ERROR


__all__ = [
    "ErrorAction",
    "ErrorDetails",
    "ErrorType",
    "OpenAIProviderError",
    "ProviderError",
    "INVALID_API_KEY",
    "OPENAI_ERROR",
    "PROVIDER_ERROR",
    "QUOTA_EXCEEDED",
    "RATE_LIMIT",
    "UNKNOWN_ERROR",
    "classify_error",
]
