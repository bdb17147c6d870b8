"""Decoding of non-2xx responses into structured errors."""

from http import HTTPStatus

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bbagent.features.transport.constants import (
    CAPTCHA_EXCEPTION_MARKER,
    CAPTCHA_HINT_PREFIX,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
)
from bbagent.features.transport.errors import (
    ApiError,
    NonRetryableStatusError,
    RetryableStatusError,
)


class ErrorEntry(BaseModel):
    """One entry of an ``{"errors": [...]}`` envelope."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message: str | None = None
    exception_name: str | None = Field(default=None, alias="exceptionName")

    @property
    def is_captcha(self) -> bool:
        """Check whether this entry reports a CAPTCHA-locked account."""
        return is_captcha_exception(self.exception_name)


class ErrorEnvelope(BaseModel):
    """Error body carrying a list of entries."""

    model_config = ConfigDict(extra="ignore")

    errors: list[ErrorEntry] = Field(default_factory=list)


class ErrorDetail(BaseModel):
    """Inner object of Bitbucket Cloud's ``{"type": "error"}`` body."""

    model_config = ConfigDict(extra="ignore")

    message: str | None = None
    detail: str | None = None


class CloudErrorEnvelope(BaseModel):
    """Bitbucket Cloud error body."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    error: ErrorDetail


def is_retryable_status(status_code: int) -> bool:
    """Check if a status code warrants a retry (429 or 5xx)."""
    if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
        return True
    return HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX


def is_captcha_exception(exception_name: str | None) -> bool:
    """Check if an exception classifier indicates a CAPTCHA-locked account."""
    if not exception_name:
        return False
    return CAPTCHA_EXCEPTION_MARKER in exception_name.lower()


def select_error_message(entries: list[ErrorEntry]) -> str:
    """Pick the most useful message from a list of error entries.

    Defaults to the first entry; a CAPTCHA-classified entry takes priority
    because the user can act on it.

    Args:
        entries: Non-empty list of error entries.

    Returns:
        The chosen message, prefixed with a hint for CAPTCHA entries that do
        not already mention it.
    """
    best = next((entry for entry in entries if entry.is_captcha), entries[0])

    message = best.message or ""
    if best.is_captcha and "captcha" not in message.lower():
        message = CAPTCHA_HINT_PREFIX + message
    return message


def _structured_message(body: bytes) -> str | None:
    try:
        envelope = ErrorEnvelope.model_validate_json(body)
    except ValidationError:
        envelope = None
    if envelope is not None and envelope.errors:
        return select_error_message(envelope.errors)

    try:
        cloud = CloudErrorEnvelope.model_validate_json(body)
    except ValidationError:
        return None
    if not cloud.error.message:
        return None
    if cloud.error.detail:
        return f"{cloud.error.message}: {cloud.error.detail}"
    return cloud.error.message


def reason_phrase(status_code: int, reason: str = "") -> str:
    """Return the reason phrase, falling back to the standard one."""
    if reason:
        return reason
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def decode_error(
    status_code: int,
    reason: str = "",
    body: bytes = b"",
    headers: httpx.Headers | None = None,
) -> ApiError:
    """Map a non-2xx response to a structured error.

    Args:
        status_code: HTTP status code.
        reason: HTTP reason phrase (the standard phrase when empty).
        body: Raw response body.
        headers: Response headers.

    Returns:
        RetryableStatusError for 429/5xx, NonRetryableStatusError otherwise.
    """
    error_type = (
        RetryableStatusError
        if is_retryable_status(status_code)
        else NonRetryableStatusError
    )
    reason = reason_phrase(status_code, reason)

    detail = ""
    if body:
        structured = _structured_message(body)
        if structured is None:
            detail = body.decode("utf-8", errors="replace").strip()
        else:
            detail = structured

    return error_type(status_code, reason, detail, headers)


def decode_response_error(response: httpx.Response) -> ApiError:
    """Decode an already-read httpx response into a structured error."""
    return decode_error(
        response.status_code,
        response.reason_phrase,
        response.content,
        response.headers,
    )
