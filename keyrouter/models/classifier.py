"""
Shared error classification for provider clients.

Every provider client runs its failed HTTP responses through
`classify_error` so that the router sees one vocabulary regardless of
backend. Checks run in a fixed order and the first match wins.
Insufficient-credit detection runs before the authentication checks
because some backends answer an unpaid account with 401/403.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Tuple

from keyrouter.models.base import ErrorKind, Failure, ProviderKind

logger = logging.getLogger(__name__)

_CREDIT_PATTERNS = [
    "insufficient_quota",
    "insufficient_funds",
    "insufficient credits",
    "insufficient credit",
    "insufficient balance",
    "billing_not_active",
    "billing_error",
    "no active billing",
    "quota exceeded",
    "payment required",
    "credit balance is too low",
]

_INSUFFICIENT_COMPANIONS = ["quota", "funds", "credit", "balance"]
_BILLING_COMPANIONS = ["not active", "disabled", "inactive"]

_INVALID_KEY_PATTERNS = [
    "invalid api key",
    "invalid_api_key",
    "incorrect api key",
    "api key not found",
    "api key not valid",
    "api_key_invalid",
    "authentication failed",
    "authentication_error",
    "unauthorized",
]

_MODEL_ACCESS_PATTERNS = [
    "not available",
    "not accessible",
    "does not have access",
    "do not have access",
    "not found",
    "permission",
]

_RATE_LIMIT_PATTERNS = ["rate limit", "rate_limit", "too many requests"]

_TRANSIENT_STATUSES = {500, 502, 503, 504}


def is_insufficient_credit(status_code: Optional[int], text: str) -> bool:
    """True when a status/text pair describes exhausted credit or billing."""
    if status_code == 402:
        return True
    if any(p in text for p in _CREDIT_PATTERNS):
        return True
    if "insufficient" in text and any(c in text for c in _INSUFFICIENT_COMPANIONS):
        return True
    if "billing" in text and any(c in text for c in _BILLING_COMPANIONS):
        return True
    return False


def classify_error(
    status_code: Optional[int],
    message: str = "",
    error_type: str = "",
) -> ErrorKind:
    """
    Classify a failed provider response into an ErrorKind.

    Args:
        status_code: HTTP status of the response, or None if unknown.
        message: Provider-reported error message (or the status text).
        error_type: Provider-reported error type, code or status string.

    Returns:
        The first matching ErrorKind, falling back to FATAL.
    """
    lower_message = (message or "").lower()
    text = f"{lower_message} {(error_type or '').lower()}"

    if is_insufficient_credit(status_code, text):
        return ErrorKind.INSUFFICIENT_CREDIT

    if status_code == 401 or any(p in text for p in _INVALID_KEY_PATTERNS):
        return ErrorKind.INVALID_KEY

    if (
        status_code == 403
        and "model" in lower_message
        and any(p in lower_message for p in _MODEL_ACCESS_PATTERNS)
    ):
        return ErrorKind.NO_MODEL_ACCESS

    if status_code == 429 or any(p in text for p in _RATE_LIMIT_PATTERNS):
        return ErrorKind.RATE_LIMITED

    if status_code in _TRANSIENT_STATUSES:
        return ErrorKind.TRANSIENT

    return ErrorKind.FATAL


def extract_error_details(body: Any, fallback: str = "") -> Tuple[str, str]:
    """
    Pull (message, type) out of a provider error body.

    The body may be the parsed JSON document, its inner `error` object,
    a raw JSON string, or something unparseable. Missing pieces fall
    back to `fallback` (usually the HTTP reason phrase) and "".
    """
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return (body.strip() or fallback), ""

    if isinstance(body, list) and body:
        # Gemini sometimes wraps the error document in a list.
        body = body[0]
    if not isinstance(body, dict):
        return fallback, ""

    error = body.get("error", body)
    if isinstance(error, str):
        return error or fallback, str(body.get("type") or "")
    if not isinstance(error, dict):
        return fallback, ""

    message = error.get("message") or fallback
    error_type = error.get("type") or error.get("status") or error.get("code") or ""
    return str(message), str(error_type)


def classify_response(
    provider: ProviderKind,
    status_code: Optional[int],
    body: Any,
    reason: str = "",
) -> Failure:
    """Build a classified Failure for a non-2xx provider response."""
    message, error_type = extract_error_details(body, reason)
    kind = classify_error(status_code, message, error_type)
    logger.info(
        "%s error - status=%s type=%s kind=%s message=%s",
        provider.label,
        status_code,
        error_type,
        kind.value,
        message,
    )
    if not message:
        message = f"{provider.label} API error {status_code}"
    return Failure(kind=kind, message=message)


def empty_response(provider: ProviderKind) -> Failure:
    return Failure(ErrorKind.FATAL, f"{provider.label} returned empty content")


def timed_out(provider: ProviderKind) -> Failure:
    return Failure(ErrorKind.TRANSIENT, f"{provider.label} request timed out")


def unreachable(provider: ProviderKind, exc: BaseException) -> Failure:
    return Failure(ErrorKind.TRANSIENT, f"{provider.label} connection failed: {exc}")
