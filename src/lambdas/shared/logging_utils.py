"""
Logging helpers for the membership service.

Webhook payloads and checkout requests are user controlled, so anything that
reaches a log line passes through one of these helpers first:

- sanitize_for_log(): strip CRLF/control characters (CWE-117) and cap length
- mask_email(): keep member addresses out of plain-text logs
- redact_sensitive_fields(): hide API keys and signing secrets in dicts
- get_safe_error_info(): exception type only, never the message

For On-Call Engineers:
    Log lines use snake_case event names (e.g. "stripe_signature_invalid",
    "membership_email_failed") with details in structured ``extra`` fields.
    Filter CloudWatch on the event name, then correlate with ``event_id``.
"""

import logging
import os
import re
from typing import Any

# Maximum length for logged user input to prevent log flooding
MAX_LOG_INPUT_LENGTH = 200

SENSITIVE_FIELDS = {
    "password",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "signature",
    "key",
    "credential",
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

REDACTED = "***REDACTED***"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def configure_logging(level: str | None = None) -> None:
    """Set the root log level from LOG_LEVEL (default INFO).

    Lambda installs its own handler on the root logger, so a handler is only
    added when none exists (local runs, uvicorn).
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(getattr(logging, level_name, logging.INFO))


def sanitize_for_log(value: Any, max_length: int = MAX_LOG_INPUT_LENGTH) -> str:
    """
    Flatten a value onto one log line and cap its length (CWE-117).

    >>> sanitize_for_log("cs_test_123\\n[FAKE] refund issued")
    'cs_test_123 [FAKE] refund issued'
    """
    text = _CONTROL_CHARS.sub(" ", str(value))
    if len(text) > max_length:
        return f"{text[:max_length]}..."
    return text


def mask_email(email: str | None) -> str | None:
    """Mask an email for logs: marie@example.org -> m***@example.org"""
    if not email:
        return None
    parts = sanitize_for_log(email).split("@")
    if len(parts) != 2:
        return "***"
    local, domain = parts
    return f"{local[0]}***@{domain}" if len(local) > 1 else f"*@{domain}"


def get_safe_error_info(exception: Exception) -> dict[str, str]:
    """
    Loggable description of an exception: its class name only.

    Stripe and SendGrid error messages can echo member names and addresses
    back from the request body.

    >>> get_safe_error_info(ValueError("marie@example.org"))
    {'error_type': 'ValueError'}
    """
    return {"error_type": type(exception).__name__}


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_FIELDS)


def redact_sensitive_fields(data: dict[str, Any]) -> dict[str, Any]:
    """
    Copy of ``data`` with credential-like keys replaced by ``REDACTED``.

    Nested dicts are redacted too; the input is left untouched.

    >>> redact_sensitive_fields({"sender_email": "a@b.org", "sendgrid_api_key": "SG.x"})  # pragma: allowlist secret
    {'sender_email': 'a@b.org', 'sendgrid_api_key': '***REDACTED***'}
    """
    redacted: dict[str, Any] = {}
    for key, value in data.items():
        if _is_sensitive(key):
            redacted[key] = REDACTED
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive_fields(value)
        else:
            redacted[key] = value
    return redacted


_USER_ERROR_MESSAGES: dict[type[Exception], str] = {
    ValueError: "Invalid input provided",
    KeyError: "Required field missing",
    PermissionError: "Access denied",
    TimeoutError: "Request timed out",
}


def get_safe_error_message_for_user(exception: Exception) -> str:
    """Generic message for API clients; details stay in the logs."""
    return _USER_ERROR_MESSAGES.get(
        type(exception), "An error occurred processing your request"
    )
