"""
Membership Service Errors
=========================

Exception types and the standardized error body used by the HTTP surface.

For On-Call Engineers:
    Error codes and their meanings:
    - VALIDATION_ERROR: malformed checkout request or webhook envelope
    - SIGNATURE_ERROR: Stripe-Signature header missing or invalid
    - PAYMENT_PROVIDER_ERROR: Stripe rejected a checkout session request
    - NOT_FOUND: endpoint disabled in this environment
    - INTERNAL_ERROR: unexpected server error

    Extraction and email failures are NOT errors at the HTTP level: the
    webhook is still acknowledged with 200 so Stripe does not redeliver.
    Search for "membership_email_failed" / "customer_email_not_found".

Security Notes:
    - Never expose Stripe or SendGrid error details to clients
    - Log full details server-side, return the sanitized body
"""

import logging
from enum import Enum

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in error bodies."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    SIGNATURE_ERROR = "SIGNATURE_ERROR"
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MembershipError(Exception):
    """Base class for errors surfaced to HTTP clients."""

    status_code = 500
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MembershipValidationError(MembershipError):
    """Checkout request is missing a tier or email, or names an unknown tier."""

    status_code = 400
    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class SignatureError(MembershipError):
    """Webhook signature missing or invalid. No processing happens."""

    status_code = 400
    code = ErrorCode.SIGNATURE_ERROR


class WebhookPayloadError(MembershipError):
    """Signed webhook body could not be parsed as an event envelope."""

    status_code = 400
    code = ErrorCode.VALIDATION_ERROR


class CheckoutError(MembershipError):
    """Stripe failed to create a checkout session."""

    status_code = 502
    code = ErrorCode.PAYMENT_PROVIDER_ERROR


def error_response(
    status_code: int,
    message: str,
    code: str | ErrorCode,
    log_error: bool = True,
) -> JSONResponse:
    """
    Build the standard error body: {"error": <message>, "code": <code>}.

    Args:
        status_code: HTTP status code
        message: Human-readable message (must not contain provider internals)
        code: Machine-readable error code
        log_error: Whether to log the error (default True)
    """
    error_code = code.value if isinstance(code, ErrorCode) else code

    if log_error:
        log_level = logging.ERROR if status_code >= 500 else logging.WARNING
        logger.log(
            log_level,
            message,
            extra={"status_code": status_code, "error_code": error_code},
        )

    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": error_code},
    )


def membership_error_response(exc: MembershipError) -> JSONResponse:
    """Map a MembershipError onto its status code and error body."""
    return error_response(exc.status_code, exc.message, exc.code)
