"""Stripe utility functions for checkout webhooks.

Signature verification runs over the exact raw request body. The body must
never be parsed and re-serialized before ``verify_stripe_signature``.
"""

import logging

import stripe

# Stripe SDK v8+: error classes are exported from the top-level package
from stripe import SignatureVerificationError, StripeError

from src.lambdas.shared.errors import SignatureError
from src.lambdas.shared.logging_utils import get_safe_error_info, sanitize_for_log

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"
DEFAULT_TOLERANCE_SECONDS = 300


def verify_stripe_signature(
    payload: bytes,
    signature: str,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> None:
    """Verify the ``t=<ts>,v1=<hmac>`` header against the raw body.

    Args:
        payload: Raw request body bytes
        signature: Value of the Stripe-Signature header
        secret: Endpoint signing secret (whsec_...)
        tolerance: Maximum age of the signature timestamp in seconds

    Raises:
        SignatureError: If the header is missing, malformed, stale, or does
            not match the body
    """
    if not signature:
        raise SignatureError("Missing Stripe-Signature header")
    if not secret:
        logger.error("stripe_webhook_secret_missing")
        raise SignatureError("Webhook signing secret not configured")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.warning("stripe_signature_invalid", extra={"reason": "non_utf8_body"})
        raise SignatureError("Webhook body is not valid UTF-8") from e

    try:
        stripe.WebhookSignature.verify_header(body, signature, secret, tolerance)
    except SignatureVerificationError as e:
        logger.warning(
            "stripe_signature_invalid",
            extra={"error": sanitize_for_log(str(e))},
        )
        raise SignatureError("Webhook signature verification failed") from e

    logger.info("stripe_signature_verified")


def retrieve_customer_email(customer_id: str, api_key: str) -> str | None:
    """Look up a Stripe customer's email by id.

    Returns:
        The email if the customer exists, is not deleted and has one;
        None otherwise. Stripe errors are logged and treated as not found.
    """
    try:
        customer = stripe.Customer.retrieve(customer_id, api_key=api_key)
    except StripeError as e:
        logger.warning(
            "stripe_customer_lookup_failed",
            extra={
                "customer_id": sanitize_for_log(customer_id),
                **get_safe_error_info(e),
            },
        )
        return None

    if getattr(customer, "deleted", False):
        logger.info(
            "stripe_customer_deleted",
            extra={"customer_id": sanitize_for_log(customer_id)},
        )
        return None

    return getattr(customer, "email", None) or None
