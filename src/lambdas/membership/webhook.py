"""Stripe webhook intake for completed membership checkouts.

Per delivery:

    Received -> SignatureVerified | SignatureRejected (400, nothing else runs)
    SignatureVerified, checkout.session.completed
        -> CustomerExtracted -> EmailAttempted -> Acknowledged (200)
    SignatureVerified, any other type -> Acknowledged (200)

Once the signature is valid the delivery is always acknowledged, even when
no email could be resolved or the email provider failed: redelivering the
same event would not fix either, and could email the member twice.

For On-Call Engineers:
    - "stripe_signature_invalid": secret mismatch or tampered body
    - "customer_email_not_found": session had no email anywhere
    - "membership_email_failed": SendGrid failed after all retries
    - "webhook_event_redelivered": duplicate delivery, no email sent
"""

import json
import logging

from src.lambdas.membership.customer import CustomerExtractor
from src.lambdas.notification.membership_notifier import MembershipNotifier
from src.lambdas.shared.auth.stripe_utils import verify_stripe_signature
from src.lambdas.shared.config import MembershipConfig
from src.lambdas.shared.errors import SignatureError, WebhookPayloadError
from src.lambdas.shared.idempotency import ProcessedEventStore
from src.lambdas.shared.logging_utils import mask_email, sanitize_for_log
from src.lambdas.shared.models.webhook_event import (
    PaymentCompletionEvent,
    ProcessedEvent,
    WebhookResult,
    WebhookStatus,
)

logger = logging.getLogger(__name__)


def verify_delivery(
    payload: bytes, signature: str | None, config: MembershipConfig
) -> None:
    """Check the Stripe-Signature header over the raw body.

    An unsigned request is let through only when DEBUG_WEBHOOK is set
    outside production (local testing with hand-written events).

    Raises:
        SignatureError: Header missing or invalid
    """
    if not signature:
        if config.allow_signature_bypass:
            logger.warning(
                "stripe_signature_bypassed",
                extra={"environment": config.environment},
            )
            return
        logger.warning("stripe_signature_missing")
        raise SignatureError("Missing signature header or webhook secret")

    verify_stripe_signature(payload, signature, config.webhook_secret)


def parse_event(payload: bytes) -> PaymentCompletionEvent:
    """Parse the verified body into an event envelope.

    Raises:
        WebhookPayloadError: Body is not a JSON event envelope
    """
    try:
        return PaymentCompletionEvent.model_validate(json.loads(payload))
    except ValueError as e:
        logger.warning("webhook_payload_invalid", extra={"error_type": type(e).__name__})
        raise WebhookPayloadError("Invalid webhook payload") from e


def handle_payment_webhook(
    payload: bytes,
    signature: str | None,
    config: MembershipConfig,
    extractor: CustomerExtractor,
    notifier: MembershipNotifier,
    processed_events: ProcessedEventStore | None = None,
) -> WebhookResult:
    """Verify, parse and process one Stripe webhook delivery.

    Args:
        payload: Raw request body, exactly as received
        signature: Stripe-Signature header value
        config: Signing secrets and bypass flag
        extractor: Resolves the purchaser from the session
        notifier: Sends the confirmation email
        processed_events: Recently handled event ids, for redelivery detection

    Raises:
        SignatureError: Signature missing or invalid (no processing happened)
        WebhookPayloadError: Body could not be parsed
    """
    verify_delivery(payload, signature, config)
    event = parse_event(payload)

    logger.info(
        "webhook_event_received",
        extra={
            "event_id": sanitize_for_log(event.id),
            "event_type": sanitize_for_log(event.type),
        },
    )

    if not event.is_checkout_completed:
        return WebhookResult(
            status=WebhookStatus.IGNORED,
            event_id=event.id,
            message=f"Event type {sanitize_for_log(event.type)} not handled",
        )

    if processed_events is not None:
        previous = processed_events.get(event.id)
        if previous is not None:
            logger.info(
                "webhook_event_redelivered",
                extra={
                    "event_id": sanitize_for_log(event.id),
                    "previous_status": previous.status.value,
                },
            )
            return WebhookResult(
                status=WebhookStatus.ALREADY_PROCESSED,
                event_id=event.id,
                message="Event already processed",
            )

    result = _process_checkout_completed(event, extractor, notifier)

    if processed_events is not None:
        processed_events.record(
            ProcessedEvent(
                event_id=event.id, event_type=event.type, status=result.status
            )
        )
    return result


def _process_checkout_completed(
    event: PaymentCompletionEvent,
    extractor: CustomerExtractor,
    notifier: MembershipNotifier,
) -> WebhookResult:
    session = event.session
    customer = extractor.extract(session)
    if customer is None:
        return WebhookResult(
            status=WebhookStatus.NO_EMAIL,
            event_id=event.id,
            message="Could not extract customer email",
        )

    logger.info(
        "membership_confirmation_sending",
        extra={
            "event_id": sanitize_for_log(event.id),
            "session_id": sanitize_for_log(session.get("id", "unknown")),
            "email": mask_email(customer.email),
            "membership_type": customer.membership_tier.value,
        },
    )
    notification = notifier.send_confirmation(
        customer.email, customer.name, customer.membership_tier
    )
    if not notification.success:
        return WebhookResult(
            status=WebhookStatus.EMAIL_FAILED,
            event_id=event.id,
            message="Confirmation email failed",
        )

    return WebhookResult(
        status=WebhookStatus.PROCESSED,
        event_id=event.id,
        message="Confirmation email sent",
        message_id=notification.message_id,
    )
