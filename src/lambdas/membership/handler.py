"""
Membership Lambda Handler
=========================

FastAPI application for the membership checkout flow.

Endpoints:
- POST /api/create-checkout-session - Stripe Checkout for a membership tier
- POST /api/create-payment-link     - Checkout with caller-supplied redirects
- POST /api/webhook                 - Stripe webhook (checkout.session.completed)
- POST /api/test-email              - Send a confirmation email (not in prod)
- GET  /health                      - Liveness probe

For On-Call Engineers:
    If members report missing confirmation emails:
    1. Search logs for the Stripe event id (Stripe dashboard > Webhooks)
    2. "stripe_signature_invalid" -> STRIPE_WEBHOOK_SECRET mismatch
    3. "customer_email_not_found" -> session carried no email
    4. "membership_email_failed" -> SendGrid key/template/sender problem

For Developers:
    - Uses Mangum adapter for Lambda Function URL compatibility
    - The webhook reads the raw body; never declare it as a JSON model
    - Components receive MembershipConfig through FastAPI dependencies;
      tests replace them with app.dependency_overrides
"""

import logging
import os
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum
from pydantic import BaseModel, ConfigDict, Field

from src.lambdas.membership.checkout import (
    create_checkout_session,
    create_payment_link,
)
from src.lambdas.membership.customer import CustomerExtractor
from src.lambdas.membership.webhook import handle_payment_webhook
from src.lambdas.notification.membership_notifier import MembershipNotifier
from src.lambdas.shared.auth.stripe_utils import (
    SIGNATURE_HEADER,
    retrieve_customer_email,
)
from src.lambdas.shared.config import MembershipConfig
from src.lambdas.shared.errors import (
    ErrorCode,
    MembershipError,
    error_response,
    membership_error_response,
)
from src.lambdas.shared.idempotency import ProcessedEventStore
from src.lambdas.shared.logging_utils import (
    configure_logging,
    get_safe_error_info,
    get_safe_error_message_for_user,
    mask_email,
)
from src.lambdas.shared.models.membership import (
    CheckoutRequest,
    MembershipTier,
    PaymentLinkRequest,
)

configure_logging()
logger = logging.getLogger(__name__)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

# Lambda global scope: shared across warm invocations of this environment
processed_events = ProcessedEventStore()


class EmailPreviewRequest(BaseModel):
    """Body of POST /api/test-email."""

    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    name: str | None = None
    membership_type: str | None = Field(None, alias="membershipType")


def get_config() -> MembershipConfig:
    return MembershipConfig.from_env()


def get_extractor(config: MembershipConfig = Depends(get_config)) -> CustomerExtractor:
    lookup = None
    if config.stripe_api_key:
        lookup = partial(retrieve_customer_email, api_key=config.stripe_api_key)
    return CustomerExtractor(customer_lookup=lookup)


def get_notifier(config: MembershipConfig = Depends(get_config)) -> MembershipNotifier:
    return MembershipNotifier.from_config(config)


def get_processed_events() -> ProcessedEventStore:
    return processed_events


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Membership Lambda starting", extra={"environment": ENVIRONMENT})
    yield
    logger.info("Membership Lambda shutting down")


app = FastAPI(
    title="Membership Checkout",
    description="Stripe checkout and membership confirmation emails",
    version="1.0.0",
    lifespan=lifespan,
)

startup_config = MembershipConfig.from_env()
logger.info("Membership config loaded", extra={"config": startup_config.to_log_dict()})

cors_origins = startup_config.cors_origins
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    logger.info("CORS configured", extra={"allowed_origins": cors_origins})


@app.exception_handler(MembershipError)
async def handle_membership_error(request: Request, exc: MembershipError):
    return membership_error_response(exc)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": ENVIRONMENT}


@app.post("/api/create-checkout-session")
async def checkout_session(
    body: CheckoutRequest,
    request: Request,
    config: MembershipConfig = Depends(get_config),
):
    """Create a checkout session; returns {id, url} for the redirect."""
    session = create_checkout_session(
        body, config, origin=request.headers.get("origin")
    )
    return {"id": session.id, "url": session.url}


@app.post("/api/create-payment-link")
async def payment_link(
    body: PaymentLinkRequest,
    config: MembershipConfig = Depends(get_config),
):
    session = create_payment_link(body, config)
    return {"id": session.id, "url": session.url}


@app.post("/api/webhook")
async def stripe_webhook(
    request: Request,
    config: MembershipConfig = Depends(get_config),
    extractor: CustomerExtractor = Depends(get_extractor),
    notifier: MembershipNotifier = Depends(get_notifier),
    store: ProcessedEventStore = Depends(get_processed_events),
):
    """
    Receive a Stripe event.

    Returns:
        200 {"received": true, ...} for any verified event
        400 {"error": ..., "code": ...} on signature or payload errors
    """
    payload = await request.body()
    result = handle_payment_webhook(
        payload=payload,
        signature=request.headers.get(SIGNATURE_HEADER),
        config=config,
        extractor=extractor,
        notifier=notifier,
        processed_events=store,
    )
    return result.to_response()


@app.post("/api/test-email")
async def send_test_email(
    body: EmailPreviewRequest,
    config: MembershipConfig = Depends(get_config),
    notifier: MembershipNotifier = Depends(get_notifier),
):
    """Send a confirmation email to any address. Disabled in production."""
    if config.is_production:
        return error_response(404, "Not found", ErrorCode.NOT_FOUND, log_error=False)
    if not body.email:
        return error_response(400, "Email is required", ErrorCode.VALIDATION_ERROR)

    tier = MembershipTier.parse(body.membership_type) or MembershipTier.DIGITAL
    result = notifier.send_confirmation(body.email, body.name or "Test User", tier)

    if not result.success:
        logger.error("test_email_failed", extra={"to": mask_email(body.email)})
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Failed to send test email",
                "attempts": result.attempts,
            },
        )

    return {
        "success": True,
        "message": f"Test email sent to {body.email}",
        "message_id": result.message_id,
    }


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(
        "unhandled_error",
        extra={"path": request.url.path, **get_safe_error_info(exc)},
    )
    return error_response(
        500,
        get_safe_error_message_for_user(exc),
        ErrorCode.INTERNAL_ERROR,
        log_error=False,
    )


# Mangum adapter for AWS Lambda
handler = Mangum(app, lifespan="off")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda entry point.

    Wraps the FastAPI app with Mangum for Lambda Function URL compatibility.
    """
    logger.info(
        "Membership Lambda invoked",
        extra={
            "path": event.get("rawPath", event.get("path", "unknown")),
            "method": event.get("requestContext", {})
            .get("http", {})
            .get("method", "unknown"),
        },
    )
    return handler(event, context)
