"""Stripe Checkout sessions for membership purchases.

The amount is fixed by tier on the server; the browser only names the tier.
``membershipType`` and ``name`` are attached as metadata, which Stripe
echoes back unchanged in ``checkout.session.completed`` so the webhook can
classify the purchase without looking at the amount.
"""

import logging

import stripe
from stripe import StripeError

from src.lambdas.shared.config import MembershipConfig
from src.lambdas.shared.errors import CheckoutError, MembershipValidationError
from src.lambdas.shared.logging_utils import (
    get_safe_error_info,
    mask_email,
    sanitize_for_log,
)
from src.lambdas.shared.models.membership import (
    CHECKOUT_CURRENCY,
    CHECKOUT_PRICES,
    CHECKOUT_PRODUCT_NAMES,
    CHECKOUT_TIERS,
    CheckoutRequest,
    CheckoutSession,
    MembershipTier,
    PaymentLinkRequest,
)

logger = logging.getLogger(__name__)

SUCCESS_PATH = "/merci-adhesion"
PAYMENT_LINK_SOURCE = "andar_website"


def validate_tier(membership_type: str | None) -> MembershipTier:
    """Return the checkout tier or raise MembershipValidationError."""
    if not membership_type:
        raise MembershipValidationError("Missing required fields", field="membershipType")
    tier = MembershipTier.parse(membership_type)
    if tier not in CHECKOUT_TIERS:
        raise MembershipValidationError(
            "Invalid membership type", field="membershipType"
        )
    return tier


def _line_items(tier: MembershipTier) -> list[dict]:
    return [
        {
            "price_data": {
                "currency": CHECKOUT_CURRENCY,
                "product_data": {"name": CHECKOUT_PRODUCT_NAMES[tier]},
                "unit_amount": CHECKOUT_PRICES[tier],
            },
            "quantity": 1,
        }
    ]


def _create_session(
    config: MembershipConfig, tier: MembershipTier, **params
) -> CheckoutSession:
    try:
        session = stripe.checkout.Session.create(
            api_key=config.stripe_api_key,
            line_items=_line_items(tier),
            mode="payment",
            **params,
        )
    except StripeError as e:
        logger.error(
            "checkout_session_create_failed",
            extra={"membership_type": tier.value, **get_safe_error_info(e)},
        )
        raise CheckoutError("Error creating checkout session") from e

    logger.info(
        "checkout_session_created",
        extra={
            "session_id": sanitize_for_log(session.id),
            "membership_type": tier.value,
            "environment": config.environment,
        },
    )
    return CheckoutSession(
        id=session.id,
        url=getattr(session, "url", None),
        tier=tier,
        metadata=dict(params.get("metadata", {})),
    )


def create_checkout_session(
    request: CheckoutRequest,
    config: MembershipConfig,
    origin: str | None = None,
) -> CheckoutSession:
    """Create a hosted checkout session for one membership.

    Args:
        request: Tier, purchaser email and optional name
        config: Stripe credentials and site URL
        origin: Request Origin header; redirect URLs are built from it,
            falling back to SITE_URL

    Raises:
        MembershipValidationError: Tier missing/unsupported or email absent
        CheckoutError: Stripe rejected the request
    """
    if not request.membership_type or not (request.email or "").strip():
        raise MembershipValidationError("Missing required fields")
    tier = validate_tier(request.membership_type)

    base_url = (origin or config.site_url).rstrip("/")
    metadata = {"membershipType": tier.value, "name": request.name or ""}

    logger.info(
        "checkout_session_requested",
        extra={"membership_type": tier.value, "email": mask_email(request.email)},
    )
    return _create_session(
        config,
        tier,
        payment_method_types=["card"],
        customer_email=request.email.strip(),
        metadata=metadata,
        success_url=(
            f"{base_url}{SUCCESS_PATH}?type={tier.value}"
            "&session_id={CHECKOUT_SESSION_ID}"
        ),
        cancel_url=f"{base_url}/",
    )


def create_payment_link(
    request: PaymentLinkRequest, config: MembershipConfig
) -> CheckoutSession:
    """Create a checkout session with caller-supplied redirect URLs.

    Used by partner pages that host their own thank-you page. The email is
    optional here; Stripe collects it (and the billing address) on the
    hosted page.

    Raises:
        MembershipValidationError: Tier or redirect URLs missing
        CheckoutError: Stripe rejected the request
    """
    if not request.membership_type or not request.success_url or not request.cancel_url:
        raise MembershipValidationError("Missing required parameters")
    tier = validate_tier(request.membership_type)

    metadata = {
        "membershipType": tier.value,
        "name": request.customer_name or "",
        "source": PAYMENT_LINK_SOURCE,
        "environment": "production" if config.is_production else "test",
    }
    params = {
        "success_url": (
            f"{request.success_url}?type={tier.value}"
            "&session_id={CHECKOUT_SESSION_ID}"
        ),
        "cancel_url": request.cancel_url,
        "billing_address_collection": "required",
        "metadata": metadata,
    }
    if request.customer_email:
        params["customer_email"] = request.customer_email

    return _create_session(config, tier, **params)
