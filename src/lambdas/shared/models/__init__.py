"""Shared models for the membership service.

- MembershipTier / MembershipTierDetails: tiers, prices, email display data
- CheckoutRequest / PaymentLinkRequest / CheckoutSession: checkout flow
- ResolvedCustomer: purchaser resolved from a completed checkout
- PaymentCompletionEvent / WebhookResult / ProcessedEvent: webhook intake
"""

from src.lambdas.shared.models.membership import (
    CHECKOUT_PRICES,
    CHECKOUT_TIERS,
    MEMBERSHIP_TIER_DETAILS,
    CheckoutRequest,
    CheckoutSession,
    MembershipTier,
    MembershipTierDetails,
    PaymentLinkRequest,
    ResolvedCustomer,
    get_membership_details,
)
from src.lambdas.shared.models.webhook_event import (
    CHECKOUT_SESSION_COMPLETED,
    PaymentCompletionEvent,
    ProcessedEvent,
    WebhookResult,
    WebhookStatus,
)

__all__ = [
    "CHECKOUT_PRICES",
    "CHECKOUT_SESSION_COMPLETED",
    "CHECKOUT_TIERS",
    "MEMBERSHIP_TIER_DETAILS",
    "CheckoutRequest",
    "CheckoutSession",
    "MembershipTier",
    "MembershipTierDetails",
    "PaymentCompletionEvent",
    "PaymentLinkRequest",
    "ProcessedEvent",
    "ResolvedCustomer",
    "WebhookResult",
    "WebhookStatus",
    "get_membership_details",
]
