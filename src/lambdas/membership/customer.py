"""Resolve the purchaser from a completed checkout session.

Stripe populates the buyer's email in different places depending on how the
session was created and which objects were expanded. Each location has its
own accessor; the first one returning a non-empty value wins:

    1. customer_details.email
    2. customer_email
    3. customer.email                (customer expanded to an object)
    4. payment_intent.receipt_email  (payment_intent expanded)
    5. metadata.email
    6. Stripe customer lookup        (customer is an id string)

No email is a normal outcome (``extract`` returns None), not an exception.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from src.lambdas.shared.logging_utils import mask_email, sanitize_for_log
from src.lambdas.shared.models.membership import (
    CHECKOUT_PRICES,
    PREMIUM_MIN_AMOUNT,
    MembershipTier,
    ResolvedCustomer,
)

logger = logging.getLogger(__name__)

DEFAULT_MEMBER_NAME = "Adhérent"

EmailAccessor = Callable[[Mapping[str, Any]], str | None]
CustomerLookup = Callable[[str], str | None]


def _non_empty(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _nested(session: Mapping[str, Any], *path: str) -> Any:
    """Follow ``path`` through nested mappings; None when any hop is not a mapping."""
    current: Any = session
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def customer_details_email(session: Mapping[str, Any]) -> str | None:
    return _non_empty(_nested(session, "customer_details", "email"))


def customer_email(session: Mapping[str, Any]) -> str | None:
    return _non_empty(session.get("customer_email"))


def embedded_customer_email(session: Mapping[str, Any]) -> str | None:
    return _non_empty(_nested(session, "customer", "email"))


def payment_intent_receipt_email(session: Mapping[str, Any]) -> str | None:
    return _non_empty(_nested(session, "payment_intent", "receipt_email"))


def metadata_email(session: Mapping[str, Any]) -> str | None:
    return _non_empty(_nested(session, "metadata", "email"))


# Highest priority first
EMAIL_LOCATIONS: tuple[tuple[str, EmailAccessor], ...] = (
    ("customer_details.email", customer_details_email),
    ("customer_email", customer_email),
    ("customer.email", embedded_customer_email),
    ("payment_intent.receipt_email", payment_intent_receipt_email),
    ("metadata.email", metadata_email),
)


def first_non_empty(
    session: Mapping[str, Any],
    accessors: tuple[tuple[str, EmailAccessor], ...] = EMAIL_LOCATIONS,
) -> tuple[str, str] | None:
    """Return ``(location, value)`` for the first accessor with a value."""
    for location, accessor in accessors:
        value = accessor(session)
        if value:
            return location, value
    return None


class CustomerExtractor:
    """Builds a ResolvedCustomer from a checkout session snapshot."""

    def __init__(self, customer_lookup: CustomerLookup | None = None):
        """
        Args:
            customer_lookup: Fetches a customer's email by Stripe customer id.
                Used only when no email is present in the session itself.
        """
        self.customer_lookup = customer_lookup

    def extract(self, session: Mapping[str, Any]) -> ResolvedCustomer | None:
        """Resolve email, name and tier; None when no email can be found."""
        email = self.resolve_email(session)
        if email is None:
            logger.error(
                "customer_email_not_found",
                extra={"session_id": sanitize_for_log(session.get("id", "unknown"))},
            )
            return None

        return ResolvedCustomer(
            email=email,
            name=self.resolve_name(session),
            membership_tier=self.classify_tier(session),
        )

    def resolve_email(self, session: Mapping[str, Any]) -> str | None:
        found = first_non_empty(session)
        if found is not None:
            location, email = found
            logger.info(
                "customer_email_resolved",
                extra={"location": location, "email": mask_email(email)},
            )
            return email

        customer_id = _non_empty(session.get("customer"))
        if customer_id and self.customer_lookup is not None:
            email = _non_empty(self.customer_lookup(customer_id))
            if email:
                logger.info(
                    "customer_email_resolved",
                    extra={"location": "customer_lookup", "email": mask_email(email)},
                )
                return email

        return None

    def resolve_name(self, session: Mapping[str, Any]) -> str:
        return _non_empty(_nested(session, "customer_details", "name")) or (
            DEFAULT_MEMBER_NAME
        )

    def classify_tier(self, session: Mapping[str, Any]) -> MembershipTier:
        """Tier from session metadata, else from the charged amount.

        The amount fallback ties classification to current prices and only
        exists for sessions created without ``membershipType`` metadata.
        """
        from_metadata = MembershipTier.parse(
            _nested(session, "metadata", "membershipType")
        )
        if from_metadata is not None and from_metadata is not MembershipTier.UNKNOWN:
            return from_metadata

        amount = session.get("amount_total")
        tier = tier_from_amount(amount)
        logger.warning(
            "membership_tier_inferred_from_amount",
            extra={"amount_total": sanitize_for_log(amount), "tier": tier.value},
        )
        return tier


def tier_from_amount(amount: Any) -> MembershipTier:
    """Deprecated: classify by exact checkout price; unmatched -> digital."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        return MembershipTier.DIGITAL
    for tier, price in CHECKOUT_PRICES.items():
        if amount == price:
            return tier
    if amount >= PREMIUM_MIN_AMOUNT:
        return MembershipTier.PREMIUM
    return MembershipTier.DIGITAL
