"""Membership tiers, prices and checkout models.

Two tiers are sold at checkout (digital, classic). ``premium`` is never
offered at checkout but is recognised by the amount fallback and by the
confirmation email template.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MembershipTier(str, Enum):
    """Membership plan purchased by a member."""

    DIGITAL = "digital"
    CLASSIC = "classic"
    PREMIUM = "premium"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "MembershipTier | None":
        """Return the tier named by ``value``, or None for anything else."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


CHECKOUT_TIERS = (MembershipTier.DIGITAL, MembershipTier.CLASSIC)

# Unit amounts in minor currency units (EUR cents)
CHECKOUT_CURRENCY = "eur"
CHECKOUT_PRICES: dict[MembershipTier, int] = {
    MembershipTier.DIGITAL: 500,
    MembershipTier.CLASSIC: 3200,
}
PREMIUM_MIN_AMOUNT = 5000

CHECKOUT_PRODUCT_NAMES: dict[MembershipTier, str] = {
    MembershipTier.DIGITAL: (
        "Adhésion Numérique ANDAR – Revue, Webconférences, Ressources, MaPatho Plus"
    ),
    MembershipTier.CLASSIC: (
        "Adhésion Classique ANDAR – Version papier + numérique, Webconférences, "
        "Ressources, MaPatho Plus"
    ),
}


class MembershipTierDetails(BaseModel):
    """Display details passed to the confirmation email template."""

    model_config = ConfigDict(frozen=True)

    name: str
    price: str
    description: str
    duration: str


MEMBERSHIP_TIER_DETAILS: dict[MembershipTier, MembershipTierDetails] = {
    MembershipTier.DIGITAL: MembershipTierDetails(
        name="Adhésion Numérique",
        price="5€",
        description="Accès à tous les services numériques ANDAR",
        duration="1 an",
    ),
    MembershipTier.CLASSIC: MembershipTierDetails(
        name="Adhésion Classique",
        price="32€",
        description="Adhésion complète à ANDAR avec tous les avantages",
        duration="1 an",
    ),
    MembershipTier.PREMIUM: MembershipTierDetails(
        name="Adhésion Premium",
        price="50€",
        description="Adhésion premium à ANDAR avec tous les avantages",
        duration="1 an",
    ),
    MembershipTier.UNKNOWN: MembershipTierDetails(
        name="Adhésion ANDAR",
        price="Variable",
        description="Merci pour votre adhésion à ANDAR",
        duration="1 an",
    ),
}


def get_membership_details(tier: MembershipTier | str | None) -> MembershipTierDetails:
    """Tier details, falling back to the generic entry for unknown tiers."""
    parsed = MembershipTier.parse(tier)
    return MEMBERSHIP_TIER_DETAILS[parsed or MembershipTier.UNKNOWN]


class CheckoutRequest(BaseModel):
    """Body of POST /api/create-checkout-session.

    Fields are optional here so missing values surface as a
    VALIDATION_ERROR from the checkout module rather than a generic 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    membership_type: str | None = Field(None, alias="membershipType")
    email: str | None = None
    name: str | None = None


class PaymentLinkRequest(BaseModel):
    """Body of POST /api/create-payment-link (caller-supplied redirects)."""

    model_config = ConfigDict(populate_by_name=True)

    membership_type: str | None = Field(None, alias="membershipType")
    success_url: str | None = Field(None, alias="successUrl")
    cancel_url: str | None = Field(None, alias="cancelUrl")
    customer_email: str | None = Field(None, alias="customerEmail")
    customer_name: str | None = Field(None, alias="customerName")


class CheckoutSession(BaseModel):
    """Session created by Stripe; only id and url go back to the browser."""

    id: str
    url: str | None = None
    tier: MembershipTier
    metadata: dict[str, str] = Field(default_factory=dict)


class ResolvedCustomer(BaseModel):
    """Purchaser resolved from a verified checkout.session.completed event."""

    email: str
    name: str
    membership_tier: MembershipTier
