"""Property tests for purchaser resolution from checkout sessions."""

from hypothesis import given, settings
from hypothesis import strategies as st

from src.lambdas.membership.customer import CustomerExtractor, tier_from_amount
from src.lambdas.shared.models.membership import MembershipTier
from tests.property.conftest import (
    EMAIL_LOCATIONS,
    membership_metadata,
    session_with_emails,
)


class TestEmailPriority:
    """The highest-priority populated location always wins."""

    @settings(max_examples=200, deadline=None)
    @given(sample=session_with_emails())
    def test_first_populated_location_wins(self, sample):
        session, emails = sample

        resolved = CustomerExtractor().resolve_email(session)

        expected = next(
            (emails[location] for location in EMAIL_LOCATIONS if location in emails),
            None,
        )
        assert resolved == expected

    @settings(max_examples=100, deadline=None)
    @given(sample=session_with_emails())
    def test_extract_is_none_only_without_email(self, sample):
        session, emails = sample

        customer = CustomerExtractor().extract(session)

        assert (customer is None) == (not emails)


class TestTierClassification:
    @settings(max_examples=100, deadline=None)
    @given(
        tier=membership_metadata(),
        amount=st.integers(min_value=0, max_value=100_000),
    )
    def test_metadata_wins_over_amount(self, tier, amount):
        session = {"metadata": {"membershipType": tier}, "amount_total": amount}

        assert CustomerExtractor().classify_tier(session).value == tier.lower()

    @settings(max_examples=200, deadline=None)
    @given(amount=st.integers(min_value=-10_000, max_value=1_000_000))
    def test_amount_fallback_never_unknown(self, amount):
        tier = tier_from_amount(amount)

        assert tier is not MembershipTier.UNKNOWN
        if amount >= 5000:
            assert tier is MembershipTier.PREMIUM
