"""Unit tests for Stripe Checkout session creation."""

from unittest.mock import patch

import pytest
import stripe

from src.lambdas.membership.checkout import (
    create_checkout_session,
    create_payment_link,
    validate_tier,
)
from src.lambdas.shared.errors import CheckoutError, MembershipValidationError
from src.lambdas.shared.models.membership import (
    CheckoutRequest,
    MembershipTier,
    PaymentLinkRequest,
)

SESSION_CREATE = "src.lambdas.membership.checkout.stripe.checkout.Session.create"


def _stripe_session(session_id="cs_test_123"):
    return stripe.checkout.Session.construct_from(
        {
            "id": session_id,
            "object": "checkout.session",
            "url": f"https://checkout.stripe.com/c/pay/{session_id}",
        },
        "sk_test_membership",
    )


class TestValidateTier:
    def test_supported_tiers(self):
        assert validate_tier("digital") == MembershipTier.DIGITAL
        assert validate_tier("classic") == MembershipTier.CLASSIC

    def test_premium_is_not_sold_at_checkout(self):
        with pytest.raises(MembershipValidationError, match="Invalid membership type"):
            validate_tier("premium")

    def test_garbage_tier(self):
        with pytest.raises(MembershipValidationError):
            validate_tier("gold")

    def test_missing_tier(self):
        with pytest.raises(MembershipValidationError, match="Missing required fields"):
            validate_tier(None)


class TestCreateCheckoutSession:
    @patch(SESSION_CREATE)
    def test_classic_session(self, mock_create, membership_config):
        mock_create.return_value = _stripe_session()
        request = CheckoutRequest(
            membershipType="classic", email="marie@example.org", name="Marie"
        )

        session = create_checkout_session(request, membership_config)

        assert session.id == "cs_test_123"
        assert session.url == "https://checkout.stripe.com/c/pay/cs_test_123"
        assert session.tier == MembershipTier.CLASSIC

        kwargs = mock_create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_membership"
        assert kwargs["mode"] == "payment"
        assert kwargs["payment_method_types"] == ["card"]
        assert kwargs["customer_email"] == "marie@example.org"
        assert kwargs["metadata"] == {"membershipType": "classic", "name": "Marie"}
        line_item = kwargs["line_items"][0]
        assert line_item["quantity"] == 1
        assert line_item["price_data"]["unit_amount"] == 3200
        assert line_item["price_data"]["currency"] == "eur"

    @patch(SESSION_CREATE)
    def test_digital_amount(self, mock_create, membership_config):
        mock_create.return_value = _stripe_session()
        request = CheckoutRequest(membershipType="digital", email="a@example.org")

        create_checkout_session(request, membership_config)

        kwargs = mock_create.call_args.kwargs
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 500
        assert kwargs["metadata"]["name"] == ""

    @patch(SESSION_CREATE)
    def test_redirect_urls_use_origin(self, mock_create, membership_config):
        mock_create.return_value = _stripe_session()
        request = CheckoutRequest(membershipType="digital", email="a@example.org")

        create_checkout_session(
            request, membership_config, origin="https://preview.andar.example/"
        )

        kwargs = mock_create.call_args.kwargs
        assert kwargs["success_url"] == (
            "https://preview.andar.example/merci-adhesion?type=digital"
            "&session_id={CHECKOUT_SESSION_ID}"
        )
        assert kwargs["cancel_url"] == "https://preview.andar.example/"

    @patch(SESSION_CREATE)
    def test_redirect_urls_fall_back_to_site_url(self, mock_create, membership_config):
        mock_create.return_value = _stripe_session()
        request = CheckoutRequest(membershipType="classic", email="a@example.org")

        create_checkout_session(request, membership_config)

        kwargs = mock_create.call_args.kwargs
        assert kwargs["success_url"].startswith(
            "https://andar.example/merci-adhesion?type=classic"
        )
        assert kwargs["cancel_url"] == "https://andar.example/"

    @pytest.mark.parametrize(
        "body",
        [
            {"membershipType": "classic"},
            {"membershipType": "classic", "email": "  "},
            {"email": "a@example.org"},
        ],
    )
    @patch(SESSION_CREATE)
    def test_missing_fields_never_reach_stripe(
        self, mock_create, body, membership_config
    ):
        with pytest.raises(MembershipValidationError, match="Missing required fields"):
            create_checkout_session(CheckoutRequest(**body), membership_config)

        mock_create.assert_not_called()

    @patch(SESSION_CREATE)
    def test_unsupported_tier(self, mock_create, membership_config):
        request = CheckoutRequest(membershipType="premium", email="a@example.org")

        with pytest.raises(MembershipValidationError):
            create_checkout_session(request, membership_config)

        mock_create.assert_not_called()

    @patch(SESSION_CREATE)
    def test_stripe_error_becomes_checkout_error(self, mock_create, membership_config):
        mock_create.side_effect = stripe.InvalidRequestError(
            "No such price", param="line_items"
        )
        request = CheckoutRequest(membershipType="classic", email="a@example.org")

        with pytest.raises(CheckoutError) as exc_info:
            create_checkout_session(request, membership_config)

        assert exc_info.value.status_code == 502
        assert "No such price" not in exc_info.value.message

    @patch(SESSION_CREATE)
    def test_live_key_in_production(self, mock_create, membership_config):
        mock_create.return_value = _stripe_session()
        membership_config.environment = "production"
        membership_config.stripe_live_secret_key = "sk_live_membership"
        request = CheckoutRequest(membershipType="classic", email="a@example.org")

        create_checkout_session(request, membership_config)

        assert mock_create.call_args.kwargs["api_key"] == "sk_live_membership"


class TestCreatePaymentLink:
    @patch(SESSION_CREATE)
    def test_caller_redirects_and_metadata(self, mock_create, membership_config):
        mock_create.return_value = _stripe_session("cs_test_link")
        request = PaymentLinkRequest(
            membershipType="digital",
            successUrl="https://partner.example/thanks",
            cancelUrl="https://partner.example/cancel",
            customerName="Jean",
        )

        session = create_payment_link(request, membership_config)

        assert session.id == "cs_test_link"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["success_url"] == (
            "https://partner.example/thanks?type=digital"
            "&session_id={CHECKOUT_SESSION_ID}"
        )
        assert kwargs["cancel_url"] == "https://partner.example/cancel"
        assert kwargs["billing_address_collection"] == "required"
        assert kwargs["metadata"] == {
            "membershipType": "digital",
            "name": "Jean",
            "source": "andar_website",
            "environment": "test",
        }
        assert "customer_email" not in kwargs

    @patch(SESSION_CREATE)
    def test_customer_email_forwarded_when_given(self, mock_create, membership_config):
        mock_create.return_value = _stripe_session()
        request = PaymentLinkRequest(
            membershipType="classic",
            successUrl="https://partner.example/thanks",
            cancelUrl="https://partner.example/cancel",
            customerEmail="jean@example.org",
        )

        create_payment_link(request, membership_config)

        assert mock_create.call_args.kwargs["customer_email"] == "jean@example.org"

    @patch(SESSION_CREATE)
    def test_missing_redirects(self, mock_create, membership_config):
        request = PaymentLinkRequest(membershipType="classic")

        with pytest.raises(MembershipValidationError, match="Missing required parameters"):
            create_payment_link(request, membership_config)

        mock_create.assert_not_called()
