"""Membership service configuration.

All provider credentials and feature flags are read from the environment
once, in ``MembershipConfig.from_env()``, and the resulting object is passed
explicitly to the checkout, webhook and notification components. Business
logic never reads ``os.environ`` itself, so tests construct a config
directly.

For On-Call Engineers:
    Webhooks rejected with SIGNATURE_ERROR after a deploy usually mean
    STRIPE_WEBHOOK_SECRET does not match the endpoint's signing secret in
    the Stripe dashboard (test and live mode secrets differ).
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any

from src.lambdas.shared.logging_utils import redact_sensitive_fields
from src.lambdas.shared.secrets import get_api_key

logger = logging.getLogger(__name__)

PRODUCTION_ENVIRONMENTS = frozenset({"prod", "production"})

DEFAULT_SENDER_NAME = "ANDAR"
DEFAULT_EMAIL_MAX_ATTEMPTS = 3
DEFAULT_EMAIL_TIMEOUT_SECONDS = 5.0
DEFAULT_EMAIL_BACKOFF_SECONDS = 0.5


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MembershipConfig:
    """Configuration for checkout, webhook intake and confirmation emails."""

    environment: str = "dev"

    # Stripe
    stripe_secret_key: str = ""
    stripe_live_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_cli_webhook_secret: str = ""
    debug_webhook: bool = False

    # SendGrid
    sendgrid_api_key: str = ""
    sendgrid_secret_arn: str = ""
    sender_email: str = ""
    sender_name: str = DEFAULT_SENDER_NAME
    template_id: str = ""

    # Retry policy for the confirmation email
    email_max_attempts: int = DEFAULT_EMAIL_MAX_ATTEMPTS
    email_timeout_seconds: float = DEFAULT_EMAIL_TIMEOUT_SECONDS
    email_backoff_seconds: float = DEFAULT_EMAIL_BACKOFF_SECONDS

    site_url: str = ""
    cors_origins: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "MembershipConfig":
        """Create config from environment variables."""
        cors = os.environ.get("CORS_ORIGINS", "")
        return cls(
            environment=os.environ.get("ENVIRONMENT", "dev"),
            stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY", ""),
            stripe_live_secret_key=os.environ.get("STRIPE_LIVE_SECRET_KEY", ""),
            stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET", ""),
            stripe_cli_webhook_secret=os.environ.get("STRIPE_CLI_WEBHOOK_SECRET", ""),
            debug_webhook=_env_flag("DEBUG_WEBHOOK"),
            sendgrid_api_key=os.environ.get("SENDGRID_API_KEY", ""),
            sendgrid_secret_arn=os.environ.get("SENDGRID_SECRET_ARN", ""),
            sender_email=os.environ.get("SENDER_EMAIL", ""),
            sender_name=os.environ.get("SENDER_NAME", DEFAULT_SENDER_NAME),
            template_id=os.environ.get("MEMBERSHIP_TEMPLATE_ID", ""),
            email_max_attempts=int(
                os.environ.get("EMAIL_MAX_ATTEMPTS", DEFAULT_EMAIL_MAX_ATTEMPTS)
            ),
            email_timeout_seconds=float(
                os.environ.get("EMAIL_TIMEOUT_SECONDS", DEFAULT_EMAIL_TIMEOUT_SECONDS)
            ),
            email_backoff_seconds=float(
                os.environ.get("EMAIL_BACKOFF_SECONDS", DEFAULT_EMAIL_BACKOFF_SECONDS)
            ),
            site_url=os.environ.get("SITE_URL", "").rstrip("/"),
            cors_origins=[o.strip() for o in cors.split(",") if o.strip()],
        )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in PRODUCTION_ENVIRONMENTS

    @property
    def stripe_api_key(self) -> str:
        """Live key in production when configured, test key otherwise."""
        if self.is_production and self.stripe_live_secret_key:
            return self.stripe_live_secret_key
        return self.stripe_secret_key

    @property
    def webhook_secret(self) -> str:
        """Signing secret for incoming webhooks.

        With DEBUG_WEBHOOK outside production, events forwarded by the local
        Stripe CLI are signed with the CLI secret instead.
        """
        if self.allow_signature_bypass and self.stripe_cli_webhook_secret:
            return self.stripe_cli_webhook_secret
        return self.stripe_webhook_secret

    @property
    def allow_signature_bypass(self) -> bool:
        """DEBUG_WEBHOOK is ignored in production."""
        return self.debug_webhook and not self.is_production

    def resolve_sendgrid_api_key(self) -> str:
        """SendGrid API key from the environment, else from Secrets Manager."""
        if self.sendgrid_api_key:
            return self.sendgrid_api_key
        if self.sendgrid_secret_arn:
            return get_api_key(
                self.sendgrid_secret_arn, key_fields=("api_key", "SENDGRID_API_KEY")
            )
        return ""

    def to_log_dict(self) -> dict[str, Any]:
        """Settings safe to log; keys and signing secrets are redacted."""
        return redact_sensitive_fields(asdict(self))
