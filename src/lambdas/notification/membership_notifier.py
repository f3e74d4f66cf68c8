"""Membership confirmation emails with bounded retry.

A failed send is terminal for the event: nothing is queued, and the caller
(the webhook receiver) still acknowledges the Stripe delivery.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from src.lambdas.notification.sendgrid_service import (
    EmailService,
    EmailServiceError,
    TransientEmailError,
)
from src.lambdas.shared.config import MembershipConfig
from src.lambdas.shared.logging_utils import mask_email
from src.lambdas.shared.models.membership import (
    MembershipTier,
    get_membership_details,
)
from src.lambdas.shared.retry import provider_retrying

logger = logging.getLogger(__name__)


@dataclass
class NotificationResult:
    """Outcome of one confirmation email, after all attempts."""

    success: bool
    attempts: int
    message_id: str | None = None
    error: str | None = None


class MembershipNotifier:
    """Sends the membership confirmation template to a new member."""

    def __init__(
        self,
        email_service: EmailService,
        template_id: str,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        today: Callable[[], date] = date.today,
    ):
        self.email_service = email_service
        self.template_id = template_id
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._today = today

    @classmethod
    def from_config(cls, config: MembershipConfig) -> "MembershipNotifier":
        service = EmailService(
            from_email=config.sender_email,
            from_name=config.sender_name,
            api_key=config.resolve_sendgrid_api_key,
            timeout_seconds=config.email_timeout_seconds,
        )
        return cls(
            email_service=service,
            template_id=config.template_id,
            max_attempts=config.email_max_attempts,
            backoff_seconds=config.email_backoff_seconds,
        )

    def build_template_data(
        self, name: str, tier: MembershipTier | str
    ) -> dict[str, Any]:
        """Template parameters for the confirmation email."""
        parsed = MembershipTier.parse(tier) or MembershipTier.UNKNOWN
        details = get_membership_details(parsed)
        return {
            "name": name,
            "membershipType": parsed.value,
            "price": details.price,
            "date": self._today().strftime("%d/%m/%Y"),
            "membershipDetails": details.model_dump(),
        }

    def send_confirmation(
        self, email: str, name: str, tier: MembershipTier | str
    ) -> NotificationResult:
        """Send the confirmation, retrying transient provider failures.

        At most ``max_attempts`` sends are made. Permanent failures
        (authentication, rejected request) stop after the first attempt.
        """
        template_data = self.build_template_data(name, tier)
        attempts = 0
        message_id = None

        try:
            for attempt in provider_retrying(
                (TransientEmailError,),
                max_attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds,
            ):
                with attempt:
                    attempts += 1
                    message_id = self.email_service.send_template_email(
                        to_email=email,
                        to_name=name,
                        template_id=self.template_id,
                        template_data=template_data,
                    )
        except EmailServiceError as e:
            logger.error(
                "membership_email_failed",
                extra={
                    "to": mask_email(email),
                    "membership_type": template_data["membershipType"],
                    "attempts": attempts,
                    "error_type": type(e).__name__,
                    "status_code": e.status_code,
                },
            )
            return NotificationResult(success=False, attempts=attempts, error=str(e))

        logger.info(
            "membership_email_sent",
            extra={
                "to": mask_email(email),
                "membership_type": template_data["membershipType"],
                "attempts": attempts,
                "message_id": message_id,
            },
        )
        return NotificationResult(success=True, attempts=attempts, message_id=message_id)
