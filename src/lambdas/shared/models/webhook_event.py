"""Stripe webhook envelope and processing outcome models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class EventData(BaseModel):
    """``data`` member of a Stripe event."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    object_: dict[str, Any] = Field(default_factory=dict, alias="object")


class PaymentCompletionEvent(BaseModel):
    """Stripe event envelope: {id, type, data: {object: <session>}}.

    Parsed only after the signature over the raw body was verified.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    type: str
    data: EventData = Field(default_factory=EventData)

    @property
    def session(self) -> dict[str, Any]:
        """Session snapshot carried by the event."""
        return self.data.object_

    @property
    def is_checkout_completed(self) -> bool:
        return self.type == CHECKOUT_SESSION_COMPLETED


class WebhookStatus(str, Enum):
    """Outcome of one webhook delivery. Every status is acknowledged with 200."""

    PROCESSED = "processed"
    IGNORED = "ignored"
    ALREADY_PROCESSED = "already_processed"
    NO_EMAIL = "no_email"
    EMAIL_FAILED = "email_failed"


class WebhookResult(BaseModel):
    """Returned by handle_payment_webhook and echoed in the 200 body."""

    status: WebhookStatus
    event_id: str
    message: str = ""
    message_id: str | None = None

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "received": True,
            "status": self.status.value,
            "event_id": self.event_id,
        }
        if self.message_id:
            body["message_id"] = self.message_id
        return body


class ProcessedEvent(BaseModel):
    """Record of a handled event id, kept for redelivery detection."""

    event_id: str
    event_type: str
    status: WebhookStatus
    processed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
