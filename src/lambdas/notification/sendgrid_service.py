"""SendGrid email service for membership confirmations.

Sends dynamic-template transactional emails. The template itself (layout,
wording) lives in SendGrid; this module only supplies the recipient, the
sender identity and the template data.

Error classes:
- TransientEmailError: 5xx, timeouts, connection failures (safe to retry)
- RateLimitExceededError: 429 (transient, carries retry_after)
- AuthenticationError: 401/403, API key missing or revoked (not retried)
- EmailServiceError: anything else, e.g. 400 for a bad template id
"""

import logging
from collections.abc import Callable
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import From, Mail, To

from src.lambdas.shared.logging_utils import get_safe_error_info, mask_email
from src.lambdas.shared.secrets import SecretError

logger = logging.getLogger(__name__)

MESSAGE_ID_HEADER = "X-Message-Id"

# A key, or a callable resolving it (e.g. from Secrets Manager) on first send
ApiKeySource = str | Callable[[], str]


class EmailServiceError(Exception):
    """Base exception for email service errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientEmailError(EmailServiceError):
    """Provider failure that may succeed on a later attempt."""

    pass


class RateLimitExceededError(TransientEmailError):
    """Raised when SendGrid answers 429."""

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class AuthenticationError(EmailServiceError):
    """Raised when the SendGrid API key is missing or rejected."""

    pass


class EmailService:
    """SendGrid client wrapper for template emails."""

    def __init__(
        self,
        from_email: str,
        api_key: ApiKeySource,
        from_name: str | None = None,
        timeout_seconds: float = 5.0,
    ):
        """Initialize email service.

        Args:
            from_email: Sender email address
            api_key: SendGrid API key, or a callable returning it. A callable
                is only invoked when the first email is sent.
            from_name: Sender display name
            timeout_seconds: Socket timeout for each provider call
        """
        self.from_email = from_email
        self.from_name = from_name
        self.timeout_seconds = timeout_seconds
        self._api_key_source = api_key
        self._api_key: str | None = api_key if isinstance(api_key, str) else None
        self._client: SendGridAPIClient | None = None

    @property
    def api_key(self) -> str:
        """SendGrid API key, resolved on first use.

        Raises:
            AuthenticationError: If the key source cannot be resolved. A
                failed lookup is not cached, so the next send retries it.
        """
        if self._api_key is None:
            try:
                self._api_key = self._api_key_source()
            except SecretError as e:
                logger.error("sendgrid_api_key_unavailable", extra=get_safe_error_info(e))
                raise AuthenticationError("SendGrid API key could not be resolved") from e
        return self._api_key

    @property
    def client(self) -> SendGridAPIClient:
        """Get or create SendGrid client."""
        if self._client is None:
            self._client = SendGridAPIClient(self.api_key)
            # python_http_client passes this timeout to every urlopen call
            self._client.client.timeout = self.timeout_seconds
        return self._client

    def build_template_message(
        self,
        to_email: str,
        to_name: str | None,
        template_id: str,
        template_data: dict[str, Any],
    ) -> Mail:
        """Build a dynamic-template message for one recipient."""
        message = Mail(
            from_email=From(self.from_email, self.from_name),
            to_emails=To(to_email, to_name),
        )
        message.template_id = template_id
        message.dynamic_template_data = template_data
        return message

    def send_template_email(
        self,
        to_email: str,
        to_name: str | None,
        template_id: str,
        template_data: dict[str, Any],
    ) -> str | None:
        """Send one template email.

        Returns:
            The provider message id (X-Message-Id), when SendGrid returns one

        Raises:
            AuthenticationError: If the API key is missing or rejected
            RateLimitExceededError: If SendGrid rate limit hit
            TransientEmailError: On 5xx, timeout or connection failure
            EmailServiceError: On other errors
        """
        if not self.api_key:
            raise AuthenticationError("SendGrid API key not configured")
        if not self.from_email:
            raise EmailServiceError("Sender email not configured")

        message = self.build_template_message(
            to_email, to_name, template_id, template_data
        )

        try:
            response = self.client.send(message)
        except Exception as e:
            raise _classify_send_error(e) from e

        if not 200 <= response.status_code < 300:
            logger.warning(
                "sendgrid_unexpected_status",
                extra={"status_code": response.status_code},
            )
            raise _error_for_status(response.status_code)

        message_id = _message_id(response)
        logger.info(
            "email_sent",
            extra={
                "to": mask_email(to_email),
                "template_id": template_id,
                "status_code": response.status_code,
                "message_id": message_id,
            },
        )
        return message_id


def _message_id(response: Any) -> str | None:
    headers = getattr(response, "headers", None) or {}
    try:
        return headers.get(MESSAGE_ID_HEADER)
    except AttributeError:
        return None


def _error_for_status(status_code: int) -> EmailServiceError:
    if status_code == 429:
        return RateLimitExceededError("SendGrid rate limit exceeded", retry_after=60)
    if status_code in (401, 403):
        return AuthenticationError("Invalid SendGrid API key", status_code=status_code)
    if status_code >= 500:
        return TransientEmailError(
            f"SendGrid server error: {status_code}", status_code=status_code
        )
    return EmailServiceError(
        f"SendGrid rejected request: {status_code}", status_code=status_code
    )


def _classify_send_error(error: Exception) -> EmailServiceError:
    """Map a python_http_client / socket exception onto our error classes."""
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        mapped = _error_for_status(status_code)
    elif isinstance(error, OSError):
        # socket timeouts and URLError are both OSError subclasses
        mapped = TransientEmailError(f"SendGrid unreachable: {type(error).__name__}")
    else:
        mapped = EmailServiceError(f"Failed to send email: {type(error).__name__}")

    log = logger.error if isinstance(mapped, AuthenticationError) else logger.warning
    log(
        "sendgrid_send_failed",
        extra={"status_code": status_code, **get_safe_error_info(error)},
    )
    return mapped
