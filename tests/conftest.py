"""
Pytest Configuration and Shared Fixtures
=========================================

Common fixtures used across all test modules.

Test Environment Separation:
    - LOCAL/DEV: Stripe and SendGrid are mocked, Secrets Manager uses moto.
      Runs with `pytest -m "not preprod"`
    - PREPROD: Real Stripe test-mode and SendGrid sandbox accounts

    Files with "preprod" in their name are auto-marked with the `preprod` marker.

For On-Call Engineers:
    If webhook tests fail with SIGNATURE_ERROR:
    1. Check STRIPE_WEBHOOK_SECRET below matches tests/fixtures/stripe_events.py
    2. Check the test signs the exact bytes it posts

For Developers:
    - Business logic takes a MembershipConfig; build one with
      `membership_config` rather than setting env vars
    - `notifier` wraps MockSendGrid with zero backoff so retries are instant
"""

import os
from datetime import date
from pathlib import Path

import pytest

from src.lambdas.membership.customer import CustomerExtractor
from src.lambdas.notification.membership_notifier import MembershipNotifier
from src.lambdas.shared.config import MembershipConfig
from src.lambdas.shared.idempotency import ProcessedEventStore
from src.lambdas.shared.secrets import clear_cache
from tests.fixtures.mocks.mock_sendgrid import MockSendGrid
from tests.fixtures.stripe_events import TEST_WEBHOOK_SECRET

# =============================================================================
# Pytest Marker Registration
# =============================================================================


def pytest_configure(config):
    """Register custom markers to avoid warnings."""
    config.addinivalue_line(
        "markers",
        "preprod: marks tests that require real provider accounts (deselect with '-m \"not preprod\"')",
    )


def pytest_collection_modifyitems(config, items):
    """Auto-mark files with "preprod" in their name as preprod tests."""
    preprod_marker = pytest.mark.preprod

    for item in items:
        test_file = Path(item.fspath)
        if "preprod" in test_file.name.lower():
            item.add_marker(preprod_marker)


# Set default test environment variables at module load time
# This allows test files to import modules that read env vars at import time
# (the FastAPI app builds its CORS list on import).
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_membership")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)
os.environ.setdefault("SENDGRID_API_KEY", "SG.test-key")  # pragma: allowlist secret
os.environ.setdefault("SENDER_EMAIL", "adhesion@andar.example")
os.environ.setdefault("MEMBERSHIP_TEMPLATE_ID", "d-membership-confirmation")
os.environ.setdefault("SITE_URL", "https://andar.example")
os.environ.setdefault("EMAIL_BACKOFF_SECONDS", "0")


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables before each test.

    Ensures tests don't pollute each other's environment.
    """
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def reset_secrets_cache():
    """Secrets are cached at module level; start every test cold."""
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def aws_credentials():
    """
    Set up mock AWS credentials for moto.

    Use this fixture when testing AWS SDK calls.
    """
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_REGION"] = "us-east-1"

    yield


@pytest.fixture
def membership_config():
    """Non-production config with a known webhook secret."""
    return MembershipConfig(
        environment="test",
        stripe_secret_key="sk_test_membership",
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        sendgrid_api_key="SG.test-key",  # pragma: allowlist secret
        sender_email="adhesion@andar.example",
        template_id="d-membership-confirmation",
        email_backoff_seconds=0,
        site_url="https://andar.example",
    )


@pytest.fixture
def mock_sendgrid():
    return MockSendGrid()


@pytest.fixture
def notifier(mock_sendgrid):
    """Notifier over MockSendGrid, zero backoff, fixed date 15/03/2025."""
    return MembershipNotifier(
        email_service=mock_sendgrid,
        template_id="d-membership-confirmation",
        max_attempts=3,
        backoff_seconds=0,
        today=lambda: date(2025, 3, 15),
    )


@pytest.fixture
def extractor():
    return CustomerExtractor()


@pytest.fixture
def processed_events():
    return ProcessedEventStore()
