"""
Provider credentials from AWS Secrets Manager.

The SendGrid key can be supplied either as ``SENDGRID_API_KEY`` or, in
deployed stages, as ``SENDGRID_SECRET_ARN`` pointing at a secret that holds
the key. Values are cached per execution environment so warm invocations do
not call Secrets Manager again.

For On-Call Engineers:
    "secret_retrieval_failed" in the logs means confirmation emails cannot be
    sent. Check:
    1. The ARN in SENDGRID_SECRET_ARN exists in the Lambda's region
    2. The execution role allows secretsmanager:GetSecretValue on it
    3. The secret is a raw key or JSON with "api_key"/"SENDGRID_API_KEY"

    Cached values live for SECRETS_CACHE_TTL_SECONDS (default 300), so a
    rotated key is picked up within 5 minutes.

Security Notes:
    - Only the short secret name is logged, never the value
"""

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300

SECRETS_CLIENT_CONFIG = Config(
    retries={"max_attempts": 3, "mode": "adaptive"},
    connect_timeout=3,
    read_timeout=5,
)

SecretValue = dict[str, Any] | str


class SecretError(Exception):
    """Base exception for secret lookups."""

    pass


class SecretNotFoundError(SecretError):
    """The secret id does not exist in this account/region."""

    pass


class SecretRetrievalError(SecretError):
    """Access denied, binary secret, or expected key field missing."""

    pass


@dataclass
class _CachedSecret:
    value: SecretValue
    expires_at: float

    @property
    def expired(self) -> bool:
        return time.time() >= self.expires_at


_cache: dict[str, _CachedSecret] = {}


def _secret_name_for_log(secret_id: str) -> str:
    """
    Short, loggable name for a secret id.

    >>> _secret_name_for_log("arn:aws:secretsmanager:eu-west-3:123:secret:sendgrid-AbC123")
    'sendgrid'
    >>> _secret_name_for_log("prod/membership/stripe")
    'stripe'
    """
    name = secret_id
    if secret_id.startswith("arn:") and secret_id.count(":") >= 6:
        # ARN names carry a 6-character random suffix after the last dash
        name = secret_id.split(":")[6].rsplit("-", 1)[0]
    return name.rsplit("/", 1)[-1]


def get_secrets_client(region_name: str | None = None) -> Any:
    """Secrets Manager client for ``region_name`` or AWS_REGION."""
    region = region_name or os.environ.get("AWS_REGION")
    if not region:
        raise ValueError("AWS_REGION environment variable must be set")
    return boto3.client(
        "secretsmanager", region_name=region, config=SECRETS_CLIENT_CONFIG
    )


def get_secret(
    secret_id: str,
    region_name: str | None = None,
    force_refresh: bool = False,
) -> SecretValue:
    """
    Fetch a secret, served from the in-memory cache when still fresh.

    Returns:
        The parsed JSON object, or the raw string for non-JSON secrets

    Raises:
        SecretNotFoundError: Unknown secret id
        SecretRetrievalError: Any other failure
    """
    cached = _cache.get(secret_id)
    if cached is not None and not cached.expired and not force_refresh:
        return cached.value

    name = _secret_name_for_log(secret_id)
    try:
        client = get_secrets_client(region_name)
    except ValueError as e:
        raise SecretRetrievalError(f"No region to retrieve secret: {name}") from e

    try:
        response = client.get_secret_value(SecretId=secret_id)
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        logger.error(
            "secret_retrieval_failed",
            extra={"secret_name": name, "error_code": code},
        )
        if code == "ResourceNotFoundException":
            raise SecretNotFoundError(f"Secret not found: {name}") from e
        raise SecretRetrievalError(f"Failed to retrieve secret: {name}") from e
    except BotoCoreError as e:
        # credentials, endpoint and read-timeout failures
        logger.error(
            "secret_retrieval_failed",
            extra={"secret_name": name, "error_code": type(e).__name__},
        )
        raise SecretRetrievalError(f"Failed to retrieve secret: {name}") from e

    raw = response.get("SecretString")
    if not raw:
        raise SecretRetrievalError(f"Secret has no string value: {name}")

    try:
        value: SecretValue = json.loads(raw)
    except json.JSONDecodeError:
        value = raw

    ttl = float(os.environ.get("SECRETS_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS))
    _cache[secret_id] = _CachedSecret(value=value, expires_at=time.time() + ttl)
    logger.info("secret_retrieved", extra={"secret_name": name})
    return value


def get_api_key(secret_id: str, key_fields: tuple[str, ...] = ("api_key",)) -> str:
    """
    API key stored in a secret, either raw or under one of ``key_fields``.

    Raises:
        SecretRetrievalError: JSON secret without any of ``key_fields``
    """
    secret = get_secret(secret_id)
    if isinstance(secret, str):
        return secret

    for key_field in key_fields:
        if secret.get(key_field):
            return str(secret[key_field])

    raise SecretRetrievalError(
        f"None of {list(key_fields)} found in secret: {_secret_name_for_log(secret_id)}"
    )


def clear_cache() -> None:
    """Drop all cached secrets (tests, forced rotation)."""
    _cache.clear()
