"""
Secret handling for logs and configuration.

CRITICAL SECURITY REQUIREMENTS:
- The Svix webhook secret and the Clerk secret key MUST never be logged
- Any key name containing token/secret/key MUST be redacted from logs
- Webhook payloads are redacted before they are logged

Usage:
    from src.platform.secrets import redact_secrets, SecretRedactingFilter

    # Redact a payload before logging it
    safe_data = redact_secrets({"api_key": "sk_test_123", "name": "test"})

    # Redact every record passing through a handler
    handler.addFilter(SecretRedactingFilter())
"""

import logging
import os
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Patterns for detecting secrets in logs
SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key)", re.IGNORECASE),
    re.compile(r"(secret[_-]?key)", re.IGNORECASE),
    re.compile(r"(access[_-]?token)", re.IGNORECASE),
    re.compile(r"(bearer[_-]?token)", re.IGNORECASE),
    re.compile(r"(password)", re.IGNORECASE),
    re.compile(r"(private[_-]?key)", re.IGNORECASE),
    re.compile(r"(auth[_-]?token)", re.IGNORECASE),
    re.compile(r"(session[_-]?token)", re.IGNORECASE),
    re.compile(r"(signing[_-]?secret)", re.IGNORECASE),
    re.compile(r"(webhook[_-]?secret)", re.IGNORECASE),
    re.compile(r"(database[_-]?url)", re.IGNORECASE),
    re.compile(r"(authorization)", re.IGNORECASE),
]

# Common secret value patterns to redact
SECRET_VALUE_PATTERNS = [
    re.compile(r"(whsec_[a-zA-Z0-9+/=]{16,})"),  # Svix signing secrets
    re.compile(r"(sk_(?:live|test)_[a-zA-Z0-9]{16,})"),  # Clerk secret keys
    re.compile(r"(Bearer\s+[a-zA-Z0-9._-]+)"),  # Bearer tokens
    re.compile(r"(postgres(?:ql)?://[^\s@]+@)"),  # Credentials in database URLs
]

REDACTED_VALUE = "[REDACTED]"


def is_secret_key(key: str) -> bool:
    """
    Check if a dictionary key likely contains a secret.

    Args:
        key: The key name to check

    Returns:
        True if the key name suggests it contains a secret
    """
    return any(pattern.search(key) for pattern in SECRET_PATTERNS)


def redact_value(value: Any) -> Any:
    """
    Redact secret patterns from a value.

    Args:
        value: The value to redact

    Returns:
        Redacted value
    """
    if not isinstance(value, str):
        return value

    result = value
    for pattern in SECRET_VALUE_PATTERNS:
        result = pattern.sub(REDACTED_VALUE, result)

    return result


def redact_secrets(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact secrets from a data structure.

    Use this before logging any data that might contain secrets.

    Args:
        data: Dictionary, list, or other data structure

    Returns:
        Copy of data with secrets redacted
    """
    # Prevent infinite recursion
    if _depth > 10:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and is_secret_key(key):
                result[key] = REDACTED_VALUE
            else:
                result[key] = redact_secrets(value, _depth + 1)
        return result

    if isinstance(data, list):
        return [redact_secrets(item, _depth + 1) for item in data]

    if isinstance(data, str):
        return redact_value(data)

    return data


def mask_secret(secret: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask a secret showing only the last few characters.

    Returns:
        Masked string like "****abcd"
    """
    if not secret or len(secret) <= visible_chars:
        return "*" * max(len(secret) if secret else 0, 4)

    return "*" * (len(secret) - visible_chars) + secret[-visible_chars:]


class SecretRedactingFilter(logging.Filter):
    """
    Logging filter that redacts secrets from log records.

    Usage:
        handler.addFilter(SecretRedactingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # Redact the message
        if isinstance(record.msg, str):
            record.msg = redact_value(record.msg)

        # Redact args
        if record.args:
            if isinstance(record.args, dict):
                record.args = redact_secrets(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_value(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        # Redact extra fields
        for key in list(record.__dict__.keys()):
            if is_secret_key(key):
                setattr(record, key, REDACTED_VALUE)

        return True


def get_env_secret(key: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get a secret from environment variables.

    IMPORTANT: Never log the return value of this function.
    """
    value = os.getenv(key, default)

    # Log that we accessed a secret, but not the value
    logger.debug(
        "Environment secret accessed",
        extra={"key": key, "has_value": bool(value)}
    )

    return value
