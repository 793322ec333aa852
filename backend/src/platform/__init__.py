"""
Platform-level modules shared by every service.

- secrets: secret redaction for logs and secret-aware environment access
"""

from src.platform.secrets import (
    SecretRedactingFilter,
    get_env_secret,
    mask_secret,
    redact_secrets,
)

__all__ = [
    "SecretRedactingFilter",
    "get_env_secret",
    "mask_secret",
    "redact_secrets",
]
