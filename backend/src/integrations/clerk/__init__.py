"""
Clerk integration for identity synchronization.

Provides access to the canonical user record held by Clerk.
"""

from src.integrations.clerk.client import (
    ClerkClient,
    get_clerk_client,
)
from src.integrations.clerk.exceptions import (
    ClerkError,
    ClerkAuthenticationError,
    ClerkUserNotFoundError,
    ClerkRateLimitError,
    ClerkConnectionError,
    ClerkTimeoutError,
)
from src.integrations.clerk.models import (
    ClerkAddress,
    ClerkEmailAddress,
    ClerkUser,
)

__all__ = [
    # Client
    "ClerkClient",
    "get_clerk_client",
    # Exceptions
    "ClerkError",
    "ClerkAuthenticationError",
    "ClerkUserNotFoundError",
    "ClerkRateLimitError",
    "ClerkConnectionError",
    "ClerkTimeoutError",
    # Models
    "ClerkAddress",
    "ClerkEmailAddress",
    "ClerkUser",
]
