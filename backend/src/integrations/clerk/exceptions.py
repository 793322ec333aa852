"""
Clerk-specific exceptions for error handling.

One base exception carrying the HTTP status and response body, and one
subclass per failure mode the caller needs to tell apart.
"""

from typing import Optional, Dict, Any


class ClerkError(Exception):
    """Base exception for Clerk Backend API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.response = response or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class ClerkAuthenticationError(ClerkError):
    """Raised when API authentication fails (401/403)."""

    def __init__(
        self,
        message: str = "Authentication failed - Clerk secret key may be invalid or missing",
        status_code: int = 401,
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)


class ClerkUserNotFoundError(ClerkError):
    """Raised when Clerk has no user with the requested id (404)."""

    def __init__(
        self,
        message: str = "User not found in Clerk",
        user_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=404, **kwargs)
        self.user_id = user_id


class ClerkRateLimitError(ClerkError):
    """Raised when API rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded - please retry after a delay",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class ClerkConnectionError(ClerkError):
    """Raised when network/connection errors occur."""

    def __init__(
        self,
        message: str = "Connection error - unable to reach Clerk API",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class ClerkTimeoutError(ClerkError):
    """Raised when a request exceeds its time budget."""

    def __init__(
        self,
        message: str = "Request timed out",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
