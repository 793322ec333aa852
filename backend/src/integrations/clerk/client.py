"""
Clerk Backend API client.

This client handles:
- Fetching the canonical user record by Clerk user id
- Mapping HTTP failures to typed ClerkError subclasses
- Bounding every call with a timeout

Documentation: https://clerk.com/docs/reference/backend-api

SECURITY:
- The Clerk secret key must be stored securely and never logged
- One client (and one connection pool) is shared by all requests; it is
  created in the application lifespan and closed at shutdown
"""

import logging
from typing import Optional, Dict, Any

import httpx

from src.integrations.clerk.exceptions import (
    ClerkError,
    ClerkAuthenticationError,
    ClerkUserNotFoundError,
    ClerkRateLimitError,
    ClerkConnectionError,
    ClerkTimeoutError,
)
from src.integrations.clerk.models import ClerkUser

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_BASE_URL = "https://api.clerk.com/v1"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0


class ClerkClient:
    """
    Async client for the Clerk Backend API.

    All methods are async and should be used with async/await.

    SECURITY: The secret key must be stored securely and never logged.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ):
        """
        Initialize Clerk client.

        Args:
            secret_key: Clerk secret key (sk_live_... / sk_test_...). When
                missing, every request fails with ClerkAuthenticationError.
            base_url: API base URL (default: https://api.clerk.com/v1)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
        """
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.secret_key = secret_key
        self.timeout = timeout

        if not self.secret_key:
            logger.warning("Clerk secret key not configured; user fetches will fail")

        headers = {"Accept": "application/json"}
        if self.secret_key:
            headers["Authorization"] = f"Bearer {self.secret_key}"

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(connect_timeout, timeout)),
            headers=headers,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ClerkClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request to the Clerk Backend API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            params: Query parameters

        Returns:
            Response data as dictionary

        Raises:
            ClerkError: On API errors
        """
        if not self.secret_key:
            raise ClerkAuthenticationError(message="Clerk secret key is not configured")

        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            response = await self._client.request(
                method=method,
                url=url,
                params=params,
            )
        except httpx.TimeoutException as e:
            logger.error(
                "Clerk API timeout",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise ClerkTimeoutError(f"Request timeout: {e}")
        except httpx.RequestError as e:
            logger.error(
                "Clerk API connection error",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise ClerkConnectionError(f"Connection error: {e}")

        if response.status_code in (401, 403):
            logger.error(
                "Clerk API authentication failed",
                extra={"status_code": response.status_code, "endpoint": endpoint},
            )
            raise ClerkAuthenticationError(status_code=response.status_code)

        if response.status_code == 404:
            raise ClerkUserNotFoundError(message=f"Resource not found: {endpoint}")

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(
                "Clerk API rate limited",
                extra={"endpoint": endpoint, "retry_after": retry_after},
            )
            raise ClerkRateLimitError(
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )

        if response.status_code >= 400:
            error_body: Dict[str, Any] = {}
            try:
                error_body = response.json()
            except ValueError:
                pass
            if not isinstance(error_body, dict):
                error_body = {}

            errors = error_body.get("errors") or [{}]
            error_code = errors[0].get("code", "") if isinstance(errors[0], dict) else ""

            logger.error(
                "Clerk API error",
                extra={
                    "status_code": response.status_code,
                    "endpoint": endpoint,
                    "error_code": error_code,
                },
            )
            raise ClerkError(
                message=f"Clerk API error: {response.status_code}",
                status_code=response.status_code,
                code=error_code,
                response=error_body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ClerkError(
                message=f"Invalid JSON from Clerk API: {e}",
                status_code=response.status_code,
            )

    async def get_user(self, user_id: str) -> ClerkUser:
        """
        Fetch a user by Clerk user id.

        Args:
            user_id: Clerk user id (e.g. user_2abc...)

        Returns:
            The canonical ClerkUser

        Raises:
            ClerkUserNotFoundError: If Clerk has no such user
            ClerkError: On any other API error
        """
        if not user_id:
            raise ValueError("user_id is required")

        try:
            data = await self._request("GET", f"/users/{user_id}")
        except ClerkUserNotFoundError:
            raise ClerkUserNotFoundError(
                message=f"No Clerk user found for ID: {user_id}",
                user_id=user_id,
            )

        if not isinstance(data, dict):
            raise ClerkError(message="Unexpected user payload from Clerk API")

        user = ClerkUser.from_dict(data)

        logger.debug(
            "Fetched Clerk user",
            extra={"clerk_user_id": user.id, "has_primary_email": user.primary_email is not None},
        )

        return user


def get_clerk_client(
    secret_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> ClerkClient:
    """
    Factory function to create a ClerkClient.

    Args:
        secret_key: Clerk secret key
        base_url: Override API base URL
        timeout: Request timeout in seconds

    Returns:
        Configured ClerkClient instance
    """
    return ClerkClient(
        secret_key=secret_key,
        base_url=base_url,
        timeout=timeout,
    )
