"""
Clerk Sync Service for synchronizing user identity data from Clerk.

This service handles:
- Upsert: fetch the canonical user from Clerk and create or merge the local
  User record keyed by clerk_user_id
- Remove: delete the local User record (idempotent)

Data flow:
    Clerk webhook -> clerk_webhook_handler -> clerk_sync_service -> database

Rules:
- Webhook payloads are never trusted for profile data; every upsert
  re-fetches the user from Clerk, so duplicate or reordered deliveries
  converge on the latest canonical state
- A fetched field only overwrites the stored one when it is present and
  non-empty; partial Clerk responses never erase local data
- Concurrent deliveries for the same user are resolved by the unique
  constraint on users.clerk_user_id: the losing insert becomes an update

SECURITY:
- Clerk is source of truth for authentication
- NO passwords stored locally
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.integrations.clerk.client import ClerkClient, DEFAULT_TIMEOUT_SECONDS
from src.integrations.clerk.exceptions import ClerkTimeoutError, ClerkUserNotFoundError
from src.integrations.clerk.models import ClerkUser
from src.models.user import ADDRESS_FIELDS, User
from src.services.webhook_errors import MissingPrimaryEmailError

logger = logging.getLogger(__name__)

# Profile columns merged from Clerk on every upsert
_PROFILE_FIELDS = ("email", "first_name", "last_name", "avatar_url")


class UserSyncStatus(str, enum.Enum):
    """Outcome of a reconciliation."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    ALREADY_ABSENT = "already_absent"
    IDENTITY_NOT_FOUND = "identity_not_found"


@dataclass
class UserSyncResult:
    """Result of upsert_user / remove_user."""

    status: UserSyncStatus
    clerk_user_id: str
    user: Optional[User] = None

    @property
    def mutated(self) -> bool:
        return self.status in (
            UserSyncStatus.CREATED,
            UserSyncStatus.UPDATED,
            UserSyncStatus.DELETED,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "status": self.status.value,
            "clerk_user_id": self.clerk_user_id,
        }
        if self.user is not None:
            result["user_id"] = self.user.id
        return result


def map_clerk_user(clerk_user: ClerkUser) -> Dict[str, Any]:
    """
    Map a canonical Clerk user to User column values.

    Raises:
        MissingPrimaryEmailError: If no primary email can be resolved
    """
    email = clerk_user.primary_email
    if not email:
        raise MissingPrimaryEmailError(clerk_user.id)

    fields: Dict[str, Any] = {
        "email": email,
        "first_name": clerk_user.first_name,
        "last_name": clerk_user.last_name,
        "avatar_url": clerk_user.image_url,
        "address": None,
    }
    if clerk_user.primary_address is not None:
        address = clerk_user.primary_address.to_record()
        if any(address.values()):
            fields["address"] = address
    return fields


def merge_user_fields(user: User, fields: Dict[str, Any]) -> None:
    """
    Apply mapped Clerk values to an existing User.

    Only present, non-empty values overwrite stored ones. Address
    components are merged one by one.
    """
    for attr in _PROFILE_FIELDS:
        value = fields.get(attr)
        if value:
            setattr(user, attr, value)

    address = fields.get("address")
    if address:
        current = user.address or {}
        merged = {key: current.get(key) for key in ADDRESS_FIELDS}
        for key in ADDRESS_FIELDS:
            if address.get(key):
                merged[key] = address[key]
        if merged != current:
            # Reassign so the JSON column is flagged as modified
            user.address = merged

    user.mark_synced()


class ClerkSyncService:
    """
    Service for syncing Clerk users to the local users table.

    The session and the Clerk client are injected; the service owns no
    connections and does not commit. The caller commits or rolls back.
    """

    def __init__(
        self,
        session: Session,
        clerk_client: ClerkClient,
        fetch_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Initialize sync service.

        Args:
            session: SQLAlchemy session for database operations
            clerk_client: Shared Clerk Backend API client
            fetch_timeout: Upper bound in seconds for the Clerk user fetch
        """
        self.session = session
        self.clerk_client = clerk_client
        self.fetch_timeout = fetch_timeout

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_user_by_clerk_id(self, clerk_user_id: str) -> Optional[User]:
        """
        Get user by Clerk user ID.

        Returns:
            User if found, None otherwise
        """
        return self.session.query(User).filter(
            User.clerk_user_id == clerk_user_id
        ).first()

    def _get_user_for_update(self, clerk_user_id: str) -> Optional[User]:
        return self.session.query(User).filter(
            User.clerk_user_id == clerk_user_id
        ).with_for_update().first()

    async def _fetch_clerk_user(self, clerk_user_id: str) -> Optional[ClerkUser]:
        """Fetch the canonical user, or None if Clerk does not know it."""
        try:
            return await asyncio.wait_for(
                self.clerk_client.get_user(clerk_user_id),
                timeout=self.fetch_timeout,
            )
        except ClerkUserNotFoundError:
            return None
        except asyncio.TimeoutError:
            logger.error(
                "Timed out fetching Clerk user",
                extra={"clerk_user_id": clerk_user_id, "timeout_seconds": self.fetch_timeout},
            )
            raise ClerkTimeoutError(
                f"Fetching Clerk user exceeded {self.fetch_timeout}s"
            )

    # =========================================================================
    # Upsert
    # =========================================================================

    async def upsert_user(self, clerk_user_id: str) -> UserSyncResult:
        """
        Create or update the local User from Clerk's current data.

        Args:
            clerk_user_id: Clerk user ID from the webhook event

        Returns:
            UserSyncResult with status CREATED, UPDATED or IDENTITY_NOT_FOUND

        Raises:
            MissingPrimaryEmailError: Clerk user has no primary email
            ClerkError: Clerk is unreachable or failing
        """
        if not clerk_user_id:
            raise ValueError("clerk_user_id is required")

        clerk_user = await self._fetch_clerk_user(clerk_user_id)
        if clerk_user is None:
            logger.warning(
                "Clerk user not found during sync; skipping",
                extra={"clerk_user_id": clerk_user_id},
            )
            return UserSyncResult(
                status=UserSyncStatus.IDENTITY_NOT_FOUND,
                clerk_user_id=clerk_user_id,
            )

        if clerk_user.id and clerk_user.id != clerk_user_id:
            logger.warning(
                "Clerk returned a different user id than requested",
                extra={"clerk_user_id": clerk_user_id, "returned_id": clerk_user.id},
            )

        fields = map_clerk_user(clerk_user)

        user = self._get_user_for_update(clerk_user_id)
        if user is None:
            user = self._insert_user(clerk_user_id, fields)
            if user is not None:
                logger.info(
                    "Created user from Clerk",
                    extra={"clerk_user_id": clerk_user_id, "user_id": user.id},
                )
                return UserSyncResult(
                    status=UserSyncStatus.CREATED,
                    clerk_user_id=clerk_user_id,
                    user=user,
                )

            # A concurrent delivery inserted the row first
            user = self._get_user_for_update(clerk_user_id)
            if user is None:
                raise RuntimeError(
                    f"User {clerk_user_id} neither insertable nor found after conflict"
                )

        merge_user_fields(user, fields)
        self.session.flush()

        logger.info(
            "Updated user from Clerk",
            extra={"clerk_user_id": clerk_user_id, "user_id": user.id},
        )
        return UserSyncResult(
            status=UserSyncStatus.UPDATED,
            clerk_user_id=clerk_user_id,
            user=user,
        )

    def _insert_user(self, clerk_user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """
        Insert a new User inside a savepoint.

        Returns:
            The new User, or None if the unique constraint on clerk_user_id
            rejected it (the row now exists)
        """
        user = User(clerk_user_id=clerk_user_id, **fields)
        user.mark_synced()

        try:
            with self.session.begin_nested():
                self.session.add(user)
                self.session.flush()
        except IntegrityError:
            logger.info(
                "Concurrent insert for user; applying as update",
                extra={"clerk_user_id": clerk_user_id},
            )
            return None

        return user

    # =========================================================================
    # Remove
    # =========================================================================

    def remove_user(self, clerk_user_id: str) -> UserSyncResult:
        """
        Delete the local User for a Clerk user.

        Deleting a user that does not exist is not an error: Clerk may
        redeliver user.deleted, or the delete may arrive before the create.

        Returns:
            UserSyncResult with status DELETED or ALREADY_ABSENT
        """
        if not clerk_user_id:
            raise ValueError("clerk_user_id is required")

        deleted = self.session.query(User).filter(
            User.clerk_user_id == clerk_user_id
        ).delete(synchronize_session="fetch")
        self.session.flush()

        if not deleted:
            logger.info(
                "User already absent; nothing to delete",
                extra={"clerk_user_id": clerk_user_id},
            )
            return UserSyncResult(
                status=UserSyncStatus.ALREADY_ABSENT,
                clerk_user_id=clerk_user_id,
            )

        logger.info("Deleted user", extra={"clerk_user_id": clerk_user_id})
        return UserSyncResult(
            status=UserSyncStatus.DELETED,
            clerk_user_id=clerk_user_id,
        )
