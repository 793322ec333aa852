"""
User model for the storefront.

User represents a local user record synced from Clerk. It holds the profile
data the storefront needs (contact email, name, avatar, shipping address)
so pages do not call Clerk on every render.

CRITICAL SECURITY:
- NO PASSWORDS are stored locally - Clerk is the source of truth for auth
- clerk_user_id is the unique identifier from Clerk
- User data is written only by ClerkSyncService in response to Clerk webhooks
- Local id is for internal database references only
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Column, String, DateTime, JSON

from src.db_base import Base
from src.models.base import TimestampMixin, generate_uuid

# Keys of the embedded address object, in display order
ADDRESS_FIELDS = ("street", "city", "state", "country", "zip_code")


class User(Base, TimestampMixin):
    """
    Local user record synced from Clerk.

    Key concepts:
    - clerk_user_id is the unique identifier from Clerk (source of truth)
    - id is the internal UUID for database relationships
    - address is an embedded object with the keys in ADDRESS_FIELDS

    Lifecycle:
    - Created on the first user.created/user.updated for an unseen clerk_user_id
    - Merged in place on later user.created/user.updated events
    - Deleted on user.deleted
    """

    __tablename__ = "users"

    # Internal Primary Key
    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Internal UUID primary key"
    )

    # Clerk User ID - SOURCE OF TRUTH
    # The unique constraint is what resolves concurrent deliveries to one row.
    clerk_user_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Clerk user ID - source of truth for authentication"
    )

    # Profile Information (synced from Clerk)
    email = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Primary email address (from Clerk)"
    )

    first_name = Column(
        String(255),
        nullable=True,
        comment="User first name (from Clerk)"
    )

    last_name = Column(
        String(255),
        nullable=True,
        comment="User last name (from Clerk)"
    )

    avatar_url = Column(
        String(500),
        nullable=True,
        comment="Profile image URL (from Clerk)"
    )

    address = Column(
        JSON,
        nullable=True,
        comment="Primary postal address (from Clerk): street, city, state, country, zip_code"
    )

    # Sync tracking
    last_synced_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When user data was last synced from Clerk"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, clerk_user_id={self.clerk_user_id}, email={self.email})>"

    def get_address(self) -> Dict[str, Optional[str]]:
        """Return the address with every known key present."""
        stored: Dict[str, Any] = self.address or {}
        return {key: stored.get(key) for key in ADDRESS_FIELDS}

    def mark_synced(self) -> None:
        """Update the last_synced_at timestamp."""
        self.last_synced_at = datetime.now(timezone.utc)
