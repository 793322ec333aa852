"""
Database models for the storefront identity store.
"""

from src.models.base import TimestampMixin, generate_uuid
from src.models.user import User, ADDRESS_FIELDS

__all__ = ["TimestampMixin", "generate_uuid", "User", "ADDRESS_FIELDS"]
