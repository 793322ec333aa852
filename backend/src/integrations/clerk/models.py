"""
Clerk Backend API response models.

Dataclasses for structured response handling. ClerkUser is the canonical,
live view of a user; webhook payload snapshots are never used in its place.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


def _clean(value: Any) -> Optional[str]:
    """Return a stripped string, or None for missing/blank/non-string values."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


@dataclass
class ClerkEmailAddress:
    """An email address attached to a Clerk user."""
    id: str
    email_address: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClerkEmailAddress":
        return cls(
            id=data.get("id") or "",
            email_address=data.get("email_address") or "",
        )


@dataclass
class ClerkAddress:
    """A postal address attached to a Clerk user."""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClerkAddress":
        return cls(
            street=_clean(data.get("street1") or data.get("street")),
            city=_clean(data.get("city")),
            state=_clean(data.get("state")),
            country=_clean(data.get("country")),
            postal_code=_clean(data.get("postal_code") or data.get("zip_code")),
        )

    def to_record(self) -> Dict[str, Optional[str]]:
        """Address in the shape stored on User.address."""
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "zip_code": self.postal_code,
        }


@dataclass
class ClerkUser:
    """A user as currently held by Clerk."""
    id: str
    email_addresses: List[ClerkEmailAddress] = field(default_factory=list)
    primary_email_address_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    primary_address: Optional[ClerkAddress] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClerkUser":
        address_data = data.get("primary_address")
        return cls(
            id=data.get("id") or "",
            email_addresses=[
                ClerkEmailAddress.from_dict(e)
                for e in data.get("email_addresses") or []
                if isinstance(e, dict)
            ],
            primary_email_address_id=data.get("primary_email_address_id"),
            first_name=_clean(data.get("first_name")),
            last_name=_clean(data.get("last_name")),
            image_url=_clean(data.get("image_url") or data.get("profile_image_url")),
            primary_address=(
                ClerkAddress.from_dict(address_data)
                if isinstance(address_data, dict)
                else None
            ),
        )

    @property
    def primary_email(self) -> Optional[str]:
        """
        The address Clerk marks as primary, or None.

        Never falls back to the first address. A user whose primary email
        cannot be resolved is not synced.
        """
        if not self.primary_email_address_id:
            return None
        for email in self.email_addresses:
            if email.id == self.primary_email_address_id:
                return _clean(email.email_address)
        return None
