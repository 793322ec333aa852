"""
Event envelope parsing for verified Clerk webhooks.

Turns the verified raw body into a ClerkWebhookEvent. The parser makes no
trust decision: it only accepts a VerifiedWebhook, which only the verifier
produces.

Unknown event types are not errors. They become ClerkEventType.UNHANDLED
with the original type string preserved, so new Clerk event types are
acknowledged instead of failing delivery.
"""

import enum
import json
import logging
from dataclasses import dataclass

from src.services.clerk_webhook_verifier import VerifiedWebhook
from src.services.webhook_errors import MalformedBodyError, MissingSubjectIdError

logger = logging.getLogger(__name__)


class ClerkEventType(str, enum.Enum):
    """Clerk event types this service acts on."""

    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"
    UNHANDLED = "unhandled"

    @classmethod
    def from_raw(cls, raw_type: str) -> "ClerkEventType":
        for member in (cls.USER_CREATED, cls.USER_UPDATED, cls.USER_DELETED):
            if member.value == raw_type:
                return member
        return cls.UNHANDLED


@dataclass(frozen=True)
class ClerkWebhookEvent:
    """A verified, parsed Clerk webhook event."""

    event_type: ClerkEventType
    raw_type: str
    subject_id: str
    message_id: str

    @property
    def is_handled(self) -> bool:
        return self.event_type is not ClerkEventType.UNHANDLED

    def log_context(self) -> dict:
        """Fields attached to every log line about this event."""
        return {
            "event_type": self.raw_type,
            "clerk_user_id": self.subject_id,
            "svix_id": self.message_id,
        }


def parse_clerk_event(verified: VerifiedWebhook) -> ClerkWebhookEvent:
    """
    Parse a verified webhook body into a ClerkWebhookEvent.

    Expected shape: {"type": str, "data": {"id": str, ...}, ...}

    Raises:
        MalformedBodyError: Body is not a JSON object with a string type
            and an object data field
        MissingSubjectIdError: data.id is missing or blank
    """
    if not isinstance(verified, VerifiedWebhook):
        raise TypeError("parse_clerk_event requires a VerifiedWebhook")

    try:
        # json.loads would sniff UTF-16/32 from raw bytes; only UTF-8 is accepted
        body = json.loads(verified.payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(
            "Invalid JSON in Clerk webhook payload",
            extra={"svix_id": verified.message_id, "error": str(e)},
        )
        raise MalformedBodyError("Webhook body is not valid JSON")

    if not isinstance(body, dict):
        raise MalformedBodyError("Webhook body must be a JSON object")

    raw_type = body.get("type")
    if not isinstance(raw_type, str) or not raw_type.strip():
        logger.warning("Missing event type in webhook payload", extra={"svix_id": verified.message_id})
        raise MalformedBodyError("Webhook body has no event type")

    data = body.get("data")
    if not isinstance(data, dict):
        raise MalformedBodyError("Webhook body has no data object")

    subject_id = data.get("id")
    if not isinstance(subject_id, str) or not subject_id.strip():
        logger.warning(
            "Missing subject id in webhook payload",
            extra={"svix_id": verified.message_id, "event_type": raw_type},
        )
        raise MissingSubjectIdError("Webhook data has no id")

    raw_type = raw_type.strip()
    return ClerkWebhookEvent(
        event_type=ClerkEventType.from_raw(raw_type),
        raw_type=raw_type,
        subject_id=subject_id.strip(),
        message_id=verified.message_id,
    )
