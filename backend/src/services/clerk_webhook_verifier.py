"""
Svix signature verification for Clerk webhooks.

SECURITY: Every Clerk webhook MUST be verified before it is parsed.
Clerk delivers webhooks through Svix, which signs
"{svix_id}.{svix_timestamp}.{raw_body}" with HMAC-SHA256 keyed by the
endpoint's signing secret (whsec_...).

Verification always runs on the exact raw request bytes. Parsing the body
and re-serializing it before verifying would change the signed content.

Documentation: https://docs.svix.com/receiving/verifying-payloads/how
"""

import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from svix.webhooks import Webhook, WebhookVerificationError as SvixVerificationError

from src.services.webhook_errors import (
    MalformedHeadersError,
    MissingHeadersError,
    MissingSecretError,
    SignatureMismatchError,
)

logger = logging.getLogger(__name__)

SVIX_ID_HEADER = "svix-id"
SVIX_TIMESTAMP_HEADER = "svix-timestamp"
SVIX_SIGNATURE_HEADER = "svix-signature"

REQUIRED_HEADERS = (SVIX_ID_HEADER, SVIX_TIMESTAMP_HEADER, SVIX_SIGNATURE_HEADER)


@dataclass(frozen=True)
class VerifiedWebhook:
    """
    A request body whose Svix signature has been checked.

    Only verify_clerk_webhook creates these. The event parser accepts
    nothing else, so an unverified body cannot become an event.
    """

    payload: bytes
    message_id: str
    timestamp: str


def _extract_svix_headers(headers: Mapping[str, str]) -> dict:
    """Case-insensitive lookup of the three Svix headers."""
    lowered = {key.lower(): value for key, value in headers.items()}
    return {name: (lowered.get(name) or "").strip() for name in REQUIRED_HEADERS}


def verify_clerk_webhook(
    payload: bytes,
    headers: Mapping[str, str],
    webhook_secret: Optional[str],
) -> VerifiedWebhook:
    """
    Verify a Clerk webhook signature using Svix.

    Args:
        payload: Raw request body bytes, exactly as received
        headers: Request headers (svix-id, svix-timestamp, svix-signature)
        webhook_secret: Clerk webhook signing secret

    Returns:
        VerifiedWebhook wrapping the same raw bytes

    Raises:
        MissingHeadersError: A required header is absent or empty
        MalformedHeadersError: svix-timestamp is not numeric
        MissingSecretError: The signing secret is absent or unusable
        SignatureMismatchError: The signature does not verify
    """
    svix_headers = _extract_svix_headers(headers)

    # Header presence is checked before any cryptographic work
    missing = [name for name in REQUIRED_HEADERS if not svix_headers[name]]
    if missing:
        logger.warning("Missing Svix headers", extra={"missing_headers": missing})
        raise MissingHeadersError(missing)

    if not svix_headers[SVIX_TIMESTAMP_HEADER].isdigit():
        logger.warning(
            "Malformed Svix timestamp header",
            extra={"svix_id": svix_headers[SVIX_ID_HEADER]},
        )
        raise MalformedHeadersError("svix-timestamp must be seconds since epoch")

    if not webhook_secret:
        logger.error("CLERK_WEBHOOK_SECRET not configured")
        raise MissingSecretError("Webhook signing secret is not configured")

    try:
        wh = Webhook(webhook_secret)
    except (ValueError, RuntimeError) as e:
        # binascii.Error (a ValueError) when the secret is not valid base64
        logger.error(
            "CLERK_WEBHOOK_SECRET is not a valid Svix signing secret",
            extra={"error_type": type(e).__name__},
        )
        raise MissingSecretError("Webhook signing secret is not usable")

    try:
        wh.verify(payload, svix_headers)
    except json.JSONDecodeError:
        # Svix decodes the body only after a signature matched; the
        # parser reports the malformed body.
        pass
    except (SvixVerificationError, ValueError) as e:
        # ValueError covers signature entries without a "v1," version prefix
        logger.warning(
            "Clerk webhook signature verification failed",
            extra={
                "svix_id": svix_headers[SVIX_ID_HEADER],
                "svix_timestamp": svix_headers[SVIX_TIMESTAMP_HEADER],
                "reason": str(e),
            },
        )
        raise SignatureMismatchError("Webhook signature verification failed")

    return VerifiedWebhook(
        payload=payload,
        message_id=svix_headers[SVIX_ID_HEADER],
        timestamp=svix_headers[SVIX_TIMESTAMP_HEADER],
    )
