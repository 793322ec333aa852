"""
Error taxonomy for Clerk webhook processing.

Every failure raised by the verifier, parser or reconciler carries:
- kind: a coarse, stable string safe to return to the webhook sender
- category: where the fault lies (caller, operator, upstream)
- status_code: the HTTP status the endpoint responds with

Benign outcomes (deleting an absent user, a user Clerk no longer knows)
are not errors; they are reported through UserSyncResult.
"""

import enum


class ErrorCategory(str, enum.Enum):
    """Who is at fault, and therefore how the endpoint responds."""

    TRANSPORT = "transport"    # missing/malformed headers - caller's fault
    TRUST = "trust"            # signature mismatch - security event
    CONFIG = "config"          # secret not configured - operator's fault
    DATA = "data"              # malformed body / missing fields
    DEPENDENCY = "dependency"  # Clerk or database unavailable - retryable


class WebhookProcessingError(Exception):
    """Base exception for webhook processing failures."""

    kind = "webhook_error"
    category = ErrorCategory.DATA
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind!r}, message={self.message!r})"


# =============================================================================
# Verification errors
# =============================================================================

class WebhookVerificationError(WebhookProcessingError):
    """Base exception for signature verification failures."""

    kind = "verification_failed"
    category = ErrorCategory.TRUST


class MissingHeadersError(WebhookVerificationError):
    """One of svix-id, svix-timestamp, svix-signature is absent or empty."""

    kind = "missing_headers"
    category = ErrorCategory.TRANSPORT

    def __init__(self, missing: list):
        super().__init__(f"Missing Svix headers: {', '.join(missing)}")
        self.missing = list(missing)


class MalformedHeadersError(WebhookVerificationError):
    """A Svix header is present but not well-formed."""

    kind = "malformed_headers"
    category = ErrorCategory.TRANSPORT


class MissingSecretError(WebhookVerificationError):
    """The webhook signing secret is absent or unusable."""

    kind = "missing_secret"
    category = ErrorCategory.CONFIG
    status_code = 500


class SignatureMismatchError(WebhookVerificationError):
    """The signature does not match the payload, id and timestamp."""

    kind = "invalid_signature"
    category = ErrorCategory.TRUST


# =============================================================================
# Parse errors
# =============================================================================

class EventParseError(WebhookProcessingError):
    """Base exception for event envelope parse failures."""

    kind = "invalid_event"


class MalformedBodyError(EventParseError):
    """The verified body is not a well-formed event envelope."""

    kind = "malformed_body"


class MissingSubjectIdError(EventParseError):
    """The event has no usable data.id."""

    kind = "missing_subject_id"


# =============================================================================
# Reconciliation errors
# =============================================================================

class ReconcileError(WebhookProcessingError):
    """Base exception for reconciliation failures attributable to data."""

    kind = "reconcile_failed"


class MissingPrimaryEmailError(ReconcileError):
    """The canonical Clerk user has no resolvable primary email."""

    kind = "missing_primary_email"

    def __init__(self, clerk_user_id: str):
        super().__init__(f"Clerk user {clerk_user_id} has no primary email address")
        self.clerk_user_id = clerk_user_id
