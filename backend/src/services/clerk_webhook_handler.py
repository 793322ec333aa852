"""
Clerk Webhook Handler for processing verified Clerk webhook events.

Handles the following event types:
- user.created, user.updated -> ClerkSyncService.upsert_user
- user.deleted -> ClerkSyncService.remove_user

Any other event type is acknowledged without touching the database.
The handler owns the transaction: one commit per processed event, rollback
on any failure.
"""

import logging
from typing import Dict, Any

from sqlalchemy.orm import Session

from src.integrations.clerk.client import ClerkClient, DEFAULT_TIMEOUT_SECONDS
from src.services.clerk_event_parser import ClerkEventType, ClerkWebhookEvent
from src.services.clerk_sync_service import ClerkSyncService, UserSyncResult

logger = logging.getLogger(__name__)


class ClerkWebhookHandler:
    """
    Handler for Clerk webhook events.

    Routes events to the sync service and manages the database transaction.
    """

    def __init__(
        self,
        session: Session,
        clerk_client: ClerkClient,
        fetch_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Initialize handler with its collaborators.

        Args:
            session: SQLAlchemy session for database operations
            clerk_client: Shared Clerk Backend API client
            fetch_timeout: Upper bound in seconds for the Clerk user fetch
        """
        self.session = session
        self.sync_service = ClerkSyncService(
            session,
            clerk_client,
            fetch_timeout=fetch_timeout,
        )

    async def handle_event(self, event: ClerkWebhookEvent) -> Dict[str, Any]:
        """
        Route a parsed event to the appropriate handler.

        Args:
            event: Verified, parsed Clerk event

        Returns:
            Dict with handling result. "status" is "ignored" for event types
            this service does not act on.

        Raises:
            MissingPrimaryEmailError: Clerk user has no primary email
            ClerkError: Clerk is unreachable or failing
            SQLAlchemyError: The database write failed
        """
        if not event.is_handled:
            logger.info("Unhandled Clerk event type", extra=event.log_context())
            return {"status": "ignored", "reason": f"Unhandled event type: {event.raw_type}"}

        try:
            if event.event_type is ClerkEventType.USER_DELETED:
                result = self.handle_user_deleted(event)
            else:
                result = await self.handle_user_upserted(event)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.error(
                "Error handling Clerk event",
                extra=event.log_context(),
                exc_info=True,
            )
            raise

        logger.info(
            "Processed Clerk event",
            extra={**event.log_context(), "result": result.status.value},
        )
        return {"status": "success", "result": result.to_dict()}

    # =========================================================================
    # User Event Handlers
    # =========================================================================

    async def handle_user_upserted(self, event: ClerkWebhookEvent) -> UserSyncResult:
        """
        Handle user.created and user.updated.

        Both are processed the same way: the event only says which user
        changed; the data comes from Clerk.
        """
        return await self.sync_service.upsert_user(event.subject_id)

    def handle_user_deleted(self, event: ClerkWebhookEvent) -> UserSyncResult:
        """Handle user.deleted."""
        return self.sync_service.remove_user(event.subject_id)
