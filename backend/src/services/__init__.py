"""
Business logic services.
"""

from src.services.clerk_sync_service import ClerkSyncService, UserSyncResult, UserSyncStatus
from src.services.clerk_webhook_handler import ClerkWebhookHandler

__all__ = ["ClerkSyncService", "UserSyncResult", "UserSyncStatus", "ClerkWebhookHandler"]
