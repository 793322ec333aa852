"""
Clerk webhook endpoint for identity synchronization.

SECURITY: All webhooks MUST verify the Svix signature before processing.
Clerk uses Svix for webhook delivery and signature verification.

Documentation: https://clerk.com/docs/webhooks

Supported Events:
- user.created, user.updated, user.deleted

Response contract (the only caller is Clerk/Svix, which retries non-2xx):
- 200 {"success": true, ...} when processed or acknowledged as unhandled
- 400 {"error": <kind>} for missing headers, bad signature, malformed body
- 500 {"error": "internal error"} for configuration or dependency failures;
  details are logged, never returned
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from src.config.settings import Settings
from src.database.session import get_session_factory
from src.integrations.clerk.client import ClerkClient
from src.integrations.clerk.exceptions import ClerkError
from src.services.clerk_event_parser import ClerkWebhookEvent, parse_clerk_event
from src.services.clerk_sync_service import UserSyncStatus
from src.services.clerk_webhook_handler import ClerkWebhookHandler
from src.services.clerk_webhook_verifier import SVIX_ID_HEADER, verify_clerk_webhook
from src.services.webhook_errors import WebhookProcessingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

INTERNAL_ERROR_BODY = {"error": "internal error"}


def get_app_settings(request: Request) -> Settings:
    """Settings loaded in the application lifespan."""
    return request.app.state.settings


def get_clerk_client(request: Request) -> Optional[ClerkClient]:
    """Shared Clerk client created in the application lifespan."""
    return getattr(request.app.state, "clerk_client", None)


def _internal_error() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=INTERNAL_ERROR_BODY,
    )


def _error_response(error: WebhookProcessingError) -> JSONResponse:
    """Map a typed failure to its response; 5xx bodies stay generic."""
    if error.status_code >= 500:
        return _internal_error()
    return JSONResponse(status_code=error.status_code, content={"error": error.kind})


def _success_response(event: ClerkWebhookEvent, outcome: dict) -> JSONResponse:
    result = outcome.get("result", {})
    sync_status = result.get("status")

    content = {
        "success": True,
        "status": sync_status,
        "event_type": event.raw_type,
        "message": f"Event {event.raw_type} processed successfully",
    }
    if sync_status == UserSyncStatus.IDENTITY_NOT_FOUND.value:
        content["warning"] = "User not found in Clerk; no changes made"

    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@router.post("/clerk")
async def handle_clerk_webhook(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    clerk_client: Optional[ClerkClient] = Depends(get_clerk_client),
    session_factory: Optional[sessionmaker] = Depends(get_session_factory),
):
    """
    Handle incoming Clerk webhooks.

    Verifies the Svix signature over the raw body, parses the event and
    reconciles the local user. Does not require JWT authentication
    (webhooks are server-to-server).
    """
    # Raw body, exactly as signed
    body = await request.body()

    try:
        verified = verify_clerk_webhook(body, request.headers, settings.webhook_secret)
        event = parse_clerk_event(verified)
    except WebhookProcessingError as e:
        logger.warning(
            "Rejected Clerk webhook",
            extra={
                "error_kind": e.kind,
                "error_category": e.category.value,
                "svix_id": request.headers.get(SVIX_ID_HEADER),
            },
        )
        return _error_response(e)

    logger.info("Received Clerk webhook", extra=event.log_context())

    if not event.is_handled:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={
                "success": True,
                "status": "ignored",
                "event_type": event.raw_type,
                "message": f"No action taken for event type {event.raw_type}",
            },
        )

    if clerk_client is None or session_factory is None:
        logger.error(
            "Clerk webhook handler not configured",
            extra={
                **event.log_context(),
                "has_clerk_client": clerk_client is not None,
                "has_database": session_factory is not None,
            },
        )
        return _internal_error()

    try:
        with session_factory() as session:
            handler = ClerkWebhookHandler(
                session,
                clerk_client,
                fetch_timeout=settings.clerk_api_timeout_seconds,
            )
            outcome = await handler.handle_event(event)

    except WebhookProcessingError as e:
        logger.warning(
            "Invalid Clerk user data",
            extra={**event.log_context(), "error_kind": e.kind},
        )
        return _error_response(e)

    except ClerkError as e:
        logger.error(
            "Clerk API failure while processing webhook",
            extra={
                **event.log_context(),
                "error_type": type(e).__name__,
                "status_code": e.status_code,
            },
        )
        return _internal_error()

    except SQLAlchemyError as e:
        logger.error(
            "Database failure while processing webhook",
            extra={**event.log_context(), "error_type": type(e).__name__},
            exc_info=True,
        )
        return _internal_error()

    except Exception as e:
        logger.error(
            f"Error processing webhook: {e}",
            extra=event.log_context(),
            exc_info=True,
        )
        return _internal_error()

    return _success_response(event, outcome)


@router.options("/clerk")
async def clerk_webhook_preflight():
    """CORS preflight: acknowledge with an empty 200."""
    return Response(status_code=status.HTTP_200_OK)


@router.get("/clerk/health")
async def clerk_webhook_health(
    settings: Settings = Depends(get_app_settings),
    session_factory: Optional[sessionmaker] = Depends(get_session_factory),
):
    """
    Health check for Clerk webhook endpoint.

    Used to verify the webhook endpoint is accessible.
    Does not require authentication.
    """
    return {
        "status": "healthy",
        "webhook_secret_configured": settings.webhook_secret_configured,
        "clerk_api_configured": settings.clerk_api_configured,
        "database_configured": session_factory is not None,
    }
