import json
import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from svix.webhooks import Webhook, WebhookVerificationError
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import WebhookNotConfigured, WebhookProcessingError, WebhookSignatureInvalid
from app.services.clerk_events import handle_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


@router.post("/clerk")
async def clerk_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Clerk user lifecycle events, delivered through Svix.

    The signature covers the raw body, so it is read as bytes rather than parsed
    by FastAPI. Any handled or ignored event is acknowledged with 200 so Svix
    does not redeliver it.
    """
    if not settings.CLERK_WEBHOOK_SECRET:
        logger.error("CLERK_WEBHOOK_SECRET is not configured")
        raise WebhookNotConfigured()

    headers = {name: request.headers.get(name) for name in SVIX_HEADERS}
    if not all(headers.values()):
        raise WebhookSignatureInvalid("Missing Svix signature headers")

    payload = await request.body()
    try:
        Webhook(settings.CLERK_WEBHOOK_SECRET).verify(payload, headers)
    except WebhookVerificationError as e:
        logger.warning(f"Rejected Clerk webhook: {e}", extra={"svix_id": headers["svix-id"]})
        raise WebhookSignatureInvalid()

    # verify() only checks the signature; the event is the signed body itself
    event_type = None
    try:
        event = json.loads(payload)
        event_type = event.get("type")
        handle_event(db, event)
    except Exception as e:
        db.rollback()
        logger.error(
            f"Error processing Clerk webhook {event_type}: {e}",
            exc_info=True,
            extra={"event_type": event_type, "svix_id": headers["svix-id"]},
        )
        raise WebhookProcessingError(str(e) if settings.is_development else None)

    logger.info("Processed Clerk webhook", extra={"event_type": event_type})
    return {"received": True, "type": event_type}
