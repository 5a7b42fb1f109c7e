"""
Platera Backend — Identity Webhook Route
========================================

What:  POST /api/webhooks/clerk receives user.created / user.updated /
       user.deleted events and applies them through user_sync.
How:   The event is applied inside the request session; any failure rolls the
       session back and answers 500 so the provider redelivers.
Who:   The identity provider (via the ingress, which verifies signatures).

Exempt from rate limiting: provider retries arrive in bursts.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from platera.database import get_db_session
from platera.schemas.identity import ClerkWebhookEvent
from platera.services import user_sync

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/clerk", summary="Identity provider user events")
async def clerk_webhook(
    event: ClerkWebhookEvent,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    logger.info("Received webhook event %s", event.type)
    outcome = await user_sync.handle_event(db, event)
    return {"received": True, "type": event.type, "outcome": outcome}
