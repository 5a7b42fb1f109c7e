"""
Platera Backend — Identity Webhook Sync
=======================================

What:  Applies identity provider change events to the users table.
How:   user.created / user.updated upsert the row (the row linked to the
       identity, else a row with the email, else a new one); user.deleted
       removes rows by external id, and the database cascades the user's
       recipes, reviews, comments and bookmarks.
Who:   POST /api/webhooks/clerk.

Errors propagate: the route answers 500 and the provider redelivers the event.
Signature verification happens at the ingress, before requests reach us.
"""

import logging
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from platera.models import User
from platera.models.user import display_name, normalize_email
from platera.schemas.identity import ClerkDeletedObject, ClerkUser, ClerkWebhookEvent
from platera.services.account_merge import merge_stale_user
from platera.services.account_service import (
    find_user_by_email,
    find_user_by_external_id,
    find_users_by_email,
)

logger = logging.getLogger(__name__)

USER_UPSERT_EVENTS = {"user.created", "user.updated"}
USER_DELETE_EVENT = "user.deleted"


async def sync_user(db: AsyncSession, payload: ClerkUser) -> Optional[User]:
    """
    Create or refresh the local row for an identity provider user.

    When the identity is already linked to a row and its new email belongs
    to other unlinked rows, the linked row stays and absorbs them through
    merge_stale_user(). An email still held by a row linked to another
    identity is not taken over; the linked row keeps its current email.

    Returns:
        The upserted User, or None when the payload carries no email address.
    """
    email = payload.primary_email
    if not email:
        logger.warning("Identity %s has no email address; skipping sync", payload.id)
        return None
    normalized = normalize_email(email)

    user = await find_user_by_external_id(db, payload.id)
    if user is not None:
        normalized = await _claim_email(db, user, normalized)
        action = "Updated"
    else:
        user = await find_user_by_email(db, email)
        if user is None:
            user = User(email=normalized)
            db.add(user)
            action = "Created"
        else:
            action = "Linked"

    user.email = normalized
    user.external_id = payload.id
    user.name = display_name(payload.first_name, payload.last_name)
    user.profile_image = payload.image_url
    await db.flush()

    logger.info("%s user %s from identity %s", action, user.id, payload.id)
    return user


async def _claim_email(db: AsyncSession, user: User, email: str) -> str:
    """Make `email` available to the linked `user`; returns the email to store."""
    holders = [u for u in await find_users_by_email(db, email) if u.id != user.id]
    if not holders:
        return email

    owners = [u.external_id for u in holders if u.external_id]
    if owners:
        logger.warning(
            "Email for identity %s is held by identity %s; keeping %s on user %s",
            user.external_id,
            owners[0],
            user.email,
            user.id,
        )
        return user.email

    for stale in holders:
        await merge_stale_user(db, stale_id=stale.id, master_id=user.id)
        db.expunge(stale)
    return email


async def delete_user(db: AsyncSession, external_id: str) -> int:
    """Delete every row linked to `external_id`; returns the number removed."""
    result = await db.execute(delete(User).where(User.external_id == external_id))
    if result.rowcount:
        logger.info("Deleted %d user(s) for identity %s", result.rowcount, external_id)
    else:
        logger.info("No local user for deleted identity %s", external_id)
    return result.rowcount


async def handle_event(db: AsyncSession, event: ClerkWebhookEvent) -> str:
    """
    Dispatch one webhook event.

    Returns:
        A short outcome label ("synced", "skipped", "deleted", "ignored") for
        the response body and logs.
    """
    if event.type in USER_UPSERT_EVENTS:
        user = await sync_user(db, ClerkUser.model_validate(event.data))
        return "synced" if user is not None else "skipped"

    if event.type == USER_DELETE_EVENT:
        external_id = ClerkDeletedObject.model_validate(event.data).id
        if not external_id:
            logger.warning("user.deleted event without an id; ignoring")
            return "ignored"
        await delete_user(db, external_id)
        return "deleted"

    logger.info("Unhandled webhook event: %s", event.type)
    return "ignored"
