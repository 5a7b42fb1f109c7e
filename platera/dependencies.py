"""
Platera Backend — Request Dependencies
======================================

What:  FastAPI dependencies resolving the signed-in account for a request.
How:   Token from `Authorization: Bearer <jwt>`, else the session cookie →
       IdentityProvider.authenticate() → AccountService.resolve_user().
Who:   Every route that needs to know who is calling.

    get_current_user  → User | None  (anonymous reads)
    require_user      → User         (401 AuthenticationError otherwise)
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from platera.config import settings
from platera.database import get_database, get_db_session
from platera.exceptions import AuthenticationError
from platera.models import User
from platera.services.account_service import account_service
from platera.services.identity_base import IdentityProvider

logger = logging.getLogger(__name__)


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity


def extract_session_token(request: Request) -> Optional[str]:
    """Bearer token first, then the identity provider's session cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(settings.clerk_session_cookie) or None


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Optional[User]:
    """
    Resolve the caller's local account, or None for anonymous requests.

    Resolution runs in its own session and commits before the route handler
    starts, so a lazily created or linked account and any duplicate merges
    persist even when the handler then fails. The resolved row is reloaded
    into the request session for the handler to use.

    Resolution never raises: provider and store failures are logged and the
    request continues unauthenticated.
    """
    external_id = identity.authenticate(extract_session_token(request))
    if external_id is None:
        return None

    try:
        async with get_database(request).session() as resolution_db:
            resolved = await account_service.resolve_user(resolution_db, identity, external_id)
    except SQLAlchemyError as e:
        logger.error("Committing account resolution for %s failed: %s", external_id, str(e))
        return None
    if resolved is None:
        return None

    user = await db.get(User, resolved.id)
    if user is not None:
        request.state.user_id = str(user.id)
    return user


async def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise AuthenticationError()
    return user
