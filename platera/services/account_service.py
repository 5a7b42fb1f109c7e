"""
Platera Backend — Account Resolution
====================================

What:  Turns the external identity id of the current session into exactly one
       local User row (or None), creating, linking and merging as needed.
Who:   The `get_current_user` request dependency, on almost every request.

Resolution Flow:
    ┌────────────────┐ found ┌──────────────────────────┐
    │ by external_id │──────▶│ reconcile duplicates     │──▶ master | None
    └───────┬────────┘       │ (same email, other rows) │
            │ missing        └──────────────────────────┘
            ▼                            ▲
    ┌────────────────┐ email ┌───────────┴──────────┐
    │ fetch profile  │──────▶│ link by email / create│
    └────────────────┘       └──────────────────────┘

Failure policy:
    - no session, or no email from the provider    → None (not an error)
    - provider or store failure during lazy sync   → logged, continue with
                                                     whatever user we have
    - uniqueness conflict on create                → the concurrent winner is
                                                     re-fetched and returned
    - failure while merging one stale account      → that merge is rolled back
                                                     and logged; the master is
                                                     still returned
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from platera.models import User
from platera.models.user import display_name, normalize_email
from platera.services.account_merge import MergeReport, merge_stale_user
from platera.services.identity_base import IdentityProfile, IdentityProvider

logger = logging.getLogger(__name__)


async def find_user_by_external_id(db: AsyncSession, external_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.external_id == external_id))
    return result.scalar_one_or_none()


async def find_users_by_email(db: AsyncSession, email: str) -> List[User]:
    """All rows whose email matches case-insensitively, oldest first."""
    result = await db.execute(
        select(User)
        .where(func.lower(User.email) == normalize_email(email))
        .order_by(User.created_at, User.id)
    )
    return list(result.scalars().all())


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """The preferred row for `email`: an exact match, else the oldest variant."""
    users = await find_users_by_email(db, email)
    normalized = normalize_email(email)
    for user in users:
        if user.email == normalized:
            return user
    return users[0] if users else None


class AccountService:
    """
    Stateless account resolution; the session and identity provider are
    passed on every call.
    """

    async def resolve_user(
        self,
        db: AsyncSession,
        identity: IdentityProvider,
        external_id: Optional[str],
    ) -> Optional[User]:
        """
        Return the local account for `external_id`.

        Args:
            db: Request session. Writes made here commit with the request.
            identity: Provider used for the lazy-sync profile fetch.
            external_id: Subject of the verified session token, or None.

        Returns:
            The resolved (master) User, or None when there is no session or no
            account could be materialized.
        """
        if not external_id:
            return None

        user = await find_user_by_external_id(db, external_id)

        if user is None:
            try:
                user = await self._lazy_sync(db, identity, external_id)
            except Exception as e:
                logger.error("Lazy sync failed for %s: %s", external_id, str(e), exc_info=True)

        if user is not None and user.email:
            await self.reconcile_duplicates(db, user)

        return user

    async def _lazy_sync(
        self,
        db: AsyncSession,
        identity: IdentityProvider,
        external_id: str,
    ) -> Optional[User]:
        profile = await identity.fetch_profile(external_id)
        if profile is None or not profile.email:
            logger.warning("No email available for identity %s; no local account created", external_id)
            return None

        existing = await find_user_by_email(db, profile.email)
        if existing is not None:
            return await self._link(db, existing, external_id)

        return await self._create(db, profile)

    async def _link(self, db: AsyncSession, user: User, external_id: str) -> User:
        """Attach `external_id` to a row created by another flow."""
        if user.external_id != external_id:
            logger.info(
                "Linking identity %s to existing user %s (previous identity: %s)",
                external_id,
                user.id,
                user.external_id,
            )
            try:
                async with db.begin_nested():
                    user.external_id = external_id
            except IntegrityError:
                winner = await find_user_by_external_id(db, external_id)
                if winner is None:
                    raise
                return winner
        return user

    async def _create(self, db: AsyncSession, profile: IdentityProfile) -> Optional[User]:
        """
        Insert a new account for `profile`.

        The insert runs in a SAVEPOINT. When a concurrent request already
        created the row (unique email or external id), the savepoint is rolled
        back and the winner is loaded and linked instead.
        """
        user = User(
            external_id=profile.external_id,
            email=normalize_email(profile.email),
            name=display_name(profile.first_name, profile.last_name),
            profile_image=profile.image_url,
        )
        try:
            async with db.begin_nested():
                db.add(user)
        except IntegrityError:
            logger.info(
                "Concurrent creation detected for identity %s; loading the existing account",
                profile.external_id,
            )
            winner = await find_user_by_external_id(db, profile.external_id)
            if winner is not None:
                return winner
            winner = await find_user_by_email(db, profile.email)
            if winner is None:
                raise
            return await self._link(db, winner, profile.external_id)

        logger.info("Created user %s for identity %s", user.id, profile.external_id)
        return user

    async def reconcile_duplicates(self, db: AsyncSession, master: User) -> List[MergeReport]:
        """
        Merge every other account sharing the master's email into the master.

        The master is always the account resolved for the current session.
        Each stale account is merged in its own SAVEPOINT; a failed merge is
        logged and skipped.
        """
        master_id = master.id
        try:
            duplicates = await find_users_by_email(db, master.email)
        except Exception as e:
            logger.error("Duplicate lookup failed for user %s: %s", master_id, str(e))
            return []

        stale_users = [u for u in duplicates if u.id != master_id]
        if not stale_users:
            return []

        logger.info(
            "Found %d accounts for email %s; merging into %s",
            len(duplicates),
            master.email,
            master_id,
        )
        reports = []
        for stale in stale_users:
            stale_id = stale.id
            try:
                reports.append(await merge_stale_user(db, stale_id=stale_id, master_id=master_id))
            except Exception as e:
                logger.error(
                    "Merge of user %s into %s failed: %s",
                    stale_id,
                    master_id,
                    str(e),
                    exc_info=True,
                )
        return reports


account_service = AccountService()
