"""
Platera Backend — Account Resolution Tests
==========================================

What:  Session → local account resolution against a real SQLite database.

What we test:
    ✅ No session → None, no provider call
    ✅ Linked external id → that exact row, no writes, no duplicates
    ✅ Unlinked id + new email → exactly one new row
    ✅ Unlinked id + known email → link, still one row for the email
    ✅ Duplicate rows for one email → merged into the session's account
    ✅ Concurrent creation → the winner is returned and linked
    ✅ Provider failure / failed merge → logged, never raised
"""

from unittest.mock import patch

import pytest
from sqlalchemy import func, select, update

from platera.exceptions import IdentityProviderError
from platera.models import Comment, Recipe, Review, SavedRecipe, User
from platera.services import account_service as account_module
from platera.services.account_service import AccountService, find_users_by_email
from platera.services.identity_base import IdentityProfile


async def count_users(db, email: str) -> int:
    result = await db.execute(
        select(func.count(User.id)).where(func.lower(User.email) == email.lower())
    )
    return result.scalar()


class TestResolveUser:
    """Lookup, lazy creation and linking."""

    def setup_method(self):
        self.service = AccountService()

    @pytest.mark.asyncio
    async def test_no_session_returns_none(self, db_session, identity):
        """Without an external id there is nothing to resolve."""
        assert await self.service.resolve_user(db_session, identity, None) is None
        assert identity.fetch_calls == []

    @pytest.mark.asyncio
    async def test_linked_identity_returns_same_row(self, db_session, identity, make_user):
        """Repeated resolution of a linked identity returns the same row and creates nothing."""
        user = await make_user("linked@example.com", external_id="user_linked")

        first = await self.service.resolve_user(db_session, identity, "user_linked")
        second = await self.service.resolve_user(db_session, identity, "user_linked")

        assert first.id == user.id
        assert second.id == user.id
        assert identity.fetch_calls == []
        assert await count_users(db_session, "linked@example.com") == 1

    @pytest.mark.asyncio
    async def test_new_identity_creates_one_user(self, db_session, identity):
        """Unknown identity with an unknown email creates exactly one row."""
        identity.sign_in("user_new", "New.Cook@Example.com", first_name="Asha", last_name="Rao")

        user = await self.service.resolve_user(db_session, identity, "user_new")

        assert user is not None
        assert user.external_id == "user_new"
        assert user.email == "new.cook@example.com"
        assert user.name == "Asha Rao"
        assert await count_users(db_session, "new.cook@example.com") == 1

        again = await self.service.resolve_user(db_session, identity, "user_new")
        assert again.id == user.id
        assert await count_users(db_session, "new.cook@example.com") == 1

    @pytest.mark.asyncio
    async def test_name_defaults_to_chef(self, db_session, identity):
        """Missing first and last name fall back to "Chef"."""
        identity.sign_in("user_anon", "anon@example.com")

        user = await self.service.resolve_user(db_session, identity, "user_anon")

        assert user.name == "Chef"

    @pytest.mark.asyncio
    async def test_existing_email_is_linked_not_duplicated(self, db_session, identity, make_user):
        """An unlinked row with the same email receives the external id."""
        existing = await make_user("cook@example.com")
        identity.sign_in("user_cook", "COOK@example.com")

        user = await self.service.resolve_user(db_session, identity, "user_cook")

        assert user.id == existing.id
        assert user.external_id == "user_cook"
        assert await count_users(db_session, "cook@example.com") == 1

    @pytest.mark.asyncio
    async def test_profile_without_email_returns_none(self, db_session, identity):
        """No email from the provider → no account, no error."""
        identity.sign_in("user_noemail", None)

        assert await self.service.resolve_user(db_session, identity, "user_noemail") is None
        assert (await db_session.execute(select(func.count(User.id)))).scalar() == 0

    @pytest.mark.asyncio
    async def test_unknown_profile_returns_none(self, db_session, identity):
        """The provider has no such user (404) → None."""
        assert await self.service.resolve_user(db_session, identity, "user_ghost") is None
        assert identity.fetch_calls == ["user_ghost"]

    @pytest.mark.asyncio
    async def test_provider_failure_is_not_fatal(self, db_session, identity):
        """Provider errors during lazy sync are logged; resolution returns None."""
        identity.sign_in("user_down", "down@example.com")
        identity.error = IdentityProviderError()

        assert await self.service.resolve_user(db_session, identity, "user_down") is None


class TestConflictRetry:
    """Uniqueness conflicts while creating the local account."""

    def setup_method(self):
        self.service = AccountService()

    @pytest.mark.asyncio
    async def test_create_conflict_returns_linked_winner(self, db_session, make_user):
        """A concurrent row with the same email wins; it is returned and linked."""
        winner = await make_user("race@example.com")
        profile = IdentityProfile(external_id="user_race", email="race@example.com")

        user = await self.service._create(db_session, profile)

        assert user.id == winner.id
        assert user.external_id == "user_race"
        assert await count_users(db_session, "race@example.com") == 1

    @pytest.mark.asyncio
    async def test_create_conflict_on_external_id(self, db_session, make_user):
        """A concurrent row already carrying the external id is returned as is."""
        winner = await make_user("first@example.com", external_id="user_dup")
        profile = IdentityProfile(external_id="user_dup", email="second@example.com")

        user = await self.service._create(db_session, profile)

        assert user.id == winner.id
        assert await count_users(db_session, "second@example.com") == 0


class TestDuplicateReconciliation:
    """Rows whose emails differ only by case are merged into the session's account."""

    def setup_method(self):
        self.service = AccountService()

    @pytest.mark.asyncio
    async def test_stale_content_moves_to_master(self, db_session, identity, make_user, make_recipe):
        """Recipes, reviews and comments move; bookmarks are dropped; the stale row is deleted."""
        stale = await make_user("Chef@Example.com", age_days=30)
        master = await make_user("chef@example.com", external_id="user_master")
        other = await make_user("other@example.com")

        stale_recipes = [await make_recipe(stale, title=f"Dal {i}") for i in range(2)]
        other_recipe = await make_recipe(other, title="Biryani")
        db_session.add_all([
            Review(recipe_id=other_recipe.id, user_id=stale.id, rating=4),
            Comment(recipe_id=other_recipe.id, user_id=stale.id, content="Lovely"),
            Comment(recipe_id=stale_recipes[0].id, user_id=stale.id, content="Note to self"),
            SavedRecipe(user_id=stale.id, recipe_id=other_recipe.id),
        ])
        await db_session.flush()
        stale_id = stale.id

        resolved = await self.service.resolve_user(db_session, identity, "user_master")

        assert resolved.id == master.id
        assert await count_users(db_session, "chef@example.com") == 1
        assert await db_session.get(User, stale_id) is None

        recipes = (await db_session.execute(
            select(func.count(Recipe.id)).where(Recipe.author_id == master.id)
        )).scalar()
        reviews = (await db_session.execute(
            select(func.count(Review.id)).where(Review.user_id == master.id)
        )).scalar()
        comments = (await db_session.execute(
            select(func.count(Comment.id)).where(Comment.user_id == master.id)
        )).scalar()
        saved = (await db_session.execute(select(func.count(SavedRecipe.id)))).scalar()
        assert (recipes, reviews, comments, saved) == (2, 1, 2, 0)

    @pytest.mark.asyncio
    async def test_session_user_is_master_even_when_newer(self, db_session, identity, make_user, make_recipe):
        """
        Older A owns 3 recipes; newer B is the session's account.
        B survives, A's 3 recipes move to B, A is deleted.
        """
        user_a = await make_user("Chef@example.com", age_days=365)
        user_b = await make_user("chef@example.com", external_id="user_b")
        for i in range(3):
            await make_recipe(user_a, title=f"Recipe {i}")
        a_id = user_a.id

        resolved = await self.service.resolve_user(db_session, identity, "user_b")

        assert resolved.id == user_b.id
        remaining = await find_users_by_email(db_session, "chef@example.com")
        assert [u.id for u in remaining] == [user_b.id]
        authors = (await db_session.execute(select(Recipe.author_id))).scalars().all()
        assert authors == [user_b.id] * 3
        assert await db_session.get(User, a_id) is None

    @pytest.mark.asyncio
    async def test_lazy_sync_then_merge(self, db_session, identity, make_user, make_recipe):
        """A first sign-in links to the exact-match row, then absorbs the case variant."""
        variant = await make_user("Baker@Example.com", age_days=10)
        exact = await make_user("baker@example.com", age_days=5)
        await make_recipe(variant)
        identity.sign_in("user_baker", "baker@example.com")

        user = await self.service.resolve_user(db_session, identity, "user_baker")

        assert user.id == exact.id
        assert user.external_id == "user_baker"
        assert await count_users(db_session, "baker@example.com") == 1
        owner = (await db_session.execute(select(Recipe.author_id))).scalar_one()
        assert owner == exact.id

    @pytest.mark.asyncio
    async def test_failed_merge_is_isolated(self, db_session, identity, make_user, make_recipe):
        """A merge that fails midway is rolled back; the master is still returned."""
        stale = await make_user("Iso@example.com", age_days=3)
        master = await make_user("iso@example.com", external_id="user_iso")
        recipe = await make_recipe(stale)
        stale_id, recipe_id = stale.id, recipe.id

        async def failing_merge(db, stale_id, master_id):
            async with db.begin_nested():
                await db.execute(
                    update(Recipe).where(Recipe.author_id == stale_id).values(author_id=master_id)
                )
                raise RuntimeError("connection reset")

        with patch("platera.services.account_service.merge_stale_user", side_effect=failing_merge):
            resolved = await self.service.resolve_user(db_session, identity, "user_iso")

        assert resolved.id == master.id
        owner = (await db_session.execute(
            select(Recipe.author_id).where(Recipe.id == recipe_id)
        )).scalar_one()
        assert owner == stale_id
        assert (await db_session.execute(
            select(func.count(User.id)).where(User.id == stale_id)
        )).scalar() == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_other_merges(self, db_session, make_user):
        """Each stale row merges independently."""
        await make_user("Multi@example.com", age_days=3)
        await make_user("MULTI@example.com", age_days=2)
        master = await make_user("multi@example.com", external_id="user_multi")

        real_merge = account_module.merge_stale_user
        calls = []

        async def flaky_merge(db, stale_id, master_id):
            calls.append(stale_id)
            if len(calls) == 1:
                raise RuntimeError("deadlock detected")
            return await real_merge(db, stale_id=stale_id, master_id=master_id)

        with patch.object(account_module, "merge_stale_user", side_effect=flaky_merge):
            reports = await self.service.reconcile_duplicates(db_session, master)

        assert len(calls) == 2
        assert len(reports) == 1
        assert reports[0].user_deleted is True
        assert await count_users(db_session, "multi@example.com") == 2

    @pytest.mark.asyncio
    async def test_no_duplicates_no_reports(self, db_session, make_user):
        user = await make_user("solo@example.com", external_id="user_solo")
        assert await self.service.reconcile_duplicates(db_session, user) == []
