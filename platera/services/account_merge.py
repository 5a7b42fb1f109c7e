"""
Platera Backend — Duplicate Account Merge
=========================================

What:  Moves everything a stale User owns onto the master User and deletes the
       stale row, leaving no orphaned or double-owned foreign keys.
Who:   AccountService.reconcile_duplicates() during session resolution.

Steps (one SAVEPOINT per stale user, so a failure rolls back all of them):
    1. recipes.author_id   stale → master
    2. reviews.user_id     stale → master
       (stale reviews of recipes the master already rated are dropped first;
        reviews are unique per (user, recipe) and the master's rating stays)
    3. saved_recipes       stale rows deleted, never transferred
       (a recipe bookmarked by both accounts would break (user, recipe) uniqueness)
    4. comments.user_id    stale → master
    5. users               stale row deleted

Concurrency:
    Two requests may merge the same stale row at once. Every step is an
    idempotent UPDATE/DELETE keyed on stale_id, so the second run touches zero
    rows and completes without error.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from platera.models import Comment, Recipe, Review, SavedRecipe, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeReport:
    """Row counts touched while absorbing one stale account."""

    stale_id: uuid.UUID
    master_id: uuid.UUID
    recipes_moved: int = 0
    reviews_moved: int = 0
    reviews_dropped: int = 0
    comments_moved: int = 0
    saved_dropped: int = 0
    user_deleted: bool = False

    @property
    def changed(self) -> bool:
        return self.user_deleted or any(
            (
                self.recipes_moved,
                self.reviews_moved,
                self.reviews_dropped,
                self.comments_moved,
                self.saved_dropped,
            )
        )


async def merge_stale_user(
    db: AsyncSession,
    stale_id: uuid.UUID,
    master_id: uuid.UUID,
) -> MergeReport:
    """
    Absorb `stale_id` into `master_id` atomically.

    Args:
        db: Session of the current request; the merge runs in a nested
            transaction (SAVEPOINT) inside it.
        stale_id: Account being absorbed and deleted.
        master_id: Surviving account.

    Returns:
        MergeReport with the affected row counts. All zero on an already
        merged state.

    Raises:
        ValueError: stale_id and master_id are the same account.
        sqlalchemy.exc.SQLAlchemyError: the SAVEPOINT has been rolled back;
            nothing from this merge is applied.
    """
    if stale_id == master_id:
        raise ValueError("Cannot merge an account into itself")

    async with db.begin_nested():
        recipes = await db.execute(
            update(Recipe)
            .where(Recipe.author_id == stale_id)
            .values(author_id=master_id)
        )

        already_rated = select(Review.recipe_id).where(Review.user_id == master_id)
        dropped_reviews = await db.execute(
            delete(Review)
            .where(Review.user_id == stale_id, Review.recipe_id.in_(already_rated))
        )
        reviews = await db.execute(
            update(Review)
            .where(Review.user_id == stale_id)
            .values(user_id=master_id)
        )

        saved = await db.execute(
            delete(SavedRecipe)
            .where(SavedRecipe.user_id == stale_id)
        )

        comments = await db.execute(
            update(Comment)
            .where(Comment.user_id == stale_id)
            .values(user_id=master_id)
        )

        deleted = await db.execute(
            delete(User)
            .where(User.id == stale_id)
        )

    report = MergeReport(
        stale_id=stale_id,
        master_id=master_id,
        recipes_moved=recipes.rowcount,
        reviews_moved=reviews.rowcount,
        reviews_dropped=dropped_reviews.rowcount,
        comments_moved=comments.rowcount,
        saved_dropped=saved.rowcount,
        user_deleted=deleted.rowcount > 0,
    )
    if report.changed:
        logger.info(
            "Merged user %s into %s: %d recipes, %d reviews (%d dropped), "
            "%d comments moved, %d bookmarks dropped",
            stale_id,
            master_id,
            report.recipes_moved,
            report.reviews_moved,
            report.reviews_dropped,
            report.comments_moved,
            report.saved_dropped,
        )
    return report
