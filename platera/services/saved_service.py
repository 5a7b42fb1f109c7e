"""Bookmarks: toggle a recipe in or out of the user's saved list."""

import logging
import uuid
from typing import List

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from platera.exceptions import NotFoundError
from platera.models import Recipe, SavedRecipe, User
from platera.schemas.recipe import RecipeListItem
from platera.services.recipe_service import feed_select, to_list_item

logger = logging.getLogger(__name__)


class SavedService:

    async def toggle_saved(self, db: AsyncSession, user: User, recipe_id: uuid.UUID) -> bool:
        """
        Flip the bookmark for (user, recipe).

        Returns:
            True when the recipe is saved after the call, False when removed.
        """
        if await db.get(Recipe, recipe_id) is None:
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))

        removed = await db.execute(
            delete(SavedRecipe).where(
                SavedRecipe.user_id == user.id,
                SavedRecipe.recipe_id == recipe_id,
            )
        )
        if removed.rowcount:
            logger.info("User %s unsaved recipe %s", user.id, recipe_id)
            return False

        try:
            async with db.begin_nested():
                db.add(SavedRecipe(user_id=user.id, recipe_id=recipe_id))
        except IntegrityError:
            # Double-click: another request saved it first
            logger.info("Recipe %s already saved by user %s", recipe_id, user.id)
        else:
            logger.info("User %s saved recipe %s", user.id, recipe_id)
        return True

    async def list_saved(self, db: AsyncSession, user: User) -> List[RecipeListItem]:
        """The user's bookmarked recipes, most recently saved first."""
        query = (
            feed_select()
            .join(SavedRecipe, SavedRecipe.recipe_id == Recipe.id)
            .where(SavedRecipe.user_id == user.id)
            .order_by(desc(SavedRecipe.created_at))
        )
        rows = (await db.execute(query)).all()
        return [to_list_item(row) for row in rows]


saved_service = SavedService()
