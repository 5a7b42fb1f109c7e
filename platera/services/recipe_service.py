"""
Platera Backend — Recipe Service
================================

What:  Community feed, recipe detail, dashboard and owner-only CRUD.
How:   Feed rows are one SELECT joining the author with correlated
       aggregate subqueries (average rating, review / comment / save counts),
       so filters and sorts on those values run in the database.
Who:   /api/recipes routes and GET /api/users/me/recipes.

Feed query (sort=topRated, min_rating=4):
    SELECT recipes.*, users.*, avg_rating, review_count, comment_count, save_count
    FROM recipes JOIN users ON users.id = recipes.author_id
    WHERE avg_rating >= 4
    ORDER BY avg_rating DESC, review_count DESC, recipes.created_at DESC
    LIMIT :limit OFFSET :offset
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import Select, desc, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from platera.config import settings
from platera.exceptions import DatabaseError, NotFoundError, PermissionDeniedError, ValidationError
from platera.models import Comment, Recipe, Review, SavedRecipe, User
from platera.schemas.comment import CommentResponse
from platera.schemas.recipe import (
    RecipeCreate,
    RecipeDetail,
    RecipeFilters,
    RecipeListItem,
    RecipeListResponse,
    RecipeUpdate,
)
from platera.schemas.review import ReviewResponse
from platera.schemas.user import UserSummary
from platera.services.upload_service import first_image

logger = logging.getLogger(__name__)

COVER_WIDTH = 800
COVER_HEIGHT = 600

LIKE_ESCAPE = "\\"


# ── Aggregate columns ─────────────────────────────────────────────────────

avg_rating_col = (
    select(func.coalesce(func.avg(Review.rating), 0))
    .where(Review.recipe_id == Recipe.id)
    .correlate(Recipe)
    .scalar_subquery()
    .label("avg_rating")
)
review_count_col = (
    select(func.count(Review.id))
    .where(Review.recipe_id == Recipe.id)
    .correlate(Recipe)
    .scalar_subquery()
    .label("review_count")
)
comment_count_col = (
    select(func.count(Comment.id))
    .where(Comment.recipe_id == Recipe.id)
    .correlate(Recipe)
    .scalar_subquery()
    .label("comment_count")
)
save_count_col = (
    select(func.count(SavedRecipe.id))
    .where(SavedRecipe.recipe_id == Recipe.id)
    .correlate(Recipe)
    .scalar_subquery()
    .label("save_count")
)


def feed_select() -> Select:
    return (
        select(Recipe, User, avg_rating_col, review_count_col, comment_count_col, save_count_col)
        .join(User, Recipe.author_id == User.id)
    )


def escape_like(text: str) -> str:
    """Match `%` and `_` literally in a LIKE pattern."""
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _filter_conditions(filters: RecipeFilters) -> list:
    conditions = []
    if filters.category is not None:
        conditions.append(Recipe.category == filters.category)
    if filters.max_time is not None:
        conditions.append(Recipe.total_time <= filters.max_time)
    if filters.min_rating is not None:
        conditions.append(avg_rating_col.element >= filters.min_rating)
    if filters.author_id is not None:
        conditions.append(Recipe.author_id == filters.author_id)
    if filters.search and filters.search.strip():
        pattern = f"%{escape_like(filters.search.strip())}%"
        conditions.append(or_(
            Recipe.title.ilike(pattern, escape=LIKE_ESCAPE),
            Recipe.description.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    return conditions


def _ordering(sort: str) -> list:
    if sort == "topRated":
        return [desc(avg_rating_col), desc(review_count_col), desc(Recipe.created_at)]
    if sort == "mostSaved":
        return [desc(save_count_col), desc(Recipe.created_at)]
    return [desc(Recipe.created_at), desc(Recipe.id)]


def to_list_item(row) -> RecipeListItem:
    recipe, author, avg_rating, review_count, comment_count, save_count = row
    return RecipeListItem(
        id=recipe.id,
        title=recipe.title,
        description=recipe.description,
        category=recipe.category,
        servings=recipe.servings,
        total_time=recipe.total_time,
        cover_image=first_image(recipe.images or [], width=COVER_WIDTH, height=COVER_HEIGHT),
        author=UserSummary.model_validate(author),
        average_rating=round(float(avg_rating or 0), 2),
        review_count=review_count or 0,
        comment_count=comment_count or 0,
        save_count=save_count or 0,
        created_at=recipe.created_at,
    )


class RecipeService:
    """
    Recipe reads and owner-only writes.

    Reads return response schemas. Writes flush but never commit; the request
    session commits once the route returns.
    """

    async def list_recipes(self, db: AsyncSession, filters: RecipeFilters) -> RecipeListResponse:
        """
        Filtered, sorted, offset-paged feed.

        Raises:
            DatabaseError: query execution failed (→ 500)
        """
        try:
            conditions = _filter_conditions(filters)

            query = (
                feed_select()
                .where(*conditions)
                .order_by(*_ordering(filters.sort))
                .limit(filters.limit)
                .offset(filters.offset)
            )
            rows = (await db.execute(query)).all()

            count_query = select(func.count(Recipe.id)).where(*conditions)
            total_count = (await db.execute(count_query)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing recipes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve recipes. Please try again.",
                context={"error_type": type(e).__name__},
            )

        items = [to_list_item(row) for row in rows]
        return RecipeListResponse(
            recipes=items,
            total_count=total_count,
            limit=filters.limit,
            offset=filters.offset,
            has_more=filters.offset + len(items) < total_count,
        )

    async def list_user_recipes(self, db: AsyncSession, user: User) -> List[RecipeListItem]:
        """Dashboard: every recipe the user authored, newest first, unpaged."""
        query = (
            feed_select()
            .where(Recipe.author_id == user.id)
            .order_by(*_ordering("newest"))
        )
        try:
            rows = (await db.execute(query)).all()
        except SQLAlchemyError as e:
            logger.error("Database error listing recipes of user %s: %s", user.id, str(e))
            raise DatabaseError(message="Could not retrieve your recipes. Please try again.")
        return [to_list_item(row) for row in rows]

    async def get_recipe(
        self,
        db: AsyncSession,
        recipe_id: uuid.UUID,
        viewer: Optional[User] = None,
    ) -> RecipeDetail:
        """
        Full recipe with its reviews and comments, newest first.

        Raises:
            NotFoundError: no recipe with this id (→ 404)
            DatabaseError: query execution failed (→ 500)
        """
        try:
            row = (await db.execute(feed_select().where(Recipe.id == recipe_id))).first()
            if row is None:
                raise NotFoundError(resource="recipe", resource_id=str(recipe_id))

            reviews = (
                await db.execute(
                    select(Review)
                    .options(joinedload(Review.user))
                    .where(Review.recipe_id == recipe_id)
                    .order_by(desc(Review.created_at))
                )
            ).scalars().all()
            comments = (
                await db.execute(
                    select(Comment)
                    .options(joinedload(Comment.user))
                    .where(Comment.recipe_id == recipe_id)
                    .order_by(desc(Comment.created_at))
                )
            ).scalars().all()

            is_saved = False
            if viewer is not None:
                saved = await db.execute(
                    select(SavedRecipe.id).where(
                        SavedRecipe.user_id == viewer.id,
                        SavedRecipe.recipe_id == recipe_id,
                    )
                )
                is_saved = saved.first() is not None
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error fetching recipe %s: %s", recipe_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the recipe. Please try again.",
                context={"recipe_id": str(recipe_id)},
            )

        recipe = row[0]
        item = to_list_item(row)
        return RecipeDetail(
            **item.model_dump(),
            prep_time=recipe.prep_time,
            cook_time=recipe.cook_time,
            ingredients=recipe.ingredients or [],
            steps=recipe.steps or [],
            images=recipe.images or [],
            updated_at=recipe.updated_at,
            is_saved=is_saved,
            reviews=[ReviewResponse.model_validate(r) for r in reviews],
            comments=[CommentResponse.model_validate(c) for c in comments],
        )

    async def create_recipe(self, db: AsyncSession, author: User, data: RecipeCreate) -> RecipeDetail:
        """
        Publish a recipe owned by `author`.

        Raises:
            ValidationError: more images than the upload limit (→ 400)
        """
        _check_image_count(data.images)

        recipe = Recipe(
            author_id=author.id,
            title=data.title,
            description=data.description,
            category=data.category,
            servings=data.servings,
            prep_time=data.prep_time,
            cook_time=data.cook_time,
            total_time=data.prep_time + data.cook_time,
            ingredients=[i.model_dump(exclude_none=True) for i in data.ingredients],
            steps=[s.strip() for s in data.steps if s.strip()],
            images=list(data.images),
        )
        try:
            db.add(recipe)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating recipe for %s: %s", author.id, str(e), exc_info=True)
            raise DatabaseError(message="Could not save the recipe. Please try again.")

        logger.info("Recipe %s created by user %s", recipe.id, author.id)
        return await self.get_recipe(db, recipe.id, viewer=author)

    async def update_recipe(
        self,
        db: AsyncSession,
        user: User,
        recipe_id: uuid.UUID,
        data: RecipeUpdate,
    ) -> RecipeDetail:
        """
        Apply a partial update. Only the author may edit.

        Raises:
            NotFoundError, PermissionDeniedError, ValidationError, DatabaseError
        """
        recipe = await self._get_owned(db, user, recipe_id)
        changes = data.model_dump(exclude_unset=True)

        if "images" in changes and changes["images"] is not None:
            _check_image_count(changes["images"])
        if changes.get("title") is not None:
            changes["title"] = changes["title"].strip()
            if not changes["title"]:
                raise ValidationError("Title is required", field="title")
        if changes.get("steps") is not None:
            changes["steps"] = [s.strip() for s in changes["steps"] if s.strip()]
        if changes.get("ingredients") is not None:
            changes["ingredients"] = [
                {k: v for k, v in i.items() if v is not None} for i in changes["ingredients"]
            ]

        # description is the only nullable column; a null elsewhere means "unchanged"
        for field, value in changes.items():
            if value is None and field != "description":
                continue
            setattr(recipe, field, value)
        recipe.total_time = recipe.prep_time + recipe.cook_time

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating recipe %s: %s", recipe_id, str(e), exc_info=True)
            raise DatabaseError(message="Could not update the recipe. Please try again.")

        logger.info("Recipe %s updated by user %s (%s)", recipe_id, user.id, ", ".join(sorted(changes)))
        return await self.get_recipe(db, recipe_id, viewer=user)

    async def delete_recipe(self, db: AsyncSession, user: User, recipe_id: uuid.UUID) -> None:
        """Delete a recipe; reviews, comments and bookmarks cascade."""
        recipe = await self._get_owned(db, user, recipe_id)
        try:
            await db.delete(recipe)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting recipe %s: %s", recipe_id, str(e), exc_info=True)
            raise DatabaseError(message="Could not delete the recipe. Please try again.")
        logger.info("Recipe %s deleted by user %s", recipe_id, user.id)

    async def _get_owned(self, db: AsyncSession, user: User, recipe_id: uuid.UUID) -> Recipe:
        recipe = await db.get(Recipe, recipe_id)
        if recipe is None:
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))
        if recipe.author_id != user.id:
            logger.warning("User %s attempted to modify recipe %s owned by %s", user.id, recipe_id, recipe.author_id)
            raise PermissionDeniedError(context={"recipe_id": str(recipe_id)})
        return recipe


def _check_image_count(images: list) -> None:
    if len(images) > settings.max_upload_images:
        raise ValidationError(
            f"Maximum {settings.max_upload_images} images allowed",
            field="images",
        )


recipe_service = RecipeService()
