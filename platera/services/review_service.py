"""
Platera Backend — Review Service
================================

What:  Star ratings on recipes, one per (user, recipe).
How:   A second submission by the same user updates the existing review
       instead of inserting; the unique constraint backs this up under
       concurrency (→ ConflictError).
Who:   /api/recipes/{id}/reviews and /api/reviews/{id}.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from platera.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from platera.models import Recipe, Review, User
from platera.schemas.review import ReviewResponse

logger = logging.getLogger(__name__)


class ReviewService:

    async def upsert_review(
        self,
        db: AsyncSession,
        user: User,
        recipe_id: uuid.UUID,
        rating: int,
        body: Optional[str] = None,
    ) -> ReviewResponse:
        """
        Create or replace the user's review of a recipe.

        Raises:
            NotFoundError: recipe does not exist (→ 404)
            ValidationError: rating out of range, or the author rates their own recipe (→ 400)
            ConflictError: a concurrent submission won the insert (→ 409)
        """
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", field="rating")

        recipe = await db.get(Recipe, recipe_id)
        if recipe is None:
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))
        if recipe.author_id == user.id:
            raise ValidationError("You cannot review your own recipe", field="recipe_id")

        body = body.strip() if body and body.strip() else None

        result = await db.execute(
            select(Review).where(Review.user_id == user.id, Review.recipe_id == recipe_id)
        )
        review = result.scalar_one_or_none()

        try:
            if review is None:
                review = Review(recipe_id=recipe_id, user_id=user.id, rating=rating, body=body)
                async with db.begin_nested():
                    db.add(review)
                logger.info("User %s reviewed recipe %s (%d stars)", user.id, recipe_id, rating)
            else:
                review.rating = rating
                review.body = body
                await db.flush()
                logger.info("User %s updated review %s (%d stars)", user.id, review.id, rating)
        except IntegrityError:
            logger.info("Concurrent review submission by %s for recipe %s", user.id, recipe_id)
            raise ConflictError(
                message="Your review was already submitted. Please refresh and try again.",
                context={"recipe_id": str(recipe_id)},
            )
        except SQLAlchemyError as e:
            logger.error("Database error saving review: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not save your review. Please try again.")

        return _to_response(review, user)

    async def list_reviews(self, db: AsyncSession, recipe_id: uuid.UUID) -> List[ReviewResponse]:
        """Reviews of a recipe, newest first. Missing recipe → NotFoundError."""
        try:
            if await db.get(Recipe, recipe_id) is None:
                raise NotFoundError(resource="recipe", resource_id=str(recipe_id))
            result = await db.execute(
                select(Review)
                .options(joinedload(Review.user))
                .where(Review.recipe_id == recipe_id)
                .order_by(desc(Review.created_at))
            )
            return [ReviewResponse.model_validate(r) for r in result.scalars().all()]
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error listing reviews for %s: %s", recipe_id, str(e))
            raise DatabaseError(message="Could not retrieve reviews. Please try again.")

    async def delete_review(self, db: AsyncSession, user: User, review_id: uuid.UUID) -> None:
        review = await db.get(Review, review_id)
        if review is None:
            raise NotFoundError(resource="review", resource_id=str(review_id))
        if review.user_id != user.id:
            raise PermissionDeniedError(context={"review_id": str(review_id)})
        await db.delete(review)
        await db.flush()
        logger.info("Review %s deleted by user %s", review_id, user.id)


def _to_response(review: Review, user: User) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        recipe_id=review.recipe_id,
        rating=review.rating,
        body=review.body,
        user={"id": user.id, "name": user.name, "profile_image": user.profile_image},
        created_at=review.created_at,
        updated_at=review.updated_at,
    )


review_service = ReviewService()
