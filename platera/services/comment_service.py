"""Comments on recipes: list newest first, create (trimmed), owner-only delete."""

import logging
import uuid
from typing import List

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from platera.exceptions import DatabaseError, NotFoundError, PermissionDeniedError, ValidationError
from platera.models import Comment, Recipe, User
from platera.schemas.comment import CommentResponse

logger = logging.getLogger(__name__)


class CommentService:

    async def list_comments(self, db: AsyncSession, recipe_id: uuid.UUID) -> List[CommentResponse]:
        try:
            result = await db.execute(
                select(Comment)
                .options(joinedload(Comment.user))
                .where(Comment.recipe_id == recipe_id)
                .order_by(desc(Comment.created_at))
            )
            return [CommentResponse.model_validate(c) for c in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Database error listing comments for %s: %s", recipe_id, str(e))
            raise DatabaseError(message="Could not retrieve comments. Please try again.")

    async def create_comment(
        self,
        db: AsyncSession,
        user: User,
        recipe_id: uuid.UUID,
        content: str,
    ) -> CommentResponse:
        """
        Raises:
            ValidationError: content is empty after trimming (→ 400)
            NotFoundError: recipe does not exist (→ 404)
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content is required", field="content")

        if await db.get(Recipe, recipe_id) is None:
            raise NotFoundError(resource="recipe", resource_id=str(recipe_id))

        comment = Comment(recipe_id=recipe_id, user_id=user.id, content=content)
        try:
            db.add(comment)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving comment: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not post your comment. Please try again.")

        logger.info("User %s commented on recipe %s", user.id, recipe_id)
        return CommentResponse(
            id=comment.id,
            recipe_id=recipe_id,
            content=comment.content,
            user={"id": user.id, "name": user.name, "profile_image": user.profile_image},
            created_at=comment.created_at,
        )

    async def delete_comment(self, db: AsyncSession, user: User, comment_id: uuid.UUID) -> None:
        comment = await db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError(resource="comment", resource_id=str(comment_id))
        if comment.user_id != user.id:
            raise PermissionDeniedError(context={"comment_id": str(comment_id)})
        await db.delete(comment)
        await db.flush()
        logger.info("Comment %s deleted by user %s", comment_id, user.id)


comment_service = CommentService()
