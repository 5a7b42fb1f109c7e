"""Comments: list and post per recipe, delete your own."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from platera.database import get_db_session
from platera.dependencies import require_user
from platera.models import User
from platera.schemas.comment import CommentCreate, CommentResponse
from platera.schemas.common import ErrorResponse
from platera.services.comment_service import comment_service

router = APIRouter(prefix="/api", tags=["Comments"])


@router.get(
    "/recipes/{recipe_id}/comments",
    response_model=List[CommentResponse],
    summary="Comments on a recipe, newest first",
)
async def list_comments(
    recipe_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> List[CommentResponse]:
    return await comment_service.list_comments(db, recipe_id)


@router.post(
    "/recipes/{recipe_id}/comments",
    status_code=201,
    response_model=CommentResponse,
    responses={
        400: {"description": "Empty comment", "model": ErrorResponse},
        401: {"description": "Not signed in", "model": ErrorResponse},
        404: {"description": "Recipe not found", "model": ErrorResponse},
    },
    summary="Post a comment",
)
async def create_comment(
    recipe_id: uuid.UUID,
    body: CommentCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentResponse:
    return await comment_service.create_comment(db, user, recipe_id, body.content)


@router.delete(
    "/comments/{comment_id}",
    status_code=204,
    responses={
        403: {"description": "Not your comment", "model": ErrorResponse},
        404: {"description": "Comment not found", "model": ErrorResponse},
    },
    summary="Delete your comment",
)
async def delete_comment(
    comment_id: uuid.UUID,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await comment_service.delete_comment(db, user, comment_id)
    return Response(status_code=204)
