"""Ratings: list and submit per recipe, delete your own."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from platera.database import get_db_session
from platera.dependencies import require_user
from platera.models import User
from platera.schemas.common import ErrorResponse
from platera.schemas.review import ReviewCreate, ReviewResponse
from platera.services.review_service import review_service

router = APIRouter(prefix="/api", tags=["Reviews"])


@router.get(
    "/recipes/{recipe_id}/reviews",
    response_model=List[ReviewResponse],
    responses={404: {"description": "Recipe not found", "model": ErrorResponse}},
    summary="Reviews of a recipe, newest first",
)
async def list_reviews(
    recipe_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> List[ReviewResponse]:
    return await review_service.list_reviews(db, recipe_id)


@router.post(
    "/recipes/{recipe_id}/reviews",
    response_model=ReviewResponse,
    responses={
        400: {"description": "Reviewing your own recipe", "model": ErrorResponse},
        401: {"description": "Not signed in", "model": ErrorResponse},
        404: {"description": "Recipe not found", "model": ErrorResponse},
    },
    summary="Rate a recipe (a second submission replaces the first)",
)
async def upsert_review(
    recipe_id: uuid.UUID,
    body: ReviewCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.upsert_review(db, user, recipe_id, body.rating, body.body)


@router.delete(
    "/reviews/{review_id}",
    status_code=204,
    responses={
        403: {"description": "Not your review", "model": ErrorResponse},
        404: {"description": "Review not found", "model": ErrorResponse},
    },
    summary="Delete your review",
)
async def delete_review(
    review_id: uuid.UUID,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await review_service.delete_review(db, user, review_id)
    return Response(status_code=204)
