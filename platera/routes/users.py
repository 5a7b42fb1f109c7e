"""
Platera Backend — Current Account Routes
========================================

What:  The signed-in user's profile, dashboard and bookmarks.
Who:   The navbar avatar, the dashboard page and the saved-recipes page.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from platera.database import get_db_session
from platera.dependencies import require_user
from platera.models import User
from platera.schemas.common import ErrorResponse
from platera.schemas.recipe import RecipeListItem
from platera.schemas.user import UserResponse
from platera.services.recipe_service import recipe_service
from platera.services.saved_service import saved_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get(
    "/me",
    response_model=UserResponse,
    responses={401: {"description": "Not signed in", "model": ErrorResponse}},
    summary="Current account",
)
async def get_me(user: User = Depends(require_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.get(
    "/me/recipes",
    response_model=List[RecipeListItem],
    summary="Recipes authored by the current account, newest first",
)
async def list_my_recipes(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[RecipeListItem]:
    return await recipe_service.list_user_recipes(db, user)


@router.get(
    "/me/saved",
    response_model=List[RecipeListItem],
    summary="Recipes bookmarked by the current account",
)
async def list_my_saved(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[RecipeListItem]:
    return await saved_service.list_saved(db, user)
