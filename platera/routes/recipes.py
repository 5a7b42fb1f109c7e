"""
Platera Backend — Recipe Route Handlers
=======================================

What:  Community feed, recipe detail, publishing, editing and bookmarking.
How:   Extracts query parameters and bodies, delegates to RecipeService /
       SavedService, returns JSON.
Who:   The community feed, recipe detail page and the recipe editor.

Auth:
    - GET routes are public; the detail view reports `is_saved` for a
      signed-in viewer.
    - POST / PATCH / DELETE require a resolved account (401 otherwise);
      PATCH / DELETE additionally require authorship (403).
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from platera.database import get_db_session
from platera.dependencies import get_current_user, require_user
from platera.models import User
from platera.models.recipe import RecipeCategory
from platera.schemas.common import ErrorResponse
from platera.schemas.recipe import (
    RecipeCreate,
    RecipeDetail,
    RecipeFilters,
    RecipeListResponse,
    RecipeUpdate,
    SaveToggleResponse,
)
from platera.services.recipe_service import recipe_service
from platera.services.saved_service import saved_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Recipes"])


@router.get(
    "/recipes",
    response_model=RecipeListResponse,
    responses={
        200: {"description": "Page of recipes", "model": RecipeListResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Community feed",
)
async def list_recipes(
    response: Response,
    category: Optional[RecipeCategory] = Query(default=None, description="VEG, NON_VEG or EGG"),
    max_time: Optional[int] = Query(default=None, ge=0, description="Maximum total time in minutes"),
    min_rating: Optional[float] = Query(default=None, ge=0, le=5, description="Minimum average rating"),
    search: Optional[str] = Query(default=None, max_length=100, description="Title or description contains"),
    author_id: Optional[uuid.UUID] = Query(default=None),
    sort: str = Query(default="newest", pattern="^(newest|topRated|mostSaved)$"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeListResponse:
    filters = RecipeFilters(
        category=category,
        max_time=max_time,
        min_rating=min_rating,
        search=search,
        author_id=author_id,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    result = await recipe_service.list_recipes(db, filters)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "/recipes",
    status_code=201,
    response_model=RecipeDetail,
    responses={
        400: {"description": "Too many images or invalid data", "model": ErrorResponse},
        401: {"description": "Not signed in", "model": ErrorResponse},
    },
    summary="Publish a recipe",
)
async def create_recipe(
    body: RecipeCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeDetail:
    return await recipe_service.create_recipe(db, user, body)


@router.get(
    "/recipes/{recipe_id}",
    response_model=RecipeDetail,
    responses={404: {"description": "Recipe not found", "model": ErrorResponse}},
    summary="Recipe detail with reviews and comments",
)
async def get_recipe(
    recipe_id: uuid.UUID,
    user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeDetail:
    return await recipe_service.get_recipe(db, recipe_id, viewer=user)


@router.patch(
    "/recipes/{recipe_id}",
    response_model=RecipeDetail,
    responses={
        403: {"description": "Not the author", "model": ErrorResponse},
        404: {"description": "Recipe not found", "model": ErrorResponse},
    },
    summary="Edit a recipe",
)
async def update_recipe(
    recipe_id: uuid.UUID,
    body: RecipeUpdate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeDetail:
    return await recipe_service.update_recipe(db, user, recipe_id, body)


@router.delete(
    "/recipes/{recipe_id}",
    status_code=204,
    responses={
        403: {"description": "Not the author", "model": ErrorResponse},
        404: {"description": "Recipe not found", "model": ErrorResponse},
    },
    summary="Delete a recipe",
)
async def delete_recipe(
    recipe_id: uuid.UUID,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await recipe_service.delete_recipe(db, user, recipe_id)
    return Response(status_code=204)


@router.post(
    "/recipes/{recipe_id}/save",
    response_model=SaveToggleResponse,
    responses={404: {"description": "Recipe not found", "model": ErrorResponse}},
    summary="Toggle a bookmark",
)
async def toggle_saved(
    recipe_id: uuid.UUID,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> SaveToggleResponse:
    saved = await saved_service.toggle_saved(db, user, recipe_id)
    return SaveToggleResponse(recipe_id=recipe_id, saved=saved)
