"""
Platera Backend — Recipe Schemas
================================

What:  Request bodies, query filters and response shapes for recipes.
How:   List items are compact cards (cover image, counts, average rating);
       the detail view adds ingredients, steps, reviews and comments.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from platera.models.recipe import RecipeCategory
from platera.schemas.comment import CommentResponse
from platera.schemas.review import ReviewResponse
from platera.schemas.user import UserSummary

SORT_OPTIONS = {"newest", "topRated", "mostSaved"}


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class Ingredient(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    quantity: str = Field(min_length=1, max_length=60)
    unit: Optional[str] = Field(default=None, max_length=30)


class RecipeCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: RecipeCategory
    servings: int = Field(default=1, ge=1, le=100)
    prep_time: int = Field(default=0, ge=0, description="Minutes")
    cook_time: int = Field(default=0, ge=0, description="Minutes")
    ingredients: List[Ingredient] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list, description="Media host URLs")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class RecipeUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[RecipeCategory] = None
    servings: Optional[int] = Field(default=None, ge=1, le=100)
    prep_time: Optional[int] = Field(default=None, ge=0)
    cook_time: Optional[int] = Field(default=None, ge=0)
    ingredients: Optional[List[Ingredient]] = None
    steps: Optional[List[str]] = None
    images: Optional[List[str]] = None


class RecipeFilters(BaseModel):
    """
    Feed query parameters.

        category:   exact match
        max_time:   total_time <= max_time (minutes)
        min_rating: average rating >= min_rating; unrated recipes count as 0
        search:     case-insensitive substring of title or description
        author_id:  only this author's recipes
        sort:       newest (default), topRated, mostSaved
    """
    category: Optional[RecipeCategory] = None
    max_time: Optional[int] = Field(default=None, ge=0)
    min_rating: Optional[float] = Field(default=None, ge=0, le=5)
    search: Optional[str] = Field(default=None, max_length=100)
    author_id: Optional[uuid.UUID] = None
    sort: str = "newest"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)

    @field_validator("sort")
    @classmethod
    def validate_sort(cls, v: str) -> str:
        if v not in SORT_OPTIONS:
            raise ValueError(f"Invalid sort '{v}'. Must be one of: {sorted(SORT_OPTIONS)}")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class RecipeListItem(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    category: RecipeCategory
    servings: int
    total_time: int
    cover_image: Optional[str] = Field(default=None, description="Optimized first image")
    author: UserSummary
    average_rating: float = Field(description="0 when the recipe has no reviews")
    review_count: int = 0
    comment_count: int = 0
    save_count: int = 0
    created_at: datetime


class RecipeListResponse(BaseModel):
    recipes: List[RecipeListItem]
    total_count: int = Field(description="Recipes matching the filters")
    limit: int
    offset: int
    has_more: bool


class RecipeDetail(RecipeListItem):
    prep_time: int
    cook_time: int
    ingredients: List[Ingredient]
    steps: List[str]
    images: List[str]
    updated_at: datetime
    is_saved: bool = Field(default=False, description="Bookmarked by the current user")
    reviews: List[ReviewResponse] = Field(default_factory=list)
    comments: List[CommentResponse] = Field(default_factory=list)


class SaveToggleResponse(BaseModel):
    recipe_id: uuid.UUID
    saved: bool
