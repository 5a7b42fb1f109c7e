"""
Platera Backend — Recipe Model
==============================

What:  A published recipe owned by one user (`author_id`).
How:   Ingredients, steps and image URLs are JSON columns; images are media
       host URLs produced by signed direct uploads.

Query patterns:
    - Community feed: newest first, filtered by category / total time
      → idx_recipes_created_at, idx_recipes_category
    - Dashboard: WHERE author_id = :user → idx_recipes_author_id
"""

import enum
import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from platera.database import Base
from platera.models.mixins import IdMixin, TimestampMixin

if TYPE_CHECKING:
    from platera.models.user import User


class RecipeCategory(str, enum.Enum):
    VEG = "VEG"
    NON_VEG = "NON_VEG"
    EGG = "EGG"


class Recipe(IdMixin, TimestampMixin, Base):
    __tablename__ = "recipes"

    author_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[RecipeCategory] = mapped_column(
        Enum(RecipeCategory, name="recipe_category"),
        nullable=False,
    )
    servings: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Minutes; total_time = prep_time + cook_time, kept denormalized for filtering
    prep_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cook_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ingredients: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    steps: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    author: Mapped["User"] = relationship(lazy="raise")

    __table_args__ = (
        Index("idx_recipes_author_id", "author_id"),
        Index("idx_recipes_category", "category"),
        Index("idx_recipes_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, title='{self.title}', author_id={self.author_id})>"
