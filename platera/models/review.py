"""A 1-5 star rating with optional text; one per (user, recipe)."""

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from platera.database import Base
from platera.models.mixins import IdMixin, TimestampMixin

if TYPE_CHECKING:
    from platera.models.user import User


class Review(IdMixin, TimestampMixin, Base):
    __tablename__ = "reviews"

    recipe_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("recipes.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship(lazy="raise")

    __table_args__ = (
        UniqueConstraint("user_id", "recipe_id", name="uq_reviews_user_recipe"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        Index("idx_reviews_recipe_id", "recipe_id"),
    )
