"""Free-text comment on a recipe."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from platera.database import Base
from platera.models.mixins import IdMixin, TimestampMixin

if TYPE_CHECKING:
    from platera.models.user import User


class Comment(IdMixin, TimestampMixin, Base):
    __tablename__ = "comments"

    recipe_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("recipes.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    user: Mapped["User"] = relationship(lazy="raise")

    __table_args__ = (
        Index("idx_comments_recipe_id", "recipe_id"),
    )
