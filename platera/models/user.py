"""
Platera Backend — User Model
============================

What:  One local account per person, linked to an identity provider account.
Who:   Account resolution (lazy sync + duplicate merge), webhook sync, and as
       the owner of recipes, reviews, comments and bookmarks.

Columns:
    - external_id: identity provider user id. NULL until the first session
      resolution (rows created by the webhook carry it from the start). Unique
      when present.
    - email: business key. Unique, written lower-cased. Older rows may differ
      only by letter case; account resolution merges those.
    - name: display name, "Chef" when the provider has no name parts.

Lifecycle:
    1. Created on first session resolution or by a user.created event
    2. Refreshed by user.updated events
    3. Deleted by user.deleted events, or absorbed into another row by a merge
"""

from typing import Optional

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from platera.database import Base
from platera.models.mixins import IdMixin, TimestampMixin

DEFAULT_DISPLAY_NAME = "Chef"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def display_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    """Join name parts; fall back to "Chef" when both are blank."""
    name = f"{first_name or ''} {last_name or ''}".strip()
    return name or DEFAULT_DISPLAY_NAME


class User(IdMixin, TimestampMixin, Base):
    __tablename__ = "users"

    external_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        comment="Identity provider user id",
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=DEFAULT_DISPLAY_NAME,
    )
    profile_image: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', external_id='{self.external_id}')>"


# Duplicate reconciliation looks rows up by lower(email)
Index("idx_users_email_lower", func.lower(User.email))
