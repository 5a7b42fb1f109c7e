import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UserSummary(BaseModel):
    """Public author card shown on recipes, reviews and comments."""
    id: uuid.UUID
    name: str
    profile_image: Optional[str] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """The signed-in account, returned by GET /api/users/me."""
    id: uuid.UUID
    email: str
    name: str
    profile_image: Optional[str] = None
    created_at: datetime = Field(description="Account creation time (UTC)")

    model_config = {"from_attributes": True}
