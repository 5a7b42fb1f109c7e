import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from platera.schemas.user import UserSummary


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5, description="Star rating, 1 to 5")
    body: Optional[str] = Field(default=None, max_length=2000)


class ReviewResponse(BaseModel):
    id: uuid.UUID
    recipe_id: uuid.UUID
    rating: int
    body: Optional[str] = None
    user: UserSummary
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
