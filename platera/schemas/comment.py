import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from platera.schemas.user import UserSummary


class CommentCreate(BaseModel):
    # Whitespace-only content is rejected by CommentService, not here
    content: str = Field(max_length=2000)


class CommentResponse(BaseModel):
    id: uuid.UUID
    recipe_id: uuid.UUID
    content: str
    user: UserSummary
    created_at: datetime

    model_config = {"from_attributes": True}
