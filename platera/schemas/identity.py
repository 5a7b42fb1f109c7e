"""
Identity provider payloads.

The Backend API `GET /v1/users/{id}` response and the `data` object of
user.created / user.updated webhook events share this shape; unknown fields
are ignored.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ClerkEmailAddress(BaseModel):
    id: Optional[str] = None
    email_address: str


class ClerkUser(BaseModel):
    id: str
    email_addresses: List[ClerkEmailAddress] = Field(default_factory=list)
    primary_email_address_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def primary_email(self) -> Optional[str]:
        """The primary address when flagged, else the first one listed."""
        for address in self.email_addresses:
            if address.id and address.id == self.primary_email_address_id:
                return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return None


class ClerkDeletedObject(BaseModel):
    id: Optional[str] = None
    deleted: bool = True


class ClerkWebhookEvent(BaseModel):
    """Envelope of an identity provider change event."""

    type: str = Field(description="user.created, user.updated or user.deleted")
    data: dict = Field(default_factory=dict)
    object: Optional[str] = None
