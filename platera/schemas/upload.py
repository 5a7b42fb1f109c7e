"""Upload manifest and signature payloads for POST /api/upload/signature."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ImageCandidate(BaseModel):
    """Metadata the browser reports for one file before uploading it."""
    name: str = Field(description="Original file name")
    content_type: str = Field(description="MIME type reported by the browser")
    size: int = Field(ge=0, description="Size in bytes")


class UploadValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


class UploadSignatureRequest(BaseModel):
    """The manifest only; the upload folder is chosen server-side."""
    files: List[ImageCandidate] = Field(default_factory=list)


class UploadSignature(BaseModel):
    """Everything the browser needs for a signed direct upload."""
    signature: str = Field(description="SHA-1 hex digest of the signed parameters")
    timestamp: int = Field(description="Unix timestamp included in the signature")
    cloud_name: str
    api_key: str
    folder: str
    upload_url: str = Field(description="Media host upload endpoint for the cloud")
