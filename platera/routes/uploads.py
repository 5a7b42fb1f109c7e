"""
Platera Backend — Upload Signature Route
========================================

What:  POST /api/upload/signature validates a manifest of images the browser
       is about to upload and, if it passes, returns a signed upload grant.
How:   UploadService.validate_images() → 400 with the first violation, else
       UploadService.create_upload_signature().
Who:   The recipe editor's image picker.
"""

import logging

from fastapi import APIRouter, Depends

from platera.dependencies import require_user
from platera.exceptions import ValidationError
from platera.models import User
from platera.schemas.common import ErrorResponse
from platera.schemas.upload import UploadSignature, UploadSignatureRequest
from platera.services.upload_service import upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["Uploads"])


@router.post(
    "/signature",
    response_model=UploadSignature,
    responses={
        400: {"description": "Batch failed validation", "model": ErrorResponse},
        401: {"description": "Not signed in", "model": ErrorResponse},
        502: {"description": "Media host not configured", "model": ErrorResponse},
    },
    summary="Validate an image batch and sign a direct upload",
)
async def create_upload_signature(
    body: UploadSignatureRequest,
    user: User = Depends(require_user),
) -> UploadSignature:
    validation = upload_service.validate_images(body.files)
    if not validation.valid:
        raise ValidationError(validation.error, field="files")

    signature = upload_service.create_upload_signature()
    logger.info("Signed upload of %d image(s) for user %s", len(body.files), user.id)
    return signature
