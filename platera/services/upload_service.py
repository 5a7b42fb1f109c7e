"""
Platera Backend — Image Upload Service
======================================

What:  Validates a batch of candidate images and signs direct uploads to the
       media host (Cloudinary).
How:   The browser sends a manifest (name, MIME type, size) of the files it is
       about to upload. If the batch passes the static bounds below, we return
       a signature (cloudinary SDK) the browser attaches to each upload into
       the configured folder; the bytes never pass through this service.
Who:   POST /api/upload/signature and RecipeService (image count on create).

Bounds:
    - 1 to 5 files per batch
    - image/jpeg, image/jpg, image/png, image/webp only
    - at most 5MB per file

Validation order: count first, then each file in order, type before size.
The first violation is reported.
"""

import logging
import time
from typing import Iterable, Optional, Sequence

import cloudinary.utils

from platera.config import Settings, settings
from platera.exceptions import MediaHostError
from platera.schemas.upload import ImageCandidate, UploadSignature, UploadValidation

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}

MEDIA_HOST_UPLOAD_MARKER = "/upload/"


class UploadService:

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    @property
    def max_images(self) -> int:
        return self.config.max_upload_images

    @property
    def max_size_mb(self) -> int:
        return self.config.max_image_size // (1024 * 1024)

    def validate_images(self, files: Sequence[ImageCandidate]) -> UploadValidation:
        """
        Check a batch against the upload bounds.

        Returns:
            UploadValidation(valid=True) or valid=False with the first violation.
        """
        if not files:
            return UploadValidation(valid=False, error="No images selected")

        if len(files) > self.max_images:
            return UploadValidation(
                valid=False,
                error=f"Maximum {self.max_images} images allowed",
            )

        for file in files:
            if file.content_type.lower() not in ALLOWED_MIME_TYPES:
                return UploadValidation(
                    valid=False,
                    error=f"Invalid file type: {file.name}. Only JPEG, PNG, and WebP allowed.",
                )
            if file.size > self.config.max_image_size:
                return UploadValidation(
                    valid=False,
                    error=f"File too large: {file.name}. Maximum size is {self.max_size_mb}MB.",
                )

        return UploadValidation(valid=True)

    def create_upload_signature(self, timestamp: Optional[int] = None) -> UploadSignature:
        """
        Sign a direct upload into the configured upload folder.

        The folder is fixed server-side; the browser echoes the signed
        parameters with each upload and the media host rejects any mismatch.

        Raises:
            MediaHostError: media host credentials are not configured.
        """
        cfg = self.config
        if not (cfg.cloudinary_cloud_name and cfg.cloudinary_api_key and cfg.cloudinary_api_secret):
            logger.error("Upload signature requested but Cloudinary credentials are not configured")
            raise MediaHostError(context={"reason": "missing_credentials"})

        params = {
            "folder": cfg.cloudinary_upload_folder,
            "timestamp": timestamp if timestamp is not None else int(time.time()),
        }
        signature = cloudinary.utils.api_sign_request(params, cfg.cloudinary_api_secret)
        upload_url = cloudinary.utils.cloudinary_api_url(
            "upload",
            resource_type="image",
            cloud_name=cfg.cloudinary_cloud_name,
        )
        return UploadSignature(
            signature=signature,
            timestamp=params["timestamp"],
            cloud_name=cfg.cloudinary_cloud_name,
            api_key=cfg.cloudinary_api_key,
            folder=params["folder"],
            upload_url=upload_url,
        )


def transformation_string(
    width: Optional[int] = None,
    height: Optional[int] = None,
    quality: int = 80,
    fmt: str = "auto",
) -> str:
    """Media host transformation segment, e.g. `f_auto,h_600,q_80,w_800`."""
    transformation, _ = cloudinary.utils.generate_transformation_string(
        width=width,
        height=height,
        quality=quality,
        fetch_format=fmt,
    )
    return transformation


def optimized_image_url(
    url: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    quality: int = 80,
    fmt: str = "auto",
) -> str:
    """
    Insert media host transformations (w_, h_, q_, f_) into a delivery URL.

    URLs that are not media host upload URLs are returned unchanged.
    """
    parts = url.split(MEDIA_HOST_UPLOAD_MARKER)
    if len(parts) != 2:
        return url

    base, path = parts
    transformation = transformation_string(width=width, height=height, quality=quality, fmt=fmt)
    return f"{base}{MEDIA_HOST_UPLOAD_MARKER}{transformation}/{path}"


def first_image(images: Iterable[str], **transform) -> Optional[str]:
    for url in images:
        return optimized_image_url(url, **transform)
    return None


upload_service = UploadService()
