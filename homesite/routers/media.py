"""Media upload (presign/confirm) and serving endpoints."""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas, storage
from ..auth import get_current_user, require_ownership
from ..db import get_db
from ..settings import PRESIGN_EXPIRY_SECONDS
from ..utils.audit import record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["Media"])

MiB = 1024 * 1024

# MIME type allowlists by purpose
ALLOWED_MIME_TYPES: dict[str, tuple[str, ...]] = {
    "POST_IMAGE": ("image/png", "image/jpeg", "image/jpg", "image/webp", "image/gif"),
    "AVATAR": ("image/png", "image/jpeg", "image/jpg", "image/webp"),
    "EMOJI": ("image/png", "image/jpeg", "image/jpg", "image/webp", "image/gif"),
}

# Size limits in bytes by purpose
SIZE_LIMITS: dict[str, int] = {
    "POST_IMAGE": 10 * MiB,
    "AVATAR": 5 * MiB,
    "EMOJI": 5 * MiB,
}

_EXTENSION_BY_MIME = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}
_EXTENSION_RE = re.compile(r"^[a-z0-9]{1,10}$")

CACHE_CONTROL = "public, max-age=31536000, immutable"


def file_extension(filename: str, mime_type: str) -> str:
    """Extension from the filename, falling back to the MIME type."""
    if "." in filename:
        extension = filename.rsplit(".", 1)[1].lower()
        if _EXTENSION_RE.match(extension):
            return extension
    return _EXTENSION_BY_MIME.get(mime_type, "bin")


@router.post("/presign", response_model=schemas.PresignResponse)
def presign_upload(
    payload: schemas.PresignRequest,
    current_user: models.User = Depends(get_current_user),
) -> schemas.PresignResponse:
    """
    Get a presigned URL for uploading a file directly to object storage.

    The returned object key is scoped to the caller and the purpose; pass it
    to `/media/confirm` once the upload succeeds.
    """
    allowed = ALLOWED_MIME_TYPES[payload.purpose]
    if payload.mime_type not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type. Allowed types: {', '.join(allowed)}",
        )

    limit = SIZE_LIMITS[payload.purpose]
    if payload.size > limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size: {limit // MiB}MB",
        )

    object_key = storage.build_object_key(
        payload.purpose, current_user.id, file_extension(payload.filename, payload.mime_type)
    )
    try:
        upload_url = storage.presign_upload(object_key, payload.mime_type, PRESIGN_EXPIRY_SECONDS)
    except storage.StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create upload URL",
        )

    return schemas.PresignResponse(
        upload_url=upload_url,
        object_key=object_key,
        public_url=storage.public_url(object_key),
        expires_in=PRESIGN_EXPIRY_SECONDS,
    )


@router.post("/confirm", response_model=schemas.ConfirmUploadResponse)
def confirm_upload(
    payload: schemas.ConfirmUploadRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.ConfirmUploadResponse:
    """
    Record a completed upload against its target.

    - AVATAR: becomes the caller's avatar
    - EMOJI: creates a custom emoji named `emoji_name`
    - POST_IMAGE: attached to `post_id` when given, otherwise only the URL is returned
    """
    object_key = payload.object_key
    if not object_key.startswith(storage.key_prefix(payload.purpose, current_user.id)) or ".." in object_key:
        logger.warning(f"User {current_user.id} tried to confirm foreign object key {object_key}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Object key does not belong to you",
        )

    try:
        exists = storage.object_exists(object_key)
    except storage.StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not verify upload",
        )
    if not exists:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Uploaded file not found")

    url = storage.public_url(object_key)
    result = schemas.ConfirmUploadResponse(purpose=payload.purpose, object_key=object_key, url=url)
    resource, resource_id = "media", object_key

    if payload.purpose == "AVATAR":
        current_user.avatar_url = url
        db.commit()
        db.refresh(current_user)
        result.user = schemas.UserFull.model_validate(current_user)
        resource, resource_id = "user", current_user.id

    elif payload.purpose == "EMOJI":
        if not payload.emoji_name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="emoji_name is required for EMOJI uploads",
            )
        clash = (
            db.query(models.CustomEmoji)
            .filter(
                models.CustomEmoji.owner_id == current_user.id,
                models.CustomEmoji.name == payload.emoji_name,
            )
            .first()
        )
        if clash:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="An emoji with this name already exists",
            )

        emoji = models.CustomEmoji(
            owner_id=current_user.id,
            name=payload.emoji_name,
            object_key=object_key,
            keywords=payload.emoji_keywords or "",
        )
        db.add(emoji)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="An emoji with this name already exists",
            )
        db.refresh(emoji)
        result.emoji = schemas.CustomEmoji.model_validate(emoji)
        resource, resource_id = "emoji", emoji.id

    elif payload.post_id is not None:
        post = db.query(models.Post).filter(models.Post.id == payload.post_id).first()
        if not post:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
        require_ownership(post.author_id, current_user)

        media = models.PostMedia(post_id=post.id, type="IMAGE", object_key=object_key)
        db.add(media)
        db.commit()
        db.refresh(media)
        result.media = schemas.PostMedia.model_validate(media)
        resource, resource_id = "post", post.id

    record_audit(
        db,
        action="MEDIA_CONFIRMED",
        resource=resource,
        resource_id=resource_id,
        user_id=current_user.id,
        details={"purpose": payload.purpose, "object_key": object_key},
        request=request,
    )
    return result


@router.get("/{key:path}")
def get_media(key: str) -> StreamingResponse:
    """
    Stream a stored object with long-lived cache headers.
    """
    try:
        obj = storage.open_object(key)
    except storage.ObjectNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except storage.StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not read file",
        )

    headers = {"Cache-Control": CACHE_CONTROL}
    if obj.content_length is not None:
        headers["Content-Length"] = str(obj.content_length)
    return StreamingResponse(obj.body, media_type=obj.content_type, headers=headers)
