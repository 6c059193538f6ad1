"""Custom emoji endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models, schemas, storage
from ..auth import get_current_user, require_ownership
from ..db import get_db
from ..utils.audit import record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/emojis", tags=["Emojis"])

SEARCH_LIMIT = 20


def get_emoji_or_404(db: Session, id: UUID) -> models.CustomEmoji:
    emoji = db.query(models.CustomEmoji).filter(models.CustomEmoji.id == id).first()
    if not emoji:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Emoji not found")
    return emoji


def active_emojis_for(db: Session, user: models.User) -> list[models.CustomEmoji]:
    return (
        db.query(models.CustomEmoji)
        .filter(models.CustomEmoji.owner_id == user.id, models.CustomEmoji.is_active == True)
        .order_by(models.CustomEmoji.created_at.desc())
        .all()
    )


def edit_emoji(
    db: Session, emoji: models.CustomEmoji, payload: schemas.CustomEmojiUpdate, current_user: models.User
) -> models.CustomEmoji:
    """
    Rename an emoji or change its keywords (owner or admin).

    Names are unique per owner.
    """
    require_ownership(emoji.owner_id, current_user)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    new_name = changes.get("name")
    if new_name and new_name != emoji.name:
        clash = (
            db.query(models.CustomEmoji)
            .filter(
                models.CustomEmoji.owner_id == emoji.owner_id,
                models.CustomEmoji.name == new_name,
                models.CustomEmoji.id != emoji.id,
            )
            .first()
        )
        if clash:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="An emoji with this name already exists",
            )

    for field, value in changes.items():
        setattr(emoji, field, value)
    db.commit()
    db.refresh(emoji)
    return emoji


def remove_emoji(
    db: Session, emoji: models.CustomEmoji, current_user: models.User, request: Request
) -> None:
    """
    Delete an emoji (owner or admin), then remove its image from storage.

    Storage failures are logged; the row is already gone by then.
    """
    require_ownership(emoji.owner_id, current_user)

    id, name, object_key = emoji.id, emoji.name, emoji.object_key
    db.delete(emoji)
    db.commit()

    try:
        storage.delete_object(object_key)
    except storage.StorageError as e:
        logger.warning(f"Emoji {id} deleted but object {object_key} was not removed: {e}")

    record_audit(
        db,
        action="EMOJI_DELETED",
        resource="emoji",
        resource_id=id,
        user_id=current_user.id,
        details={"name": name, "object_key": object_key},
        request=request,
    )


@router.get("", response_model=list[schemas.CustomEmoji])
def list_my_emojis(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.CustomEmoji]:
    """The current user's active emojis, newest first."""
    return [schemas.CustomEmoji.model_validate(e) for e in active_emojis_for(db, current_user)]


@router.get("/search", response_model=list[schemas.CustomEmoji])
def search_emojis(
    q: str = Query("", max_length=50),
    db: Session = Depends(get_db),
) -> list[schemas.CustomEmoji]:
    """
    Search active emojis by name or keywords (case-insensitive).
    """
    term = q.strip()
    if not term:
        return []

    pattern = f"%{term}%"
    emojis = (
        db.query(models.CustomEmoji)
        .filter(
            models.CustomEmoji.is_active == True,
            or_(models.CustomEmoji.name.ilike(pattern), models.CustomEmoji.keywords.ilike(pattern)),
        )
        .order_by(models.CustomEmoji.name.asc())
        .limit(SEARCH_LIMIT)
        .all()
    )
    return [schemas.CustomEmoji.model_validate(e) for e in emojis]


@router.patch("/{id}", response_model=schemas.CustomEmoji)
def update_emoji(
    id: UUID,
    payload: schemas.CustomEmojiUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CustomEmoji:
    """
    Rename an emoji or change its keywords (owner or admin).
    """
    emoji = edit_emoji(db, get_emoji_or_404(db, id), payload, current_user)
    return schemas.CustomEmoji.model_validate(emoji)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_emoji(
    id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """
    Delete an emoji (owner or admin).
    """
    remove_emoji(db, get_emoji_or_404(db, id), current_user, request)
