"""User profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..db import get_db
from ..utils.audit import record_audit

router = APIRouter(prefix="", tags=["Users"])


def public_profile(db: Session, user: models.User) -> schemas.UserPublic:
    """Public profile with counts of published public posts and comments."""
    post_count = (
        db.query(func.count(models.Post.id))
        .filter(
            models.Post.author_id == user.id,
            models.Post.status == "PUBLISHED",
            models.Post.visibility == "PUBLIC",
        )
        .scalar()
    )
    comment_count = (
        db.query(func.count(models.Comment.id)).filter(models.Comment.author_id == user.id).scalar()
    )
    return schemas.UserPublic.model_validate(user).model_copy(
        update={"post_count": post_count or 0, "comment_count": comment_count or 0}
    )


def update_profile(
    db: Session, user: models.User, payload: schemas.UserUpdate, request: Request
) -> models.User:
    """Apply a display name and bio update and audit it."""
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    record_audit(
        db,
        action="PROFILE_UPDATED",
        resource="user",
        resource_id=user.id,
        user_id=user.id,
        details={"fields": sorted(changes)},
        request=request,
    )
    return user


@router.get("/me", response_model=schemas.UserFull)
def get_me(current_user: models.User = Depends(get_current_user)) -> schemas.UserFull:
    """Full profile of the authenticated user."""
    return schemas.UserFull.model_validate(current_user)


@router.patch("/me", response_model=schemas.UserFull)
def update_me(
    payload: schemas.UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserFull:
    """
    Update own display name and bio.
    """
    return schemas.UserFull.model_validate(update_profile(db, current_user, payload, request))


@router.get("/users/{id}", response_model=schemas.UserPublic)
def get_user(id: int, db: Session = Depends(get_db)) -> schemas.UserPublic:
    """
    Get public user profile.
    """
    user = db.query(models.User).filter(models.User.id == id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return public_profile(db, user)
