"""Admin and moderation endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import require_admin
from ..db import get_db
from ..pagination import paginate
from ..services import posts as post_service
from ..utils.audit import record_audit
from ..utils.text import truncate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

MODERATION_LIMIT = 50
PREVIEW_LENGTH = 100


def moderation_overview(db: Session) -> schemas.ModerationOverview:
    """Latest posts and comments plus every user with activity counts."""
    posts = (
        db.query(models.Post)
        .options(joinedload(models.Post.author))
        .order_by(models.Post.created_at.desc())
        .limit(MODERATION_LIMIT)
        .all()
    )

    comments = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author), joinedload(models.Comment.post))
        .order_by(models.Comment.created_at.desc())
        .limit(MODERATION_LIMIT)
        .all()
    )

    post_counts = dict(
        db.query(models.Post.author_id, func.count(models.Post.id)).group_by(models.Post.author_id).all()
    )
    comment_counts = dict(
        db.query(models.Comment.author_id, func.count(models.Comment.id))
        .group_by(models.Comment.author_id)
        .all()
    )
    users = db.query(models.User).order_by(models.User.created_at.desc()).all()

    return schemas.ModerationOverview(
        posts=post_service.summarize_posts(db, posts),
        comments=[
            schemas.AdminComment(
                **schemas.Comment.model_validate(c).model_dump(),
                post_slug=c.post.slug,
                post_title=c.post.title,
            )
            for c in comments
        ],
        users=[
            schemas.AdminUser.model_validate(u).model_copy(
                update={
                    "post_count": post_counts.get(u.id, 0),
                    "comment_count": comment_counts.get(u.id, 0),
                }
            )
            for u in users
        ],
    )


def audit_log_query(db: Session, user_id: int | None = None, resource: str | None = None):
    query = db.query(models.AuditLog).options(joinedload(models.AuditLog.user))
    if user_id is not None:
        query = query.filter(models.AuditLog.user_id == user_id)
    if resource:
        query = query.filter(models.AuditLog.resource == resource)
    return query.order_by(models.AuditLog.created_at.desc())


@router.get("/moderation", response_model=schemas.ModerationOverview)
def get_moderation_overview(
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.ModerationOverview:
    """
    Moderation dashboard data (admin only).
    """
    return moderation_overview(db)


@router.get("/audit", response_model=schemas.Page[schemas.AuditLogEntry])
def list_audit_log(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user_id: int | None = None,
    resource: str | None = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.Page[schemas.AuditLogEntry]:
    """
    Audit log, newest first (admin only).
    """
    items, pagination = paginate(audit_log_query(db, user_id, resource), page, limit)
    return schemas.Page(
        items=[schemas.AuditLogEntry.model_validate(entry) for entry in items],
        pagination=pagination,
    )


@router.delete("/posts/{id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_post(
    id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> None:
    """
    Delete any post (admin only).
    """
    post = db.query(models.Post).filter(models.Post.id == id).first()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    details = {"title": post.title, "author_id": post.author_id, "slug": post.slug}
    db.delete(post)
    db.commit()

    record_audit(
        db,
        action="ADMIN_DELETE_POST",
        resource="post",
        resource_id=id,
        user_id=admin.id,
        details=details,
        request=request,
    )
    logger.info(f"Admin {admin.id} deleted post {id}")


@router.delete("/comments/{id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_comment(
    id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> None:
    """
    Delete any comment and its replies (admin only).
    """
    comment = db.query(models.Comment).filter(models.Comment.id == id).first()
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    details = {
        "author_id": comment.author_id,
        "post_id": comment.post_id,
        "content_preview": truncate(comment.content, PREVIEW_LENGTH, ellipsis=""),
    }
    db.delete(comment)
    db.commit()

    record_audit(
        db,
        action="ADMIN_DELETE_COMMENT",
        resource="comment",
        resource_id=id,
        user_id=admin.id,
        details=details,
        request=request,
    )
    logger.info(f"Admin {admin.id} deleted comment {id}")


def _set_user_active(
    db: Session,
    id: int,
    active: bool,
    admin: models.User,
    request: Request,
) -> schemas.AdminUser:
    user = db.query(models.User).filter(models.User.id == id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own account status",
        )

    user.is_active = active
    db.commit()
    db.refresh(user)

    record_audit(
        db,
        action="ADMIN_REACTIVATE_USER" if active else "ADMIN_DEACTIVATE_USER",
        resource="user",
        resource_id=user.id,
        user_id=admin.id,
        details={"username": user.username},
        request=request,
    )
    return schemas.AdminUser.model_validate(user)


@router.post("/users/{id}/deactivate", response_model=schemas.AdminUser)
def deactivate_user(
    id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.AdminUser:
    """
    Deactivate a user account (admin only). Deactivated users cannot log in.
    """
    return _set_user_active(db, id, False, admin, request)


@router.post("/users/{id}/reactivate", response_model=schemas.AdminUser)
def reactivate_user(
    id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.AdminUser:
    """
    Reactivate a deactivated user account (admin only).
    """
    return _set_user_active(db, id, True, admin, request)
