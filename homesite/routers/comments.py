"""Comment management endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional, require_ownership
from ..db import get_db
from ..services import posts as post_service
from ..services.comments import build_comment_tree
from ..settings import MAX_COMMENT_DEPTH
from ..utils.audit import record_audit
from ..utils.visibility import can_view_post

router = APIRouter(prefix="", tags=["Comments"])

INVALID_PARENT = "Invalid parent comment"


def _get_comment_or_404(db: Session, id: UUID) -> models.Comment:
    comment = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.id == id)
        .first()
    )
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


def add_comment(
    db: Session, payload: schemas.CommentCreate, author: models.User, request: Request
) -> models.Comment:
    """
    Insert a comment or a reply and audit it.

    Replies must target a comment on the same post and may nest up to
    MAX_COMMENT_DEPTH levels below the top-level comment.
    """
    post = db.query(models.Post).filter(models.Post.id == payload.post_id).first()
    if not post or not can_view_post(post, author):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    # Validate parent comment and calculate depth
    depth = 0
    if payload.parent_id:
        parent = db.query(models.Comment).filter(models.Comment.id == payload.parent_id).first()
        if not parent or parent.post_id != post.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_PARENT)
        depth = parent.depth + 1
        if depth > MAX_COMMENT_DEPTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Maximum reply depth ({MAX_COMMENT_DEPTH}) exceeded"
            )

    comment = models.Comment(
        post_id=post.id,
        author_id=author.id,
        parent_id=payload.parent_id,
        depth=depth,
        content=payload.content,
    )
    db.add(comment)
    db.commit()

    record_audit(
        db,
        action="COMMENT_CREATED",
        resource="comment",
        resource_id=comment.id,
        user_id=author.id,
        details={"post_id": post.id, "parent_id": str(payload.parent_id) if payload.parent_id else None},
        request=request,
    )
    return comment


@router.get("/posts/{slug}/comments", response_model=list[schemas.CommentNode])
def list_comments(
    slug: str,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> list[schemas.CommentNode]:
    """
    Comment tree for a post.

    Top-level comments are newest first, replies oldest first.
    """
    post = post_service.get_visible_post(db, slug, current_user)
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    return build_comment_tree(db, post.id)


@router.post(
    "/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    payload: schemas.CommentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    """
    Create a comment or a reply.

    A missing parent, or a parent on another post, is a 400.
    """
    comment = add_comment(db, payload, current_user, request)

    # Reload with author relationship
    return schemas.Comment.model_validate(_get_comment_or_404(db, comment.id))


@router.patch("/comments/{id}", response_model=schemas.Comment)
def update_comment(
    id: UUID,
    payload: schemas.CommentUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    """
    Edit a comment (owner or admin).
    """
    comment = _get_comment_or_404(db, id)
    require_ownership(comment.author_id, current_user)

    comment.content = payload.content
    db.commit()

    record_audit(
        db,
        action="COMMENT_UPDATED",
        resource="comment",
        resource_id=id,
        user_id=current_user.id,
        request=request,
    )

    return schemas.Comment.model_validate(_get_comment_or_404(db, id))


@router.delete("/comments/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """
    Delete a comment (owner or admin) along with its replies and reactions.
    """
    comment = _get_comment_or_404(db, id)
    require_ownership(comment.author_id, current_user)

    was_own_comment = comment.author_id == current_user.id
    post_id = comment.post_id
    db.delete(comment)
    db.commit()

    record_audit(
        db,
        action="COMMENT_DELETED",
        resource="comment",
        resource_id=id,
        user_id=current_user.id,
        details={
            "post_id": post_id,
            "was_own_comment": was_own_comment,
            "by_admin": current_user.is_admin and not was_own_comment,
        },
        request=request,
    )
