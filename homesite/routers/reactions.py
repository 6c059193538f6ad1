"""Reaction endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional
from ..db import get_db
from ..services import posts as post_service
from ..utils.visibility import can_view_post

router = APIRouter(prefix="", tags=["Reactions"])


@router.get("/posts/{slug}/reactions", response_model=schemas.ReactionSummary)
def get_reactions(
    slug: str,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.ReactionSummary:
    """
    Get reaction totals for a post.

    Returns totals per built-in type, counts per custom emoji and the
    reactions that belong to the current user.
    """
    post = post_service.get_visible_post(db, slug, current_user)
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    return post_service.reaction_summary(db, current_user, post_id=post.id)


def apply_reaction(
    db: Session, payload: schemas.ReactionToggle, current_user: models.User
) -> schemas.ReactionToggleResponse:
    """
    Add the reaction, or remove it when the user already has it.

    The same type (and emoji, for CUSTOM) on the same target counts as the
    same reaction.
    """
    if payload.post_id is None and payload.comment_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either post_id or comment_id is required",
        )
    if payload.post_id is not None and payload.comment_id is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot react to both a post and a comment",
        )

    custom_emoji_id = None
    if payload.type == "CUSTOM":
        if payload.custom_emoji_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="custom_emoji_id is required for CUSTOM reactions",
            )
        emoji = (
            db.query(models.CustomEmoji)
            .filter(models.CustomEmoji.id == payload.custom_emoji_id, models.CustomEmoji.is_active == True)
            .first()
        )
        if not emoji:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Custom emoji not found or inactive",
            )
        custom_emoji_id = emoji.id

    if payload.post_id is not None:
        post = db.query(models.Post).filter(models.Post.id == payload.post_id).first()
        if not post or not can_view_post(post, current_user):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
        target = models.Reaction.post_id == post.id
    else:
        comment = db.query(models.Comment).filter(models.Comment.id == payload.comment_id).first()
        if not comment or not can_view_post(comment.post, current_user):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
        target = models.Reaction.comment_id == comment.id

    existing = (
        db.query(models.Reaction)
        .filter(
            target,
            models.Reaction.user_id == current_user.id,
            models.Reaction.type == payload.type,
            models.Reaction.custom_emoji_id == custom_emoji_id
            if custom_emoji_id is not None
            else models.Reaction.custom_emoji_id.is_(None),
        )
        .first()
    )

    if existing:
        db.delete(existing)
        db.commit()
        return schemas.ReactionToggleResponse(action="removed")

    reaction = models.Reaction(
        user_id=current_user.id,
        type=payload.type,
        post_id=payload.post_id,
        comment_id=payload.comment_id,
        custom_emoji_id=custom_emoji_id,
    )
    db.add(reaction)
    db.commit()
    return schemas.ReactionToggleResponse(action="added", reaction_id=reaction.id)


@router.post("/reactions", response_model=schemas.ReactionToggleResponse)
def toggle_reaction(
    payload: schemas.ReactionToggle,
    response: Response,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.ReactionToggleResponse:
    """
    Toggle a reaction on a post or a comment.

    Returns 201 when a reaction is added and 200 when removed.
    """
    result = apply_reaction(db, payload, current_user)
    response.status_code = status.HTTP_201_CREATED if result.action == "added" else status.HTTP_200_OK
    return result
