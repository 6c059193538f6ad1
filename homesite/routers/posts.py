"""Blog post endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional, require_ownership
from ..db import get_db
from ..models import utcnow
from ..pagination import paginate
from ..services import posts as post_service
from ..utils.audit import record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])


def _get_post_or_404(db: Session, slug: str) -> models.Post:
    post = post_service.get_post_by_slug(db, slug)
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def create_post_record(
    db: Session, payload: schemas.PostCreate, author: models.User, request: Request
) -> models.Post:
    """
    Insert a post for `author` and audit it.

    The slug is derived from the title; tags are connected by slug or created.
    """
    post = models.Post(
        slug=post_service.unique_slug(db, payload.title),
        title=payload.title,
        content=payload.content,
        excerpt=payload.excerpt,
        status=payload.status,
        visibility=payload.visibility,
        author_id=author.id,
        published_at=utcnow() if payload.status == "PUBLISHED" else None,
    )
    post.tags = post_service.resolve_tags(db, payload.tags)
    db.add(post)
    db.commit()

    record_audit(
        db,
        action="POST_CREATED",
        resource="post",
        resource_id=post.id,
        user_id=author.id,
        details={"title": post.title, "status": post.status},
        request=request,
    )
    return post


def apply_post_update(
    db: Session,
    post: models.Post,
    payload: schemas.PostUpdate,
    current_user: models.User,
    request: Request,
) -> list[str]:
    """
    Apply a partial update (owner or admin) and audit the fields that changed.

    `tags`, when present, replaces the whole tag set. `published_at` is set
    the first time the post becomes PUBLISHED. Returns the changed field names.
    """
    require_ownership(post.author_id, current_user)

    changes = payload.model_dump(exclude_unset=True)
    tag_names = changes.pop("tags", None)

    changed_fields: list[str] = []
    for field, value in changes.items():
        # title/content/status/visibility cannot be cleared
        if value is None and field != "excerpt":
            continue
        setattr(post, field, value)
        changed_fields.append(field)

    if tag_names is not None:
        post.tags = post_service.resolve_tags(db, tag_names)
        changed_fields.append("tags")

    if post.status == "PUBLISHED" and post.published_at is None:
        post.published_at = utcnow()

    db.commit()

    record_audit(
        db,
        action="POST_UPDATED",
        resource="post",
        resource_id=post.id,
        user_id=current_user.id,
        details={"changes": sorted(changed_fields)},
        request=request,
    )
    return changed_fields


@router.get("", response_model=schemas.Page[schemas.PostSummary])
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    tag: str | None = None,
    author: str | None = None,
    db: Session = Depends(get_db),
) -> schemas.Page[schemas.PostSummary]:
    """
    List published public posts, newest first.

    Drafts, archived, unlisted and private posts never appear here.
    Filter by tag slug or author username.
    """
    query = post_service.public_posts_query(db, tag=tag, author=author)
    items, pagination = paginate(query, page, limit)
    return schemas.Page(items=post_service.summarize_posts(db, items), pagination=pagination)


@router.post("", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: schemas.PostCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Post:
    """
    Create a post.

    The slug is derived from the title; tags are connected by slug or created.
    """
    post = create_post_record(db, payload, current_user, request)
    post = _get_post_or_404(db, post.slug)
    return post_service.serialize_post(db, post, current_user)


@router.get("/{slug}", response_model=schemas.Post)
def get_post(
    slug: str,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.Post:
    """
    Get a post by slug.

    Drafts, archived and private posts are only visible to their author and
    admins; everyone else gets 404.
    """
    post = post_service.get_visible_post(db, slug, current_user)
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post_service.serialize_post(db, post, current_user)


@router.patch("/{slug}", response_model=schemas.Post)
def update_post(
    slug: str,
    payload: schemas.PostUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Post:
    """
    Update a post (owner or admin).

    `tags`, when present, replaces the whole tag set. `published_at` is set
    the first time the post becomes PUBLISHED.
    """
    post = _get_post_or_404(db, slug)
    apply_post_update(db, post, payload, current_user, request)

    post = _get_post_or_404(db, slug)
    return post_service.serialize_post(db, post, current_user)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    slug: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """
    Delete a post (owner or admin). Comments, reactions and media go with it.
    """
    post = _get_post_or_404(db, slug)
    require_ownership(post.author_id, current_user)

    post_id, title = post.id, post.title
    db.delete(post)
    db.commit()

    record_audit(
        db,
        action="POST_DELETED",
        resource="post",
        resource_id=post_id,
        user_id=current_user.id,
        details={"title": title, "slug": slug},
        request=request,
    )
