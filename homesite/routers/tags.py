"""Tag endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..db import get_db
from ..utils.audit import record_audit

router = APIRouter(prefix="/tags", tags=["Tags"])


@router.get("", response_model=list[schemas.TagWithCount])
def list_tags(
    search: str | None = None,
    db: Session = Depends(get_db),
) -> list[schemas.TagWithCount]:
    """
    List tags by name with the number of posts carrying each.
    """
    query = (
        db.query(models.Tag, func.count(models.post_tags.c.post_id))
        .outerjoin(models.post_tags, models.post_tags.c.tag_id == models.Tag.id)
        .group_by(models.Tag.id)
        .order_by(models.Tag.name.asc())
    )
    if search:
        query = query.filter(models.Tag.name.ilike(f"%{search.strip()}%"))

    return [
        schemas.TagWithCount(id=tag.id, name=tag.name, slug=tag.slug, post_count=count)
        for tag, count in query.all()
    ]


@router.post("", response_model=schemas.Tag, status_code=status.HTTP_201_CREATED)
def create_tag(
    payload: schemas.TagCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Tag:
    """
    Create a tag. Names are unique case-insensitively, slugs exactly.
    """
    name = payload.name.strip()
    duplicate = (
        db.query(models.Tag)
        .filter((func.lower(models.Tag.name) == name.lower()) | (models.Tag.slug == payload.slug))
        .first()
    )
    if duplicate:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Tag already exists")

    tag = models.Tag(name=name, slug=payload.slug)
    db.add(tag)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Tag already exists")
    db.refresh(tag)

    record_audit(
        db,
        action="TAG_CREATED",
        resource="tag",
        resource_id=tag.id,
        user_id=current_user.id,
        details={"name": tag.name, "slug": tag.slug},
        request=request,
    )
    return schemas.Tag.model_validate(tag)
