"""Post queries and serialization shared by the API and the pages."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from .. import models, schemas
from ..utils.text import random_suffix, slugify
from ..utils.visibility import can_view_post

logger = logging.getLogger(__name__)

BUILTIN_REACTIONS = ("LIKE", "LOVE", "LAUGH", "THINKING")
TAG_MAX_LENGTH = 50


def unique_slug(db: Session, title: str) -> str:
    """
    Generate a slug from a title that no other post uses.

    Collisions get a short random suffix appended.
    """
    base = slugify(title) or "post"
    slug = base
    while db.query(models.Post.id).filter(models.Post.slug == slug).first() is not None:
        slug = f"{base}-{random_suffix()}"
    return slug


def resolve_tags(db: Session, names: list[str]) -> list[models.Tag]:
    """
    Connect tags by slug, creating the ones that do not exist yet.

    New tags are added to the session but not committed.
    """
    tags: list[models.Tag] = []
    seen: set[str] = set()
    for raw in names:
        name = raw.strip()[:TAG_MAX_LENGTH]
        slug = slugify(name)[:TAG_MAX_LENGTH].strip("-")
        if not slug or slug in seen:
            continue
        seen.add(slug)

        tag = (
            db.query(models.Tag)
            .filter((models.Tag.slug == slug) | (func.lower(models.Tag.name) == name.lower()))
            .first()
        )
        if tag is None:
            tag = models.Tag(name=name, slug=slug)
            db.add(tag)
            db.flush()
            logger.info("Created tag %s", slug)
        tags.append(tag)
    return tags


def _with_listing_options(query: Query) -> Query:
    return query.options(joinedload(models.Post.author), selectinload(models.Post.tags))


def public_posts_query(db: Session, tag: str | None = None, author: str | None = None) -> Query:
    """
    Published PUBLIC posts, newest first.

    Args:
        tag: Only posts carrying the tag with this slug
        author: Only posts by the user with this username
    """
    query = db.query(models.Post).filter(
        models.Post.status == "PUBLISHED",
        models.Post.visibility == "PUBLIC",
    )
    if tag:
        query = query.filter(models.Post.tags.any(models.Tag.slug == tag))
    if author:
        query = query.join(models.Post.author).filter(models.User.username == author)
    return _with_listing_options(query).order_by(
        models.Post.published_at.desc(), models.Post.id.desc()
    )


def author_posts_query(db: Session, author_id: int) -> Query:
    """Every post by an author regardless of status, most recently created first."""
    query = db.query(models.Post).filter(models.Post.author_id == author_id)
    return _with_listing_options(query).order_by(models.Post.created_at.desc(), models.Post.id.desc())


def get_post_by_slug(db: Session, slug: str) -> models.Post | None:
    return (
        db.query(models.Post)
        .options(
            joinedload(models.Post.author),
            selectinload(models.Post.tags),
            selectinload(models.Post.media),
        )
        .filter(models.Post.slug == slug)
        .first()
    )


def get_visible_post(db: Session, slug: str, user: models.User | None) -> models.Post | None:
    """Post by slug, or None when it is missing or the user may not see it."""
    post = get_post_by_slug(db, slug)
    if post is None or not can_view_post(post, user):
        return None
    return post


def comment_counts(db: Session, post_ids: list[int]) -> dict[int, int]:
    if not post_ids:
        return {}
    rows = (
        db.query(models.Comment.post_id, func.count(models.Comment.id))
        .filter(models.Comment.post_id.in_(post_ids))
        .group_by(models.Comment.post_id)
        .all()
    )
    return {post_id: count for post_id, count in rows}


def reaction_counts(db: Session, post_ids: list[int]) -> dict[int, int]:
    if not post_ids:
        return {}
    rows = (
        db.query(models.Reaction.post_id, func.count(models.Reaction.id))
        .filter(models.Reaction.post_id.in_(post_ids))
        .group_by(models.Reaction.post_id)
        .all()
    )
    return {post_id: count for post_id, count in rows}


def summarize_posts(db: Session, posts: list[models.Post]) -> list[schemas.PostSummary]:
    """Serialize posts for listings with comment and reaction counts."""
    ids = [post.id for post in posts]
    comments = comment_counts(db, ids)
    reactions = reaction_counts(db, ids)
    return [
        schemas.PostSummary.model_validate(post).model_copy(
            update={
                "comment_count": comments.get(post.id, 0),
                "reaction_count": reactions.get(post.id, 0),
            }
        )
        for post in posts
    ]


def reaction_summary(
    db: Session,
    user: models.User | None,
    post_id: int | None = None,
    comment_id: UUID | None = None,
) -> schemas.ReactionSummary:
    """
    Aggregate reactions on a post or a comment.

    Built-in types always appear in `totals`, with 0 when unused. Custom emoji
    reactions are counted per emoji; `mine` lists the current user's reactions.
    """
    if post_id is not None:
        target = models.Reaction.post_id == post_id
    else:
        target = models.Reaction.comment_id == comment_id

    totals = {reaction_type: 0 for reaction_type in BUILTIN_REACTIONS}
    totals["CUSTOM"] = 0
    for reaction_type, count in (
        db.query(models.Reaction.type, func.count(models.Reaction.id))
        .filter(target)
        .group_by(models.Reaction.type)
        .all()
    ):
        totals[reaction_type] = count

    custom_rows = (
        db.query(models.CustomEmoji, func.count(models.Reaction.id))
        .join(models.Reaction, models.Reaction.custom_emoji_id == models.CustomEmoji.id)
        .filter(target, models.Reaction.type == "CUSTOM")
        .group_by(models.CustomEmoji.id)
        .order_by(func.count(models.Reaction.id).desc(), models.CustomEmoji.name)
        .all()
    )
    custom = [
        schemas.CustomReactionCount(emoji=schemas.CustomEmoji.model_validate(emoji), count=count)
        for emoji, count in custom_rows
    ]

    mine: list[schemas.MyReaction] = []
    if user is not None:
        for reaction in db.query(models.Reaction).filter(target, models.Reaction.user_id == user.id).all():
            mine.append(schemas.MyReaction(type=reaction.type, custom_emoji_id=reaction.custom_emoji_id))

    return schemas.ReactionSummary(totals=totals, custom=custom, mine=mine)


def serialize_post(db: Session, post: models.Post, user: models.User | None) -> schemas.Post:
    """Full post payload with media, reaction summary and comment count."""
    count = comment_counts(db, [post.id]).get(post.id, 0)
    summary = reaction_summary(db, user, post_id=post.id)
    return schemas.Post.model_validate(post).model_copy(
        update={
            "comment_count": count,
            "reaction_count": sum(summary.totals.values()),
            "reaction_summary": summary,
        }
    )
