"""Comment tree assembly."""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas


def _reaction_counts(db: Session, comment_ids: list[UUID]) -> dict[UUID, dict[str, int]]:
    counts: dict[UUID, dict[str, int]] = defaultdict(dict)
    if not comment_ids:
        return counts
    rows = (
        db.query(models.Reaction.comment_id, models.Reaction.type, func.count(models.Reaction.id))
        .filter(models.Reaction.comment_id.in_(comment_ids))
        .group_by(models.Reaction.comment_id, models.Reaction.type)
        .all()
    )
    for comment_id, reaction_type, count in rows:
        counts[comment_id][reaction_type] = count
    return counts


def build_comment_tree(db: Session, post_id: int) -> list[schemas.CommentNode]:
    """
    Load every comment of a post and nest replies under their parents.

    Top-level comments are newest first; replies at every level are oldest
    first so conversations read top to bottom.
    """
    comments = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.post_id == post_id)
        .order_by(models.Comment.created_at.asc())
        .all()
    )
    reactions = _reaction_counts(db, [comment.id for comment in comments])

    children: dict[UUID | None, list[models.Comment]] = defaultdict(list)
    for comment in comments:
        children[comment.parent_id].append(comment)

    def build(comment: models.Comment) -> schemas.CommentNode:
        base = schemas.Comment.model_validate(comment)
        return schemas.CommentNode(
            **base.model_dump(),
            reaction_counts=reactions.get(comment.id, {}),
            replies=[build(reply) for reply in children.get(comment.id, [])],
        )

    top_level = list(reversed(children.get(None, [])))
    return [build(comment) for comment in top_level]


def count_comments(nodes: list[schemas.CommentNode]) -> int:
    return sum(1 + count_comments(node.replies) for node in nodes)
