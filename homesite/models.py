from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """User account with credentials and profile information."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    username = Column(String(30), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # Profile
    display_name = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(1000), nullable=True)

    role = Column(String(10), nullable=False, default=ROLE_USER, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="author", cascade="all, delete-orphan")
    reactions = relationship("Reaction", back_populates="user", cascade="all, delete-orphan")
    custom_emojis = relationship("CustomEmoji", back_populates="owner", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


post_tags = Table(
    "post_tags",
    Base.metadata,
    Column("post_id", Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Post(Base):
    """Markdown blog post."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Content
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)  # Markdown source
    excerpt = Column(String(500), nullable=True)

    # Publishing & visibility
    status = Column(String(10), nullable=False, default="DRAFT", index=True)
    visibility = Column(String(10), nullable=False, default="PUBLIC", index=True)
    published_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    author = relationship("User", back_populates="posts")
    tags = relationship("Tag", secondary=post_tags, back_populates="posts", order_by="Tag.name")
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")
    reactions = relationship("Reaction", back_populates="post", cascade="all, delete-orphan")
    media = relationship(
        "PostMedia", back_populates="post", cascade="all, delete-orphan", order_by="PostMedia.created_at"
    )

    __table_args__ = (
        Index("ix_posts_listing", status, visibility, published_at.desc()),
        Index("ix_posts_author_created", author_id, created_at.desc()),
    )


class Tag(Base):
    """Topic label shared across posts."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String(50), unique=True, nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    posts = relationship("Post", secondary=post_tags, back_populates="tags")


class PostMedia(Base):
    """Object-storage file attached to a post."""

    __tablename__ = "post_media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False, default="IMAGE")
    object_key = Column(String(500), nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    post = relationship("Post", back_populates="media")


class Comment(Base):
    """Comment on a post; replies nest through parent_id."""

    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)

    depth = Column(Integer, nullable=False, default=0)  # 0 = top-level
    content = Column(Text, nullable=False)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    post = relationship("Post", back_populates="comments")
    author = relationship("User", back_populates="comments")
    parent = relationship("Comment", remote_side=[id], back_populates="replies")
    replies = relationship(
        "Comment", back_populates="parent", cascade="all, delete-orphan", order_by="Comment.created_at"
    )
    reactions = relationship("Reaction", back_populates="comment", cascade="all, delete-orphan")

    __table_args__ = (Index("ix_comments_post_created", post_id, created_at.desc()),)


class CustomEmoji(Base):
    """User-uploaded emoji image, usable in CUSTOM reactions."""

    __tablename__ = "custom_emojis"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    object_key = Column(String(500), nullable=False)
    keywords = Column(String(500), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    owner = relationship("User", back_populates="custom_emojis")
    reactions = relationship("Reaction", back_populates="custom_emoji", cascade="all, delete-orphan")

    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_custom_emojis_owner_name"),)


class Reaction(Base):
    """Reaction on either a post or a comment."""

    __tablename__ = "reactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True, index=True)
    comment_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    custom_emoji_id = Column(Uuid, ForeignKey("custom_emojis.id", ondelete="CASCADE"), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    # Relationships
    user = relationship("User", back_populates="reactions")
    post = relationship("Post", back_populates="reactions")
    comment = relationship("Comment", back_populates="reactions")
    custom_emoji = relationship("CustomEmoji", back_populates="reactions")

    __table_args__ = (
        Index("ix_reactions_post_type", post_id, type),
        Index("ix_reactions_comment_type", comment_id, type),
    )


# ============================================================================
# AUDIT
# ============================================================================


class AuditLog(Base):
    """Append-only record of mutating actions."""

    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String(100), nullable=False, index=True)
    resource = Column(String(50), nullable=False, index=True)
    resource_id = Column(String(50), nullable=True, index=True)  # String to support both UUID and integer IDs
    details = Column("metadata", JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    user = relationship("User")

    __table_args__ = (Index("ix_audit_logs_user_created", user_id, created_at.desc()),)
