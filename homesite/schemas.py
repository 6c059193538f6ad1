from __future__ import annotations

from datetime import datetime
from typing import Annotated, Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, computed_field, field_validator

from .storage import public_url


T = TypeVar("T")

PostStatus = Literal["DRAFT", "PUBLISHED", "ARCHIVED"]
PostVisibility = Literal["PUBLIC", "UNLISTED", "PRIVATE"]
ReactionType = Literal["LIKE", "LOVE", "LAUGH", "THINKING", "CUSTOM"]
MediaPurpose = Literal["POST_IMAGE", "AVATAR", "EMOJI"]

USERNAME_PATTERN = r"^[A-Za-z0-9_-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

TagName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Pagination(BaseModel):
    """Offset pagination metadata."""

    page: int
    limit: int
    total: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    pagination: Pagination


# ============================================================================
# HEALTH
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserSummary(BaseModel):
    """Author summary embedded in posts, comments and audit entries."""

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserPublic(UserSummary):
    """Public user profile."""

    bio: str | None = None
    role: Literal["USER", "ADMIN"]
    created_at: datetime
    post_count: int = 0
    comment_count: int = 0


class UserFull(UserSummary):
    """Full user profile (for the authenticated user)."""

    email: str
    bio: str | None = None
    role: Literal["USER", "ADMIN"]
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None


class UserUpdate(BaseModel):
    """Update own profile request."""

    display_name: str | None = Field(None, min_length=1, max_length=100)
    bio: str | None = Field(None, max_length=1000)


# ============================================================================
# AUTH SCHEMAS
# ============================================================================


class RegisterRequest(BaseModel):
    """User registration request."""

    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=100)
    display_name: str | None = Field(None, min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginRequest(BaseModel):
    """User login request - email and password."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=100)


class LoginResponse(BaseModel):
    """Session issued on successful login."""

    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserFull


# ============================================================================
# TAG SCHEMAS
# ============================================================================


class Tag(BaseModel):
    """Tag attached to posts."""

    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class TagWithCount(Tag):
    post_count: int = 0


class TagCreate(BaseModel):
    """Create tag request."""

    name: str = Field(..., min_length=1, max_length=50)
    slug: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9-]+$")


# ============================================================================
# CUSTOM EMOJI SCHEMAS
# ============================================================================


class CustomEmoji(BaseModel):
    """User-uploaded emoji."""

    id: UUID
    name: str
    object_key: str
    keywords: str = ""
    owner_id: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def url(self) -> str:
        return public_url(self.object_key)


class CustomEmojiUpdate(BaseModel):
    """Update emoji request."""

    name: str | None = Field(None, min_length=1, max_length=50, pattern=USERNAME_PATTERN)
    keywords: str | None = Field(None, max_length=500)
    is_active: bool | None = None


# ============================================================================
# REACTION SCHEMAS
# ============================================================================


class ReactionToggle(BaseModel):
    """Toggle a reaction on a post or a comment."""

    type: ReactionType
    post_id: int | None = None
    comment_id: UUID | None = None
    custom_emoji_id: UUID | None = None


class ReactionToggleResponse(BaseModel):
    action: Literal["added", "removed"]
    reaction_id: int | None = None


class CustomReactionCount(BaseModel):
    emoji: CustomEmoji
    count: int


class MyReaction(BaseModel):
    type: ReactionType
    custom_emoji_id: UUID | None = None


class ReactionSummary(BaseModel):
    """Reaction totals for a post or comment."""

    totals: dict[str, int]
    custom: list[CustomReactionCount] = []
    mine: list[MyReaction] = []


# ============================================================================
# POST SCHEMAS
# ============================================================================


class PostMedia(BaseModel):
    """Media file attached to a post."""

    id: UUID
    type: str
    object_key: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def url(self) -> str:
        return public_url(self.object_key)


class PostSummary(BaseModel):
    """Post as it appears in listings."""

    id: int
    slug: str
    title: str
    excerpt: str | None = None
    status: PostStatus
    visibility: PostVisibility
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None
    author: UserSummary
    tags: list[Tag] = []
    comment_count: int = 0
    reaction_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class Post(PostSummary):
    """Full post with content and media."""

    content: str
    media: list[PostMedia] = []
    reaction_summary: ReactionSummary | None = None


class PostCreate(BaseModel):
    """Create post request."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    status: PostStatus = "DRAFT"
    visibility: PostVisibility = "PUBLIC"
    tags: list[TagName] = Field(default_factory=list, max_length=20)


class PostUpdate(BaseModel):
    """Update post request; omitted fields are left unchanged."""

    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    status: PostStatus | None = None
    visibility: PostVisibility | None = None
    tags: list[TagName] | None = Field(None, max_length=20)


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class Comment(BaseModel):
    """Comment on a post."""

    id: UUID
    post_id: int
    parent_id: UUID | None = None
    depth: int = Field(..., ge=0)
    content: str
    created_at: datetime
    updated_at: datetime | None = None
    author: UserSummary

    model_config = ConfigDict(from_attributes=True)


class CommentNode(Comment):
    """Comment with nested replies and reaction counts."""

    reaction_counts: dict[str, int] = {}
    replies: list[CommentNode] = []


class CommentCreate(BaseModel):
    """Create comment request."""

    post_id: int
    content: str = Field(..., min_length=1, max_length=2000)
    parent_id: UUID | None = None


class CommentUpdate(BaseModel):
    """Update comment request."""

    content: str = Field(..., min_length=1, max_length=2000)


# ============================================================================
# MEDIA SCHEMAS
# ============================================================================


class PresignRequest(BaseModel):
    """Request a presigned upload URL."""

    purpose: MediaPurpose
    filename: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100)
    size: int = Field(..., gt=0)


class PresignResponse(BaseModel):
    upload_url: str
    object_key: str
    public_url: str
    expires_in: int


class ConfirmUploadRequest(BaseModel):
    """Confirm that a presigned upload completed."""

    object_key: str = Field(..., min_length=1, max_length=500)
    purpose: MediaPurpose
    post_id: int | None = None
    emoji_name: str | None = Field(None, min_length=1, max_length=50, pattern=USERNAME_PATTERN)
    emoji_keywords: str | None = Field(None, max_length=500)


class ConfirmUploadResponse(BaseModel):
    purpose: MediaPurpose
    object_key: str
    url: str
    media: PostMedia | None = None
    emoji: CustomEmoji | None = None
    user: UserFull | None = None


# ============================================================================
# ADMIN SCHEMAS
# ============================================================================


class AuditLogEntry(BaseModel):
    """Audit log entry."""

    id: UUID
    user_id: int | None = None
    user: UserSummary | None = None
    action: str
    resource: str
    resource_id: str | None = None
    details: dict | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AdminUser(UserSummary):
    email: str
    role: Literal["USER", "ADMIN"]
    is_active: bool
    created_at: datetime
    post_count: int = 0
    comment_count: int = 0


class AdminComment(Comment):
    post_slug: str
    post_title: str


class ModerationOverview(BaseModel):
    posts: list[PostSummary]
    comments: list[AdminComment]
    users: list[AdminUser]
