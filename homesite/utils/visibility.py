"""Visibility and access control utilities for posts."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .. import models


def can_view_post(post: "models.Post", user: "models.User" | None) -> bool:
    """
    Check if a user can read a post based on status and visibility.

    Access is allowed if:
    - User is an admin, OR
    - User is the post author, OR
    - Post is PUBLISHED and not PRIVATE

    Notes:
    - UNLISTED posts are readable by anyone holding the link; they are only
      excluded from listings, which filter on `visibility == "PUBLIC"` directly.
    - Drafts and archived posts stay visible to the author and admins.

    Args:
        post: The post to check access for
        user: The current user (None for anonymous users)

    Returns:
        True if access is allowed, False otherwise
    """
    if user is not None:
        if user.is_admin:
            return True

        if user.id == post.author_id:
            return True

    if post.status != "PUBLISHED":
        return False

    return post.visibility != "PRIVATE"
