"""Audit logging utility for mutating actions."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_client_ip

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 500


def record_audit(
    db: Session,
    action: str,
    resource: str,
    resource_id: Any = None,
    user_id: int | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> models.AuditLog:
    """
    Append an entry to the audit log.

    Args:
        db: Database session
        action: Action name (e.g., "POST_CREATED", "ADMIN_DELETE_COMMENT")
        resource: Type of resource acted on (e.g., "post", "comment", "user")
        resource_id: ID of the resource; stored as a string
        user_id: ID of the acting user, None for anonymous actions
        details: Additional JSON context about the action
        request: Incoming request, used for client IP and user agent

    Returns:
        The created AuditLog entry
    """
    ip_address = None
    user_agent = None
    if request is not None:
        ip_address = get_client_ip(request)
        user_agent = request.headers.get("User-Agent")
        if user_agent:
            user_agent = user_agent[:USER_AGENT_MAX_LENGTH]

    entry = models.AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details or {},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    logger.debug("Audit %s on %s/%s by %s", action, resource, resource_id, user_id)
    return entry
