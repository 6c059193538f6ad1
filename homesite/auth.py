from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .db import get_db
from .settings import SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
oauth2_scheme = HTTPBearer(auto_error=False)

# JWT Configuration
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY:
    raise RuntimeError(
        "JWT_SECRET_KEY environment variable is required but not set. "
        "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
# Validate minimum key length (256 bits = 32 bytes)
if len(JWT_SECRET_KEY) < 32:
    raise RuntimeError(
        "JWT_SECRET_KEY is too short. Must be at least 32 characters long. "
        "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))


def check_user_can_authenticate(user: models.User) -> None:
    """
    Check if a user is allowed to authenticate.
    Raises HTTPException if the user is deactivated.
    """
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account deactivated",
        )


def create_access_token(user: models.User, expires_in_seconds: int | None = None) -> tuple[str, datetime]:
    """
    Create a JWT session token for a user.

    Returns the encoded token and its expiry time (UTC).
    """
    if expires_in_seconds is None:
        expires_in_seconds = JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    expires_at = now + timedelta(seconds=expires_in_seconds)
    payload = {
        "user_id": str(user.id),
        "username": user.username,
        "role": user.role,
        "exp": expires_at,
        "iat": now,
    }

    token = jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    return token, expires_at


def decode_access_token(token: str) -> dict:
    """Decode and verify a session token. Raises jwt.InvalidTokenError."""
    return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])


def _extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    # Authorization header wins over the page session cookie
    if credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


def user_from_token(token: str, db: Session) -> models.User:
    """
    Resolve a session token to an active user.

    Raises 401 HTTPException for expired or invalid tokens, unknown users
    and deactivated accounts.
    """
    try:
        payload = decode_access_token(token)

        user_id_str = payload.get("user_id")
        if not user_id_str:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user_id"
            )

        user = db.query(models.User).filter(models.User.id == int(user_id_str)).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found"
            )

        check_user_can_authenticate(user)

        return user

    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token"
        )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Get current authenticated user from the Bearer token or session cookie.
    """
    token = _extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_from_token(token, db)


async def get_current_user_optional(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User | None:
    """
    Get current user if authenticated, None otherwise.

    Used for endpoints that work differently for authenticated vs anonymous users.
    """
    token = _extract_token(request, credentials)
    if token is None:
        return None

    try:
        return user_from_token(token, db)
    except HTTPException:
        return None


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    """
    Require that the current user has the ADMIN role.
    """
    if not user.is_admin:
        logger.warning("User %s denied admin access", user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return user


def check_ownership(resource_owner_id: int, current_user: models.User) -> bool:
    """
    Check if the current user owns a resource.

    Returns True if:
    - User owns the resource, OR
    - User is an admin
    """
    if resource_owner_id == current_user.id:
        return True

    return current_user.is_admin


def require_ownership(resource_owner_id: int, current_user: models.User) -> None:
    """
    Require that the current user owns a resource or is an admin.

    Raises 403 Forbidden if not authorized.
    """
    if not check_ownership(resource_owner_id, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to access this resource"
        )


def get_client_ip(request: Request) -> str | None:
    """
    Extract client IP address from request, handling proxies.

    Checks X-Forwarded-For (first hop), then X-Real-IP, then falls back to
    the direct peer address.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs; take the first one
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None


def set_session_cookie(response: Response, token: str, expires_at: datetime) -> None:
    """Attach the session token as an HttpOnly cookie for the server-rendered pages."""
    max_age = int((expires_at - datetime.now(timezone.utc).replace(tzinfo=None)).total_seconds())
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=max(max_age, 0),
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
