"""Authentication endpoints."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import clear_session_cookie, create_access_token, get_current_user_optional, set_session_cookie
from ..db import get_db
from ..services.accounts import AccountError, authenticate, create_user, ensure_admin_role
from ..utils.audit import record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

INVALID_CREDENTIALS = "Invalid email or password"


def start_session(db: Session, user: models.User, request: Request) -> tuple[str, datetime]:
    """
    Issue a session for a user whose credentials were verified.

    Allow-listed emails are promoted to ADMIN before the token is minted so
    the role claim is current. The login is audited.
    """
    ensure_admin_role(db, user)
    token, expires_at = create_access_token(user)

    record_audit(
        db,
        action="USER_LOGIN",
        resource="user",
        resource_id=user.id,
        user_id=user.id,
        request=request,
    )
    return token, expires_at


def register_account(db: Session, payload: schemas.RegisterRequest, request: Request) -> models.User:
    """Create an account and audit it. Raises 400 on duplicates."""
    try:
        user = create_user(
            db,
            username=payload.username,
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    except AccountError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or username already registered",
        )

    record_audit(
        db,
        action="USER_REGISTERED",
        resource="user",
        resource_id=user.id,
        user_id=user.id,
        details={"username": user.username},
        request=request,
    )
    return user


@router.post(
    "/register",
    response_model=schemas.UserFull,
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: schemas.RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> schemas.UserFull:
    """
    Register a new account.

    Emails on the ADMIN_EMAILS allow-list are created with the ADMIN role.
    """
    user = register_account(db, payload, request)
    return schemas.UserFull.model_validate(user)


@router.post(
    "/login",
    response_model=schemas.LoginResponse,
)
def login(
    payload: schemas.LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> schemas.LoginResponse:
    """
    Login with email and password.

    Unknown emails, deactivated accounts and wrong passwords all get the same
    401 so the endpoint does not reveal which accounts exist.
    """
    user = authenticate(db, payload.email, payload.password)
    if not user:
        logger.info("Failed login attempt for %s", payload.email.strip().lower())
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
        )

    token, expires_at = start_session(db, user, request)
    set_session_cookie(response, token, expires_at)

    return schemas.LoginResponse(
        token=token,
        expires_at=expires_at,
        user=schemas.UserFull.model_validate(user),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    response: Response,
    current_user: models.User | None = Depends(get_current_user_optional),
) -> None:
    """
    Logout by clearing the session cookie. Bearer tokens simply expire.
    """
    clear_session_cookie(response)
    if current_user:
        logger.info("User %s logged out", current_user.id)
