"""Account service: password hashing, registration and credential checks."""

from __future__ import annotations

import logging

from passlib.context import CryptContext
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import ROLE_ADMIN, ROLE_USER, User
from ..settings import admin_emails

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


class AccountError(Exception):
    """Raised when an account cannot be created."""


def hash_password(password: str) -> str:
    """Hash a password using Argon2."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def is_admin_email(email: str) -> bool:
    return email.strip().lower() in admin_emails()


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    display_name: str | None = None,
    role: str | None = None,
) -> User:
    """
    Create a user account.

    Args:
        db: Database session
        username: Unique username
        email: Email address (stored lowercase)
        password: Plain text password (will be hashed)
        display_name: Optional display name, defaults to the username
        role: Explicit role; when omitted, ADMIN for allow-listed emails

    Returns:
        Created User

    Raises:
        AccountError: If the email or username is already taken
    """
    email = email.strip().lower()

    if find_user_by_email(db, email):
        raise AccountError("Email already registered")
    if db.query(User).filter(func.lower(User.username) == username.lower()).first():
        raise AccountError("Username already taken")

    if role is None:
        role = ROLE_ADMIN if is_admin_email(email) else ROLE_USER

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        display_name=display_name or username,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Created user %s (role=%s)", user.id, user.role)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    """
    Find a user by email and verify the password.

    Returns the user when the credentials match an active account, None otherwise.
    """
    user = find_user_by_email(db, email)
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


def ensure_admin_role(db: Session, user: User) -> bool:
    """
    Promote an allow-listed user to ADMIN if they are not already.

    Returns True when the role changed.
    """
    if user.role == ROLE_ADMIN or not is_admin_email(user.email):
        return False

    user.role = ROLE_ADMIN
    db.commit()
    db.refresh(user)
    logger.info("Promoted user %s to ADMIN from allow-list", user.id)
    return True
