from __future__ import annotations

import logging
import os

from sqlalchemy.orm import Session

from . import models
from .db import SessionLocal
from .services.accounts import create_user, ensure_admin_role, find_user_by_email
from .settings import admin_emails
from .utils.text import slugify

logger = logging.getLogger(__name__)

DEFAULT_TAGS = ("Tutorial", "Update", "Announcement", "Guide")


def seed_tags(db: Session) -> int:
    created = 0
    for name in DEFAULT_TAGS:
        slug = slugify(name)
        if db.query(models.Tag).filter(models.Tag.slug == slug).first():
            continue
        db.add(models.Tag(name=name, slug=slug))
        created += 1
    db.commit()
    return created


def seed_admins(db: Session) -> None:
    """
    Promote existing allow-listed accounts and create missing ones.

    Missing accounts are only created when SEED_ADMIN_PASSWORD is set; the
    username is the local part of the email.
    """
    password = os.getenv("SEED_ADMIN_PASSWORD")
    for email in sorted(admin_emails()):
        user = find_user_by_email(db, email)
        if user:
            ensure_admin_role(db, user)
            continue

        if not password:
            logger.info("Admin %s has no account yet; set SEED_ADMIN_PASSWORD to create it", email)
            continue

        username = slugify(email.split("@", 1)[0])[:30] or "admin"
        if db.query(models.User).filter(models.User.username == username).first():
            logger.warning("Cannot create admin %s: username %s is taken", email, username)
            continue

        create_user(db, username=username, email=email, password=password, role=models.ROLE_ADMIN)
        logger.info("Created admin account %s", email)


def ensure_seed_data() -> None:
    """
    Idempotent seed data: default tags and admin accounts from ADMIN_EMAILS.
    """
    db = SessionLocal()
    try:
        created = seed_tags(db)
        seed_admins(db)
        logger.info("ensure_seed_data: created %d tags.", created)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level="INFO")
    ensure_seed_data()
