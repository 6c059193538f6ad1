#!/usr/bin/env python3
"""
Create Admin Script

Creates an ADMIN account, or reports the existing account when the email or
username is already registered.

Usage:
    python scripts/create_admin.py --username admin --email admin@example.com --password 'long-password'

Options:
    --display-name NAME  Display name (defaults to the username)
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

from homesite.db import SessionLocal
from homesite.models import ROLE_ADMIN, User
from homesite.services.accounts import create_user, find_user_by_email


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an admin account")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--display-name", default=None)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if len(args.password) < 8:
        logger.error("Password must be at least 8 characters")
        return 1

    db = SessionLocal()
    try:
        existing = find_user_by_email(db, args.email) or (
            db.query(User).filter(User.username == args.username).first()
        )
        if existing:
            logger.info(
                "User already exists: id=%s username=%s email=%s role=%s",
                existing.id,
                existing.username,
                existing.email,
                existing.role,
            )
            return 0

        user = create_user(
            db,
            username=args.username,
            email=args.email,
            password=args.password,
            display_name=args.display_name,
            role=ROLE_ADMIN,
        )
        logger.info("Created admin user id=%s username=%s email=%s", user.id, user.username, user.email)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
