"""Test idempotent seed data."""

from homesite import models
from homesite.seed import DEFAULT_TAGS, seed_admins, seed_tags


def test_seed_tags_is_idempotent(db):
    assert seed_tags(db) == len(DEFAULT_TAGS)
    assert seed_tags(db) == 0
    assert db.query(models.Tag).count() == len(DEFAULT_TAGS)


def test_seed_admins_promotes_existing_user(db, test_user, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "TestUser@example.com")
    seed_admins(db)
    db.refresh(test_user)
    assert test_user.role == "ADMIN"


def test_seed_admins_skips_creation_without_password(db, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "owner@example.com")
    monkeypatch.delenv("SEED_ADMIN_PASSWORD", raising=False)
    seed_admins(db)
    assert db.query(models.User).count() == 0


def test_seed_admins_creates_account(db, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "site.owner@example.com")
    monkeypatch.setenv("SEED_ADMIN_PASSWORD", "bootstrap-password")
    seed_admins(db)
    seed_admins(db)

    user = db.query(models.User).one()
    assert user.username == "site-owner"
    assert user.role == "ADMIN"
