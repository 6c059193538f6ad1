"""Test custom emoji endpoints."""

from datetime import timedelta

from homesite import models


def _emoji(db, owner, name, keywords="", is_active=True, created_at=None):
    emoji = models.CustomEmoji(
        owner_id=owner.id,
        name=name,
        object_key=f"emoji/{owner.id}/{name}.png",
        keywords=keywords,
        is_active=is_active,
        created_at=created_at or models.utcnow(),
    )
    db.add(emoji)
    db.commit()
    db.refresh(emoji)
    return emoji


def test_list_my_emojis(client, test_user, other_user, auth_headers, db):
    base = models.utcnow()
    _emoji(db, test_user, "old", created_at=base)
    _emoji(db, test_user, "new", created_at=base + timedelta(minutes=1))
    _emoji(db, test_user, "hidden", is_active=False)
    _emoji(db, other_user, "theirs")

    response = client.get("/api/emojis", headers=auth_headers(test_user))
    assert response.status_code == 200
    data = response.json()
    assert [e["name"] for e in data] == ["new", "old"]
    assert data[0]["url"].endswith(f"emoji/{test_user.id}/new.png")


def test_search_emojis(client, test_user, other_user, db):
    _emoji(db, test_user, "partyparrot", keywords="bird celebrate")
    _emoji(db, other_user, "cake", keywords="party birthday")
    _emoji(db, other_user, "sleepy", keywords="tired")
    _emoji(db, other_user, "partyghost", is_active=False)

    response = client.get("/api/emojis/search", params={"q": "PARTY"})
    assert response.status_code == 200
    assert [e["name"] for e in response.json()] == ["cake", "partyparrot"]


def test_search_empty_query(client, test_user, db):
    _emoji(db, test_user, "anything")
    assert client.get("/api/emojis/search", params={"q": "  "}).json() == []


def test_update_emoji(client, test_user, auth_headers, db):
    emoji = _emoji(db, test_user, "smile")
    response = client.patch(
        f"/api/emojis/{emoji.id}", json={"name": "grin", "keywords": "happy"}, headers=auth_headers(test_user)
    )
    assert response.status_code == 200
    assert response.json()["name"] == "grin"
    assert response.json()["keywords"] == "happy"


def test_update_emoji_name_clash(client, test_user, auth_headers, db):
    _emoji(db, test_user, "taken")
    emoji = _emoji(db, test_user, "mine")
    response = client.patch(f"/api/emojis/{emoji.id}", json={"name": "taken"}, headers=auth_headers(test_user))
    assert response.status_code == 400


def test_update_emoji_forbidden(client, test_user, other_user, auth_headers, db):
    emoji = _emoji(db, test_user, "mine")
    response = client.patch(f"/api/emojis/{emoji.id}", json={"name": "stolen"}, headers=auth_headers(other_user))
    assert response.status_code == 403


def test_delete_emoji_removes_object(client, test_user, auth_headers, db, fake_storage):
    emoji = _emoji(db, test_user, "gone")
    fake_storage.objects[emoji.object_key] = (b"png", "image/png")

    response = client.delete(f"/api/emojis/{emoji.id}", headers=auth_headers(test_user))
    assert response.status_code == 204
    assert fake_storage.deleted == [f"emoji/{test_user.id}/gone.png"]

    db.expire_all()
    assert db.query(models.CustomEmoji).count() == 0
    assert db.query(models.AuditLog).filter(models.AuditLog.action == "EMOJI_DELETED").count() == 1


def test_delete_emoji_survives_storage_failure(client, test_user, auth_headers, db, fake_storage):
    emoji = _emoji(db, test_user, "stubborn")
    fake_storage.fail_delete = True

    response = client.delete(f"/api/emojis/{emoji.id}", headers=auth_headers(test_user))
    assert response.status_code == 204
    db.expire_all()
    assert db.query(models.CustomEmoji).count() == 0


def test_delete_missing_emoji(client, test_user, auth_headers):
    response = client.delete(
        "/api/emojis/00000000-0000-0000-0000-000000000000", headers=auth_headers(test_user)
    )
    assert response.status_code == 404
