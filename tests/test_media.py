"""Test media presign, confirm and serving."""

import pytest

from homesite import models
from homesite.routers.media import CACHE_CONTROL, file_extension


def _presign(client, headers, **overrides):
    payload = {"purpose": "POST_IMAGE", "filename": "photo.PNG", "mime_type": "image/png", "size": 1024}
    payload.update(overrides)
    return client.post("/api/media/presign", json=payload, headers=headers)


def _confirm(client, headers, **payload):
    return client.post("/api/media/confirm", json=payload, headers=headers)


@pytest.mark.parametrize(
    "filename,mime_type,expected",
    [
        ("photo.PNG", "image/png", "png"),
        ("archive.tar.gz", "image/gif", "gz"),
        ("noext", "image/jpeg", "jpg"),
        ("weird.???", "image/webp", "webp"),
    ],
)
def test_file_extension(filename, mime_type, expected):
    assert file_extension(filename, mime_type) == expected


def test_presign_returns_scoped_key(client, test_user, auth_headers, fake_storage):
    response = _presign(client, auth_headers(test_user))
    assert response.status_code == 200

    data = response.json()
    assert data["object_key"].startswith(f"post_image/{test_user.id}/")
    assert data["object_key"].endswith(".png")
    assert data["upload_url"].startswith("http://storage.test/bucket/post_image/")
    assert data["public_url"] == f"/api/media/{data['object_key']}"
    assert data["expires_in"] == 3600


def test_presign_rejects_mime_type(client, test_user, auth_headers, fake_storage):
    response = _presign(client, auth_headers(test_user), purpose="AVATAR", mime_type="image/gif")
    assert response.status_code == 400
    assert "Allowed types" in response.json()["detail"]


def test_presign_rejects_oversized(client, test_user, auth_headers, fake_storage):
    response = _presign(client, auth_headers(test_user), purpose="EMOJI", size=5 * 1024 * 1024 + 1)
    assert response.status_code == 400
    assert response.json()["detail"] == "File too large. Maximum size: 5MB"


def test_presign_requires_auth(client, fake_storage):
    assert _presign(client, {}).status_code == 401


def test_confirm_avatar(client, test_user, auth_headers, fake_storage, db):
    headers = auth_headers(test_user)
    key = _presign(client, headers, purpose="AVATAR").json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    response = _confirm(client, headers, purpose="AVATAR", object_key=key)
    assert response.status_code == 200
    assert response.json()["user"]["avatar_url"] == f"/api/media/{key}"

    audit = db.query(models.AuditLog).filter(models.AuditLog.action == "MEDIA_CONFIRMED").one()
    assert audit.resource == "user"
    assert audit.details == {"purpose": "AVATAR", "object_key": key}


def test_confirm_rejects_foreign_key(client, test_user, other_user, auth_headers, fake_storage):
    key = _presign(client, auth_headers(other_user), purpose="AVATAR").json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    response = _confirm(client, auth_headers(test_user), purpose="AVATAR", object_key=key)
    assert response.status_code == 403


def test_confirm_rejects_purpose_mismatch(client, test_user, auth_headers, fake_storage):
    headers = auth_headers(test_user)
    key = _presign(client, headers, purpose="POST_IMAGE").json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    assert _confirm(client, headers, purpose="AVATAR", object_key=key).status_code == 403


def test_confirm_rejects_path_traversal(client, test_user, auth_headers, fake_storage):
    key = f"avatar/{test_user.id}/../1/evil.png"
    assert _confirm(client, auth_headers(test_user), purpose="AVATAR", object_key=key).status_code == 403


def test_confirm_missing_upload(client, test_user, auth_headers, fake_storage):
    headers = auth_headers(test_user)
    key = _presign(client, headers, purpose="AVATAR").json()["object_key"]
    assert _confirm(client, headers, purpose="AVATAR", object_key=key).status_code == 404


def test_confirm_emoji(client, test_user, auth_headers, fake_storage):
    headers = auth_headers(test_user)
    key = _presign(client, headers, purpose="EMOJI").json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    response = _confirm(
        client, headers, purpose="EMOJI", object_key=key, emoji_name="blob", emoji_keywords="round cute"
    )
    assert response.status_code == 200
    emoji = response.json()["emoji"]
    assert emoji["name"] == "blob"
    assert emoji["keywords"] == "round cute"
    assert emoji["owner_id"] == test_user.id

    duplicate = _confirm(client, headers, purpose="EMOJI", object_key=key, emoji_name="blob")
    assert duplicate.status_code == 409


def test_confirm_emoji_requires_name(client, test_user, auth_headers, fake_storage):
    headers = auth_headers(test_user)
    key = _presign(client, headers, purpose="EMOJI").json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    assert _confirm(client, headers, purpose="EMOJI", object_key=key).status_code == 400


def test_confirm_post_image_attaches_media(client, test_user, make_post, auth_headers, fake_storage):
    post = make_post(test_user)
    headers = auth_headers(test_user)
    key = _presign(client, headers).json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    response = _confirm(client, headers, purpose="POST_IMAGE", object_key=key, post_id=post.id)
    assert response.status_code == 200
    assert response.json()["media"]["object_key"] == key

    detail = client.get(f"/api/posts/{post.slug}").json()
    assert [m["url"] for m in detail["media"]] == [f"/api/media/{key}"]


def test_confirm_post_image_without_post(client, test_user, auth_headers, fake_storage):
    headers = auth_headers(test_user)
    key = _presign(client, headers).json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    response = _confirm(client, headers, purpose="POST_IMAGE", object_key=key)
    assert response.status_code == 200
    assert response.json()["media"] is None
    assert response.json()["url"] == f"/api/media/{key}"


def test_confirm_post_image_on_foreign_post(client, test_user, other_user, make_post, auth_headers, fake_storage):
    post = make_post(other_user)
    headers = auth_headers(test_user)
    key = _presign(client, headers).json()["object_key"]
    fake_storage.objects[key] = (b"img", "image/png")

    response = _confirm(client, headers, purpose="POST_IMAGE", object_key=key, post_id=post.id)
    assert response.status_code == 403


def test_serve_media(client, fake_storage):
    fake_storage.objects["post_image/1/a.png"] = (b"\x89PNG data", "image/png")

    response = client.get("/api/media/post_image/1/a.png")
    assert response.status_code == 200
    assert response.content == b"\x89PNG data"
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == CACHE_CONTROL


def test_serve_missing_media(client, fake_storage):
    assert client.get("/api/media/post_image/1/missing.png").status_code == 404
