"""Test tag endpoints."""

from homesite import models


def test_list_tags_with_counts(client, test_user, make_post, db):
    python = models.Tag(name="Python", slug="python")
    rust = models.Tag(name="Rust", slug="rust")
    db.add_all([python, rust])
    post = make_post(test_user)
    post.tags = [python]
    db.commit()

    response = client.get("/api/tags")
    assert response.status_code == 200
    assert [(t["name"], t["post_count"]) for t in response.json()] == [("Python", 1), ("Rust", 0)]


def test_search_tags(client, db):
    db.add_all([models.Tag(name="Python", slug="python"), models.Tag(name="Rust", slug="rust")])
    db.commit()

    response = client.get("/api/tags", params={"search": "PYT"})
    assert [t["slug"] for t in response.json()] == ["python"]


def test_create_tag(client, test_user, auth_headers, db):
    response = client.post(
        "/api/tags", json={"name": "Machine Learning", "slug": "machine-learning"}, headers=auth_headers(test_user)
    )
    assert response.status_code == 201
    assert response.json()["slug"] == "machine-learning"
    assert db.query(models.AuditLog).filter(models.AuditLog.action == "TAG_CREATED").count() == 1


def test_create_tag_conflicts(client, test_user, auth_headers, db):
    db.add(models.Tag(name="Python", slug="python"))
    db.commit()
    headers = auth_headers(test_user)

    assert client.post("/api/tags", json={"name": "python", "slug": "py"}, headers=headers).status_code == 409
    assert client.post("/api/tags", json={"name": "Py", "slug": "python"}, headers=headers).status_code == 409


def test_create_tag_validation(client, test_user, auth_headers):
    response = client.post("/api/tags", json={"name": "Bad", "slug": "Bad Slug"}, headers=auth_headers(test_user))
    assert response.status_code == 422


def test_create_tag_requires_auth(client):
    assert client.post("/api/tags", json={"name": "X", "slug": "x"}).status_code == 401
