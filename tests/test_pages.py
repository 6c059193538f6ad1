"""Test server-rendered pages."""

from homesite import models
from homesite.auth import create_access_token
from homesite.settings import SESSION_COOKIE_NAME


def _login_cookie(client, user):
    token, _ = create_access_token(user)
    client.cookies.set(SESSION_COOKIE_NAME, token)


def test_home_lists_latest_public_posts(client, test_user, make_post):
    make_post(test_user, title="Shown Post")
    make_post(test_user, title="Hidden Draft", status="DRAFT")

    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "Shown Post" in response.text
    assert "Hidden Draft" not in response.text
    assert 'href="/login"' in response.text


def test_posts_index_filters_by_tag(client, test_user, make_post, db):
    tagged = make_post(test_user, title="Tagged Post")
    make_post(test_user, title="Plain Post")
    tagged.tags = [models.Tag(name="Python", slug="python")]
    db.commit()

    response = client.get("/posts", params={"tag": "python"})
    assert response.status_code == 200
    assert "Tagged Post" in response.text
    assert "Plain Post" not in response.text


def test_post_page_renders_sanitized_markdown(client, test_user, make_post, db):
    post = make_post(
        test_user,
        title="Rendered",
        content="**bold** text\n\n<script>alert('x')</script>",
    )
    db.add(models.Comment(post_id=post.id, author_id=test_user.id, content="First comment", depth=0))
    db.commit()

    response = client.get("/posts/rendered")
    assert response.status_code == 200
    assert "<strong>bold</strong>" in response.text
    assert "<script>" not in response.text
    assert "First comment" in response.text
    assert "Comments (1)" in response.text


def test_post_page_hides_private_post(client, test_user, make_post):
    make_post(test_user, title="Private Thoughts", visibility="PRIVATE")
    response = client.get("/posts/private-thoughts")
    assert response.status_code == 404
    assert "Post not found" in response.text


def test_post_page_shows_draft_to_author(client, test_user, make_post):
    make_post(test_user, title="Work In Progress", status="DRAFT")
    _login_cookie(client, test_user)
    response = client.get("/posts/work-in-progress")
    assert response.status_code == 200
    assert "DRAFT" in response.text


def test_user_profile_page(client, test_user, make_post):
    make_post(test_user, title="Profile Post")
    response = client.get("/u/testuser")
    assert response.status_code == 200
    assert "Profile Post" in response.text
    assert client.get("/u/nobody").status_code == 404


def test_login_form_and_submit(client, test_user):
    assert client.get("/login").status_code == 200

    response = client.post(
        "/login",
        data={"email": "testuser@example.com", "password": "password123", "next": "/posts"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/posts"
    assert f"{SESSION_COOKIE_NAME}=" in response.headers["set-cookie"]


def test_login_ignores_offsite_next(client, test_user):
    response = client.post(
        "/login",
        data={"email": "testuser@example.com", "password": "password123", "next": "//evil.example"},
        follow_redirects=False,
    )
    assert response.headers["location"] == "/dashboard"


def test_login_failure_rerenders_form(client, test_user):
    response = client.post("/login", data={"email": "testuser@example.com", "password": "nope"})
    assert response.status_code == 401
    assert "Invalid email or password" in response.text


def test_register_page_flow(client, db):
    response = client.post(
        "/register",
        data={"username": "pageuser", "email": "page@example.com", "password": "password123"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"
    assert db.query(models.User).filter(models.User.username == "pageuser").count() == 1


def test_register_page_validation_errors(client):
    response = client.post(
        "/register", data={"username": "x", "email": "page@example.com", "password": "password123"}
    )
    assert response.status_code == 400
    assert "at least 3 characters" in response.text


def test_register_page_duplicate(client, test_user):
    response = client.post(
        "/register", data={"username": "fresh", "email": "testuser@example.com", "password": "password123"}
    )
    assert response.status_code == 400
    assert "Email already registered" in response.text


def test_dashboard_redirects_when_logged_out(client):
    response = client.get("/dashboard", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login?next=/dashboard"


def test_dashboard_lists_own_posts(client, test_user, make_post):
    make_post(test_user, title="My Draft", status="DRAFT")
    _login_cookie(client, test_user)
    response = client.get("/dashboard")
    assert response.status_code == 200
    assert "My Draft" in response.text


def test_logout_page(client, test_user):
    _login_cookie(client, test_user)
    response = client.get("/logout", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"


def test_admin_pages_gated(client, test_user, admin_user):
    response = client.get("/admin/moderation", follow_redirects=False)
    assert response.status_code == 303

    _login_cookie(client, test_user)
    assert client.get("/admin/moderation").status_code == 403
    assert client.get("/admin/audit").status_code == 403

    _login_cookie(client, admin_user)
    assert client.get("/admin/moderation").status_code == 200
    assert client.get("/admin/audit").status_code == 200


def test_static_pages(client):
    assert "About" in client.get("/about").text
    assert "Projects" in client.get("/projects").text
    assert "Tools" in client.get("/tools").text


def test_upload_script_is_served(client):
    response = client.get("/static/upload.js")
    assert response.status_code == 200
    assert "/api/media/presign" in response.text


def test_editor_requires_login(client):
    response = client.get("/editor/new", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login?next=/editor/new"


def test_editor_creates_post(client, test_user, db):
    _login_cookie(client, test_user)
    assert client.get("/editor/new").status_code == 200

    response = client.post(
        "/editor/new",
        data={
            "title": "Written In Browser",
            "content": "Hello *there*",
            "excerpt": "",
            "status": "PUBLISHED",
            "visibility": "PUBLIC",
            "tags": "python, web dev,",
        },
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/posts/written-in-browser"

    post = db.query(models.Post).filter(models.Post.slug == "written-in-browser").one()
    assert post.author_id == test_user.id
    assert post.published_at is not None
    assert post.excerpt is None
    assert sorted(tag.slug for tag in post.tags) == ["python", "web-dev"]
    assert db.query(models.AuditLog).filter(models.AuditLog.action == "POST_CREATED").count() == 1


def test_editor_rerenders_invalid_input(client, test_user, db):
    _login_cookie(client, test_user)
    response = client.post(
        "/editor/new",
        data={"title": "", "content": "Body kept", "status": "DRAFT", "visibility": "PUBLIC", "tags": "x" * 51},
    )
    assert response.status_code == 400
    assert "at least 1 character" in response.text
    assert "at most 50 characters" in response.text
    assert "Body kept" in response.text
    assert db.query(models.Post).count() == 0


def test_edit_page_for_owner_only(client, test_user, other_user, make_post):
    make_post(test_user, title="Editable")

    _login_cookie(client, other_user)
    assert client.get("/posts/editable/edit").status_code == 403
    response = client.post("/posts/editable/edit", data={"title": "Hijacked", "content": "x"})
    assert response.status_code == 403

    _login_cookie(client, test_user)
    response = client.get("/posts/editable/edit")
    assert response.status_code == 200
    assert 'value="Editable"' in response.text


def test_edit_page_updates_post(client, test_user, make_post, db):
    post = make_post(test_user, title="Before", status="DRAFT")
    _login_cookie(client, test_user)

    response = client.post(
        "/posts/before/edit",
        data={
            "title": "After",
            "content": "New body",
            "excerpt": "Summary",
            "status": "PUBLISHED",
            "visibility": "UNLISTED",
            "tags": "rust",
        },
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/posts/before"

    db.refresh(post)
    assert post.title == "After"
    assert post.visibility == "UNLISTED"
    assert post.published_at is not None
    assert [tag.slug for tag in post.tags] == ["rust"]


def test_post_page_shows_forms_when_logged_in(client, test_user, make_post):
    make_post(test_user, title="Interactive")

    anonymous = client.get("/posts/interactive").text
    assert 'action="/posts/interactive/comments"' not in anonymous
    assert "to join the discussion" in anonymous

    _login_cookie(client, test_user)
    response = client.get("/posts/interactive")
    assert 'action="/posts/interactive/comments"' in response.text
    assert 'action="/posts/interactive/reactions"' in response.text
    assert 'href="/posts/interactive/edit"' in response.text


def test_comment_form(client, test_user, make_post, db):
    post = make_post(test_user, title="Discuss")

    response = client.post("/posts/discuss/comments", data={"content": "Hi"}, follow_redirects=False)
    assert response.headers["location"] == "/login?next=/posts/discuss"

    _login_cookie(client, test_user)
    response = client.post("/posts/discuss/comments", data={"content": "From the page"}, follow_redirects=False)
    assert response.status_code == 303

    comment = db.query(models.Comment).filter(models.Comment.post_id == post.id).one()
    assert comment.content == "From the page"
    assert response.headers["location"] == f"/posts/discuss#comment-{comment.id}"

    reply = client.post(
        "/posts/discuss/comments",
        data={"content": "A reply", "parent_id": str(comment.id)},
        follow_redirects=False,
    )
    assert reply.status_code == 303
    assert db.query(models.Comment).filter(models.Comment.parent_id == comment.id).one().depth == 1


def test_comment_form_errors(client, test_user, make_post):
    make_post(test_user, title="Discuss")
    _login_cookie(client, test_user)

    response = client.post(
        "/posts/discuss/comments",
        data={"content": "Orphan", "parent_id": "00000000-0000-0000-0000-000000000000"},
    )
    assert response.status_code == 400
    assert "Invalid parent comment" in response.text

    response = client.post("/posts/discuss/comments", data={"content": "x" * 2001})
    assert response.status_code == 400


def test_reaction_buttons_toggle(client, test_user, make_post, db):
    post = make_post(test_user, title="Likeable")
    _login_cookie(client, test_user)

    response = client.post("/posts/likeable/reactions", data={"type": "LIKE"}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/posts/likeable"
    assert db.query(models.Reaction).filter(models.Reaction.post_id == post.id).count() == 1
    assert 'class="mine">LIKE 1' in client.get("/posts/likeable").text

    client.post("/posts/likeable/reactions", data={"type": "LIKE"}, follow_redirects=False)
    assert db.query(models.Reaction).filter(models.Reaction.post_id == post.id).count() == 0


def test_reaction_on_comment_and_invalid_type(client, test_user, make_post, db):
    post = make_post(test_user, title="Likeable")
    comment = models.Comment(post_id=post.id, author_id=test_user.id, content="Nice", depth=0)
    db.add(comment)
    db.commit()
    _login_cookie(client, test_user)

    response = client.post(
        "/posts/likeable/reactions",
        data={"type": "LOVE", "comment_id": str(comment.id)},
        follow_redirects=False,
    )
    assert response.headers["location"] == f"/posts/likeable#comment-{comment.id}"
    reaction = db.query(models.Reaction).one()
    assert reaction.comment_id == comment.id
    assert reaction.post_id is None

    assert client.post("/posts/likeable/reactions", data={"type": "ANGRY"}).status_code == 400
    response = client.post("/posts/likeable/reactions", data={"type": "CUSTOM"})
    assert response.status_code == 400
    assert "custom_emoji_id is required" in response.text


def test_profile_settings(client, test_user, db):
    assert client.get("/settings/profile", follow_redirects=False).status_code == 303

    _login_cookie(client, test_user)
    assert client.get("/settings/profile").status_code == 200

    response = client.post(
        "/settings/profile",
        data={"display_name": "Tess", "bio": "Writes things"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/settings/profile?saved=true"

    db.refresh(test_user)
    assert test_user.display_name == "Tess"
    assert test_user.bio == "Writes things"
    assert db.query(models.AuditLog).filter(models.AuditLog.action == "PROFILE_UPDATED").count() == 1

    response = client.post("/settings/profile", data={"display_name": "n" * 101, "bio": ""})
    assert response.status_code == 400


def _page_emoji(db, owner, name):
    emoji = models.CustomEmoji(owner_id=owner.id, name=name, object_key=f"emoji/{owner.id}/{name}.png")
    db.add(emoji)
    db.commit()
    db.refresh(emoji)
    return emoji


def test_emoji_settings_rename_and_delete(client, test_user, other_user, db, fake_storage):
    emoji = _page_emoji(db, test_user, "wave")
    theirs = _page_emoji(db, other_user, "theirs")
    _login_cookie(client, test_user)

    response = client.get("/settings/emojis")
    assert response.status_code == 200
    assert ":wave:" in response.text
    assert ":theirs:" not in response.text

    response = client.post(
        f"/settings/emojis/{emoji.id}", data={"name": "hello", "keywords": "hi"}, follow_redirects=False
    )
    assert response.status_code == 303
    db.refresh(emoji)
    assert emoji.name == "hello"
    assert emoji.keywords == "hi"

    assert client.post(f"/settings/emojis/{theirs.id}", data={"name": "mine"}).status_code == 403

    response = client.post(f"/settings/emojis/{emoji.id}/delete", follow_redirects=False)
    assert response.status_code == 303
    assert db.query(models.CustomEmoji).filter(models.CustomEmoji.owner_id == test_user.id).count() == 0
    assert fake_storage.deleted == [f"emoji/{test_user.id}/wave.png"]
