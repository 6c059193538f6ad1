"""Server-rendered HTML pages."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import check_ownership, clear_session_cookie, get_current_user_optional, set_session_cookie
from ..db import get_db
from ..pagination import paginate
from ..services import posts as post_service
from ..services.accounts import authenticate
from ..services.comments import build_comment_tree, count_comments
from ..settings import MAX_COMMENT_DEPTH
from ..utils.text import format_date, render_markdown
from .admin import audit_log_query, moderation_overview
from .auth import INVALID_CREDENTIALS, register_account, start_session
from .comments import add_comment
from .emojis import active_emojis_for, edit_emoji, get_emoji_or_404, remove_emoji
from .posts import apply_post_update, create_post_record
from .reactions import apply_reaction
from .users import public_profile, update_profile

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"], include_in_schema=False)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
templates.env.filters["markdown"] = render_markdown
templates.env.filters["date"] = format_date

HOME_POST_COUNT = 5
POSTS_PER_PAGE = 10
DASHBOARD_COMMENT_COUNT = 20
AUDIT_PER_PAGE = 50

PROJECTS = [
    {
        "title": "homesite",
        "description": "This site: a self-hosted personal website with a blog, comments and reactions.",
        "tags": ["FastAPI", "SQLAlchemy", "PostgreSQL", "MinIO"],
        "status": "Active",
        "link": "/posts",
    },
    {
        "title": "Example Project",
        "description": "A placeholder showing how projects are listed. Replace it with your own work.",
        "tags": ["Python"],
        "status": "Completed",
        "link": None,
    },
]

TOOLS = [
    {
        "name": "Markdown preview",
        "description": "Write a post in the editor and preview it exactly as readers will see it.",
        "category": "Writing",
        "link": "/editor/new",
    },
    {
        "name": "Tag browser",
        "description": "Browse every published post carrying a tag.",
        "category": "Navigation",
        "link": "/posts",
    },
]


def render(
    request: Request,
    name: str,
    user: models.User | None,
    status_code: int = status.HTTP_200_OK,
    **context,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request, name, {"current_user": user, **context}, status_code=status_code
    )


def not_found(request: Request, user: models.User | None, message: str = "Page not found") -> HTMLResponse:
    return render(request, "error.html", user, status_code=status.HTTP_404_NOT_FOUND, message=message)


def forbidden(request: Request, user: models.User | None, message: str) -> HTMLResponse:
    return render(request, "error.html", user, status_code=status.HTTP_403_FORBIDDEN, message=message)


def login_redirect(next_path: str) -> RedirectResponse:
    return RedirectResponse(f"/login?next={quote(next_path)}", status_code=status.HTTP_303_SEE_OTHER)


def see_other(path: str) -> RedirectResponse:
    return RedirectResponse(path, status_code=status.HTTP_303_SEE_OTHER)


def validation_messages(e: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]


def split_tags(raw: str) -> list[str]:
    """Comma-separated tag input to a list of names."""
    return [name.strip() for name in raw.split(",") if name.strip()]


def _safe_next(next_path: str | None) -> str:
    # Only same-site relative paths
    if next_path and next_path.startswith("/") and not next_path.startswith("//"):
        return next_path
    return "/dashboard"


def _session_redirect(db: Session, user: models.User, request: Request, next_path: str | None) -> Response:
    token, expires_at = start_session(db, user, request)
    response = see_other(_safe_next(next_path))
    set_session_cookie(response, token, expires_at)
    return response


@router.get("/", response_class=HTMLResponse)
def home(
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> HTMLResponse:
    posts = post_service.public_posts_query(db).limit(HOME_POST_COUNT).all()
    return render(request, "index.html", current_user, posts=post_service.summarize_posts(db, posts))


@router.get("/about", response_class=HTMLResponse)
def about(
    request: Request, current_user: models.User | None = Depends(get_current_user_optional)
) -> HTMLResponse:
    return render(request, "about.html", current_user)


@router.get("/projects", response_class=HTMLResponse)
def projects(
    request: Request, current_user: models.User | None = Depends(get_current_user_optional)
) -> HTMLResponse:
    return render(request, "projects.html", current_user, projects=PROJECTS)


@router.get("/tools", response_class=HTMLResponse)
def tools(
    request: Request, current_user: models.User | None = Depends(get_current_user_optional)
) -> HTMLResponse:
    return render(request, "tools.html", current_user, tools=TOOLS)


@router.get("/posts", response_class=HTMLResponse)
def posts_index(
    request: Request,
    page: int = Query(1, ge=1),
    tag: str | None = None,
    author: str | None = None,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> HTMLResponse:
    items, pagination = paginate(post_service.public_posts_query(db, tag=tag, author=author), page, POSTS_PER_PAGE)
    return render(
        request,
        "posts.html",
        current_user,
        posts=post_service.summarize_posts(db, items),
        pagination=pagination,
        tag=tag,
        author=author,
    )


def render_post(
    request: Request,
    db: Session,
    post: models.Post,
    user: models.User | None,
    status_code: int = status.HTTP_200_OK,
    errors: list[str] | None = None,
    form: dict | None = None,
) -> HTMLResponse:
    """Post page with its comment tree, reaction controls and comment form."""
    comments = build_comment_tree(db, post.id)
    return render(
        request,
        "post.html",
        user,
        status_code=status_code,
        post=post_service.serialize_post(db, post, user),
        comments=comments,
        comment_total=count_comments(comments),
        can_edit=user is not None and check_ownership(post.author_id, user),
        my_emojis=active_emojis_for(db, user) if user else [],
        reaction_types=post_service.BUILTIN_REACTIONS,
        max_depth=MAX_COMMENT_DEPTH,
        errors=errors or [],
        form=form or {},
    )


@router.get("/posts/{slug}", response_class=HTMLResponse)
def post_detail(
    slug: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> HTMLResponse:
    post = post_service.get_visible_post(db, slug, current_user)
    if not post:
        return not_found(request, current_user, "Post not found")
    return render_post(request, db, post, current_user)


@router.post("/posts/{slug}/comments", response_class=HTMLResponse)
def post_comment(
    slug: str,
    request: Request,
    content: str = Form(""),
    parent_id: str | None = Form(None),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect(f"/posts/{slug}")
    post = post_service.get_visible_post(db, slug, current_user)
    if not post:
        return not_found(request, current_user, "Post not found")

    form = {"content": content, "parent_id": parent_id or ""}
    try:
        payload = schemas.CommentCreate(post_id=post.id, content=content, parent_id=parent_id or None)
        comment = add_comment(db, payload, current_user, request)
    except ValidationError as e:
        return render_post(
            request, db, post, current_user, status.HTTP_400_BAD_REQUEST, validation_messages(e), form
        )
    except HTTPException as e:
        return render_post(request, db, post, current_user, e.status_code, [e.detail], form)

    return see_other(f"/posts/{slug}#comment-{comment.id}")


@router.post("/posts/{slug}/reactions", response_class=HTMLResponse)
def post_reaction(
    slug: str,
    request: Request,
    type: str = Form(...),
    comment_id: str | None = Form(None),
    custom_emoji_id: str | None = Form(None),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    """Toggle a reaction on the post, or on one of its comments when `comment_id` is set."""
    if not current_user:
        return login_redirect(f"/posts/{slug}")
    post = post_service.get_visible_post(db, slug, current_user)
    if not post:
        return not_found(request, current_user, "Post not found")

    try:
        payload = schemas.ReactionToggle(
            type=type,
            post_id=None if comment_id else post.id,
            comment_id=comment_id or None,
            custom_emoji_id=custom_emoji_id or None,
        )
        apply_reaction(db, payload, current_user)
    except ValidationError as e:
        return render_post(request, db, post, current_user, status.HTTP_400_BAD_REQUEST, validation_messages(e))
    except HTTPException as e:
        return render_post(request, db, post, current_user, e.status_code, [e.detail])

    anchor = f"#comment-{comment_id}" if comment_id else ""
    return see_other(f"/posts/{slug}{anchor}")


def _post_form(post: models.Post | None = None) -> dict:
    if post is None:
        return {"title": "", "content": "", "excerpt": "", "status": "DRAFT", "visibility": "PUBLIC", "tags": ""}
    return {
        "title": post.title,
        "content": post.content,
        "excerpt": post.excerpt or "",
        "status": post.status,
        "visibility": post.visibility,
        "tags": ", ".join(tag.name for tag in post.tags),
    }


def render_editor(
    request: Request,
    user: models.User,
    post: models.Post | None,
    form: dict,
    errors: list[str] | None = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    media = [schemas.PostMedia.model_validate(m) for m in post.media] if post else []
    return render(
        request,
        "editor.html",
        user,
        status_code=status_code,
        post=post,
        media=media,
        form=form,
        errors=errors or [],
    )


@router.get("/editor/new", response_class=HTMLResponse)
def editor_new(
    request: Request,
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/editor/new")
    return render_editor(request, current_user, None, _post_form())


@router.post("/editor/new", response_class=HTMLResponse)
def editor_create(
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    excerpt: str = Form(""),
    status_: str = Form("DRAFT", alias="status"),
    visibility: str = Form("PUBLIC"),
    tags: str = Form(""),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/editor/new")

    form = {
        "title": title,
        "content": content,
        "excerpt": excerpt,
        "status": status_,
        "visibility": visibility,
        "tags": tags,
    }
    try:
        payload = schemas.PostCreate(
            title=title,
            content=content,
            excerpt=excerpt or None,
            status=status_,
            visibility=visibility,
            tags=split_tags(tags),
        )
    except ValidationError as e:
        return render_editor(
            request, current_user, None, form, validation_messages(e), status.HTTP_400_BAD_REQUEST
        )

    post = create_post_record(db, payload, current_user, request)
    return see_other(f"/posts/{post.slug}")


@router.get("/posts/{slug}/edit", response_class=HTMLResponse)
def editor_edit(
    slug: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect(f"/posts/{slug}/edit")
    post = post_service.get_post_by_slug(db, slug)
    if not post:
        return not_found(request, current_user, "Post not found")
    if not check_ownership(post.author_id, current_user):
        return forbidden(request, current_user, "You can only edit your own posts")
    return render_editor(request, current_user, post, _post_form(post))


@router.post("/posts/{slug}/edit", response_class=HTMLResponse)
def editor_update(
    slug: str,
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    excerpt: str = Form(""),
    status_: str = Form("DRAFT", alias="status"),
    visibility: str = Form("PUBLIC"),
    tags: str = Form(""),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect(f"/posts/{slug}/edit")
    post = post_service.get_post_by_slug(db, slug)
    if not post:
        return not_found(request, current_user, "Post not found")
    if not check_ownership(post.author_id, current_user):
        return forbidden(request, current_user, "You can only edit your own posts")

    form = {
        "title": title,
        "content": content,
        "excerpt": excerpt,
        "status": status_,
        "visibility": visibility,
        "tags": tags,
    }
    try:
        payload = schemas.PostUpdate(
            title=title,
            content=content,
            excerpt=excerpt or None,
            status=status_,
            visibility=visibility,
            tags=split_tags(tags),
        )
        apply_post_update(db, post, payload, current_user, request)
    except ValidationError as e:
        return render_editor(
            request, current_user, post, form, validation_messages(e), status.HTTP_400_BAD_REQUEST
        )

    return see_other(f"/posts/{slug}")


@router.get("/settings/profile", response_class=HTMLResponse)
def settings_profile(
    request: Request,
    saved: bool = False,
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/settings/profile")
    form = {"display_name": current_user.display_name or "", "bio": current_user.bio or ""}
    return render(request, "settings_profile.html", current_user, form=form, errors=[], saved=saved)


@router.post("/settings/profile", response_class=HTMLResponse)
def settings_profile_submit(
    request: Request,
    display_name: str = Form(""),
    bio: str = Form(""),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/settings/profile")

    try:
        payload = schemas.UserUpdate(display_name=display_name.strip() or None, bio=bio.strip() or None)
    except ValidationError as e:
        return render(
            request,
            "settings_profile.html",
            current_user,
            status_code=status.HTTP_400_BAD_REQUEST,
            form={"display_name": display_name, "bio": bio},
            errors=validation_messages(e),
            saved=False,
        )

    update_profile(db, current_user, payload, request)
    return see_other("/settings/profile?saved=true")


def _render_emoji_settings(
    request: Request,
    db: Session,
    user: models.User,
    status_code: int = status.HTTP_200_OK,
    errors: list[str] | None = None,
) -> HTMLResponse:
    return render(
        request,
        "settings_emojis.html",
        user,
        status_code=status_code,
        emojis=[schemas.CustomEmoji.model_validate(e) for e in active_emojis_for(db, user)],
        errors=errors or [],
    )


@router.get("/settings/emojis", response_class=HTMLResponse)
def settings_emojis(
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/settings/emojis")
    return _render_emoji_settings(request, db, current_user)


@router.post("/settings/emojis/{id}", response_class=HTMLResponse)
def settings_emoji_update(
    id: UUID,
    request: Request,
    name: str = Form(...),
    keywords: str = Form(""),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/settings/emojis")

    try:
        payload = schemas.CustomEmojiUpdate(name=name.strip(), keywords=keywords.strip())
        edit_emoji(db, get_emoji_or_404(db, id), payload, current_user)
    except ValidationError as e:
        return _render_emoji_settings(
            request, db, current_user, status.HTTP_400_BAD_REQUEST, validation_messages(e)
        )
    except HTTPException as e:
        return _render_emoji_settings(request, db, current_user, e.status_code, [e.detail])

    return see_other("/settings/emojis")


@router.post("/settings/emojis/{id}/delete", response_class=HTMLResponse)
def settings_emoji_delete(
    id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/settings/emojis")

    try:
        remove_emoji(db, get_emoji_or_404(db, id), current_user, request)
    except HTTPException as e:
        return _render_emoji_settings(request, db, current_user, e.status_code, [e.detail])

    return see_other("/settings/emojis")


@router.get("/u/{username}", response_class=HTMLResponse)
def user_profile(
    username: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> HTMLResponse:
    user = db.query(models.User).filter(models.User.username == username).first()
    if not user:
        return not_found(request, current_user, "User not found")

    posts = post_service.public_posts_query(db, author=username).all()
    return render(
        request,
        "user.html",
        current_user,
        profile=public_profile(db, user),
        posts=post_service.summarize_posts(db, posts),
    )


@router.get("/login", response_class=HTMLResponse)
def login_form(
    request: Request,
    next: str | None = None,
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if current_user:
        return see_other(_safe_next(next))
    return render(request, "login.html", None, next=next, error=None, email="")


@router.post("/login", response_class=HTMLResponse)
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str | None = Form(None),
    db: Session = Depends(get_db),
) -> Response:
    user = authenticate(db, email, password)
    if not user:
        return render(
            request,
            "login.html",
            None,
            status_code=status.HTTP_401_UNAUTHORIZED,
            next=next,
            error=INVALID_CREDENTIALS,
            email=email,
        )
    return _session_redirect(db, user, request, next)


@router.get("/register", response_class=HTMLResponse)
def register_form(
    request: Request,
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if current_user:
        return see_other("/dashboard")
    return render(request, "register.html", None, errors=[], form={})


@router.post("/register", response_class=HTMLResponse)
def register_submit(
    request: Request,
    username: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    display_name: str | None = Form(None),
    db: Session = Depends(get_db),
) -> Response:
    form = {"username": username, "email": email, "display_name": display_name or ""}
    try:
        payload = schemas.RegisterRequest(
            username=username,
            email=email,
            password=password,
            display_name=display_name or None,
        )
        user = register_account(db, payload, request)
    except ValidationError as e:
        return render(
            request,
            "register.html",
            None,
            status_code=status.HTTP_400_BAD_REQUEST,
            errors=validation_messages(e),
            form=form,
        )
    except HTTPException as e:
        return render(
            request, "register.html", None, status_code=e.status_code, errors=[e.detail], form=form
        )

    return _session_redirect(db, user, request, "/dashboard")


@router.get("/logout")
def logout_page() -> RedirectResponse:
    response = see_other("/")
    clear_session_cookie(response)
    return response


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    if not current_user:
        return login_redirect("/dashboard")

    posts = post_service.author_posts_query(db, current_user.id).all()
    comments = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.post))
        .filter(models.Comment.author_id == current_user.id)
        .order_by(models.Comment.created_at.desc())
        .limit(DASHBOARD_COMMENT_COUNT)
        .all()
    )
    return render(
        request,
        "dashboard.html",
        current_user,
        posts=post_service.summarize_posts(db, posts),
        comments=comments,
    )


def _admin_gate(request: Request, user: models.User | None, path: str) -> Response | None:
    if not user:
        return login_redirect(path)
    if not user.is_admin:
        return forbidden(request, user, "Admin access required")
    return None


@router.get("/admin/moderation", response_class=HTMLResponse)
def admin_moderation(
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    denied = _admin_gate(request, current_user, "/admin/moderation")
    if denied:
        return denied
    return render(request, "admin_moderation.html", current_user, overview=moderation_overview(db))


@router.get("/admin/audit", response_class=HTMLResponse)
def admin_audit(
    request: Request,
    page: int = Query(1, ge=1),
    resource: str | None = None,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> Response:
    denied = _admin_gate(request, current_user, "/admin/audit")
    if denied:
        return denied

    entries, pagination = paginate(audit_log_query(db, resource=resource), page, AUDIT_PER_PAGE)
    return render(
        request,
        "admin_audit.html",
        current_user,
        entries=entries,
        pagination=pagination,
        resource=resource,
    )
