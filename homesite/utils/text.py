"""Text helpers: slugs, truncation, dates and markdown rendering."""

from __future__ import annotations

import re
import secrets
import unicodedata
from datetime import datetime

import bleach
import markdown
from markupsafe import Markup

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Allowed tags/attributes for sanitization
_ALLOWED_TAGS = [
    "p", "br", "hr", "strong", "em", "del", "code", "pre", "blockquote",
    "ul", "ol", "li", "a", "img", "table", "thead", "tbody", "tr", "th", "td",
    "h1", "h2", "h3", "h4", "h5", "h6",
]
_ALLOWED_ATTRS = {
    "a": ["href", "title", "rel"],
    "img": ["src", "alt", "title"],
    "code": ["class"],
}


def slugify(text: str) -> str:
    """
    Lowercase ASCII slug: accents folded, runs of other characters collapsed to '-'.

    >>> slugify("Café Münster!")
    'cafe-munster'
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("-", folded.lower()).strip("-")


def random_suffix(length: int = 6) -> str:
    return secrets.token_hex(length)[:length]


def truncate(text: str, length: int = 100, ellipsis: str = "...") -> str:
    if len(text) <= length:
        return text
    return text[:length].rstrip() + ellipsis


def format_date(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%b %d, %Y")


def render_markdown(text: str | None) -> Markup:
    """Render markdown to sanitized HTML."""
    html = markdown.markdown(text or "", extensions=["fenced_code", "tables", "nl2br"])
    cleaned = bleach.clean(
        html,
        tags=_ALLOWED_TAGS,
        attributes=_ALLOWED_ATTRS,
        protocols=["http", "https", "mailto"],
        strip=True,
    )
    return Markup(cleaned)
