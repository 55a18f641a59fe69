"""
HTML sanitizing for blog content (nh3 / ammonia).

``sanitize_html`` keeps a user-generated-content subset: headings, lists,
quotes, code, inline emphasis, links and images. ``strip_tags`` keeps text
only and is used for excerpts and titles.
"""

from __future__ import annotations

import html as _html
import re

import nh3

ALLOWED_TAGS = {
    "p", "br", "hr", "div", "span",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "blockquote", "pre", "code",
    "ul", "ol", "li",
    "strong", "b", "em", "i", "u", "s", "sub", "sup",
    "a", "img",
}

ALLOWED_ATTRIBUTES = {
    "a": {"href", "title", "target"},
    "img": {"src", "alt", "title", "width", "height"},
    "p": {"class"},
    "div": {"class"},
    "span": {"class"},
    "code": {"class"},
    "pre": {"class"},
}

URL_SCHEMES = {"http", "https", "mailto"}

_WS = re.compile(r"\s+")


def sanitize_html(html: str) -> str:
    if not html:
        return ""
    return nh3.clean(
        html,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        url_schemes=URL_SCHEMES,
        link_rel="noopener noreferrer nofollow",
    )


def strip_tags(html: str) -> str:
    if not html:
        return ""
    text = _html.unescape(nh3.clean(html, tags=set(), attributes={}))
    return _WS.sub(" ", text).strip()


def make_excerpt(html: str, limit: int = 280) -> str:
    text = strip_tags(html)
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0]
    return cut.rstrip(",.;:") + "…"
