"""
Public blog.

  GET /blog              first page of published posts
  GET /blog/more?page=N  JSON page for "load more"
  GET /blog/<slug>       single post; drafts only for their author or an admin
"""

from __future__ import annotations

from flask import Blueprint, abort, current_app, request
from flask_login import current_user

from avrnpo.models import Post
from avrnpo.responses import json_ok
from avrnpo.views import BlogIndexPage, BlogPostPage, render_page

bp = Blueprint("blog", __name__)


def _page_arg() -> int:
    try:
        return max(1, int(request.args.get("page", 1)))
    except (TypeError, ValueError):
        return 1


def _page_of_posts(page_number: int):
    """(posts, has_more) for a 1-based page of published posts."""
    per_page = int(current_app.config.get("POSTS_PER_PAGE", 10))
    rows = (
        Post.published_query()
        .offset((page_number - 1) * per_page)
        .limit(per_page + 1)
        .all()
    )
    return rows[:per_page], len(rows) > per_page


@bp.get("")
def index():
    page_number = _page_arg()
    posts, has_more = _page_of_posts(page_number)
    page = BlogIndexPage(title="Blog", posts=posts, page_number=page_number, has_more=has_more)
    return render_page("blog/index.html", page)


@bp.get("/more")
def more():
    page_number = _page_arg()
    posts, has_more = _page_of_posts(page_number)
    return json_ok({"posts": [p.as_dict() for p in posts], "page": page_number, "has_more": has_more})


@bp.get("/<slug>")
def show(slug: str):
    post = Post.query.filter_by(slug=slug).first()
    if post is None or not post.visible_to(current_user):
        abort(404)
    return render_page("blog/show.html", BlogPostPage(title=post.title, post=post))
