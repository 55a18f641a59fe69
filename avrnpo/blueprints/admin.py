"""
Admin back office (mounted at /admin).

Every endpoint requires an authenticated admin; the guard runs as a
blueprint ``before_request`` so no route can forget it. State changes emit
the ``admin_action`` signal and are logged with the acting user.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List

from flask import Blueprint, abort, current_app, flash, redirect, request, url_for
from flask_login import current_user
from sqlalchemy import func, or_

from avrnpo.extensions import admin_action, commit_or_rollback, db
from avrnpo.forms.admin import AdminUserForm, ConfirmDeleteForm
from avrnpo.forms.post import PostForm
from avrnpo.models import ROLE_ADMIN, Donation, Post, User
from avrnpo.models.donation import STATUS_ACTIVE, STATUS_COMPLETED, STATUS_PENDING, STATUSES
from avrnpo.services.sanitizer import make_excerpt, sanitize_html
from avrnpo.views import (
    AdminDashboardPage,
    AdminDonationPage,
    AdminDonationsPage,
    AdminPostFormPage,
    AdminPostPage,
    AdminPostsPage,
    AdminStats,
    AdminUserFormPage,
    AdminUserPage,
    AdminUsersPage,
    DonationStats,
    render_page,
)

bp = Blueprint("admin", __name__)

BULK_ACTIONS = ("publish", "unpublish", "delete")


# ── Guard ────────────────────────────────────────────────────────────────────
@bp.before_request
def _admin_guard():
    if not current_user.is_authenticated:
        return current_app.login_manager.unauthorized()
    if not current_user.is_admin:
        current_app.logger.warning(
            "non-admin user #%s denied %s %s", current_user.id, request.method, request.path
        )
        flash("You do not have permission to access that page.", "error")
        return redirect(url_for("pages.home"))
    return None


# ── Helpers ─────────────────────────────────────────────────────────────────
def _audit(action: str, **details: Any) -> None:
    current_app.logger.info("admin #%s %s %s", current_user.id, action, details)
    admin_action.send(current_app._get_current_object(), actor=current_user._get_current_object(),
                      action=action, details=details)


def _get_or_404(model, obj_id: int):
    obj = db.session.get(model, obj_id)
    if obj is None:
        abort(404)
    return obj


def _cents_to_dollars(cents) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(Decimal("0.01"))


def _raised_cents() -> int:
    q = db.session.query(func.coalesce(func.sum(Donation.amount_cents), 0))
    return int(q.filter(Donation.status.in_((STATUS_COMPLETED, STATUS_ACTIVE))).scalar() or 0)


def _donation_stats() -> DonationStats:
    return DonationStats(
        count=Donation.query.count(),
        completed=Donation.query.filter_by(status=STATUS_COMPLETED).count(),
        pending=Donation.query.filter_by(status=STATUS_PENDING).count(),
        active_subscriptions=Donation.query.filter_by(status=STATUS_ACTIVE).count(),
        total_raised=_cents_to_dollars(_raised_cents()),
    )


# ───────────────────────────────
# Dashboard
# ───────────────────────────────
@bp.get("")
def dashboard():
    published = Post.query.filter_by(published=True).count()
    total_posts = Post.query.count()
    stats = AdminStats(
        user_count=User.query.count(),
        admin_count=User.query.filter_by(role=ROLE_ADMIN).count(),
        total_posts=total_posts,
        published_posts=published,
        draft_posts=total_posts - published,
        donation_count=Donation.query.count(),
        donations_total=_cents_to_dollars(_raised_cents()),
    )
    recent = Post.query.order_by(Post.created_at.desc(), Post.id.desc()).limit(5).all()
    return render_page("admin/dashboard.html", AdminDashboardPage(title="Admin", stats=stats, recent_posts=recent))


# ───────────────────────────────
# Users
# ───────────────────────────────
@bp.get("/users")
def users():
    rows = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return render_page("admin/users.html", AdminUsersPage(title="Users", users=rows))


@bp.get("/users/new")
def new_user():
    return render_page("admin/user_form.html", AdminUserFormPage(title="New User", form=AdminUserForm()))


@bp.post("/users")
def create_user():
    form = AdminUserForm()
    page = AdminUserFormPage(title="New User", form=form)
    if not form.validate():
        return render_page("admin/user_form.html", page, 422)
    if not form.password.data:
        form.password.errors.append("Password is required for new users.")
        return render_page("admin/user_form.html", page, 422)
    if User.query.filter_by(email=form.email.data).first() is not None:
        form.email.errors.append("An account with this email already exists.")
        return render_page("admin/user_form.html", page, 422)

    user = User(email=form.email.data, first_name=form.first_name.data,
                last_name=form.last_name.data, role=form.role.data)
    user.set_password(form.password.data)
    db.session.add(user)
    commit_or_rollback()
    _audit("user.create", user_id=user.id, role=user.role)
    flash("User created successfully.", "success")
    return redirect(url_for("admin.show_user", user_id=user.id))


@bp.get("/users/<int:user_id>")
def show_user(user_id: int):
    user = _get_or_404(User, user_id)
    page = AdminUserPage(title=user.full_name, user=user, delete_form=ConfirmDeleteForm())
    return render_page("admin/user.html", page)


@bp.get("/users/<int:user_id>/edit")
def edit_user(user_id: int):
    user = _get_or_404(User, user_id)
    form = AdminUserForm(obj=user)
    form.password.data = ""
    return render_page("admin/user_form.html", AdminUserFormPage(title="Edit User", form=form, user=user))


@bp.post("/users/<int:user_id>")
def update_user(user_id: int):
    user = _get_or_404(User, user_id)
    form = AdminUserForm()
    page = AdminUserFormPage(title="Edit User", form=form, user=user)
    if not form.validate():
        return render_page("admin/user_form.html", page, 422)

    clash = User.query.filter(User.email == form.email.data, User.id != user.id).first()
    if clash is not None:
        form.email.errors.append("An account with this email already exists.")
        return render_page("admin/user_form.html", page, 422)
    if user.id == current_user.id and form.role.data != ROLE_ADMIN:
        form.role.errors.append("You cannot remove your own admin role.")
        return render_page("admin/user_form.html", page, 422)

    user.email = form.email.data
    user.first_name = form.first_name.data
    user.last_name = form.last_name.data
    user.role = form.role.data
    if form.password.data:
        user.set_password(form.password.data)
    commit_or_rollback()
    _audit("user.update", user_id=user.id, role=user.role)
    flash("User updated successfully.", "success")
    return redirect(url_for("admin.show_user", user_id=user.id))


@bp.post("/users/<int:user_id>/delete")
def delete_user(user_id: int):
    user = _get_or_404(User, user_id)
    if user.id == current_user.id:
        flash("You cannot delete your own account.", "error")
        return redirect(url_for("admin.show_user", user_id=user.id))

    form = ConfirmDeleteForm()
    if not form.validate():
        flash("Please confirm the deletion.", "error")
        return redirect(url_for("admin.show_user", user_id=user.id))

    # Posts outlive their author: hand them to the acting admin.
    Post.query.filter_by(author_id=user.id).update({Post.author_id: current_user.id})
    db.session.delete(user)
    commit_or_rollback()
    _audit("user.delete", user_id=user_id)
    flash("User deleted.", "success")
    return redirect(url_for("admin.users"))


# ───────────────────────────────
# Posts
# ───────────────────────────────
def _apply_post_form(post: Post, form: PostForm) -> None:
    post.title = form.title.data
    post.content = sanitize_html(form.content.data)
    post.excerpt = make_excerpt(form.excerpt.data or post.content)
    post.slug = Post.unique_slug(form.slug.data or form.title.data, exclude_id=post.id)
    if form.published.data:
        post.publish()
    else:
        post.unpublish()


@bp.get("/posts")
def posts():
    q_text = (request.args.get("q") or "").strip()
    status = (request.args.get("status") or "").strip().lower()

    q = Post.query
    if q_text:
        like = f"%{q_text}%"
        q = q.filter(or_(Post.title.ilike(like), Post.content.ilike(like)))
    if status == "published":
        q = q.filter(Post.published.is_(True))
    elif status == "draft":
        q = q.filter(Post.published.is_(False))
    rows = q.order_by(Post.created_at.desc(), Post.id.desc()).all()

    return render_page("admin/posts.html", AdminPostsPage(title="Posts", posts=rows, query=q_text, status=status))


@bp.get("/posts/new")
def new_post():
    return render_page("admin/post_form.html", AdminPostFormPage(title="New Post", form=PostForm()))


@bp.post("/posts")
def create_post():
    form = PostForm()
    if not form.validate():
        return render_page("admin/post_form.html", AdminPostFormPage(title="New Post", form=form), 422)

    post = Post(author_id=current_user.id)
    _apply_post_form(post, form)
    db.session.add(post)
    commit_or_rollback()
    _audit("post.create", post_id=post.id, published=post.published)
    flash("Post created successfully.", "success")
    return redirect(url_for("admin.show_post", post_id=post.id))


@bp.get("/posts/<int:post_id>")
def show_post(post_id: int):
    post = _get_or_404(Post, post_id)
    return render_page("admin/post.html", AdminPostPage(title=post.title, post=post))


@bp.get("/posts/<int:post_id>/edit")
def edit_post(post_id: int):
    post = _get_or_404(Post, post_id)
    form = PostForm(obj=post)
    return render_page("admin/post_form.html", AdminPostFormPage(title="Edit Post", form=form, post=post))


@bp.post("/posts/<int:post_id>")
def update_post(post_id: int):
    post = _get_or_404(Post, post_id)
    form = PostForm()
    if not form.validate():
        return render_page("admin/post_form.html", AdminPostFormPage(title="Edit Post", form=form, post=post), 422)

    _apply_post_form(post, form)
    commit_or_rollback()
    _audit("post.update", post_id=post.id, published=post.published)
    flash("Post updated successfully.", "success")
    return redirect(url_for("admin.show_post", post_id=post.id))


@bp.post("/posts/<int:post_id>/delete")
def delete_post(post_id: int):
    post = _get_or_404(Post, post_id)
    db.session.delete(post)
    commit_or_rollback()
    _audit("post.delete", post_id=post_id)
    flash("Post deleted.", "success")
    return redirect(url_for("admin.posts"))


@bp.post("/posts/bulk")
def bulk_posts():
    action = (request.form.get("action") or "").strip().lower()
    ids: List[int] = []
    for raw in request.form.getlist("post_ids"):
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            continue

    if action not in BULK_ACTIONS:
        flash("Unknown bulk action.", "error")
        return redirect(url_for("admin.posts"))
    if not ids:
        flash("No posts selected.", "warning")
        return redirect(url_for("admin.posts"))

    selected = Post.query.filter(Post.id.in_(ids)).all()
    for post in selected:
        if action == "publish":
            post.publish()
        elif action == "unpublish":
            post.unpublish()
        else:
            db.session.delete(post)
    commit_or_rollback()

    _audit(f"post.bulk_{action}", post_ids=[p.id for p in selected])
    flash(f"{len(selected)} post(s) updated: {action}.", "success")
    return redirect(url_for("admin.posts"))


# ───────────────────────────────
# Donations
# ───────────────────────────────
@bp.get("/donations")
def donations():
    status = (request.args.get("status") or "").strip().lower()
    q = Donation.query
    if status in STATUSES:
        q = q.filter_by(status=status)
    else:
        status = ""
    per_page = int(current_app.config.get("ADMIN_PER_PAGE", 25))
    rows = q.order_by(Donation.created_at.desc(), Donation.id.desc()).limit(per_page).all()
    page = AdminDonationsPage(title="Donations", donations=rows, stats=_donation_stats(), status=status)
    return render_page("admin/donations.html", page)


@bp.get("/donations/<int:donation_id>")
def show_donation(donation_id: int):
    donation = _get_or_404(Donation, donation_id)
    return render_page("admin/donation.html", AdminDonationPage(title=f"Donation #{donation.id}", donation=donation))
