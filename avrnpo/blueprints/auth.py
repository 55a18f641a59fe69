"""
Registration and sign-in.

  GET  /users/new      registration form
  POST /users          create account, sign in
  GET  /auth/new       sign-in form
  POST /auth           sign in
  POST /auth/logout    sign out (DELETE /auth also accepted)
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

from flask import Blueprint, current_app, flash, redirect, request, session, url_for
from flask_login import current_user, login_user, logout_user

from avrnpo.extensions import commit_or_rollback, db
from avrnpo.forms.auth import LoginForm, RegistrationForm
from avrnpo.models import ROLE_USER, User
from avrnpo.views import LoginPage, RegistrationPage, render_page

bp = Blueprint("auth", __name__)

INVALID_CREDENTIALS = "Invalid email or password."


def _safe_next(target: Optional[str]) -> Optional[str]:
    """Only same-site relative paths are followed after sign-in."""
    if not target:
        return None
    target = target.strip()
    parts = urlsplit(target)
    if parts.scheme or parts.netloc or not target.startswith("/") or target.startswith("//"):
        return None
    if "\\" in target:
        return None
    return target


def _after_login_url(user: User) -> str:
    return url_for("admin.dashboard") if user.is_admin and "admin" in current_app.blueprints else url_for("account.dashboard")


# ----------------------------
# Registration
# ----------------------------
@bp.get("/users/new")
def register():
    if current_user.is_authenticated:
        return redirect(url_for("account.dashboard"))
    return render_page("auth/register.html", RegistrationPage(title="Create Account", form=RegistrationForm()))


@bp.post("/users")
def create_user():
    form = RegistrationForm()
    if not form.validate():
        return render_page("auth/register.html", RegistrationPage(title="Create Account", form=form), 422)

    if User.query.filter_by(email=form.email.data).first() is not None:
        form.email.errors.append("An account with this email already exists.")
        return render_page("auth/register.html", RegistrationPage(title="Create Account", form=form), 422)

    user = User(
        email=form.email.data,
        first_name=form.first_name.data,
        last_name=form.last_name.data,
        role=ROLE_USER,
    )
    user.set_password(form.password.data)
    db.session.add(user)
    commit_or_rollback()

    # Fresh session on privilege change.
    session.clear()
    login_user(user)
    current_app.logger.info("user #%s registered", user.id)
    flash("Welcome! Your account has been created.", "success")
    return redirect(url_for("account.dashboard"))


# ----------------------------
# Sign in / out
# ----------------------------
@bp.get("/auth/new")
def new():
    if current_user.is_authenticated:
        return redirect(_after_login_url(current_user))
    page = LoginPage(title="Sign In", form=LoginForm(), next_url=_safe_next(request.args.get("next")) or "")
    return render_page("auth/login.html", page)


@bp.post("/auth")
def create():
    form = LoginForm()
    next_url = _safe_next(request.form.get("next") or request.args.get("next"))
    page = LoginPage(title="Sign In", form=form, next_url=next_url or "")

    if not form.validate():
        return render_page("auth/login.html", page, 422)

    user = User.authenticate(form.email.data, form.password.data)
    if user is None:
        current_app.logger.info("failed sign-in for %s", form.email.data)
        flash(INVALID_CREDENTIALS, "error")
        return render_page("auth/login.html", page, 401)

    session.clear()
    login_user(user)
    current_app.logger.info("user #%s signed in", user.id)
    flash("Signed in successfully.", "success")
    return redirect(next_url or _after_login_url(user))


@bp.route("/auth/logout", methods=["POST"])
@bp.route("/auth", methods=["DELETE"])
def destroy():
    if current_user.is_authenticated:
        current_app.logger.info("user #%s signed out", current_user.id)
    logout_user()
    session.clear()
    flash("You have been signed out.", "info")
    return redirect(url_for("pages.home"))
