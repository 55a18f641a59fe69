# avrnpo/cli.py
# =============================================================================
# `flask avr ...` maintenance commands
#   init-db       create tables (SQLite/dev; use `flask db upgrade` elsewhere)
#   create-admin  create or promote an admin account
#   seed-demo     demo users + blog posts for local development
# =============================================================================

import click
from faker import Faker
from flask import Flask
from flask.cli import AppGroup
from sqlalchemy.exc import SQLAlchemyError

from avrnpo.extensions import db
from avrnpo.forms.auth import MIN_PASSWORD
from avrnpo.models import ROLE_ADMIN, ROLE_USER, Post, User
from avrnpo.services.sanitizer import make_excerpt, sanitize_html

avr = AppGroup("avr", help="American Veterans Rebuilding maintenance commands.")
fake = Faker()

DEMO_PASSWORD = "demo-password"


@avr.command("init-db")
def init_db_cmd() -> None:
    """Create all tables for the configured database."""
    db.create_all()
    click.secho("Database tables created.", fg="green")


@avr.command("create-admin")
@click.option("--email", prompt=True, help="Admin email address.")
@click.option("--first-name", default="Site", show_default=True)
@click.option("--last-name", default="Admin", show_default=True)
@click.password_option(help="Admin password.")
def create_admin_cmd(email: str, first_name: str, last_name: str, password: str) -> None:
    """Create an admin, or promote an existing user to admin."""
    if len(password or "") < MIN_PASSWORD:
        raise click.BadParameter(f"must be at least {MIN_PASSWORD} characters", param_hint="--password")

    user = User.query.filter_by(email=email.strip().lower()).first()
    created = user is None
    if created:
        user = User(email=email, first_name=first_name, last_name=last_name)
        db.session.add(user)
    user.role = ROLE_ADMIN
    user.set_password(password)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise click.ClickException(f"Could not save admin: {e}")

    verb = "Created" if created else "Promoted"
    click.secho(f"{verb} admin {user.email}", fg="bright_green", bold=True)


@avr.command("seed-demo")
@click.option("--users", default=5, show_default=True, help="Number of demo users.")
@click.option("--posts", default=8, show_default=True, help="Number of demo blog posts.")
@click.option("--clear", is_flag=True, help="Delete existing posts and non-admin users first.")
def seed_demo_cmd(users: int, posts: int, clear: bool) -> None:
    """Seed demo users and blog posts."""
    if clear:
        _clear_demo_data()

    try:
        author = _demo_author()
        _seed_users(users)
        _seed_posts(posts, author)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise click.ClickException(f"Seeding failed: {e}")

    click.secho("Demo data seeded.", fg="bright_green", bold=True)
    click.echo(f"Demo password for all users: {DEMO_PASSWORD}")


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def _clear_demo_data() -> None:
    click.secho("Clearing existing demo data...", fg="yellow")
    deleted_posts = Post.query.delete()
    deleted_users = User.query.filter_by(role=ROLE_USER).delete()
    db.session.commit()
    click.secho(f"  {deleted_posts} posts, {deleted_users} users removed", fg="yellow")


def _demo_author() -> User:
    author = User.query.filter_by(role=ROLE_ADMIN).first()
    if author is None:
        author = User(email="editor@example.org", first_name="Demo", last_name="Editor", role=ROLE_ADMIN)
        author.set_password(DEMO_PASSWORD)
        db.session.add(author)
        db.session.flush()
        click.secho(f"  admin {author.email}", fg="cyan")
    return author


def _seed_users(count: int) -> None:
    for _ in range(count):
        email = fake.unique.email().lower()
        if User.query.filter_by(email=email).first() is not None:
            continue
        user = User(email=email, first_name=fake.first_name(), last_name=fake.last_name(), role=ROLE_USER)
        user.set_password(DEMO_PASSWORD)
        db.session.add(user)
        click.secho(f"  user {email}", fg="cyan")


def _seed_posts(count: int, author: User) -> None:
    for i in range(count):
        title = fake.sentence(nb_words=6).rstrip(".")
        body = "".join(f"<p>{fake.paragraph(nb_sentences=5)}</p>" for _ in range(3))
        post = Post(
            title=title,
            slug=Post.unique_slug(title),
            content=sanitize_html(body),
            excerpt=make_excerpt(body),
            author_id=author.id,
        )
        # Leave a couple of drafts around for the admin screens.
        if i % 4 != 3:
            post.publish()
        db.session.add(post)
        db.session.flush()
        click.secho(f"  post {post.slug} ({post.status_label})", fg="cyan")


def register_cli(app: Flask) -> None:
    app.cli.add_command(avr)
