from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from avrnpo.extensions import db

from .mixins import TimestampMixin, utcnow

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(text: str, max_len: int = 80) -> str:
    slug = _SLUG_STRIP.sub("-", (text or "").lower()).strip("-")
    return slug[:max_len].rstrip("-") or "post"


class Post(db.Model, TimestampMixin):
    __tablename__ = "posts"
    __table_args__ = (Index("ix_posts_published_published_at", "published", "published_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(120), unique=True, nullable=False, index=True)
    content: Mapped[str] = mapped_column(db.Text, nullable=False, default="", doc="Sanitized HTML")
    excerpt: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True, doc="Plain text")
    published: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    author_id: Mapped[int] = mapped_column(db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    author = relationship("User", back_populates="posts", lazy="joined")

    @classmethod
    def unique_slug(cls, source: str, *, exclude_id: Optional[int] = None) -> str:
        """Slug from ``source``; numbered suffix when already taken."""
        base = slugify(source)
        candidate = base
        n = 2
        while True:
            q = cls.query.filter_by(slug=candidate)
            if exclude_id is not None:
                q = q.filter(cls.id != exclude_id)
            if q.first() is None:
                return candidate
            candidate = f"{base}-{n}"
            n += 1

    @classmethod
    def published_query(cls):
        return cls.query.filter_by(published=True).order_by(cls.published_at.desc(), cls.id.desc())

    def publish(self) -> None:
        if not self.published:
            self.published = True
            self.published_at = utcnow()

    def unpublish(self) -> None:
        self.published = False
        self.published_at = None

    def visible_to(self, user) -> bool:
        if self.published:
            return True
        if user is None or not getattr(user, "is_authenticated", False):
            return False
        return bool(user.is_admin or user.id == self.author_id)

    @property
    def status_label(self) -> str:
        return "Published" if self.published else "Draft"

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "excerpt": self.excerpt or "",
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "author": self.author.full_name if self.author else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Post {self.slug} ({self.status_label})>"
