"""
User model: site accounts, donors and administrators.
"""

from __future__ import annotations

from typing import Optional

from flask_login import UserMixin
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import check_password_hash, generate_password_hash

from avrnpo.extensions import db

from .mixins import TimestampMixin

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

# Checked against on unknown-email logins so response time does not reveal
# whether an account exists.
_DUMMY_HASH = generate_password_hash("avr-dummy-password")


class User(db.Model, UserMixin, TimestampMixin):
    __tablename__ = "users"

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(db.String(254), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(db.String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(db.String(100), nullable=False, default="")

    # ── Auth ────────────────────────────────────────────────────
    password_hash: Mapped[str] = mapped_column(
        db.String(255),
        nullable=False,
        doc="Hashed password (never store plaintext)",
    )
    role: Mapped[str] = mapped_column(db.String(20), nullable=False, default=ROLE_USER, index=True)

    posts = relationship("Post", back_populates="author", lazy="dynamic")
    donations = relationship("Donation", back_populates="user", lazy="dynamic")

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return (value or "").strip().lower()

    # ── Auth helpers ────────────────────────────────────────────
    def set_password(self, password: str) -> None:
        """Hash & store the given plaintext password securely."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify a plaintext password against the stored hash."""
        return check_password_hash(self.password_hash, password)

    @staticmethod
    def authenticate(email: str, password: str) -> Optional["User"]:
        user = User.query.filter_by(email=(email or "").strip().lower()).first()
        if user is None:
            check_password_hash(_DUMMY_HASH, password or "")
            return None
        return user if user.check_password(password or "") else None

    def get_id(self) -> str:  # type: ignore[override]
        return str(self.id)

    # ── Display helpers ─────────────────────────────────────────
    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email.split("@")[0]

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.email} ({self.role})>"
