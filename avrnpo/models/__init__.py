from __future__ import annotations

from avrnpo.models.donation import Donation
from avrnpo.models.mixins import TimestampMixin, utcnow
from avrnpo.models.post import Post, slugify
from avrnpo.models.user import ROLE_ADMIN, ROLE_USER, ROLES, User

__all__ = [
    "Donation",
    "Post",
    "User",
    "TimestampMixin",
    "ROLE_ADMIN",
    "ROLE_USER",
    "ROLES",
    "slugify",
    "utcnow",
]
