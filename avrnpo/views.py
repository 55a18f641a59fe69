"""
Typed view models. Each template receives exactly one ``page`` object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional

from flask import render_template

from avrnpo.forms.donation import PRESET_AMOUNTS


@dataclass
class Page:
    title: str


def render_page(template: str, page: Page, status: int = 200):
    return render_template(template, page=page), status


# ---- Public ----
@dataclass
class TeamMember:
    name: str
    role: str
    bio: str = ""


@dataclass
class Project:
    name: str
    summary: str
    status: str = "Active"


@dataclass
class HomePage(Page):
    recent_posts: List[Any] = field(default_factory=list)
    preset_amounts: tuple = PRESET_AMOUNTS


@dataclass
class TeamPage(Page):
    members: List[TeamMember] = field(default_factory=list)


@dataclass
class ProjectsPage(Page):
    projects: List[Project] = field(default_factory=list)


@dataclass
class ContactPage(Page):
    form: Any = None


# ---- Donations ----
@dataclass
class DonatePage(Page):
    form: Any = None
    preset_amounts: tuple = PRESET_AMOUNTS


@dataclass
class PaymentPage(Page):
    donation_id: int = 0
    checkout_token: str = ""
    amount: Decimal = Decimal("0")
    donor_name: str = ""
    donation_type: str = "one-time"


@dataclass
class DonationResultPage(Page):
    succeeded: bool = True
    donation: Any = None


# ---- Auth / account ----
@dataclass
class LoginPage(Page):
    form: Any = None
    next_url: str = ""


@dataclass
class RegistrationPage(Page):
    form: Any = None


@dataclass
class DashboardPage(Page):
    user: Any = None
    recent_donations: List[Any] = field(default_factory=list)
    active_subscriptions: int = 0


@dataclass
class ProfilePage(Page):
    form: Any = None
    user: Any = None


@dataclass
class AccountPage(Page):
    form: Any = None
    user: Any = None


@dataclass
class SubscriptionsPage(Page):
    subscriptions: List[Any] = field(default_factory=list)


@dataclass
class SubscriptionPage(Page):
    donation: Any = None
    remote: Any = None
    cancel_form: Any = None


# ---- Blog ----
@dataclass
class BlogIndexPage(Page):
    posts: List[Any] = field(default_factory=list)
    page_number: int = 1
    has_more: bool = False


@dataclass
class BlogPostPage(Page):
    post: Any = None


# ---- Admin ----
@dataclass
class AdminStats:
    user_count: int = 0
    admin_count: int = 0
    total_posts: int = 0
    published_posts: int = 0
    draft_posts: int = 0
    donation_count: int = 0
    donations_total: Decimal = Decimal("0")


@dataclass
class DonationStats:
    count: int = 0
    completed: int = 0
    pending: int = 0
    active_subscriptions: int = 0
    total_raised: Decimal = Decimal("0")


@dataclass
class AdminDashboardPage(Page):
    stats: AdminStats = field(default_factory=AdminStats)
    recent_posts: List[Any] = field(default_factory=list)


@dataclass
class AdminUsersPage(Page):
    users: List[Any] = field(default_factory=list)


@dataclass
class AdminUserPage(Page):
    user: Any = None
    delete_form: Any = None


@dataclass
class AdminUserFormPage(Page):
    form: Any = None
    user: Optional[Any] = None


@dataclass
class AdminPostsPage(Page):
    posts: List[Any] = field(default_factory=list)
    query: str = ""
    status: str = ""


@dataclass
class AdminPostPage(Page):
    post: Any = None


@dataclass
class AdminPostFormPage(Page):
    form: Any = None
    post: Optional[Any] = None


@dataclass
class AdminDonationsPage(Page):
    donations: List[Any] = field(default_factory=list)
    stats: DonationStats = field(default_factory=DonationStats)
    status: str = ""


@dataclass
class AdminDonationPage(Page):
    donation: Any = None


@dataclass
class ErrorPage(Page):
    code: int = 500
    message: str = ""
