"""
Signed-in user area: dashboard, profile, password, monthly subscriptions.
"""

from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, redirect, url_for
from flask_login import current_user, login_required

from avrnpo.extensions import commit_or_rollback
from avrnpo.forms.account import CancelSubscriptionForm, PasswordChangeForm, ProfileForm
from avrnpo.models import Donation
from avrnpo.models.donation import STATUS_ACTIVE, STATUS_CANCELLED, TYPE_MONTHLY
from avrnpo.services.helcim import HelcimError, get_helcim_client
from avrnpo.views import (
    AccountPage,
    DashboardPage,
    ProfilePage,
    SubscriptionPage,
    SubscriptionsPage,
    render_page,
)

bp = Blueprint("account", __name__)


def _own_subscription(donation_id: int) -> Donation:
    donation = Donation.query.filter_by(
        id=donation_id, user_id=current_user.id, donation_type=TYPE_MONTHLY
    ).first()
    if donation is None or not donation.subscription_id:
        abort(404)
    return donation


@bp.get("/dashboard")
@login_required
def dashboard():
    donations = current_user.donations.order_by(Donation.created_at.desc())
    page = DashboardPage(
        title="Dashboard",
        user=current_user,
        recent_donations=donations.limit(5).all(),
        active_subscriptions=current_user.donations.filter_by(status=STATUS_ACTIVE).count(),
    )
    return render_page("account/dashboard.html", page)


@bp.route("/profile", methods=["GET", "POST"])
@login_required
def profile():
    # Roles are only changed from /admin/users.
    form = ProfileForm(obj=current_user)

    if form.validate_on_submit():
        current_user.first_name = form.first_name.data
        current_user.last_name = form.last_name.data
        commit_or_rollback()
        flash("Profile updated.", "success")
        return redirect(url_for("account.profile"))

    page = ProfilePage(title="Profile", form=form, user=current_user)
    return render_page("account/profile.html", page, 422 if form.is_submitted() else 200)


@bp.route("/account", methods=["GET", "POST"])
@login_required
def settings():
    form = PasswordChangeForm()

    if form.validate_on_submit():
        if not current_user.check_password(form.current_password.data):
            form.current_password.errors.append("Current password is incorrect.")
        else:
            current_user.set_password(form.new_password.data)
            commit_or_rollback()
            current_app.logger.info("user #%s changed password", current_user.id)
            flash("Password updated.", "success")
            return redirect(url_for("account.settings"))

    page = AccountPage(title="Account", form=form, user=current_user)
    return render_page("account/account.html", page, 422 if form.is_submitted() else 200)


@bp.get("/account/subscriptions")
@login_required
def subscriptions():
    subs = (
        current_user.donations.filter(Donation.donation_type == TYPE_MONTHLY, Donation.subscription_id.isnot(None))
        .order_by(Donation.created_at.desc())
        .all()
    )
    return render_page("account/subscriptions.html", SubscriptionsPage(title="Subscriptions", subscriptions=subs))


@bp.get("/account/subscriptions/<int:donation_id>")
@login_required
def subscription(donation_id: int):
    donation = _own_subscription(donation_id)

    remote = None
    try:
        remote = get_helcim_client().get_subscription(donation.subscription_id)
    except HelcimError as e:
        current_app.logger.warning("subscription %s lookup failed: %s", donation.subscription_id, e)
        flash("Live subscription details are unavailable right now.", "warning")

    page = SubscriptionPage(
        title="Subscription",
        donation=donation,
        remote=remote,
        cancel_form=CancelSubscriptionForm(),
    )
    return render_page("account/subscription.html", page)


@bp.post("/account/subscriptions/<int:donation_id>/cancel")
@login_required
def cancel_subscription(donation_id: int):
    donation = _own_subscription(donation_id)
    form = CancelSubscriptionForm()
    if not form.validate():
        flash("Please confirm the cancellation.", "error")
        return redirect(url_for("account.subscription", donation_id=donation.id))

    if donation.status == STATUS_CANCELLED:
        flash("This subscription is already cancelled.", "info")
        return redirect(url_for("account.subscriptions"))

    try:
        get_helcim_client().cancel_subscription(donation.subscription_id)
    except HelcimError as e:
        current_app.logger.error("subscription %s cancel failed: %s", donation.subscription_id, e)
        flash("We could not cancel your subscription. Please try again later.", "error")
        return redirect(url_for("account.subscription", donation_id=donation.id))

    donation.status = STATUS_CANCELLED
    donation.next_billing_date = None
    commit_or_rollback()
    current_app.logger.info("user #%s cancelled subscription %s", current_user.id, donation.subscription_id)
    flash("Your monthly donation has been cancelled.", "success")
    return redirect(url_for("account.subscriptions"))
