"""
Public pages: home, team, projects, contact.
"""

from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, url_for

from avrnpo.forms.contact import ContactForm
from avrnpo.models import Post
from avrnpo.services.mailer import ContactMessage, send_contact_notification
from avrnpo.views import ContactPage, HomePage, Project, ProjectsPage, TeamMember, TeamPage, render_page

bp = Blueprint("pages", __name__)

TEAM = [
    TeamMember("Founder", "Executive Director", "U.S. Army veteran leading day-to-day operations and outreach."),
    TeamMember("Board Chair", "Board of Directors", "Sets strategy and oversees governance and finances."),
    TeamMember("Volunteer Coordinator", "Programs", "Matches veteran volunteers with rebuild projects."),
]

PROJECTS = [
    Project("Home Repair for Veterans", "Accessibility ramps, roofing and critical repairs for veteran homeowners."),
    Project("Trades Mentorship", "Pairs transitioning service members with licensed tradespeople."),
    Project("Disaster Response", "Veteran crews deployed to rebuild after natural disasters.", status="Seasonal"),
]


@bp.get("/")
def home():
    recent = Post.published_query().limit(3).all()
    return render_page("pages/home.html", HomePage(title="Home", recent_posts=recent))


@bp.get("/team")
def team():
    return render_page("pages/team.html", TeamPage(title="Our Team", members=TEAM))


@bp.get("/projects")
def projects():
    return render_page("pages/projects.html", ProjectsPage(title="Projects", projects=PROJECTS))


@bp.route("/contact", methods=["GET", "POST"])
def contact():
    form = ContactForm()
    if form.validate_on_submit():
        msg = ContactMessage(
            name=form.name.data,
            email=form.email.data,
            subject=form.subject.data,
            message=form.message.data,
        )
        send_contact_notification(current_app._get_current_object(), msg)
        current_app.logger.info("Contact form submission from %s: %s", msg.email, msg.subject)
        flash("Thank you for your message! We'll get back to you soon.", "success")
        return redirect(url_for("pages.contact"))

    status = 422 if form.is_submitted() else 200
    return render_page("pages/contact.html", ContactPage(title="Contact Us", form=form), status)
