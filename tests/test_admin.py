from decimal import Decimal

import pytest

from avrnpo.extensions import admin_action, db
from avrnpo.models import Donation, Post, User
from avrnpo.models.donation import STATUS_ACTIVE, STATUS_COMPLETED, STATUS_PENDING
from tests.conftest import make_user, page_token


def _post(app, author_id, title, *, published=True, content="<p>Body text</p>"):
    with app.app_context():
        post = Post(title=title, content=content, author_id=author_id, slug=Post.unique_slug(title))
        if published:
            post.publish()
        db.session.add(post)
        db.session.commit()
        return post.id


def _donation(app, amount, status):
    with app.app_context():
        d = Donation(donor_name="Sam Giver", donor_email="sam@example.org", status=status)
        d.set_amount(Decimal(amount))
        db.session.add(d)
        db.session.commit()
        return d.id


# ---- Guard ----
def test_anonymous_is_sent_to_sign_in(client):
    resp = client.get("/admin")
    assert resp.status_code == 302
    assert "/auth/new" in resp.headers["Location"]


@pytest.mark.parametrize("path", ["/admin", "/admin/users", "/admin/posts", "/admin/donations"])
def test_non_admin_is_redirected_home(user_client, path):
    resp = user_client.get(path)
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/")


def test_non_admin_cannot_post(app, user_client, user):
    post_id = _post(app, user.id, "Keep me")
    token = page_token(user_client, "/dashboard")

    resp = user_client.post(f"/admin/posts/{post_id}/delete", data={"authenticity_token": token})

    assert resp.status_code == 302
    with app.app_context():
        assert db.session.get(Post, post_id) is not None


def test_dashboard_stats(app, admin_client, admin):
    _post(app, admin.id, "Published one")
    _post(app, admin.id, "Draft one", published=False)
    _donation(app, "40", STATUS_COMPLETED)

    html = admin_client.get("/admin").get_data(as_text=True)

    assert "2 (1 published, 1 drafts)" in html
    assert "$40.00" in html


# ---- Users ----
def _user_form(client, path, **data):
    token = page_token(client, "/admin/users/new")
    return client.post(path, data={**data, "authenticity_token": token})


def test_create_user(app, admin_client):
    resp = _user_form(
        admin_client, "/admin/users",
        email="Vol@Example.org", first_name="Val", last_name="Volunteer", role="user", password="long-enough",
    )

    assert resp.status_code == 302
    with app.app_context():
        created = User.query.filter_by(email="vol@example.org").one()
        assert created.check_password("long-enough")


def test_create_user_requires_password(admin_client):
    resp = _user_form(admin_client, "/admin/users", email="v@example.org", first_name="V", last_name="W", role="user")
    assert resp.status_code == 422
    assert "Password is required" in resp.get_data(as_text=True)


def test_create_user_rejects_duplicate_email(admin_client, user):
    resp = _user_form(
        admin_client, "/admin/users",
        email=user.email, first_name="D", last_name="D", role="user", password="long-enough",
    )
    assert resp.status_code == 422


def test_update_user_promotes_and_keeps_password(app, admin_client, user):
    resp = _user_form(
        admin_client, f"/admin/users/{user.id}",
        email=user.email, first_name="Dana", last_name="Donor", role="admin", password="",
    )

    assert resp.status_code == 302
    with app.app_context():
        updated = db.session.get(User, user.id)
        assert updated.role == "admin"
        assert updated.check_password("correct-horse-battery")


def test_admin_cannot_demote_self(app, admin_client, admin):
    resp = _user_form(
        admin_client, f"/admin/users/{admin.id}",
        email=admin.email, first_name="Alex", last_name="Admin", role="user",
    )

    assert resp.status_code == 422
    assert "cannot remove your own admin role" in resp.get_data(as_text=True)
    with app.app_context():
        assert db.session.get(User, admin.id).role == "admin"


def test_delete_user_requires_confirmation(app, admin_client, user):
    token = page_token(admin_client, "/admin/users/new")
    admin_client.post(f"/admin/users/{user.id}/delete", data={"authenticity_token": token})

    with app.app_context():
        assert db.session.get(User, user.id) is not None


def test_delete_user_reassigns_posts(app, admin_client, admin, user):
    post_id = _post(app, user.id, "Written by donor")
    token = page_token(admin_client, f"/admin/users/{user.id}")

    resp = admin_client.post(
        f"/admin/users/{user.id}/delete",
        data={"confirm_delete": "true", "authenticity_token": token},
    )

    assert resp.status_code == 302
    with app.app_context():
        assert db.session.get(User, user.id) is None
        assert db.session.get(Post, post_id).author_id == admin.id


def test_admin_cannot_delete_self(app, admin_client, admin):
    token = page_token(admin_client, "/admin/users/new")
    admin_client.post(
        f"/admin/users/{admin.id}/delete",
        data={"confirm_delete": "true", "authenticity_token": token},
    )

    with app.app_context():
        assert db.session.get(User, admin.id) is not None


def test_unknown_user_is_404(admin_client):
    assert admin_client.get("/admin/users/9999").status_code == 404


# ---- Posts ----
def _post_form(client, path, **data):
    token = page_token(client, "/admin/posts/new")
    return client.post(path, data={**data, "authenticity_token": token})


def test_create_post_sanitizes_and_slugs(app, admin_client, admin):
    resp = _post_form(
        admin_client, "/admin/posts",
        title="Ramp Build: Week 1!",
        content='<p>Done <script>alert(1)</script><a href="https://example.org">link</a></p>',
        published="y",
    )

    assert resp.status_code == 302
    with app.app_context():
        post = Post.query.one()
        assert post.slug == "ramp-build-week-1"
        assert "<script>" not in post.content
        assert 'rel="noopener noreferrer nofollow"' in post.content
        assert post.published is True
        assert post.published_at is not None
        assert post.author_id == admin.id
        assert post.excerpt.startswith("Done")


def test_duplicate_titles_get_numbered_slugs(app, admin_client):
    _post_form(admin_client, "/admin/posts", title="Update", content="<p>a</p>")
    _post_form(admin_client, "/admin/posts", title="Update", content="<p>b</p>")

    with app.app_context():
        slugs = sorted(p.slug for p in Post.query.all())
    assert slugs == ["update", "update-2"]


def test_create_post_requires_title_and_content(app, admin_client):
    resp = _post_form(admin_client, "/admin/posts", title="", content="")

    assert resp.status_code == 422
    html = resp.get_data(as_text=True)
    assert "Title is required" in html
    assert "Content is required" in html


def test_update_post_unpublishes(app, admin_client, admin):
    post_id = _post(app, admin.id, "Live post")

    resp = _post_form(admin_client, f"/admin/posts/{post_id}", title="Live post", content="<p>new</p>")

    assert resp.status_code == 302
    with app.app_context():
        post = db.session.get(Post, post_id)
        assert post.published is False
        assert post.slug == "live-post"


def test_delete_post(app, admin_client, admin):
    post_id = _post(app, admin.id, "Gone soon")
    token = page_token(admin_client, "/admin/posts/new")

    assert admin_client.post(f"/admin/posts/{post_id}/delete", data={"authenticity_token": token}).status_code == 302
    with app.app_context():
        assert db.session.get(Post, post_id) is None


def test_posts_search_and_status_filter(app, admin_client, admin):
    _post(app, admin.id, "Roof repair in Austin")
    _post(app, admin.id, "Kitchen remodel", published=False)

    html = admin_client.get("/admin/posts?q=roof").get_data(as_text=True)
    assert "Roof repair in Austin" in html
    assert "Kitchen remodel" not in html

    html = admin_client.get("/admin/posts?status=draft").get_data(as_text=True)
    assert "Kitchen remodel" in html
    assert "Roof repair in Austin" not in html


def _bulk(client, action, ids):
    token = page_token(client, "/admin/posts/new")
    return client.post(
        "/admin/posts/bulk",
        data={"action": action, "post_ids": [str(i) for i in ids], "authenticity_token": token},
    )


def test_bulk_publish_and_delete(app, admin_client, admin):
    a = _post(app, admin.id, "Draft A", published=False)
    b = _post(app, admin.id, "Draft B", published=False)
    c = _post(app, admin.id, "Keep C", published=False)

    assert _bulk(admin_client, "publish", [a, b]).status_code == 302
    with app.app_context():
        assert db.session.get(Post, a).published is True
        assert db.session.get(Post, b).published is True
        assert db.session.get(Post, c).published is False

    _bulk(admin_client, "delete", [a])
    with app.app_context():
        assert db.session.get(Post, a) is None
        assert Post.query.count() == 2


def test_bulk_rejects_unknown_action(app, admin_client, admin):
    post_id = _post(app, admin.id, "Untouched")

    _bulk(admin_client, "explode", [post_id])
    html = admin_client.get("/admin/posts").get_data(as_text=True)

    assert "Unknown bulk action." in html
    with app.app_context():
        assert db.session.get(Post, post_id) is not None


def test_bulk_without_selection(admin_client):
    _bulk(admin_client, "publish", [])
    assert "No posts selected." in admin_client.get("/admin/posts").get_data(as_text=True)


def test_admin_actions_emit_signal(app, admin_client, admin):
    seen = []

    def receiver(sender, **kwargs):
        seen.append(kwargs["action"])

    post_id = _post(app, admin.id, "Signal me", published=False)
    with admin_action.connected_to(receiver):
        _bulk(admin_client, "publish", [post_id])

    assert seen == ["post.bulk_publish"]


# ---- Donations ----
def test_donations_stats_and_filter(app, admin_client):
    _donation(app, "50", STATUS_COMPLETED)
    _donation(app, "25", STATUS_ACTIVE)
    _donation(app, "10", STATUS_PENDING)

    html = admin_client.get("/admin/donations").get_data(as_text=True)
    assert "Raised: $75.00" in html
    assert "Pending: 1" in html

    html = admin_client.get("/admin/donations?status=pending").get_data(as_text=True)
    assert "$10.00" in html
    assert "$50.00</td>" not in html


def test_show_donation(app, admin_client):
    donation_id = _donation(app, "50", STATUS_COMPLETED)
    resp = admin_client.get(f"/admin/donations/{donation_id}")
    assert resp.status_code == 200
    assert "sam@example.org" in resp.get_data(as_text=True)


def test_other_admin_can_be_managed(app, admin_client):
    other = make_user(app, "second-admin@example.org", role="admin")
    assert admin_client.get(f"/admin/users/{other.id}").status_code == 200
