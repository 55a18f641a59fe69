from avrnpo.extensions import db
from avrnpo.models import Post
from tests.conftest import make_user


def _post(app, author_id, title, published=True):
    with app.app_context():
        post = Post(title=title, content=f"<p>{title} body</p>", excerpt=f"{title} excerpt",
                    author_id=author_id, slug=Post.unique_slug(title))
        if published:
            post.publish()
        db.session.add(post)
        db.session.commit()
        return post.slug


def test_index_lists_published_only(app, client, admin):
    _post(app, admin.id, "Ramp complete")
    _post(app, admin.id, "Secret draft", published=False)

    html = client.get("/blog").get_data(as_text=True)

    assert "Ramp complete" in html
    assert "Secret draft" not in html


def test_empty_blog(client):
    assert "No posts yet" in client.get("/blog").get_data(as_text=True)


def test_published_post_is_public(app, client, admin):
    slug = _post(app, admin.id, "Open house")
    resp = client.get(f"/blog/{slug}")
    assert resp.status_code == 200
    assert "Open house body" in resp.get_data(as_text=True)


def test_draft_is_404_for_public_and_other_users(app, client, user_client, admin):
    slug = _post(app, admin.id, "Work in progress", published=False)

    assert app.test_client().get(f"/blog/{slug}").status_code == 404
    assert user_client.get(f"/blog/{slug}").status_code == 404


def test_draft_is_visible_to_author(app, user_client, user):
    slug = _post(app, user.id, "My draft", published=False)
    assert user_client.get(f"/blog/{slug}").status_code == 200


def test_draft_is_visible_to_admin(app, admin_client):
    author = make_user(app, "writer@example.org")
    slug = _post(app, author.id, "Pending review", published=False)
    assert admin_client.get(f"/blog/{slug}").status_code == 200


def test_unknown_slug_is_404(client):
    assert client.get("/blog/nope").status_code == 404


def test_load_more_pages(app, client, admin):
    app.config["POSTS_PER_PAGE"] = 2
    for i in range(3):
        _post(app, admin.id, f"Post {i}")

    first = client.get("/blog/more?page=1").get_json()
    second = client.get("/blog/more?page=2").get_json()

    assert first["ok"] is True
    assert len(first["posts"]) == 2
    assert first["has_more"] is True
    assert len(second["posts"]) == 1
    assert second["has_more"] is False
    assert set(first["posts"][0]) == {"id", "title", "slug", "excerpt", "published_at", "author"}


def test_load_more_tolerates_bad_page(client):
    payload = client.get("/blog/more?page=abc").get_json()
    assert payload["page"] == 1
    assert payload["posts"] == []


def test_index_shows_older_posts_link(app, client, admin):
    app.config["POSTS_PER_PAGE"] = 1
    _post(app, admin.id, "First")
    _post(app, admin.id, "Second")

    assert "Older posts" in client.get("/blog").get_data(as_text=True)
