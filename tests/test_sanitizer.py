from avrnpo.services.sanitizer import make_excerpt, sanitize_html, strip_tags


def test_script_and_handlers_are_removed():
    out = sanitize_html('<p onclick="steal()">Hi<script>alert(1)</script></p>')
    assert out == "<p>Hi</p>"


def test_javascript_links_are_dropped():
    out = sanitize_html('<a href="javascript:alert(1)">x</a>')
    assert "javascript" not in out


def test_links_get_safe_rel():
    out = sanitize_html('<a href="https://example.org">site</a>')
    assert 'href="https://example.org"' in out
    assert 'rel="noopener noreferrer nofollow"' in out


def test_formatting_survives():
    html = "<h2>Title</h2><ul><li><strong>bold</strong></li></ul><blockquote>q</blockquote>"
    assert sanitize_html(html) == html


def test_empty_input():
    assert sanitize_html("") == ""
    assert sanitize_html(None) == ""
    assert strip_tags(None) == ""


def test_strip_tags_collapses_whitespace_and_entities():
    assert strip_tags("<p>Fish &amp;\n  chips</p> <p>today</p>") == "Fish & chips today"


def test_short_excerpt_is_unchanged():
    assert make_excerpt("<p>Short post.</p>") == "Short post."


def test_long_excerpt_cuts_on_word_boundary():
    text = "word " * 100
    out = make_excerpt(f"<p>{text}</p>", limit=22)
    assert out == "word word word word…"
