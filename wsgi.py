import os

# Gunicorn entry point: `gunicorn wsgi:app`
os.environ.setdefault("ENV", "production")

from avrnpo import create_app  # noqa: E402

app = create_app()
