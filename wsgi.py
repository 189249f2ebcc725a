"""
WSGI entry point and Flask-Migrate / Alembic entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
    flask --app wsgi completion-sweep --at 2025-03-01T06:00:00+00:00
"""

from completion_tracker import create_app

app = create_app()
