"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db upgrade                 # apply migrations/versions
    flask db migrate -m "description"
    flask seed-demo-data             # demo decision board + template
"""

from app import create_app

app = create_app()
