"""
Flask extension instances for the ledger service.

Created unbound here and attached to the app in create_app(), so models and
services can import `db` without importing the application.
"""

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
# Alembic migrations: `flask --app run.py db migrate` / `db upgrade`
migrate = Migrate()
