"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, ledger
transaction policy and logging. It uses environment variables for sensitive information and defaults for development.
In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'ledger.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Attempts per lifecycle transaction before a conflict is reported to the caller
    LEDGER_TRANSACTION_RETRIES = int(os.environ.get("LEDGER_TRANSACTION_RETRIES", 3))

    # Stored vs recomputed running balance difference that counts as drift
    LEDGER_DRIFT_TOLERANCE = Decimal(os.environ.get("LEDGER_DRIFT_TOLERANCE", "0.01"))

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₱")

    APP_NAME = "Supplier Ledger"


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    DEBUG = False


def get_config(name=None):
    """Resolve a config class from a name or FLASK_ENV (development by default)."""
    if name is None:
        name = os.environ.get("FLASK_ENV", "development")
    name = name.lower()
    if name.startswith("prod"):
        return ProductionConfig
    if name.startswith("test"):
        return TestingConfig
    return DevelopmentConfig
