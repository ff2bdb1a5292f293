"""
supplier_ledger/__init__.py

Flask application factory for the Supplier Ledger service.

Scope:
- Supplier balances, the supplier ledger and the procurement lifecycle that
  keeps them consistent (see supplier_ledger/services).
- JSON API blueprints for the procurement/inventory front end.
- Maintenance CLI: balance recalculation and ledger drift diagnosis.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from flask.logging import default_handler

from config import get_config

from .extensions import db, migrate

# Blueprint imports kept inside create_app() where possible to reduce import side effects.


def _configure_logging(app: Flask) -> None:
    """Package loggers follow LOG_LEVEL and share Flask's handler unless logging is configured already."""
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    if not package_logger.handlers and not logging.getLogger().handlers:
        package_logger.addHandler(default_handler)


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models are imported so Alembic sees them during 'flask db migrate'
    with app.app_context():
        from . import models  # noqa: F401

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.procurements import procurements_bp
    from .blueprints.suppliers import suppliers_bp

    app.register_blueprint(suppliers_bp)
    app.register_blueprint(procurements_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("recalculate-balance")
    @click.argument("supplier_id", type=int)
    def recalculate_balance_command(supplier_id: int):
        """Rebuild one supplier's running balances from its ledger."""
        from .services import recalculate_supplier_balance

        result = recalculate_supplier_balance(supplier_id)
        if not result["success"]:
            raise click.ClickException(result["error"])
        click.echo(
            f"Supplier {supplier_id}: balance {result['final_balance']} "
            f"({result['entries_updated']} entries updated)."
        )

    @app.cli.command("recalculate-all")
    def recalculate_all_command():
        """Rebuild running balances for every supplier."""
        from .models import Supplier
        from .services import recalculate_supplier_balance

        supplier_ids = [s.id for s in Supplier.query.order_by(Supplier.id.asc()).all()]
        failures = 0
        for supplier_id in supplier_ids:
            result = recalculate_supplier_balance(supplier_id)
            if result["success"]:
                click.echo(
                    f"Supplier {supplier_id}: balance {result['final_balance']} "
                    f"({result['entries_updated']} entries updated)."
                )
            else:
                failures += 1
                click.echo(f"Supplier {supplier_id}: {result['error']}", err=True)

        if failures:
            raise click.ClickException(f"{failures} supplier(s) could not be recalculated.")
        click.echo(f"Recalculated {len(supplier_ids)} supplier(s).")

    @app.cli.command("diagnose-ledger")
    @click.argument("supplier_id", type=int)
    def diagnose_ledger_command(supplier_id: int):
        """Report ledger entries whose stored running balance has drifted (read-only)."""
        from .services import diagnose_supplier_ledger

        result = diagnose_supplier_ledger(supplier_id)
        if not result["success"]:
            raise click.ClickException(result["error"])

        for row in result["drifted_entries"]:
            click.echo(
                f"#{row['id']} {row['entry_type']} {row['reference']}: "
                f"stored {row['stored_running_balance']} / computed {row['computed_running_balance']}"
            )
        click.echo(
            f"{result['total_entries']} entries, {len(result['drifted_entries'])} drifted. "
            f"Stored balance {result['stored_balance']}, computed {result['computed_balance']}."
        )
        click.echo("Ledger is consistent." if result["is_consistent"] else "Ledger needs recalculation.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        return jsonify({"app": app.config["APP_NAME"], "status": "ok"})

    return app
