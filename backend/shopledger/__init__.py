# backend/shopledger/__init__.py
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import LedgerError
from .extensions import db, migrate
from .runtime import COORDINATOR_KEY, STORE_KEY


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description, "details": {}}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error", "details": {}}), 500


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.ledger_store import LedgerStore
    from .services.stock_service import cost_basis_from_name, negative_stock_policy_from_name
    from .services.transaction_coordinator import TransactionCoordinator

    # Unknown policy names fail here, before the app serves anything
    cost_basis = cost_basis_from_name(app.config["COST_BASIS_POLICY"])
    negative_stock = negative_stock_policy_from_name(app.config["NEGATIVE_STOCK_POLICY"])

    store = LedgerStore(db)
    app.extensions[STORE_KEY] = store
    app.extensions[COORDINATOR_KEY] = TransactionCoordinator(
        store,
        cost_basis=cost_basis,
        negative_stock=negative_stock,
    )

    if app.config["AUTO_CREATE_SCHEMA"]:
        with app.app_context():
            store.create_schema()

    register_error_handlers(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.settings import settings_bp
    from .routes.products import products_bp
    from .routes.parties import parties_bp
    from .routes.sales import sales_bp
    from .routes.inventory import inventory_bp
    from .routes.ledger import ledger_bp
    from .routes.maintenance import maintenance_bp
    from .routes.backup import backup_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(parties_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(maintenance_bp)
    app.register_blueprint(backup_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
