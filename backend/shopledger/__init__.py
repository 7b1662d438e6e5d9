# backend/shopledger/__init__.py
from __future__ import annotations

import logging

from flask import Flask

from .config import Config, engine_options_for
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    if config_overrides:
        app.config.update(config_overrides)
        if "SQLALCHEMY_ENGINE_OPTIONS" not in config_overrides:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options_for(
                app.config["SQLALCHEMY_DATABASE_URI"],
                app.config["LEDGER_TRANSACTION_TIMEOUT_SECONDS"],
            )

    app.logger.setLevel(getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.stock import stock_bp
    from .routes.vendors import vendors_bp
    from .routes.customers import customers_bp
    from .routes.purchases import purchases_bp
    from .routes.sales import sales_bp
    from .routes.payments import payments_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(vendors_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(settings_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
