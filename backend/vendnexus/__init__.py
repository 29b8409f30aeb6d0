# backend/vendnexus/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db


def create_app(config_overrides: dict | None = None, oracle=None) -> Flask:
    """
    Build the app with a fresh in-memory catalog and ledger.

    Args:
        config_overrides: applied after Config (tests pass TESTING, SEED_ON_STARTUP, ...)
        oracle: AdvisoryOracle to use instead of the Gemini adapter
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)

    # Import models so create_all sees every table
    from . import models  # noqa: F401

    with app.app_context():
        db.create_all()
        if app.config["SEED_ON_STARTUP"]:
            from .seed import seed_database
            random_seed = app.config.get("SEED_RANDOM_SEED")
            seed_database(
                sales_count=app.config["SEED_SALES_COUNT"],
                random_seed=int(random_seed) if random_seed not in (None, "") else None,
            )

    from .services.advisory_session import AdvisorySession
    from .services.oracle_service import GeminiOracle

    if oracle is None:
        oracle = GeminiOracle.from_config(app.config)
    app.extensions["vendnexus.advisory"] = AdvisorySession(oracle)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.machines import machines_bp
    from .routes.products import products_bp
    from .routes.sales import sales_bp
    from .routes.assistant import assistant_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(machines_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(assistant_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
