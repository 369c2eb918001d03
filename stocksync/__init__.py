import sys
import logging
from flask import Flask
from dotenv import load_dotenv


def create_app(test_config=None, client_factory=None):
    load_dotenv()
    from . import config
    from .clients.woocommerce import WooClient
    from .models import db
    from .services.registry import SiteRegistry
    from .utils.logger import set_level

    app = Flask(__name__)
    app.config.from_mapping(config.as_mapping())
    if test_config:
        app.config.update(test_config)

    # =========================================================
    # Logging: gunicorn's handlers when served by it, plus stdout.
    # app.logger is the "stocksync" logger used by utils.logger.
    # =========================================================
    gunicorn_error = logging.getLogger("gunicorn.error")
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    app.logger.handlers = [*gunicorn_error.handlers, sh]
    set_level(app.config["LOG_LEVEL"])

    # =========================================================
    # Storage and site registry
    # =========================================================
    db.init_app(app)
    registry = SiteRegistry(
        client_factory=client_factory or WooClient,
        client_options={
            "version": app.config["WC_API_VERSION"],
            "timeout": app.config["WC_TIMEOUT"],
            "user_agent": app.config["WC_USER_AGENT"],
            "push_attempts": app.config["WC_PUSH_ATTEMPTS"],
        },
    )
    with app.app_context():
        db.create_all()
        registry.initialize()
    app.extensions["site_registry"] = registry

    # =========================================================
    # Blueprints
    # =========================================================
    from .routes.stock import bp as stock_bp
    from .routes.products import bp as products_bp
    from .routes.admin import bp as admin_bp

    app.register_blueprint(stock_bp, url_prefix="/api/stock")
    app.register_blueprint(products_bp, url_prefix="/api/products")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    # =========================================================
    # JSON errors
    # =========================================================
    @app.errorhandler(401)
    def unauthorized(e):
        return {"error": e.description or "Unauthorized"}, 401

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        app.logger.info("Health check endpoint called")
        return {"ok": True}, 200

    return app
