"""
Main Flask application entry point for the captive portal
"""
import atexit
import logging
import os

from flask import Flask, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix

from config import Config
from models import db
from services import EXTENSION_KEY, CaptivePortalServices
from utils.identity import SCHEMES
from utils.mail import mail


def create_app(config_class=Config, firewall_runner=None):
    """Application factory pattern. DB init runs inside app_context; non-fatal on failure."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    if app.config["IDENTITY_SCHEME"] not in SCHEMES:
        raise RuntimeError(
            f"IDENTITY_SCHEME must be one of {', '.join(SCHEMES)}, got {app.config['IDENTITY_SCHEME']!r}"
        )
    log_level = app.config.get("LOG_LEVEL", "INFO")
    if not logging.getLogger().handlers:
        logging.basicConfig(level=log_level, format="[%(levelname)s] %(asctime)s %(name)s - %(message)s")
    app.logger.setLevel(log_level)

    if app.config.get("TRUST_PROXY"):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    db.init_app(app)
    mail.init_app(app)

    services = CaptivePortalServices.from_app(app, firewall_runner=firewall_runner)
    app.extensions[EXTENSION_KEY] = services
    atexit.register(services.close)

    @app.errorhandler(404)
    def handle_404_error(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def handle_500_error(e):
        if request.path.startswith("/capport/"):
            return jsonify({
                "captive": True,
                "user-portal-url": app.config["PORTAL_URL"],
                "error": "Internal server error",
            }), 500
        return jsonify({"success": False, "error": "Internal server error"}), 500

    # Create tables inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            app.logger.warning("Database init skipped (non-fatal): %s", e)

    # Register blueprints
    from routes import capport_bp, otp_bp, health_bp

    app.register_blueprint(capport_bp)
    app.register_blueprint(otp_bp)
    app.register_blueprint(health_bp)

    from commands import capport_cli
    app.cli.add_command(capport_cli)

    app.logger.info(
        "Captive portal ready (identity scheme=%s, firewall %s)",
        app.config["IDENTITY_SCHEME"],
        "enabled" if app.config.get("FIREWALL_ENABLED") else "disabled",
    )
    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1"))
