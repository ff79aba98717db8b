"""
Main Flask application entry point for the creator subscription billing service
"""
import logging

import click
from flask import Flask, jsonify, request
from flask_login import LoginManager
from config import Config
from models import db
from models.user import User
from utils.mail import mail
from utils.payment_gateway import build_gateway

# Initialize login manager (no DB access at import time)
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    """Load user for Flask-Login (runs in request context)."""
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"success": False, "message": "Authentication required"}), 401


def register_error_handlers(app):
    """JSON bodies for API errors instead of HTML pages."""

    @app.errorhandler(404)
    def handle_404_error(e):
        if request.path.startswith("/api/"):
            return jsonify({"success": False, "message": "Not found"}), 404
        return e

    @app.errorhandler(405)
    def handle_405_error(e):
        if request.path.startswith("/api/"):
            return jsonify({"success": False, "message": "Method not allowed"}), 405
        return e

    @app.errorhandler(500)
    def handle_500_error(e):
        if request.path.startswith("/api/"):
            return jsonify({"success": False, "message": "Internal server error. Please try again later."}), 500
        return e


def register_commands(app):
    @app.cli.command("expire-subscriptions")
    def expire_subscriptions_command():
        """Mark active subscriptions past their end date as expired."""
        from utils.subscription_expiry import expire_subscriptions
        count = expire_subscriptions()
        click.echo(f"Expired {count} subscription(s).")


def create_app(config_class=Config, gateway=None):
    """
    Application factory pattern. DB init runs inside app_context; non-fatal on failure.

    Args:
        config_class: Config object to load
        gateway: Payment gateway client; built from PAYMENT_GATEWAY_MODE when omitted
    """
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)

    app.extensions["payment_gateway"] = gateway if gateway is not None else build_gateway(app.config)
    app.logger.info("Payment gateway: %s", app.extensions["payment_gateway"].mode.value)
    if app.config.get("WEBHOOK_SIGNATURE_LENIENT"):
        app.logger.warning(
            "WEBHOOK_SIGNATURE_LENIENT is enabled: notifications without a verifiable signature are accepted"
        )

    register_error_handlers(app)
    register_commands(app)

    # Create tables inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            logging.getLogger(__name__).warning("Database init skipped (non-fatal): %s", e)

    # Register blueprints
    from routes import auth_bp, webhooks_bp, user_payment_bp, user_subscriptions_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(user_payment_bp)
    app.register_blueprint(user_subscriptions_bp)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "gateway": app.extensions["payment_gateway"].mode.value})

    return app
