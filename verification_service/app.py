"""
Slip Verification Service - Flask application
Verifies bank-transfer slips for bookings and confirms them by email.
"""

from datetime import datetime, timezone

import click
from flask import Flask, jsonify
from flasgger import Swagger
from sqlalchemy import text

from verification_service.config import MailSettings, VerificationSettings, config_from_env, load_environment
from verification_service.errors import MisconfigurationError
from verification_service.extensions import db
from verification_service.log_config import configure_logging, get_logger
from verification_service.models import Appointment, NotificationOutbox  # noqa: F401 register models
from verification_service.services import notification_service
from verification_service.services.email_service import SmtpMailer
from verification_service.services.slip_client import SlipVerifyClient
from verification_service.services.slip_verification import SlipVerificationService

logger = get_logger(__name__)


def create_app(config=None, slip_client=None, mailer=None):
    load_environment()

    app = Flask(__name__)
    app.config.update(config_from_env())
    if config:
        app.config.update(config)

    configure_logging(app.config.get("LOG_LEVEL"))

    db.init_app(app)
    Swagger(app)

    # --- Verification settings (validated once) --------------------------
    try:
        settings = VerificationSettings.from_mapping(app.config)
    except MisconfigurationError as e:
        logger.error("verification_settings_invalid", reason=e.message, missing=e.missing)
        settings = None

    try:
        mail_settings = MailSettings.from_mapping(app.config)
    except MisconfigurationError as e:
        logger.error("mail_settings_invalid", reason=e.message, missing=e.missing)
        mail_settings = MailSettings()

    if not mail_settings.enabled:
        logger.warning("smtp_not_configured")

    if slip_client is None and settings is not None:
        slip_client = SlipVerifyClient.from_settings(settings)
    mailer = mailer or SmtpMailer(mail_settings)

    app.extensions["slip_verification"] = SlipVerificationService(
        settings=settings,
        client=slip_client,
        mailer=mailer,
        signature=mail_settings.signature,
    )
    app.extensions["mailer"] = mailer

    # --- Register Blueprints ---------------------------------------------
    from verification_service.routes.verification import verification_bp
    app.register_blueprint(verification_bp, url_prefix="/api/verification")

    # --- Health check ----------------------------------------------------
    @app.route("/health")
    def health():
        checks = {"configuration": "ok" if settings is not None else "misconfigured"}
        try:
            db.session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as e:
            db.session.rollback()
            logger.error("health_database_failed", error=str(e))
            return jsonify({
                "service": "verification-service",
                "status": "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "checks": {**checks, "database": "unreachable"},
            }), 503

        return jsonify({
            "service": "verification-service",
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": checks,
        }), 200

    # --- CLI -------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create the appointment and outbox tables."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command("dispatch-notifications")
    @click.option("--limit", default=50, show_default=True, help="Max outbox entries to send.")
    def dispatch_notifications_command(limit):
        """Re-send pending and failed confirmation emails."""
        sent, failed = notification_service.dispatch_pending(app.extensions["mailer"], limit=limit)
        click.echo(f"Sent {sent}, failed {failed}.")

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5004)
