import os
import logging

import click
import stripe
from flask import Flask, jsonify

from crowdaction.config import config_by_name
from crowdaction.errors import DonationError
from crowdaction.extensions import (
    celery_init_app,
    csrf,
    db,
    limiter,
    login_manager,
    migrate,
)


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    # Missing Stripe credentials or webhook secrets abort startup.
    if config_name != "testing":
        config_by_name[config_name].validate()

    # --- Stripe: no module-level API key, keys are passed per call ---
    stripe.max_network_retries = app.config["STRIPE_MAX_NETWORK_RETRIES"]

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    celery_init_app(app)

    # --- Import models and tasks so Alembic / Celery can discover them ---
    with app.app_context():
        from crowdaction import models  # noqa: F401
        from crowdaction import tasks  # noqa: F401

    # --- Register blueprints ---
    from crowdaction.blueprints.donation import donation_bp
    from crowdaction.blueprints.webhooks import webhooks_bp
    from crowdaction.blueprints.admin import admin_bp

    app.register_blueprint(donation_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(admin_bp)

    # Exempt webhooks from CSRF: raw body needed for Stripe signature verification
    csrf.exempt(webhooks_bp)

    # --- Error handlers ---
    @app.errorhandler(DonationError)
    def donation_error(e):
        if e.status_code >= 500:
            app.logger.error(f"Donation request failed: {e}", exc_info=e)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(stripe.StripeError)
    def stripe_error(e):
        app.logger.error(f"Stripe request failed: {e}", exc_info=e)
        return jsonify(ok=False, error=e.user_message or "Payment provider error."), 502

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify(ok=False, error="Forbidden."), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify(ok=False, error="Not found."), 404

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify(ok=False, error="Too many requests."), 429

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("ensure-donation-product")
    def ensure_donation_product():
        """Create the recurring donation product in Stripe if it is missing.

        Recurring checkouts create it on demand as well; run this once per
        Stripe account to check the key and product up front.

        Usage:
            flask ensure-donation-product
        """
        from crowdaction.services.gateway_service import (
            get_or_create_recurring_product,
            stripe_field,
        )

        product = get_or_create_recurring_product()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Recurring donation product ready")
        click.echo("=" * 60)
        click.echo(f"  Product ID:  {product.id}")
        click.echo(f"  Name:        {product.name}")
        click.echo(f"  Livemode:    {stripe_field(product, 'livemode')}")
        click.echo("=" * 60)

    @app.cli.command("donation-events")
    @click.option("--type", "event_type", type=click.Choice(["internal", "external"]),
                  default=None, help="Only entries of this type.")
    @click.option("--limit", default=20, show_default=True, help="Number of entries.")
    def donation_events(event_type, limit):
        """Print the newest donation event log entries.

        Usage:
            flask donation-events
            flask donation-events --type external --limit 50
        """
        from crowdaction.services.event_log_service import list_events

        for entry in list_events(event_type=event_type, limit=limit):
            data = entry.event_data or {}
            click.echo(
                f"{entry.id:>6}  {entry.created_at}  {entry.type:<8}  "
                f"{data.get('object', '?'):<20}  {data.get('id', '')}  "
                f"user={entry.user_id or '-'}"
            )
