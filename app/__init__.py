import os
import logging

import click
from flask import Flask, jsonify, render_template, request
from werkzeug.security import generate_password_hash

from app.config import config_by_name
from app.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from app import models  # noqa: F401

    # --- Register blueprints ---
    from app.blueprints.webhooks import webhooks_bp
    from app.blueprints.downloads import downloads_bp
    from app.blueprints.orders import orders_bp
    from app.blueprints.checkout import checkout_bp
    from app.blueprints.admin import admin_bp
    from app.blueprints.contact import contact_bp

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(downloads_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(contact_bp)

    # Exempt webhooks from CSRF — raw body needed for Stripe signature verification
    csrf.exempt(webhooks_bp)
    # Exempt checkout from CSRF — called by Stripe.js with a JSON body
    csrf.exempt(checkout_bp)

    # --- Error handlers ---
    def _wants_json():
        return request.is_json or request.accept_mimetypes.best == "application/json"

    @app.errorhandler(403)
    def forbidden(e):
        if _wants_json():
            return jsonify(error="Forbidden"), 403
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(e):
        if _wants_json():
            return jsonify(error="Not found"), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def server_error(e):
        if _wants_json():
            return jsonify(error="Internal server error"), 500
        return render_template("errors/500.html"), 500

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
        # Control referrer information (download tokens live in the path)
        response.headers["Referrer-Policy"] = "no-referrer"
        # Permissions Policy (restrict browser features)
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=(self)"
        )
        # Content Security Policy
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline' https://js.stripe.com; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self' https://api.stripe.com; "
            "frame-src https://js.stripe.com https://hooks.stripe.com; "
            "base-uri 'self'; "
            "form-action 'self'; "
            "frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Template filters ---
    @app.template_filter("cents")
    def cents_filter(value):
        """Format an integer amount in cents as "1,234.56"."""
        return f"{(value or 0) / 100:,.2f}"

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@store.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    def seed_admin(email, password):
        """Create a back-office account.

        Usage:
            flask seed-admin
            flask seed-admin --email admin@example.com --password s3cret
        """
        from app.models.admin_user import AdminUser

        email = email.lower().strip()
        if AdminUser.query.filter_by(email=email).first():
            click.echo(f"Admin user already exists: {email}")
            return

        db.session.add(AdminUser(
            email=email,
            password_hash=generate_password_hash(password),
            full_name="Admin",
        ))
        db.session.commit()
        click.echo(f"Created admin user: {email}")

    @app.cli.command("add-product")
    @click.option("--name", required=True)
    @click.option("--description", required=True)
    @click.option("--price-in-cents", type=int, required=True)
    @click.option("--file-path", required=True, help="Path under PRODUCT_FILES_DIR, or absolute")
    @click.option("--available/--unavailable", default=True)
    def add_product(name, description, price_in_cents, file_path, available):
        """Register an already-stored file as a product."""
        from app.models.product import Product

        if price_in_cents < 0:
            raise click.BadParameter("must be non-negative", param_hint="--price-in-cents")

        product = Product(
            name=name,
            description=description,
            price_in_cents=price_in_cents,
            file_path=file_path,
            is_available_for_purchase=available,
        )
        db.session.add(product)
        db.session.commit()
        click.echo(f"Created product {product.id}: {name} ({price_in_cents}c)")

    @app.cli.command("purge-expired-credentials")
    def purge_expired_credentials():
        """Delete download links past their expiry (housekeeping)."""
        from app.services.credential_service import purge_expired_credentials as purge

        count = purge()
        click.echo(f"Removed {count} expired download links.")

    @app.cli.command("resend-order-history")
    @click.option("--email", required=True, help="Customer email (exact match)")
    def resend_order_history(email):
        """Re-send download links for every order of a customer.

        Manual recovery when a receipt email was lost.
        """
        from app.services.order_history_service import email_order_history

        message, error = email_order_history(email)
        if error:
            raise click.ClickException(error)
        click.echo(message)
