"""Admin blueprint — /admin/*

Back office for the catalog, orders and customers. JSON responses; all
routes except login are protected by @admin_required.

Route Map:
  GET/POST /admin/login                       — Back-office login
  POST /admin/logout                          — Log out
  GET  /admin/                                — Dashboard numbers
  GET  /admin/products                        — Product list
  POST /admin/products                        — Create product (multipart)
  POST /admin/products/<id>                   — Update product
  POST /admin/products/<id>/availability      — Toggle availability
  POST /admin/products/<id>/delete            — Delete never-ordered product
  GET  /admin/products/<id>/download          — Download product file
  GET  /admin/orders                          — Order list
  GET  /admin/customers                       — Customer list
  POST /admin/customers/<id>/delete           — Delete customer + orders
"""

import logging
from datetime import datetime, timezone

from flask import (
    Blueprint,
    abort,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_user, logout_user
from sqlalchemy.orm import joinedload
from werkzeug.security import check_password_hash

from app.blueprints.downloads import attachment_response
from app.decorators import admin_required
from app.extensions import db, limiter
from app.models.admin_user import AdminUser
from app.models.order import Order
from app.models.product import Product
from app.models.user import User
from app.services import product_service
from app.services.storage_service import ProductFileMissing

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _get_or_404(model, id_):
    obj = db.session.get(model, id_)
    if obj is None:
        abort(404)
    return obj


# ══════════════════════════════════════════════
#  AUTH
# ══════════════════════════════════════════════

@admin_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("15 per minute", methods=["POST"])
def login():
    """Email + password login for back-office accounts."""
    if current_user.is_authenticated:
        return redirect(url_for("admin.dashboard"))

    if request.method == "POST":
        email = request.form.get("email", "").lower().strip()
        password = request.form.get("password", "")

        admin = AdminUser.query.filter_by(email=email).first()
        if admin is None or not check_password_hash(admin.password_hash, password):
            flash("Invalid email or password.", "error")
            return render_template("admin/login.html", email=email), 401

        if not admin.is_active:
            flash("This account has been deactivated.", "error")
            return render_template("admin/login.html", email=email), 403

        admin.last_login_at = datetime.now(timezone.utc)
        db.session.commit()
        login_user(admin)
        logger.info(f"Admin login: {email}")
        return redirect(url_for("admin.dashboard"))

    return render_template("admin/login.html")


@admin_bp.route("/logout", methods=["POST"])
@admin_required
def logout():
    logout_user()
    return redirect(url_for("admin.login"))


# ══════════════════════════════════════════════
#  DASHBOARD
# ══════════════════════════════════════════════

@admin_bp.route("/")
@admin_required
def dashboard():
    """Sales total, order/customer counts, available products."""
    total_sales = db.session.query(
        db.func.coalesce(db.func.sum(Order.price_paid_in_cents), 0)
    ).scalar()

    return jsonify({
        "total_sales_in_cents": int(total_sales),
        "order_count": Order.query.count(),
        "customer_count": User.query.count(),
        "available_product_count": Product.query.filter_by(
            is_available_for_purchase=True
        ).count(),
    })


# ══════════════════════════════════════════════
#  PRODUCTS
# ══════════════════════════════════════════════

@admin_bp.route("/products", methods=["GET"])
@admin_required
def products():
    rows = Product.query.order_by(Product.name).all()
    return jsonify(products=[p.to_dict() for p in rows])


@admin_bp.route("/products", methods=["POST"])
@admin_required
def create_product():
    """Create a product from a multipart form. New products start unavailable."""
    file = request.files.get("file")
    cleaned, errors = product_service.validate_product_form(request.form, file)
    if errors:
        return jsonify(ok=False, errors=errors), 422

    product = product_service.create_product(cleaned, file)
    return jsonify(ok=True, product=product.to_dict()), 201


@admin_bp.route("/products/<product_id>", methods=["POST"])
@admin_required
def update_product(product_id):
    product = _get_or_404(Product, product_id)
    file = request.files.get("file")
    cleaned, errors = product_service.validate_product_form(
        request.form, file, product=product
    )
    if errors:
        return jsonify(ok=False, errors=errors), 422

    product_service.update_product(product, cleaned, file)
    return jsonify(ok=True, product=product.to_dict())


@admin_bp.route("/products/<product_id>/availability", methods=["POST"])
@admin_required
def toggle_availability(product_id):
    """Set availability from the "available" field, or flip it when absent."""
    product = _get_or_404(Product, product_id)
    value = request.form.get("available")
    if value is None:
        available = not product.is_available_for_purchase
    else:
        available = value.lower() in ("1", "true", "yes", "on")

    product_service.set_availability(product, available)
    return jsonify(ok=True, product=product.to_dict())


@admin_bp.route("/products/<product_id>/delete", methods=["POST"])
@admin_required
def delete_product(product_id):
    product = _get_or_404(Product, product_id)
    deleted, error = product_service.delete_product(product)
    if not deleted:
        return jsonify(ok=False, error=error), 409
    return jsonify(ok=True)


@admin_bp.route("/products/<product_id>/download")
@admin_required
def download_product(product_id):
    """Admin download, no credential needed."""
    product = _get_or_404(Product, product_id)
    try:
        return attachment_response(product.file_path, product.name)
    except ProductFileMissing:
        logger.error(f"Product {product_id} file is unreadable: {product.file_path}")
        abort(500)


# ══════════════════════════════════════════════
#  ORDERS & CUSTOMERS
# ══════════════════════════════════════════════

@admin_bp.route("/orders")
@admin_required
def orders():
    rows = (
        Order.query
        .options(joinedload(Order.user), joinedload(Order.product))
        .order_by(Order.created_at.desc())
        .all()
    )
    return jsonify(orders=[o.to_dict() for o in rows])


@admin_bp.route("/customers")
@admin_required
def customers():
    rows = (
        User.query
        .options(joinedload(User.orders))
        .order_by(User.created_at.desc())
        .all()
    )
    return jsonify(customers=[u.to_dict() for u in rows])


@admin_bp.route("/customers/<user_id>/delete", methods=["POST"])
@admin_required
def delete_customer(user_id):
    """Remove a customer and their orders (admin-only)."""
    user = _get_or_404(User, user_id)
    email = user.email
    db.session.delete(user)
    db.session.commit()
    logger.info(f"Customer deleted by {current_user.email}: {email}")
    return jsonify(ok=True)
