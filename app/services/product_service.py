"""Product service — admin-side catalog mutations.

Validation returns field-level errors as values ({field: [messages]}) so
the admin routes can hand them straight back to the form.
"""

import logging
import re

from app.extensions import db
from app.models.download_verification import DownloadVerification
from app.models.product import Product
from app.services import storage_service

logger = logging.getLogger(__name__)

NAME_RE = re.compile(r"^[a-zA-ZÀ-ÿ0-9\s\-_.]+$")
MIN_PRICE_IN_CENTS = 100
MAX_PRICE_IN_CENTS = 1_000_000


def validate_product_form(form, file=None, product=None):
    """Validate create/edit form data.

    Args:
        form: mapping with name, description, price_in_cents, image_path
        file: uploaded FileStorage (required when creating)
        product: the Product being edited, or None when creating

    Returns:
        tuple: (cleaned: dict, errors: dict); errors is empty when valid
    """
    errors = {}
    cleaned = {}

    name = (form.get("name") or "").strip()
    if len(name) < 3:
        errors.setdefault("name", []).append("Name must be at least 3 characters.")
    elif len(name) > 100:
        errors.setdefault("name", []).append("Name cannot exceed 100 characters.")
    elif not NAME_RE.match(name):
        errors.setdefault("name", []).append("Name contains invalid characters.")
    else:
        duplicate = Product.query.filter(Product.name == name)
        if product is not None:
            duplicate = duplicate.filter(Product.id != product.id)
        if duplicate.first():
            errors.setdefault("name", []).append("A product with this name already exists.")
    cleaned["name"] = name

    description = (form.get("description") or "").strip()
    if len(description) < 10:
        errors.setdefault("description", []).append(
            "Description must be at least 10 characters."
        )
    elif len(description) > 1000:
        errors.setdefault("description", []).append(
            "Description cannot exceed 1000 characters."
        )
    cleaned["description"] = description

    try:
        price = int(form.get("price_in_cents", ""))
    except (TypeError, ValueError):
        price = None
    if price is None or price < MIN_PRICE_IN_CENTS:
        errors.setdefault("price_in_cents", []).append("Minimum price is 1.00.")
    elif price > MAX_PRICE_IN_CENTS:
        errors.setdefault("price_in_cents", []).append("Maximum price is 10,000.00.")
    cleaned["price_in_cents"] = price

    image_path = (form.get("image_path") or "").strip()
    cleaned["image_path"] = image_path or None

    if file is not None and file.filename:
        ok, file_error = storage_service.validate_product_file(file)
        if not ok:
            errors.setdefault("file", []).append(file_error)
    elif product is None:
        errors.setdefault("file", []).append("Select a file.")

    return cleaned, errors


def create_product(cleaned, file):
    """Store the file and insert an unavailable product. Commits."""
    file_path = storage_service.save_product_file(file)
    product = Product(
        name=cleaned["name"],
        description=cleaned["description"],
        price_in_cents=cleaned["price_in_cents"],
        image_path=cleaned["image_path"],
        file_path=file_path,
        is_available_for_purchase=False,
    )
    db.session.add(product)
    db.session.commit()
    logger.info(f"Product created: {product.id} {product.name} ({product.price_in_cents}c)")
    return product


def update_product(product, cleaned, file=None):
    """Apply edits; a new file replaces (and deletes) the old one. Commits.

    Price edits never touch existing orders, which keep price_paid_in_cents.
    """
    old_file_path = None
    if file is not None and file.filename:
        old_file_path = product.file_path
        product.file_path = storage_service.save_product_file(file)

    product.name = cleaned["name"]
    product.description = cleaned["description"]
    product.price_in_cents = cleaned["price_in_cents"]
    if cleaned.get("image_path"):
        product.image_path = cleaned["image_path"]
    db.session.commit()

    if old_file_path:
        storage_service.delete_product_file(old_file_path)
    logger.info(f"Product updated: {product.id}")
    return product


def set_availability(product, available):
    product.is_available_for_purchase = bool(available)
    db.session.commit()
    return product


def delete_product(product):
    """Delete a product that has never been ordered.

    Returns (deleted: bool, error: str|None).
    """
    if product.orders.count() > 0:
        return False, "Products with orders cannot be deleted."

    product_id = product.id
    file_path = product.file_path
    DownloadVerification.query.filter_by(product_id=product_id).delete(
        synchronize_session=False
    )
    db.session.delete(product)
    db.session.commit()

    storage_service.delete_product_file(file_path)
    logger.info(f"Product deleted: {product_id}")
    return True, None
