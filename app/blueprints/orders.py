"""Orders blueprint — /orders

Self-service page where a customer requests fresh download links for every
past order. Response is identical for known and unknown emails.
"""

import logging

from flask import Blueprint, jsonify, render_template, request

from app.extensions import limiter
from app.services.order_history_service import (
    INVALID_EMAIL_ERROR,
    email_order_history,
)

orders_bp = Blueprint("orders", __name__, url_prefix="/orders")

logger = logging.getLogger(__name__)


@orders_bp.route("", methods=["GET"])
def request_form():
    """Render the email form."""
    return render_template("orders/history.html")


@orders_bp.route("", methods=["POST"])
@limiter.limit("5 per hour")
def request_history():
    """
    Accept { email } as a form field or JSON.

    Returns: { message: "..." } or { error: "..." }
    """
    if request.is_json:
        data = request.get_json(silent=True) or {}
    else:
        data = request.form.to_dict()

    message, error = email_order_history(data.get("email"))

    if error == INVALID_EMAIL_ERROR:
        return jsonify(error=error), 422
    if error:
        return jsonify(error=error), 502
    return jsonify(message=message), 200
