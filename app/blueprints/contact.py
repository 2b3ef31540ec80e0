"""
Contact form blueprint.

Relays a visitor's message to the store inbox, with Reply-To set to the
visitor so support can answer directly.
"""

import logging

from flask import Blueprint, current_app, jsonify, render_template, request

from app.extensions import limiter
from app.services.email_service import EmailDeliveryError, send_email_sync
from app.services.order_history_service import DELIVERY_FAILED_ERROR, EMAIL_RE

contact_bp = Blueprint("contact", __name__, url_prefix="/contact")

logger = logging.getLogger(__name__)

SENT_MESSAGE = "Message sent. Thank you!"


def _validate(data):
    """Returns (cleaned, errors). errors maps field name to a message."""
    cleaned = {
        "name": (data.get("name") or "").strip(),
        "email": (data.get("email") or "").strip(),
        "subject": (data.get("subject") or "").strip(),
        "message": (data.get("message") or "").strip(),
    }

    errors = {}
    if len(cleaned["name"]) < 2:
        errors["name"] = "Please enter your name."
    if not EMAIL_RE.match(cleaned["email"]):
        errors["email"] = "Invalid email."
    if len(cleaned["subject"]) > 120:
        errors["subject"] = "Subject is too long."
    if len(cleaned["message"]) < 10:
        errors["message"] = "Message is too short."
    elif len(cleaned["message"]) > 5000:
        errors["message"] = "Message is too long."

    return cleaned, errors


@contact_bp.route("", methods=["GET"])
def contact_form():
    return render_template("contact/form.html")


@contact_bp.route("", methods=["POST"])
@limiter.limit("5 per hour")
def send_message():
    """
    Accept a contact form submission as form fields or JSON.

    Expects: { name, email, subject (optional), message }
    Returns: { ok: true, message } or { ok: false, errors | error }
    """
    if request.is_json:
        data = request.get_json(silent=True) or {}
    else:
        data = request.form.to_dict()

    # Honeypot: bots fill the hidden "company" field. Pretend it worked.
    if (data.get("company") or "").strip():
        logger.info("Contact form honeypot triggered, message dropped")
        return jsonify(ok=True, message=SENT_MESSAGE), 200

    cleaned, errors = _validate(data)
    if errors:
        return jsonify(ok=False, errors=errors), 422

    inbox = (
        current_app.config.get("MAIL_CONTACT_TO")
        or current_app.config.get("MAIL_FROM_ADDRESS")
        or current_app.config.get("MAIL_USERNAME")
    )
    if not inbox:
        logger.error("Contact form submitted but no MAIL_CONTACT_TO is configured")
        return jsonify(ok=False, error=DELIVERY_FAILED_ERROR), 502

    try:
        send_email_sync(
            to=inbox,
            subject=cleaned["subject"] or f"New message from {cleaned['name']}",
            template="emails/contact.html",
            context={
                "name": cleaned["name"],
                "email": cleaned["email"],
                "message": cleaned["message"],
            },
            reply_to=cleaned["email"],
        )
    except EmailDeliveryError as e:
        logger.error(f"Contact message from {cleaned['email']} not delivered: {e}")
        return jsonify(ok=False, error=DELIVERY_FAILED_ERROR), 502

    logger.info(f"Contact form submitted by {cleaned['name']} <{cleaned['email']}>")
    return jsonify(ok=True, message=SENT_MESSAGE), 200
