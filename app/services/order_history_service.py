"""Order-history service — re-send download links for past orders.

A customer who lost (or let expire) their download link enters their email.
Whether or not the email is known, the same message comes back, so the form
cannot be used to find out who is a customer.
"""

import logging
import re

from app.extensions import db
from app.services.credential_service import download_url, issue_credential
from app.services.email_service import EmailDeliveryError, send_email_sync
from app.services.ledger_service import find_order_history

logger = logging.getLogger(__name__)

# Simple email regex, not exhaustive
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ORDER_HISTORY_MESSAGE = (
    "Check your email to see your order history and download your products."
)
INVALID_EMAIL_ERROR = "Invalid email."
DELIVERY_FAILED_ERROR = "We couldn't send your email. Please try again."


def validate_email(email):
    """Returns (email, error). email is stripped; error is None when valid."""
    email = (email or "").strip()
    if not email or not EMAIL_RE.match(email):
        return None, INVALID_EMAIL_ERROR
    return email, None


def email_order_history(raw_email):
    """Mint fresh download links for every order of a customer and email them.

    Args:
        raw_email: the email field as submitted

    Returns:
        tuple: (message, error); exactly one is set.
            - (ORDER_HISTORY_MESSAGE, None) on success, known or unknown email
            - (None, INVALID_EMAIL_ERROR) on a malformed email, no side effects
            - (None, DELIVERY_FAILED_ERROR) when the email could not be sent
    """
    email, error = validate_email(raw_email)
    if error:
        return None, error

    user = find_order_history(email)
    if user is None:
        return ORDER_HISTORY_MESSAGE, None

    orders = []
    for order in user.orders:
        credential = issue_credential(order.product_id)
        orders.append({
            "id": order.id,
            "created_at": order.created_at,
            "price_paid_in_cents": order.price_paid_in_cents,
            "product": order.product,
            "download_verification_id": credential.id,
            "download_url": download_url(credential.id),
        })
    db.session.commit()

    try:
        send_email_sync(
            to=user.email,
            subject="Your order history",
            template="emails/order_history.html",
            context={"orders": orders},
        )
    except EmailDeliveryError as e:
        logger.error(f"Order history email to {user.email} failed: {e}")
        return None, DELIVERY_FAILED_ERROR

    logger.info(f"Order history sent to {user.email} ({len(orders)} orders)")
    return ORDER_HISTORY_MESSAGE, None
