"""Stripe service — payment intents and webhook handling.

Responsible for:
- Creating PaymentIntents for a product purchase (metadata.productId)
- Verifying incoming webhook signatures
- Dispatching verified events to event-specific handlers
- Idempotency via the stripe_events table
- Fulfilling charge.succeeded: ledger write, download credential, receipt
"""

import json
import logging

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models.product import Product
from app.models.stripe_event import StripeEvent
from app.services.credential_service import download_url, issue_credential
from app.services.ledger_service import record_purchase

logger = logging.getLogger(__name__)


class InvalidWebhookPayload(ValueError):
    """Signed event that cannot be fulfilled (unknown product, no email)."""


# ──────────────────────────────────────────────
# Email Notifications
# ──────────────────────────────────────────────

def _send_purchase_receipt(email, order, product, credential):
    """Send the receipt with the download link to the buyer.

    Called after the order and credential are committed.
    """
    try:
        from app.services.email_service import send_email

        send_email(
            to=email,
            subject=f"Your receipt — {product.name}",
            template="emails/purchase_receipt.html",
            context={
                "order": order,
                "product": product,
                "download_verification_id": credential.id,
                "download_url": download_url(credential.id),
            },
        )
        logger.info(f"Receipt email queued for {email}, order {order.id}")
    except Exception as e:
        # Never let email failure un-acknowledge a fulfilled charge
        logger.error(f"Failed to send receipt email for order {order.id}: {e}")


# ──────────────────────────────────────────────
# Payment Intents
# ──────────────────────────────────────────────

def create_payment_intent(product):
    """Create a Stripe PaymentIntent for one product.

    The product id travels in metadata so charge.succeeded can be matched
    back to the product.

    Returns the PaymentIntent client secret.
    Raises stripe.StripeError on API failures.
    """
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]

    intent = stripe.PaymentIntent.create(
        amount=product.price_in_cents,
        currency=current_app.config.get("STRIPE_CURRENCY", "brl"),
        metadata={"productId": product.id},
    )
    return intent.client_secret


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header):
    """Verify the Stripe-Signature header against the raw body.

    Returns the decoded event as a plain dict.
    Raises stripe.SignatureVerificationError on invalid signature or a
    timestamp outside Stripe's default tolerance (5 minutes).
    """
    webhook_secret = current_app.config["STRIPE_WEBHOOK_SECRET"]
    stripe.WebhookSignature.verify_header(
        payload, sig_header, webhook_secret,
        tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
    )
    return json.loads(payload)


def handle_webhook_event(event):
    """Process a verified Stripe webhook event.

    Idempotency: the event id is written to stripe_events in the same
    transaction as the handler's writes. A known id returns immediately.

    Returns (success: bool, message: str).
    Raises InvalidWebhookPayload for events that cannot be fulfilled.
    """
    event_id = event["id"]
    event_type = event["type"]

    # --- Idempotency check ---
    existing = StripeEvent.query.filter_by(
        stripe_event_id=event_id
    ).first()
    if existing:
        logger.info(f"Duplicate webhook event {event_id}, skipping")
        return True, "already_processed"

    # --- Claim the event id (a concurrent delivery loses here) ---
    db.session.add(StripeEvent(stripe_event_id=event_id, event_type=event_type))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        logger.info(f"Webhook event {event_id} claimed concurrently, skipping")
        return True, "already_processed"

    # --- Route to handler ---
    handlers = {
        "charge.succeeded": _handle_charge_succeeded,
    }

    handler = handlers.get(event_type)
    if handler is None:
        db.session.commit()
        return True, "ignored"

    try:
        handler(event)
    except InvalidWebhookPayload:
        db.session.rollback()
        raise
    except Exception as e:
        logger.error(f"Error handling {event_type}: {e}", exc_info=True)
        db.session.rollback()
        return False, str(e)

    db.session.commit()
    return True, "processed"


# ──────────────────────────────────────────────
# Event Handlers
# ──────────────────────────────────────────────

def _extract_charge(event):
    """Pull (product_id, email, amount) out of a charge object.

    Raises InvalidWebhookPayload when the event carries no charge object.
    """
    charge = (event.get("data") or {}).get("object")
    if not isinstance(charge, dict):
        logger.warning(f"charge.succeeded {event.get('id')} rejected: no data.object")
        raise InvalidWebhookPayload("Bad Request")
    metadata = charge.get("metadata") or {}
    billing_details = charge.get("billing_details") or {}
    return (
        metadata.get("productId"),
        billing_details.get("email"),
        charge.get("amount"),
    )


def _handle_charge_succeeded(event):
    """Handle charge.succeeded.

    Records the order against the buyer email, issues a download
    credential, commits both together, then emails the receipt.
    """
    product_id, email, amount = _extract_charge(event)

    product = db.session.get(Product, product_id) if product_id else None
    if product is None or not email:
        logger.warning(
            f"charge.succeeded {event['id']} rejected: "
            f"product={product_id!r} email_present={bool(email)}"
        )
        raise InvalidWebhookPayload("Bad Request")

    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        logger.warning(f"charge.succeeded {event['id']} rejected: amount={amount!r}")
        raise InvalidWebhookPayload("Bad Request")

    order = record_purchase(email, product.id, amount)
    credential = issue_credential(product.id)
    db.session.commit()

    logger.info(
        f"Fulfilled charge for {email}: order {order.id}, product {product.id}"
    )

    _send_purchase_receipt(email, order, product, credential)
