"""Checkout blueprint — /products/<id>/purchase

Creates a Stripe PaymentIntent for one product. The browser confirms it
with Stripe.js; fulfilment happens later in the charge.succeeded webhook.
"""

import logging

import stripe
from flask import Blueprint, abort, jsonify

from app.extensions import db, limiter
from app.models.product import Product
from app.services.stripe_service import create_payment_intent

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__, url_prefix="/products")


@checkout_bp.route("/<product_id>/purchase", methods=["POST"])
@limiter.limit("30 per hour")
def purchase(product_id):
    """Return { client_secret } for an available product."""
    product = db.session.get(Product, product_id)
    if product is None or not product.is_available_for_purchase:
        abort(404)

    try:
        client_secret = create_payment_intent(product)
    except stripe.StripeError as e:
        logger.error(f"PaymentIntent creation failed for product {product_id}: {e}")
        return jsonify({"error": "Payment provider unavailable. Try again later."}), 502

    return jsonify({
        "client_secret": client_secret,
        "product": {
            "id": product.id,
            "name": product.name,
            "price_in_cents": product.price_in_cents,
        },
    }), 200
