"""Shared test fixtures for the storefront test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: two products with files on disk, one existing customer, an admin
- post_webhook: POST a correctly signed Stripe event to /stripe/webhooks
"""

import hashlib
import hmac
import json
import time

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from app.extensions import db as _db
from app.models.admin_user import AdminUser
from app.models.order import Order
from app.models.product import Product
from app.models.user import User

WEBHOOK_SECRET = "whsec_test_fake"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def product_files(app, tmp_path):
    """Point PRODUCT_FILES_DIR at a temp dir for the duration of a test."""
    original = app.config["PRODUCT_FILES_DIR"]
    app.config["PRODUCT_FILES_DIR"] = str(tmp_path)
    yield tmp_path
    app.config["PRODUCT_FILES_DIR"] = original


@pytest.fixture
def seed_data(app, db_session, product_files):
    """Seed products (with files), a returning customer and an admin.

    Returns a dict of plain IDs and values so tests can use them across
    app contexts.
    """
    (product_files / "file_guide.pdf").write_bytes(b"%PDF-1.4 guide contents")
    (product_files / "file_recipes.docx").write_bytes(b"PK docx recipes")

    guide = Product(
        name="Investing Guide",
        description="A practical guide to investing.",
        price_in_cents=5000,
        file_path="file_guide.pdf",
        is_available_for_purchase=True,
    )
    recipes = Product(
        name="Recipe Book",
        description="Fifty quick weeknight recipes.",
        price_in_cents=2500,
        file_path="file_recipes.docx",
        is_available_for_purchase=True,
    )
    hidden = Product(
        name="Draft Product",
        description="Not yet for sale to anyone.",
        price_in_cents=1000,
        file_path="file_missing.pdf",  # not on disk
        is_available_for_purchase=False,
    )
    _db.session.add_all([guide, recipes, hidden])
    _db.session.flush()

    # --- Returning customer with two orders ---
    customer = User(email="returning@example.com")
    _db.session.add(customer)
    _db.session.flush()
    _db.session.add_all([
        Order(user_id=customer.id, product_id=guide.id, price_paid_in_cents=4500),
        Order(user_id=customer.id, product_id=recipes.id, price_paid_in_cents=2500),
    ])

    # --- Admin ---
    admin = AdminUser(
        email="admin@store.local",
        password_hash=generate_password_hash("admin123"),
        full_name="Admin User",
    )
    _db.session.add(admin)
    _db.session.commit()

    return {
        "guide_id": guide.id,
        "recipes_id": recipes.id,
        "hidden_id": hidden.id,
        "customer_id": customer.id,
        "customer_email": customer.email,
        "admin_email": admin.email,
        "admin_password": "admin123",
        "files_dir": product_files,
    }


def sign_payload(payload, secret=WEBHOOK_SECRET, timestamp=None):
    """Build a Stripe-Signature header value for a raw payload."""
    timestamp = int(timestamp or time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def charge_event(event_id="evt_charge_001", product_id=None, email="a@x.com",
                 amount=5000, event_type="charge.succeeded"):
    """A minimal Stripe charge event as Stripe would send it."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "ch_test_001",
                "object": "charge",
                "amount": amount,
                "currency": "brl",
                "metadata": {"productId": product_id} if product_id else {},
                "billing_details": {"email": email},
            }
        },
    }


@pytest.fixture
def post_webhook(client):
    """Return a callable that POSTs a signed event and returns the response."""

    def _post(event, signature=None):
        payload = json.dumps(event)
        return client.post(
            "/stripe/webhooks",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": signature or sign_payload(payload)},
        )

    return _post


@pytest.fixture
def admin_client(client, seed_data):
    """Test client logged in as the seeded admin."""
    resp = client.post(
        "/admin/login",
        data={"email": seed_data["admin_email"], "password": seed_data["admin_password"]},
    )
    assert resp.status_code == 302
    return client


@pytest.fixture
def make_charge_event():
    """Builder for Stripe charge events (see charge_event)."""
    return charge_event


@pytest.fixture
def make_signature():
    """Builder for Stripe-Signature headers (see sign_payload)."""
    return sign_payload
