"""Ledger service — customers and their orders.

Responsible for:
- Recording a purchase against a customer email (atomic upsert + nested order)
- Loading a customer's order history for re-issuing download links
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import selectinload

from app.extensions import db
from app.models.order import Order
from app.models.user import User

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _upsert_user(email):
    """INSERT ... ON CONFLICT (email) DO NOTHING, then load the row.

    Two concurrent deliveries for a new email both land on the same row;
    neither sees a unique-constraint error.
    """
    dialect = db.session.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"No atomic upsert available for dialect {dialect!r}")

    stmt = (
        insert(User)
        .values(id=str(uuid.uuid4()), email=email)
        .on_conflict_do_nothing(index_elements=["email"])
    )
    db.session.execute(stmt)
    return db.session.execute(
        select(User).where(User.email == email)
    ).scalar_one()


def record_purchase(email, product_id, price_paid_in_cents):
    """Attach a new order to the customer with this email, creating the
    customer if needed.

    Args:
        email: buyer email as reported by the payment processor
        product_id: UUID of the purchased product
        price_paid_in_cents: amount actually charged, in minor units

    Returns:
        Order: the new order (flushed, not committed; caller owns the
        transaction)
    """
    user = _upsert_user(email)

    order = Order(
        user_id=user.id,
        product_id=product_id,
        price_paid_in_cents=price_paid_in_cents,
    )
    db.session.add(order)
    db.session.flush()

    logger.info(f"Recorded order {order.id} for {email} ({price_paid_in_cents}c)")
    return order


def find_order_history(email):
    """Exact email match with orders and their products loaded.

    Returns the User or None.
    """
    return db.session.execute(
        select(User)
        .where(User.email == email)
        .options(selectinload(User.orders).selectinload(Order.product))
    ).scalar_one_or_none()
