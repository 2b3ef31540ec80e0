"""Order model.

One completed purchase. References the product by id (not a snapshot) and
records the amount actually charged, which never changes after insert.
"""

import uuid

from sqlalchemy import event, inspect

from app.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    product_id = db.Column(
        db.String(36), db.ForeignKey("products.id"), nullable=False, index=True
    )
    # captured at purchase time, independent of product.price_in_cents
    price_paid_in_cents = db.column_property(
        db.Column(db.Integer, nullable=False), active_history=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="orders")
    product = db.relationship("Product", back_populates="orders")

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.user.email if self.user else None,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "price_paid_in_cents": self.price_paid_in_cents,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Order {self.id} product={self.product_id} {self.price_paid_in_cents}c>"


@event.listens_for(Order, "before_update")
def _price_paid_is_immutable(mapper, connection, target):
    # active_history loads the stored value on assignment, even after expiry
    history = inspect(target).attrs.price_paid_in_cents.history
    if history.has_changes():
        raise ValueError("Order.price_paid_in_cents cannot be changed once written")
