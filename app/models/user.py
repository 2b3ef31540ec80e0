"""User (customer) model.

A buyer is identified by the email on the payment. Rows are created by the
first successful purchase and reused by every later one (upsert by email).
Customers have no password; admins live in admin_users.
"""

import uuid

from app.extensions import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(
        db.String(255), unique=True, nullable=False
    )  # stored as received, matched case-sensitively
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    orders = db.relationship(
        "Order",
        back_populates="user",
        order_by="Order.created_at",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "order_count": len(self.orders),
            "total_spent_in_cents": sum(o.price_paid_in_cents for o in self.orders),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.email}>"
