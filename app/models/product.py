"""Product model.

Catalog item sold as a downloadable file. Owned by the admin back office;
the purchase pipeline only reads it.
"""

import uuid

from app.extensions import db


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("price_in_cents >= 0", name="ck_products_price_non_negative"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False)
    price_in_cents = db.Column(db.Integer, nullable=False)
    file_path = db.Column(
        db.String(500), nullable=False
    )  # blob store key, e.g. "file_3f2a...-guide.pdf"
    image_path = db.Column(db.String(500), nullable=True)
    is_available_for_purchase = db.Column(
        db.Boolean, default=False, nullable=False
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    orders = db.relationship("Order", back_populates="product", lazy="dynamic")
    download_verifications = db.relationship(
        "DownloadVerification",
        back_populates="product",
        lazy="dynamic",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_in_cents": self.price_in_cents,
            "image_path": self.image_path,
            "is_available_for_purchase": self.is_available_for_purchase,
            "order_count": self.orders.count(),
        }

    def __repr__(self):
        return f"<Product {self.name}>"
