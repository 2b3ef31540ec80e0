"""DownloadVerification model (download credential).

The primary key doubles as the bearer token embedded in the emailed link,
so it is generated from a cryptographically strong source. Validity is
decided only by expires_at at redemption time; there is no "used" flag and
no link back from Order.
"""

import secrets

from app.extensions import db


def generate_token():
    """Unguessable URL-safe token (~43 chars)."""
    return secrets.token_urlsafe(32)


class DownloadVerification(db.Model):
    __tablename__ = "download_verifications"

    id = db.Column(db.String(64), primary_key=True, default=generate_token)
    product_id = db.Column(
        db.String(36), db.ForeignKey("products.id"), nullable=False, index=True
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    product = db.relationship("Product", back_populates="download_verifications")

    def __repr__(self):
        return f"<DownloadVerification {self.id[:8]}... product={self.product_id}>"
