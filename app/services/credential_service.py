"""Credential service — issue and redeem download links.

A credential is a DownloadVerification row whose id is the bearer token in
the download URL. It grants access to one product's file until expires_at.
Redemption does not consume it.
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app

from app.extensions import db
from app.models.download_verification import DownloadVerification, generate_token
from app.models.product import Product

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


def default_ttl():
    """Link lifetime from DOWNLOAD_LINK_TTL_HOURS, 24h when unset."""
    hours = current_app.config.get("DOWNLOAD_LINK_TTL_HOURS")
    return timedelta(hours=hours) if hours else DEFAULT_TTL


def download_url(credential_id):
    """Public redemption link for a credential."""
    app_base_url = current_app.config["APP_BASE_URL"].rstrip("/")
    return f"{app_base_url}/products/download/{credential_id}"


def issue_credential(product_id, ttl=None, now=None):
    """Create a download credential for a product.

    Args:
        product_id: UUID of the product the link unlocks
        ttl: lifetime of the link (default DOWNLOAD_LINK_TTL_HOURS)
        now: issuance time, for tests (default: current UTC time)

    Returns:
        DownloadVerification: the new row (flushed, not committed;
        caller owns the transaction)
    """
    now = now or datetime.now(timezone.utc)
    ttl = ttl or default_ttl()

    credential = DownloadVerification(
        id=generate_token(),
        product_id=product_id,
        expires_at=now + ttl,
    )
    db.session.add(credential)
    db.session.flush()
    return credential


def redeem_credential(credential_id, now=None):
    """Resolve a credential to the file it unlocks.

    Returns:
        tuple: (file_path, product_name) if the credential exists and has
        not expired, else None. Unknown and expired ids are
        indistinguishable.
    """
    if not credential_id:
        return None

    now = now or datetime.now(timezone.utc)
    row = (
        db.session.query(Product.file_path, Product.name)
        .join(DownloadVerification, DownloadVerification.product_id == Product.id)
        .filter(
            DownloadVerification.id == credential_id,
            DownloadVerification.expires_at > now,
        )
        .first()
    )
    if row is None:
        return None
    return row.file_path, row.name


def purge_expired_credentials(now=None):
    """Delete credentials past their expiry. Returns the number removed.

    Housekeeping only: expired rows are already unusable.
    """
    now = now or datetime.now(timezone.utc)
    count = DownloadVerification.query.filter(
        DownloadVerification.expires_at <= now
    ).delete(synchronize_session=False)
    db.session.commit()
    logger.info(f"Purged {count} expired download credentials")
    return count
