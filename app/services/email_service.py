"""
Transactional email service.

Sends templated HTML email over SMTP. Two flavours:

- send_email: fire-and-forget in a background thread. Failures are logged
  and never reach the caller (used by the webhook, where the charge is
  already acknowledged).
- send_email_sync: blocks until sent and raises EmailDeliveryError on
  failure (used by the order-history request, where the customer must be
  told the email did not go out).

Usage:
    from app.services.email_service import send_email

    send_email(
        to="buyer@example.com",
        subject="Comprovante de Pagamento",
        template="emails/purchase_receipt.html",
        context={"order": order, "product": product},
    )
"""

import logging
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, render_template

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The SMTP transport did not accept the message."""


def _deliver(app, msg):
    """Hand a message to the SMTP server. Raises EmailDeliveryError."""
    host = app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    port = app.config.get("MAIL_SMTP_PORT", 587)
    username = app.config.get("MAIL_USERNAME")
    password = app.config.get("MAIL_PASSWORD")

    if not username or not password:
        raise EmailDeliveryError("MAIL_USERNAME or MAIL_PASSWORD not configured")

    try:
        with smtplib.SMTP(host, port, timeout=30) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(username, password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(str(e)) from e

    logger.info(f"Email sent to {msg['To']} — {msg['Subject']}")


def _send_smtp(app, msg):
    """Send an email via SMTP in a background thread (non-blocking)."""
    with app.app_context():
        try:
            _deliver(app, msg)
        except EmailDeliveryError as e:
            logger.error(f"Failed to send email to {msg['To']}: {e}")


def _build_message(app, to, subject, template, context, reply_to):
    from_name = app.config.get("MAIL_FROM_NAME", "Suporte")
    from_email = app.config.get("MAIL_FROM_ADDRESS") or app.config.get("MAIL_USERNAME", "")

    html_body = render_template(template, **(context or {}))

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)

    if reply_to:
        msg["Reply-To"] = reply_to

    msg.attach(MIMEText(html_body, "html"))
    return msg


def send_email(to, subject, template, context=None, reply_to=None):
    """
    Send a templated HTML email without waiting for delivery.

    Args:
        to:        Recipient email address (str or list).
        subject:   Email subject line.
        template:  Path to Jinja2 HTML template (relative to templates/).
        context:   Dict of variables to pass to the template.
        reply_to:  Optional reply-to address.
    """
    app = current_app._get_current_object()
    msg = _build_message(app, to, subject, template, context, reply_to)

    # Send in background thread so the request doesn't block
    thread = threading.Thread(target=_send_smtp, args=(app, msg))
    thread.daemon = True
    thread.start()


def send_email_sync(to, subject, template, context=None, reply_to=None):
    """
    Same as send_email but blocks until sent. Use for emails where the
    caller has to report a delivery failure to the user.

    Raises EmailDeliveryError if the message could not be sent.
    """
    app = current_app._get_current_object()
    msg = _build_message(app, to, subject, template, context, reply_to)
    _deliver(app, msg)
