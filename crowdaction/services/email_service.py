"""
Donation emails.

Owns the donor-facing mails (subject, template, organization name) and
their delivery over SMTP. Delivery runs on a daemon thread; a donation
mail never blocks or fails the payment flow that triggered it.

Usage:
    from crowdaction.services.email_service import send_donation_thank_you

    send_donation_thank_you("donor@example.com", has_subscriptions=True)
"""

import logging
import smtplib
import threading
from email.message import EmailMessage

from flask import current_app, render_template

logger = logging.getLogger(__name__)

THANK_YOU_SUBJECT = "Thank you for your donation"
THANK_YOU_TEMPLATE = "emails/donation_thank_you.html"


def _organization_name():
    return current_app.config.get("DONATION_ORGANIZATION_NAME", "Stichting CollAction")


def _smtp_settings(app):
    """SMTP connection settings, or None when credentials are missing."""
    username = app.config.get("MAIL_USERNAME")
    password = app.config.get("MAIL_PASSWORD")
    if not username or not password:
        return None
    return {
        "host": app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com"),
        "port": app.config.get("MAIL_SMTP_PORT", 587),
        "username": username,
        "password": password,
    }


def _deliver(settings, msg):
    """Runs on the mail thread."""
    try:
        with smtplib.SMTP(settings["host"], settings["port"], timeout=30) as server:
            server.starttls()
            server.login(settings["username"], settings["password"])
            server.send_message(msg)
        logger.info(f"Donation mail sent to {msg['To']}: {msg['Subject']}")
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send donation mail to {msg['To']}: {e}")


def build_message(to, subject, html_body):
    """EmailMessage with an HTML body, addressed from the configured sender."""
    config = current_app.config
    sender_address = config.get("MAIL_FROM_ADDRESS") or config.get("MAIL_USERNAME") or ""

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{config.get('MAIL_FROM_NAME', 'CollAction')} <{sender_address}>"
    msg["To"] = to
    msg.set_content(html_body, subtype="html")
    return msg


def send_templated_email(to, subject, template, context=None):
    """Render `template` with `context` and send it in the background.

    Returns False (and sends nothing) when SMTP is not configured.
    """
    settings = _smtp_settings(current_app)
    if settings is None:
        logger.warning(f"Mail to {to} not sent, MAIL_USERNAME or MAIL_PASSWORD not configured")
        return False

    msg = build_message(to, subject, render_template(template, **(context or {})))
    threading.Thread(target=_deliver, args=(settings, msg), daemon=True).start()
    return True


def send_donation_thank_you(to, has_subscriptions):
    """Thank a donor, framed as a periodic donation when they subscribe.

    Best-effort: any failure is logged and reported as False.
    """
    try:
        sent = send_templated_email(
            to=to,
            subject=THANK_YOU_SUBJECT,
            template=THANK_YOU_TEMPLATE,
            context={
                "has_subscriptions": has_subscriptions,
                "organization_name": _organization_name(),
            },
        )
    except Exception as e:
        logger.error(f"Failed to send donation thank-you to {to}: {e}")
        return False

    if sent:
        logger.info(f"Donation thank-you queued for {to} (recurring={has_subscriptions})")
    return sent
