"""Tests for donation emails.

Covers:
- Thank-you mail: subject, recipient, recurring vs one-time framing
- Nothing sent when SMTP credentials are missing
- Rendering and SMTP failures are swallowed and logged
"""

import smtplib
from unittest.mock import patch

import pytest
from flask import render_template

from crowdaction.services import email_service
from crowdaction.services.email_service import (
    THANK_YOU_SUBJECT,
    THANK_YOU_TEMPLATE,
    build_message,
    send_donation_thank_you,
)

EMAIL = "crowdaction.services.email_service"


@pytest.fixture
def smtp_configured(app, monkeypatch):
    monkeypatch.setitem(app.config, "MAIL_USERNAME", "mailer@collaction.org")
    monkeypatch.setitem(app.config, "MAIL_PASSWORD", "app-password")
    monkeypatch.setitem(app.config, "MAIL_FROM_ADDRESS", "hello@collaction.org")


class TestDonationThankYou:

    @patch(f"{EMAIL}.threading.Thread")
    def test_recurring_donor(self, mock_thread, smtp_configured):
        assert send_donation_thank_you("a@x.com", has_subscriptions=True) is True

        mock_thread.return_value.start.assert_called_once()
        _settings, msg = mock_thread.call_args.kwargs["args"]
        assert msg["To"] == "a@x.com"
        assert msg["Subject"] == THANK_YOU_SUBJECT
        assert msg["From"] == "CollAction <hello@collaction.org>"
        body = msg.get_content()
        assert "periodic donor" in body
        assert "Stichting CollAction" in body

    @patch(f"{EMAIL}.threading.Thread")
    def test_one_time_donor(self, mock_thread, smtp_configured):
        send_donation_thank_you("a@x.com", has_subscriptions=False)

        _settings, msg = mock_thread.call_args.kwargs["args"]
        assert "periodic donor" not in msg.get_content()

    @patch(f"{EMAIL}.threading.Thread")
    def test_not_sent_without_smtp_credentials(self, mock_thread, app, monkeypatch):
        monkeypatch.setitem(app.config, "MAIL_USERNAME", None)
        monkeypatch.setitem(app.config, "MAIL_PASSWORD", None)

        assert send_donation_thank_you("a@x.com", has_subscriptions=False) is False
        mock_thread.assert_not_called()

    @patch(f"{EMAIL}.render_template")
    @patch(f"{EMAIL}.threading.Thread")
    def test_render_failure_is_swallowed(self, mock_thread, mock_render, smtp_configured):
        mock_render.side_effect = RuntimeError("template missing")

        assert send_donation_thank_you("a@x.com", has_subscriptions=True) is False
        mock_thread.assert_not_called()


class TestDelivery:

    @patch(f"{EMAIL}.smtplib.SMTP")
    def test_smtp_failure_is_logged_not_raised(self, mock_smtp, app):
        mock_smtp.return_value.__enter__.return_value.login.side_effect = (
            smtplib.SMTPAuthenticationError(535, b"bad credentials")
        )
        msg = build_message("a@x.com", THANK_YOU_SUBJECT, "<p>hi</p>")
        settings = {"host": "smtp.test", "port": 587, "username": "u", "password": "p"}

        email_service._deliver(settings, msg)

        mock_smtp.assert_called_once_with("smtp.test", 587, timeout=30)

    @patch(f"{EMAIL}.smtplib.SMTP")
    def test_delivers_over_starttls(self, mock_smtp, app):
        msg = build_message("a@x.com", THANK_YOU_SUBJECT, "<p>hi</p>")
        settings = {"host": "smtp.test", "port": 587, "username": "u", "password": "p"}

        email_service._deliver(settings, msg)

        server = mock_smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        server.send_message.assert_called_once_with(msg)


def test_thank_you_template_renders_both_framings(app):
    with app.test_request_context():
        recurring = render_template(
            THANK_YOU_TEMPLATE,
            has_subscriptions=True,
            organization_name="Stichting CollAction",
        )
        one_time = render_template(
            THANK_YOU_TEMPLATE,
            has_subscriptions=False,
            organization_name="Stichting CollAction",
        )

    assert "periodic donor" in recurring
    assert "periodic donor" not in one_time
    assert "Stichting CollAction" in one_time
