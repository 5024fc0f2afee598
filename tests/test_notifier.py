"""
Tests for the notification senders.
"""

import smtplib
from unittest.mock import MagicMock, patch

from dropsync.domain.settings import NotificationSettings
from dropsync.infrastructure.notifier import (
    LogNotificationSender,
    SmtpNotificationSender,
    create_sender,
)


def smtp_settings(**overrides):
    values = {
        "smtp_host": "mail.example.com",
        "smtp_user": "bot",
        "smtp_password": "secret",
        "from_address": "dropsync@example.com",
    }
    values.update(overrides)
    return NotificationSettings(**values)


def test_create_sender_picks_transport():
    assert isinstance(create_sender(NotificationSettings()), LogNotificationSender)
    assert isinstance(create_sender(smtp_settings()), SmtpNotificationSender)


@patch("dropsync.infrastructure.notifier.smtplib.SMTP")
def test_smtp_send(mock_smtp):
    server = MagicMock()
    mock_smtp.return_value.__enter__.return_value = server

    sent = SmtpNotificationSender(smtp_settings()).send(["a@example.com"], "Subject", "<p>body</p>")

    assert sent
    mock_smtp.assert_called_once_with("mail.example.com", 587, timeout=30)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bot", "secret")
    from_addr, to_addrs, message = server.sendmail.call_args[0]
    assert from_addr == "dropsync@example.com"
    assert to_addrs == ["a@example.com"]
    assert "Subject: Subject" in message


@patch("dropsync.infrastructure.notifier.smtplib.SMTP")
def test_smtp_failure_is_not_raised(mock_smtp):
    mock_smtp.side_effect = smtplib.SMTPConnectError(421, "try later")
    assert not SmtpNotificationSender(smtp_settings()).send(["a@example.com"], "S", "B")


def test_no_recipients_is_not_sent():
    assert not SmtpNotificationSender(smtp_settings()).send([], "S", "B")


def test_log_sender_always_succeeds():
    assert LogNotificationSender().send([], "S", "B")
