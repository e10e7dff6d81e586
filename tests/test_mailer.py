from __future__ import annotations

import smtplib

import pytest

from accounts.core import config as core_config
from accounts.core import mailer


@pytest.fixture()
def smtp_env(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.test")
    monkeypatch.setenv("SMTP_PORT", "465")
    monkeypatch.setenv("SMTP_USER", "no-reply@accounts.test")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    monkeypatch.setenv("SMTP_FROM", "no-reply@accounts.test")
    core_config.get_settings.cache_clear()
    yield
    core_config.get_settings.cache_clear()


class RecordingSMTP:
    sent: list = []

    def __init__(self, host, port, **kwargs):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def login(self, user, password):
        pass

    def sendmail(self, sender, recipients, body):
        RecordingSMTP.sent.append((sender, recipients))


def test_send_email_delivers_over_ssl(smtp_env, monkeypatch):
    RecordingSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP_SSL", RecordingSMTP)
    assert mailer.send_email("Oi", "a@x.com", "<p>Oi</p>", "Oi") is True
    assert RecordingSMTP.sent == [("no-reply@accounts.test", ["a@x.com"])]


def test_send_email_without_configuration_returns_false(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    core_config.get_settings.cache_clear()
    assert mailer.send_email("Oi", "a@x.com", "<p>Oi</p>") is False
    core_config.get_settings.cache_clear()


@pytest.mark.parametrize("error", [smtplib.SMTPAuthenticationError(535, b"denied"), OSError("down"), RuntimeError("boom")])
def test_send_email_never_raises(smtp_env, monkeypatch, error):
    def broken_transport(*args, **kwargs):
        raise error

    monkeypatch.setattr(smtplib, "SMTP_SSL", broken_transport)
    assert mailer.send_email("Oi", "a@x.com", "<p>Oi</p>") is False
