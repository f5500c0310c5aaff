"""Tests for transactional email delivery over the HTTP mail API."""

from __future__ import annotations

import pytest
import requests

from conftest import build_app
from models.user import User
from utils.email import Email, EmailDeliveryError


class _FakeResponse:
    def __init__(self, status_code: int, text: str = ""):
        self.status_code = status_code
        self.text = text


@pytest.fixture()
def mail_app():
    return build_app(
        MAIL_SUPPRESS_SEND=False,
        MAIL_API_KEY="test-key",
        MAIL_API_URL="https://mail.example/v3/smtp/email",
    )


def _user() -> User:
    return User(name="Laura Wilson", email="laura@example.com")


def test_email_is_posted_to_mail_api(mail_app, monkeypatch):
    sent = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        sent.update(url=url, headers=headers, json=json, timeout=timeout)
        return _FakeResponse(201)

    monkeypatch.setattr(requests, "post", fake_post)

    with mail_app.test_request_context():
        Email(_user(), "https://natours.example/reset/abc").send_password_reset()

    assert sent["url"] == "https://mail.example/v3/smtp/email"
    assert sent["headers"]["api-key"] == "test-key"
    assert sent["timeout"] == 10
    message = sent["json"]
    assert message["to"] == [{"email": "laura@example.com"}]
    assert message["subject"] == "Your password reset token (valid for only 10 minutes)"
    assert "Hi Laura," in message["textContent"]
    assert "https://natours.example/reset/abc" in message["htmlContent"]


def test_mail_api_error_raises(mail_app, monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: _FakeResponse(500, "boom"))

    with mail_app.test_request_context():
        with pytest.raises(EmailDeliveryError):
            Email(_user(), "https://natours.example/").send_welcome()


def test_transport_error_raises(mail_app, monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(requests, "post", fake_post)

    with mail_app.test_request_context():
        with pytest.raises(EmailDeliveryError):
            Email(_user(), "https://natours.example/").send_welcome()


def test_missing_api_key_raises(monkeypatch):
    app = build_app(MAIL_SUPPRESS_SEND=False, MAIL_API_KEY=None)

    def fail_post(*args, **kwargs):
        raise AssertionError("the mail API must not be called")

    monkeypatch.setattr(requests, "post", fail_post)

    with app.test_request_context():
        with pytest.raises(EmailDeliveryError):
            Email(_user(), "https://natours.example/").send_welcome()


def test_suppressed_mail_is_recorded(app, outbox):
    with app.test_request_context():
        Email(_user(), "https://natours.example/").send_welcome()

    assert len(outbox) == 1
    assert outbox[0]["subject"] == "Welcome to the Natours Family!"
    assert outbox[0]["sender"]["name"] == "Natours"
