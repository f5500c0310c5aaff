"""Transactional email delivered through an HTTP mail API."""

from __future__ import annotations

import requests
from flask import current_app, render_template


class EmailDeliveryError(Exception):
    """Raised when the mail API rejects or never receives a message."""


class Email:
    """Render and send one of the platform's emails to a user.

    ``Email(user, url).send_password_reset()``
    """

    def __init__(self, user, url: str):
        self.to = user.email
        self.first_name = (user.name or "").split(" ")[0]
        self.url = url

    def send(self, template: str, subject: str) -> None:
        context = {"first_name": self.first_name, "url": self.url, "subject": subject}
        message = {
            "sender": {
                "name": current_app.config.get("MAIL_FROM_NAME"),
                "email": current_app.config.get("MAIL_FROM_EMAIL"),
            },
            "to": [{"email": self.to}],
            "subject": subject,
            "htmlContent": render_template(f"email/{template}.html", **context),
            "textContent": render_template(f"email/{template}.txt", **context),
        }

        if current_app.config.get("MAIL_SUPPRESS_SEND"):
            current_app.logger.info("Mail suppressed: %r to %s", subject, self.to)
            current_app.extensions.setdefault("mail_outbox", []).append(message)
            return

        api_key = current_app.config.get("MAIL_API_KEY")
        if not api_key:
            raise EmailDeliveryError("MAIL_API_KEY is not set")

        try:
            response = requests.post(
                current_app.config["MAIL_API_URL"],
                headers={"api-key": api_key, "Content-Type": "application/json"},
                json=message,
                timeout=10,
            )
        except requests.RequestException as exc:
            current_app.logger.error("Mail transport error sending to %s: %s", self.to, exc)
            raise EmailDeliveryError(str(exc)) from exc

        if response.status_code not in (200, 201, 202):
            current_app.logger.error("Mail API error %s: %s", response.status_code, response.text)
            raise EmailDeliveryError(f"Mail API error: {response.status_code}")
        current_app.logger.info("Mail sent: %r to %s", subject, self.to)

    def send_welcome(self) -> None:
        self.send("welcome", "Welcome to the Natours Family!")

    def send_password_reset(self) -> None:
        self.send("password_reset", "Your password reset token (valid for only 10 minutes)")
