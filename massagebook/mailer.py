"""Outgoing email over SMTP."""
from __future__ import annotations

import smtplib
import ssl
from email.mime.text import MIMEText

from flask import current_app

from .errors import UpstreamUnavailable

OUTBOX_KEY = "mail_outbox"


def get_outbox() -> list[dict[str, str]]:
    """Messages captured while ``MAIL_SUPPRESS_SEND`` is on."""
    return current_app.extensions.setdefault(OUTBOX_KEY, [])


def send_email(to: str, subject: str, message: str) -> None:
    config = current_app.config
    sender = config["MAIL_DEFAULT_SENDER"]

    if config.get("MAIL_SUPPRESS_SEND"):
        get_outbox().append({"to": to, "from": sender, "subject": subject, "message": message})
        current_app.logger.info("Mail suppressed: %s -> %s", subject, to)
        return

    msg = MIMEText(message, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to

    try:
        with smtplib.SMTP(config["MAIL_SERVER"], config["MAIL_PORT"], timeout=10) as server:
            if config.get("MAIL_USE_TLS"):
                server.starttls(context=ssl.create_default_context())
            if config.get("MAIL_USERNAME"):
                server.login(config["MAIL_USERNAME"], config["MAIL_PASSWORD"] or "")
            server.sendmail(sender, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.exception("Failed to send email to %s", to, exc_info=exc)
        raise UpstreamUnavailable("Email could not be sent") from exc

    current_app.logger.info("Sent email '%s' to %s", subject, to)
