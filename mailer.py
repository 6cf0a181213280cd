# mailer.py
from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage

from flask import Flask, current_app

from errors import DeliveryFailure
from utils.mask import mask_email

__all__ = ["send_email", "outbox"]

OUTBOX_KEY = "mail_outbox"


def outbox(app: Flask | None = None) -> list[EmailMessage]:
    """Messages recorded instead of sent while MAIL_SUPPRESS_SEND is on."""
    app = app or current_app._get_current_object()
    return app.extensions.setdefault(OUTBOX_KEY, [])


def _build_message(to: str, subject: str, text: str, html: str | None) -> EmailMessage:
    cfg = current_app.config
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f'{cfg["MAIL_FROM_NAME"]} <{cfg["MAIL_FROM"]}>'
    msg["To"] = to
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")
    return msg


def send_email(*, to: str, subject: str, text: str, html: str | None = None) -> None:
    """
    Hand a message to the SMTP relay and return once it is accepted.

    Blocks for at most MAIL_TIMEOUT_SECONDS per socket operation. Any SMTP
    or socket error (timeouts included) is raised as DeliveryFailure; there
    is no retry.
    """
    cfg = current_app.config
    msg = _build_message(to, subject, text, html)

    if cfg.get("MAIL_SUPPRESS_SEND"):
        outbox().append(msg)
        current_app.logger.info("[mail] suppressed send to %s subject=%r", mask_email(to), subject)
        return

    host, port = cfg["SMTP_HOST"], cfg["SMTP_PORT"]
    user, password = cfg.get("SMTP_USER"), cfg.get("SMTP_PASS")

    try:
        ctx = ssl.create_default_context()
        with smtplib.SMTP(host, port, timeout=cfg["MAIL_TIMEOUT_SECONDS"]) as s:
            s.starttls(context=ctx)
            if user and password:
                s.login(user, password)
            s.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        current_app.logger.error("[mail] send via %s:%s to %s failed: %r", host, port, mask_email(to), e)
        raise DeliveryFailure() from e

    current_app.logger.info("[mail] sent via %s:%s to %s", host, port, mask_email(to))
