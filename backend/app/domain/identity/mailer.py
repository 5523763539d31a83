"""SMTP mailer for signup codes, parent invites and password reset codes."""

from __future__ import annotations

import hashlib
import html
import logging
from email.message import EmailMessage
from typing import Sequence
from urllib.parse import quote

import aiosmtplib

from app.settings import settings

logger = logging.getLogger(__name__)

BRAND = "athlinked"


def mask_email(email: str) -> str:
    return hashlib.sha256(email.lower().encode("utf-8")).hexdigest()[:12]


def _smtp_configured() -> bool:
    if not settings.smtp_host:
        return False
    # a localhost relay only exists on developer machines
    return settings.smtp_host != "localhost" or settings.is_dev()


def _build_message(to_email: str, subject: str, lines: Sequence[str]) -> EmailMessage:
    """Plain-text body with an HTML alternative, one paragraph per line."""
    msg = EmailMessage()
    msg["From"] = settings.smtp_from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content("\n\n".join(lines))
    paragraphs = "".join(f"<p>{html.escape(line)}</p>" for line in lines)
    msg.add_alternative(f"<html><body>{paragraphs}</body></html>", subtype="html")
    return msg


async def _send_email(to_email: str, subject: str, lines: Sequence[str]) -> bool:
    """Deliver one message; returns False when nothing was sent."""
    masked = mask_email(to_email)
    if not _smtp_configured():
        logger.warning("smtp_not_configured", extra={"recipient": masked})
        return False

    port = int(settings.smtp_port)
    try:
        await aiosmtplib.send(
            _build_message(to_email, subject, lines),
            hostname=settings.smtp_host,
            port=port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            # implicit TLS on 465, STARTTLS on 587
            use_tls=bool(settings.smtp_tls) and port == 465,
            start_tls=bool(settings.smtp_tls) and port == 587,
        )
    except (aiosmtplib.SMTPException, OSError):
        logger.error("email_send_failed", extra={"recipient": masked, "subject": subject}, exc_info=True)
        return False
    logger.info("email_sent", extra={"recipient": masked, "subject": subject})
    return True


async def send_signup_otp(email: str, code: str) -> bool:
    minutes = max(1, settings.otp_ttl_seconds // 60)
    return await _send_email(
        email,
        f"Your {BRAND} verification code",
        [
            f"Welcome to {BRAND}!",
            f"Your verification code is {code}.",
            f"The code expires in {minutes} minutes.",
        ],
    )


async def send_parent_signup_link(parent_email: str, child: str, *, username: bool) -> bool:
    param = "username" if username else "email"
    link = f"{settings.frontend_url.rstrip('/')}/parent-signup?{param}={quote(child)}"
    return await _send_email(
        parent_email,
        f"Your athlete joined {BRAND}",
        [
            f"{child} has signed up for {BRAND} and listed you as their parent.",
            f"Create your parent account here: {link}",
        ],
    )


async def send_password_reset_otp(email: str, code: str) -> bool:
    return await _send_email(
        email,
        "Reset your password",
        [
            f"Your password reset code is {code}.",
            "If you did not request this, you can ignore this email.",
        ],
    )
