"""Outbound email (SMTP via aiosmtplib).

Every message here is a courtesy notification. Callers schedule the `send_*`
coroutines as background tasks; they never raise, a failed delivery is logged
and reported as False.
"""

from __future__ import annotations

import html
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Sequence

import aiosmtplib

from early_access.config import Config


def _debug(msg: str) -> None:
    print(f"[mail] {msg}")


WELCOME_SUBJECT = "Welcome to CodeBoard Early Access!"
CONTRIBUTION_SUBJECT = "Thank you for your contribution to CodeBoard!"


def render_welcome(name: str) -> str:
    return "\n".join(
        [
            f"<p>Dear {html.escape(name or 'CodeBoard Early Access Member')},</p>",
            "<p>Welcome to CodeBoard! We're thrilled to have you on board as an early access user.</p>",
            "<p>As a token of our appreciation, you've been granted a <strong>Researcher</strong> role, "
            "giving you access to advanced linguistic analysis tools and features upon our full launch.</p>",
            "<p>We'll be sending you weekly updates on our progress and exciting new developments.</p>",
            "<p>Thank you for joining us on this journey to empower linguistic research!</p>",
            "<p>Best regards,<br>The CodeBoard Team</p>",
        ]
    )


def render_contribution_confirmation(
    name: Optional[str],
    text: str,
    languages: Sequence[str],
    context: Optional[str] = None,
) -> str:
    parts = [
        f"<p>Dear {html.escape(name or 'CodeBoard Contributor')},</p>",
        "<p>Thank you for contributing to the CodeBoard corpus! "
        "Your example has been successfully submitted:</p>",
        '<blockquote style="background: #f5f5f5; padding: 10px; border-left: 3px solid #14b8a6;">',
        f"&quot;{html.escape(text)}&quot;",
        "</blockquote>",
        f"<p><strong>Languages:</strong> {html.escape(', '.join(languages))}</p>",
    ]
    if context:
        parts.append(f"<p><strong>Context:</strong> {html.escape(context)}</p>")
    parts.extend(
        [
            "<p>Your contribution helps researchers worldwide understand multilingual communication better. "
            "Every example matters!</p>",
            "<p>Best regards,<br>The CodeBoard Team</p>",
        ]
    )
    return "\n".join(parts)


class Mailer:
    def __init__(self, cfg: Config):
        self.cfg = cfg

    @property
    def enabled(self) -> bool:
        return bool(self.cfg.EMAIL_ENABLED and self.cfg.EMAIL_HOST)

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.cfg.EMAIL_FROM or self.cfg.EMAIL_USER
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(html_body, "html"))
        return msg

    async def send(self, to: str, subject: str, html_body: str) -> None:
        """Deliver one message. Raises on SMTP errors."""
        msg = self._build_message(to, subject, html_body)
        port = int(self.cfg.EMAIL_PORT)
        # 465 is implicit TLS; other ports upgrade with STARTTLS when offered.
        implicit_tls = port == 465
        async with aiosmtplib.SMTP(
            hostname=self.cfg.EMAIL_HOST,
            port=port,
            use_tls=implicit_tls,
            start_tls=False if implicit_tls else None,
            timeout=30,
        ) as smtp:
            if self.cfg.EMAIL_USER and self.cfg.EMAIL_PASS:
                await smtp.login(self.cfg.EMAIL_USER, self.cfg.EMAIL_PASS)
            await smtp.send_message(msg)

    async def send_safely(self, to: str, subject: str, html_body: str) -> bool:
        if not self.enabled:
            _debug(f"Email disabled; not sending {subject!r} to {to}")
            return False
        try:
            await self.send(to, subject, html_body)
        except Exception as e:
            _debug(f"Failed to send {subject!r} to {to}: {e}")
            return False
        _debug(f"Sent {subject!r} to {to}")
        return True

    async def send_welcome(self, email: str, name: Optional[str] = None) -> bool:
        return await self.send_safely(email, WELCOME_SUBJECT, render_welcome(name or email))

    async def send_contribution_confirmation(
        self,
        email: str,
        name: Optional[str],
        text: str,
        languages: Sequence[str],
        context: Optional[str] = None,
    ) -> bool:
        body = render_contribution_confirmation(name, text, languages, context)
        return await self.send_safely(email, CONTRIBUTION_SUBJECT, body)
