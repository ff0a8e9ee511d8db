"""
Transactional email dispatch.

Sends welcome, email-verification and password-reset messages over SMTP.
`smtplib` is blocking, so each send runs in Starlette's threadpool.
"""

import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate
from html import escape
from typing import Optional

from fastapi import status
from starlette.concurrency import run_in_threadpool

from ryde.app.core.config import settings
from ryde.app.core.exceptions import AppException

logger = logging.getLogger("ryde.mailer")


class EmailDeliveryError(AppException):
    """Raised when the SMTP server rejects or cannot take a message."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(
            message="Could not send email, please try again later",
            error_code="ERR_EMAIL_DELIVERY",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )


_BASE_STYLE = """
        body { font-family: Arial, sans-serif; margin: 0; padding: 0; background-color: #f9f9f9; }
        .email-container { max-width: 600px; margin: 20px auto; background: #ffffff;
                           border: 1px solid #ddd; border-radius: 8px; overflow: hidden; }
        .header { background-color: #4CAF50; color: white; text-align: center; padding: 20px; }
        .content { padding: 20px; color: #333; line-height: 1.6; }
        .otp-code { font-size: 28px; font-weight: bold; letter-spacing: 6px; text-align: center;
                    margin: 20px 0; color: #4CAF50; }
        .footer { background-color: #f5f5f5; padding: 15px; text-align: center; font-size: 12px; color: #666; }
        .button { display: inline-block; padding: 10px 20px; background-color: #4CAF50; color: white;
                  text-decoration: none; border-radius: 5px; margin: 20px 0; }
"""


def _wrap(title: str, heading: str, body: str, email: str) -> str:
    email = escape(email)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>{_BASE_STYLE}</style>
</head>
<body>
    <div class="email-container">
        <div class="header"><h1>{heading}</h1></div>
        <div class="content">{body}</div>
        <div class="footer">
            <p>This email was sent to {email}</p>
            <p>&copy; {datetime.now().year} Ryde. All rights reserved.</p>
        </div>
    </div>
</body>
</html>"""


def render_welcome_email(name: str, email: str) -> str:
    name = escape(name)
    body = f"""
            <h2>Hello {name},</h2>
            <p>Welcome to Ryde! We're excited to have you on board.</p>
            <p>With Ryde, you can:</p>
            <ul>
                <li>Book rides quickly and easily</li>
                <li>Track your driver in real-time</li>
                <li>Pay securely through the app</li>
                <li>Rate your experience</li>
            </ul>
            <a href="{settings.frontend_url}" class="button">Open Ryde App</a>
            <p>Best regards,<br>The Ryde Team</p>"""
    return _wrap("Welcome to Ryde", "Welcome to Ryde!", body, email)


def render_otp_email(name: str, email: str, otp: str, purpose_line: str, expiry_minutes: int) -> str:
    name, otp = escape(name), escape(otp)
    body = f"""
            <h2>Hello {name},</h2>
            <p>{purpose_line} This code will expire in {expiry_minutes} minutes.</p>
            <div class="otp-code">{otp}</div>
            <p>If you did not request this, please ignore this email.</p>
            <p>Thank you,<br>The Ryde Team</p>"""
    return _wrap("Your Ryde code", "Your Ryde code", body, email)


class Mailer:
    """SMTP notification dispatcher."""

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str],
        password: Optional[str],
        use_tls: bool = True,
        sender: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.sender = sender or user

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)

    def _send_sync(self, to_email: str, subject: str, html: str) -> None:
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = to_email
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.user, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"Could not deliver '{subject}' to {to_email}: {exc}") from exc

    async def send(self, to_email: str, subject: str, html: str) -> None:
        if not self.configured:
            logger.warning("SMTP not configured; skipping '%s' to %s", subject, to_email)
            return
        await run_in_threadpool(self._send_sync, to_email, subject, html)
        logger.info("Email '%s' sent to %s", subject, to_email)

    async def send_welcome_email(self, name: str, email: str) -> None:
        await self.send(email, f"Welcome to Ryde, {name}!", render_welcome_email(name, email))

    async def send_verification_email(self, name: str, email: str, otp: str) -> None:
        html = render_otp_email(
            name, email, otp,
            "Use the code below to verify your email address.",
            settings.otp_expire_minutes,
        )
        await self.send(email, "Verify Your Email - Ryde", html)

    async def send_forgot_password_email(self, name: str, email: str, otp: str) -> None:
        html = render_otp_email(
            name, email, otp,
            "We received a request to reset your password. Use the code below to proceed.",
            settings.otp_expire_minutes,
        )
        await self.send(email, "Reset Your Password - Ryde", html)


mailer = Mailer(
    host=settings.smtp_host,
    port=settings.smtp_port,
    user=settings.smtp_user,
    password=settings.smtp_password,
    use_tls=settings.smtp_use_tls,
    sender=settings.email_from,
)


def get_mailer() -> Mailer:
    """FastAPI dependency returning the process-wide mailer."""
    return mailer
