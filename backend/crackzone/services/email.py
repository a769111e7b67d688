"""Templated email delivery over SMTP.

smtplib is blocking, so every send runs in a worker thread.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Any, Callable

from crackzone.config import Settings, get_settings
from crackzone.utils.errors import ErrorCode, IntegrationError, InvalidRequestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def _layout(title: str, body: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; background-color: #f8f9fa;">
  <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 40px 20px; text-align: center;">
    <h1 style="color: white; margin: 0; font-size: 28px;">{title}</h1>
  </div>
  <div style="padding: 40px 20px; background-color: white;">{body}</div>
  <div style="background-color: #333; padding: 20px; text-align: center;">
    <p style="color: #999; margin: 0; font-size: 12px;">&copy; CrackZone Gaming</p>
  </div>
</div>"""


def _verification(data: dict[str, Any]) -> RenderedEmail:
    username = escape(str(data.get("username", "")))
    code = escape(str(data["code"]))
    minutes = int(data.get("expires_minutes", 30))
    html = _layout(
        "Welcome to CrackZone!",
        f"""<h2>Hi {username}!</h2>
<p>Please use this verification code in the app:</p>
<div style="text-align: center; margin: 40px 0; font-size: 32px; letter-spacing: 8px; font-family: monospace;">{code}</div>
<p style="font-size: 14px; color: #666;">This code will expire in {minutes} minutes.</p>
<p style="font-size: 14px; color: #999;">If you didn't create an account with CrackZone, please ignore this email.</p>""",
    )
    text = (
        f"Hi {data.get('username', '')}!\n\n"
        f"Your CrackZone verification code is {data['code']}.\n"
        f"It expires in {minutes} minutes.\n"
    )
    return RenderedEmail("Verify your CrackZone account", html, text)


def _password_reset(data: dict[str, Any]) -> RenderedEmail:
    username = escape(str(data.get("username", "")))
    url = escape(str(data["reset_url"]), quote=True)
    html = _layout(
        "Password Reset",
        f"""<h2>Hi {username}!</h2>
<p>We received a request to reset your password.</p>
<p style="text-align: center; margin: 40px 0;"><a href="{url}">Reset Password</a></p>
<p style="font-size: 14px; color: #666;">This link will expire in 30 minutes.</p>
<p style="font-size: 14px; color: #999;">If you didn't request this, you can ignore this email.</p>""",
    )
    text = (
        f"Hi {data.get('username', '')}!\n\n"
        f"Reset your CrackZone password here: {data['reset_url']}\n"
        "This link will expire in 30 minutes.\n"
    )
    return RenderedEmail("Reset your CrackZone password", html, text)


def _welcome(data: dict[str, Any]) -> RenderedEmail:
    username = escape(str(data.get("username", "")))
    url = escape(str(data.get("frontend_url", "")), quote=True)
    html = _layout(
        "Welcome to CrackZone!",
        f"""<h2>Hi {username}!</h2>
<p>Your email is verified. Join tournaments, build a team and climb the leaderboards.</p>
<p style="text-align: center; margin: 40px 0;"><a href="{url}">Start Playing</a></p>""",
    )
    text = f"Hi {data.get('username', '')}!\n\nYour email is verified. Start playing at {data.get('frontend_url', '')}\n"
    return RenderedEmail("Welcome to CrackZone - Let the Games Begin!", html, text)


def _tournament_invitation(data: dict[str, Any]) -> RenderedEmail:
    username = escape(str(data.get("username", "")))
    name = escape(str(data["tournament_name"]))
    date = escape(str(data.get("tournament_date") or "TBA"))
    prize = escape(str(data.get("prize_pool") or "-"))
    url = escape(str(data.get("join_url", "")), quote=True)
    html = _layout(
        "Tournament Invitation",
        f"""<h2>Hi {username}!</h2>
<p>You're invited to join <strong>{name}</strong>.</p>
<ul><li>Date: {date}</li><li>Prize pool: {prize}</li></ul>
<p style="text-align: center; margin: 40px 0;"><a href="{url}">Join Tournament</a></p>""",
    )
    text = (
        f"Hi {data.get('username', '')}!\n\n"
        f"You're invited to {data['tournament_name']} ({data.get('tournament_date') or 'TBA'}).\n"
        f"Join: {data.get('join_url', '')}\n"
    )
    return RenderedEmail(f"You're Invited: {data['tournament_name']}", html, text)


TEMPLATES: dict[str, Callable[[dict[str, Any]], RenderedEmail]] = {
    "verification": _verification,
    "password-reset": _password_reset,
    "welcome": _welcome,
    "tournament-invitation": _tournament_invitation,
}


def render(template: str, data: dict[str, Any]) -> RenderedEmail:
    try:
        renderer = TEMPLATES[template]
    except KeyError:
        raise InvalidRequestError(f"Email template '{template}' not found")
    return renderer(data)


class EmailService:
    """Sends templated emails through the configured SMTP relay."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.smtp_configured

    def _connect(self) -> smtplib.SMTP:
        smtp = smtplib.SMTP(
            self.settings.smtp_host,
            self.settings.smtp_port,
            timeout=self.settings.smtp_timeout,
        )
        if self.settings.smtp_use_tls:
            smtp.starttls()
        if self.settings.smtp_user and self.settings.smtp_password:
            smtp.login(self.settings.smtp_user, self.settings.smtp_password)
        return smtp

    def _deliver(self, message: EmailMessage) -> None:
        with self._connect() as smtp:
            smtp.send_message(message)

    def _check(self) -> None:
        with self._connect() as smtp:
            smtp.noop()

    async def send(self, to: str, template: str, data: dict[str, Any]) -> None:
        """Render and send one email.

        Raises:
            IntegrationError: SMTP is not configured or delivery failed
        """
        if not self.configured:
            raise IntegrationError(
                "Email service is not configured",
                code=ErrorCode.EMAIL_NOT_CONFIGURED,
                status_code=503,
            )

        rendered = render(template, data)
        message = EmailMessage()
        message["From"] = self.settings.smtp_from
        message["To"] = to
        message["Subject"] = rendered.subject
        message.set_content(rendered.text)
        message.add_alternative(rendered.html, subtype="html")

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email delivery to {to} failed: {e}")
            raise IntegrationError(
                "Failed to send email",
                code=ErrorCode.EMAIL_SEND_FAILED,
                details={"template": template},
            ) from e

        logger.info(f"Email '{template}' sent to {to}")

    async def send_quietly(self, to: str, template: str, data: dict[str, Any]) -> bool:
        """Best-effort send used by account flows; failures are only logged."""
        try:
            await self.send(to, template, data)
        except IntegrationError as e:
            logger.warning(f"Skipped '{template}' email to {to}: {e.message}")
            return False
        return True

    async def verify_config(self) -> bool:
        if not self.configured:
            return False
        try:
            await asyncio.to_thread(self._check)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email configuration error: {e}")
            return False
        return True

    async def send_verification(self, to: str, username: str, code: str, expires_minutes: int) -> bool:
        return await self.send_quietly(
            to,
            "verification",
            {"username": username, "code": code, "expires_minutes": expires_minutes},
        )

    async def send_password_reset(self, to: str, username: str, token: str) -> bool:
        reset_url = f"{self.settings.frontend_url.rstrip('/')}/reset-password?token={token}"
        return await self.send_quietly(to, "password-reset", {"username": username, "reset_url": reset_url})

    async def send_welcome(self, to: str, username: str) -> bool:
        return await self.send_quietly(
            to,
            "welcome",
            {"username": username, "frontend_url": self.settings.frontend_url},
        )

    async def send_tournament_invitation(self, to: str, username: str, tournament: dict[str, Any]) -> None:
        data = {"username": username, **tournament}
        if tournament.get("tournament_id"):
            data.setdefault(
                "join_url",
                f"{self.settings.frontend_url.rstrip('/')}/tournaments/{tournament['tournament_id']}",
            )
        await self.send(to, "tournament-invitation", data)

    def sample_data(self, template: str) -> dict[str, Any]:
        """Placeholder data for test sends."""
        samples: dict[str, dict[str, Any]] = {
            "verification": {"username": "TestUser", "code": "123456", "expires_minutes": 30},
            "password-reset": {
                "username": "TestUser",
                "reset_url": f"{self.settings.frontend_url.rstrip('/')}/reset-password?token=test",
            },
            "welcome": {"username": "TestUser", "frontend_url": self.settings.frontend_url},
            "tournament-invitation": {
                "username": "TestUser",
                "tournament_name": "Test Tournament",
                "tournament_date": "TBA",
                "prize_pool": "1000",
                "join_url": self.settings.frontend_url,
            },
        }
        return samples[template]


def get_email_service() -> EmailService:
    """FastAPI dependency; overridden in tests."""
    return EmailService()
