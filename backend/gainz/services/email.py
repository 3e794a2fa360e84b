"""Transactional email: OTP verification and password reset messages.

Flows depend on the ``EmailProvider`` protocol. ``HttpEmailProvider`` posts to
an HTTP mail API through the shared httpx client; ``LoggingEmailProvider`` is
used when no API token is configured (local development) and only logs.
Providers return False instead of raising so callers decide whether a failed
send is fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import httpx

from gainz.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    html: str
    text: str


class EmailProvider(Protocol):
    async def send_verification_email(self, to_email: str, otp: str) -> bool: ...

    async def send_password_reset_email(self, to_email: str, reset_token: str) -> bool: ...


def email_verification_template(username: str, otp: str, expire_minutes: int = 10) -> EmailTemplate:
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
      <h2 style="color: #333;">Email Verification</h2>
      <p>Hello {username},</p>
      <p>Thank you for registering with Gainz. Enter the verification code below in the app:</p>
      <div style="background-color: #f4f4f4; padding: 15px; text-align: center; font-size: 24px;
                  letter-spacing: 5px; margin: 20px 0; font-weight: bold;">{otp}</div>
      <p>This code will expire in {expire_minutes} minutes.</p>
      <p>If you did not request this verification, please ignore this email.</p>
      <p>The Gainz Team</p>
    </div>
    """
    text = (
        f"Email Verification\n\nHello {username},\n\n"
        f"Your Gainz verification code is: {otp}\n\n"
        f"This code will expire in {expire_minutes} minutes.\n\n"
        "If you did not request this verification, please ignore this email.\n\nThe Gainz Team"
    )
    return EmailTemplate(subject="Verify Your Email Address for Gainz", html=html, text=text)


def password_reset_template(username: str, reset_link: str, expire_minutes: int = 60) -> EmailTemplate:
    year = datetime.now(timezone.utc).year
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <p>Hello {username},</p>
      <p>You requested a password reset for your Gainz account.</p>
      <p style="text-align: center; margin: 30px 0;">
        <a href="{reset_link}" style="background-color: #4CAF50; color: white; padding: 12px 20px;
           text-decoration: none; border-radius: 4px; font-weight: bold;">Reset Password</a>
      </p>
      <p>This link will expire in {expire_minutes} minutes.</p>
      <p>If you didn't request this, please ignore this email.</p>
      <p style="font-size: 12px; color: #666;">&copy; {year} Gainz. All rights reserved.</p>
    </div>
    """
    text = (
        f"Hello {username},\n\nYou requested a password reset for your Gainz account.\n\n"
        f"Please use the following link to reset your password:\n{reset_link}\n\n"
        f"This link will expire in {expire_minutes} minutes.\n\n"
        "If you didn't request this, please ignore this email.\n\nThe Gainz Team"
    )
    return EmailTemplate(subject="Gainz - Password Reset Request", html=html, text=text)


class _TemplatedProvider:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def _send(self, to_email: str, template: EmailTemplate) -> bool:
        raise NotImplementedError

    async def send_verification_email(self, to_email: str, otp: str) -> bool:
        template = email_verification_template(
            to_email, otp, expire_minutes=self._settings.email_verification_expire_minutes
        )
        return await self._send(to_email, template)

    async def send_password_reset_email(self, to_email: str, reset_token: str) -> bool:
        reset_link = f"{self._settings.frontend_url.rstrip('/')}/reset-password?token={reset_token}"
        template = password_reset_template(
            to_email, reset_link, expire_minutes=self._settings.reset_token_expire_minutes
        )
        return await self._send(to_email, template)


class HttpEmailProvider(_TemplatedProvider):
    """Sends through an HTTP mail API (ZeptoMail-compatible payload)."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        super().__init__(settings)
        self._http = http_client

    async def _send(self, to_email: str, template: EmailTemplate) -> bool:
        payload = {
            "from": {"address": self._settings.email_from, "name": self._settings.email_from_name},
            "to": [{"email_address": {"address": to_email}}],
            "subject": template.subject,
            "htmlbody": template.html,
            "textbody": template.text,
        }
        headers = {"Authorization": self._settings.email_api_token, "Content-Type": "application/json"}
        try:
            response = await self._http.post(
                self._settings.email_api_url,
                json=payload,
                headers=headers,
                timeout=self._settings.email_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.error("Failed to send email to %s (%s): %s", to_email, template.subject, e)
            return False
        if response.status_code not in (200, 201, 202):
            logger.error(
                "Email API rejected message to %s (%s): %s %s",
                to_email,
                template.subject,
                response.status_code,
                response.text[:200],
            )
            return False
        logger.info("Email sent to %s (%s)", to_email, template.subject)
        return True


class LoggingEmailProvider(_TemplatedProvider):
    async def _send(self, to_email: str, template: EmailTemplate) -> bool:
        logger.info("Email delivery disabled; would send %r to %s", template.subject, to_email)
        logger.debug("Email body for %s:\n%s", to_email, template.text)
        return True
