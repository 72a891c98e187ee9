"""
Resend email service adapter.
"""

import asyncio
import html
import logging

import resend

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


class ResendEmailService:
    """Email service using Resend API."""

    def __init__(self):
        if settings.resend_api_key:
            resend.api_key = settings.resend_api_key
        self._from_email = settings.resend_from_email
        self._frontend_url = settings.frontend_url.rstrip("/")

    async def _send(self, to_email: str, subject: str, body_html: str) -> bool:
        try:
            # resend's client is synchronous
            await asyncio.to_thread(
                resend.Emails.send,
                {
                    "from": self._from_email,
                    "to": to_email,
                    "subject": subject,
                    "html": body_html,
                },
            )
            return True
        except Exception as e:
            logger.error("Failed to send '%s' email: %s", subject, e)
            return False

    async def send_password_reset_email(
        self,
        to_email: str,
        user_name: str,
        reset_token: str,
    ) -> bool:
        """
        Send password reset email.

        Args:
            to_email: Recipient email address
            user_name: User's name for personalization
            reset_token: JWT password reset token

        Returns:
            True if sent successfully, False otherwise
        """
        reset_url = f"{self._frontend_url}/reset-password?token={reset_token}"
        if not settings.resend_api_key:
            logger.info("[DEV] Password reset link for user: %s", reset_url)
            return True

        return await self._send(
            to_email,
            "Reset your News Hub password",
            self._get_password_reset_email_html(user_name, reset_url),
        )

    async def send_contact_notification(
        self,
        to_email: str,
        sender_name: str,
        sender_email: str,
        subject: str,
        message: str,
    ) -> bool:
        """Forward a contact form submission to the site inbox."""
        if not settings.resend_api_key:
            logger.info("[DEV] Contact message '%s' received", subject)
            return True

        body = (
            f"<p><strong>From:</strong> {html.escape(sender_name)} "
            f"&lt;{html.escape(sender_email)}&gt;</p>"
            f"<p>{html.escape(message)}</p>"
        )
        return await self._send(to_email, f"[Contact] {subject}", body)

    def _get_password_reset_email_html(self, user_name: str, reset_url: str) -> str:
        """Generate password reset email HTML."""
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="font-family: Georgia, 'Times New Roman', serif; background-color: #F4F4F4; padding: 40px 20px;">
            <div style="max-width: 560px; margin: 0 auto; background: white; border-radius: 8px; padding: 40px;">
                <h1 style="color: #111; font-size: 24px; margin: 0 0 24px; text-align: center;">News Hub</h1>

                <h2 style="color: #111; font-size: 20px; margin-bottom: 16px;">Reset your password</h2>

                <p style="color: #333; line-height: 1.6; margin-bottom: 24px;">
                    Hi {html.escape(user_name)},<br><br>
                    We received a request to reset your password. Use the button below to choose a new one.
                </p>

                <div style="text-align: center; margin: 32px 0;">
                    <a href="{reset_url}" style="display: inline-block; background: #B91C1C; color: white; text-decoration: none; padding: 14px 32px; border-radius: 6px;">
                        Reset Password
                    </a>
                </div>

                <p style="color: #777; font-size: 14px; line-height: 1.6;">
                    If you didn't request a password reset, you can ignore this email. Your password will remain unchanged.
                </p>

                <p style="color: #777; font-size: 12px; text-align: center;">
                    This link will expire in 1 hour.
                </p>
            </div>
        </body>
        </html>
        """


# Singleton instance
email_service = ResendEmailService()
