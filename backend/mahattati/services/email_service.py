import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional
import aiosmtplib
from mahattati.core.config import settings

logger = logging.getLogger(__name__)

_BUTTON = (
    '<a href="{url}" style="display: inline-block; padding: 12px 24px; '
    'background-color: {color}; color: white; text-decoration: none; '
    'border-radius: 5px; margin: 20px 0;">{label}</a>'
)


def _wrap(body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"{body}</div>"
    )


class EmailService:
    """
    Outgoing mail over SMTP.

    Every send returns True/False instead of raising: mail runs as a
    background task after the response was already produced.
    """

    @staticmethod
    def is_configured() -> bool:
        return bool(settings.MAIL_HOST)

    @staticmethod
    async def send_email(to_email: str, subject: str, html_content: str) -> bool:
        if not EmailService.is_configured():
            logger.warning("MAIL_HOST not configured, skipping email '%s' to %s", subject, to_email)
            return False

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f'"{settings.MAIL_FROM_NAME}" <{settings.MAIL_USERNAME}>'
        message["To"] = to_email
        message.attach(MIMEText(html_content, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.MAIL_HOST,
                port=settings.MAIL_PORT,
                username=settings.MAIL_USERNAME,
                password=settings.MAIL_PASSWORD,
                start_tls=settings.MAIL_USE_TLS,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Email sending error to %s: %s", to_email, e)
            return False

        logger.info("Sent email '%s' to %s", subject, to_email)
        return True

    @staticmethod
    async def send_verification_email(email: str, name: str, token: str) -> bool:
        verification_url = f"{settings.CLIENT_URL}/verify-email/{token}"
        body = _wrap(
            f'<h2 style="color: #333;">Welcome to Mahattati, {html.escape(name)}!</h2>'
            "<p>Thank you for registering. Please verify your email address by clicking the link below:</p>"
            + _BUTTON.format(url=verification_url, color="#007bff", label="Verify Email")
            + "<p>Or copy and paste this URL into your browser:</p>"
            f'<p style="color: #666; word-break: break-all;">{verification_url}</p>'
            f'<p style="color: #999; font-size: 12px; margin-top: 30px;">'
            f"This link will expire in {settings.VERIFICATION_TOKEN_EXPIRE_HOURS} hours.</p>"
        )
        return await EmailService.send_email(email, "Verify Your Email - Mahattati", body)

    @staticmethod
    async def send_password_reset_email(email: str, name: str, token: str) -> bool:
        reset_url = f"{settings.CLIENT_URL}/reset-password/{token}"
        body = _wrap(
            '<h2 style="color: #333;">Password Reset Request</h2>'
            f"<p>Hello {html.escape(name)},</p>"
            "<p>You requested to reset your password. Click the link below to reset it:</p>"
            + _BUTTON.format(url=reset_url, color="#dc3545", label="Reset Password")
            + "<p>Or copy and paste this URL into your browser:</p>"
            f'<p style="color: #666; word-break: break-all;">{reset_url}</p>'
            '<p style="color: #999; font-size: 12px; margin-top: 30px;">'
            "This link will expire in 1 hour. If you didn't request this, please ignore this email.</p>"
        )
        return await EmailService.send_email(email, "Password Reset Request - Mahattati", body)

    @staticmethod
    async def send_notification_email(
        email: str, name: str, title: str, message: str, link_url: Optional[str] = None
    ) -> bool:
        body = _wrap(
            f'<h2 style="color: #333;">{html.escape(title)}</h2>'
            f"<p>Hello {html.escape(name)},</p>"
            f"<p>{html.escape(message)}</p>"
            + (_BUTTON.format(url=link_url, color="#007bff", label="View Details") if link_url else "")
        )
        return await EmailService.send_email(email, title, body)


email_service = EmailService()
