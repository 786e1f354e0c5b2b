from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
import smtplib
from typing import Literal

from wooffy_api.core.config import settings

EmailDeliveryStatus = Literal["sent", "not_configured", "failed"]


@dataclass(frozen=True)
class EmailDeliveryResult:
    status: EmailDeliveryStatus
    detail: str | None = None


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


def _smtp_configured() -> bool:
    return bool(settings.smtp_host and settings.smtp_sender_email)


def _wrap_html(*, heading: str, preview: str, paragraphs: list[str], button_label: str | None = None, button_url: str | None = None) -> str:
    body = "".join(f"<p>{escape(paragraph)}</p>" for paragraph in paragraphs)
    if button_label and button_url:
        body += f'<p><a href="{escape(button_url, quote=True)}">{escape(button_label)}</a></p>'
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head><body>"
        f'<div style="display:none">{escape(preview)}</div>'
        f"<h1>{escape(heading)}</h1>{body}"
        f"<p style=\"font-size:12px;color:#9ca3af\">© {escape(settings.email_sender_name)}. "
        "An effort to unite pet lovers all over Cyprus.</p>"
        "</body></html>"
    )


def render_welcome_email(*, full_name: str | None) -> RenderedEmail:
    greeting = f"Hi {full_name}," if full_name else "Hi there,"
    get_started_url = f"{settings.web_base_url}/member"
    paragraphs = [
        greeting,
        "Welcome to the Wooffy family! We're thrilled to have you and your furry friend "
        "join our community of pet lovers in Cyprus.",
        "With Wooffy you can access exclusive discounts at pet-friendly businesses, track your "
        "pet's health records, connect with the pet community and get personalized alerts.",
        "Questions? Reply to this email - we're always here to help!",
    ]
    return RenderedEmail(
        subject="Welcome to Wooffy! 🐾",
        text="\n\n".join(paragraphs + [f"Get started: {get_started_url}"]),
        html=_wrap_html(
            heading="Welcome to Wooffy! 🐾",
            preview="Welcome to the Wooffy family! Start exploring exclusive pet benefits in Cyprus.",
            paragraphs=paragraphs,
            button_label="Get Started",
            button_url=get_started_url,
        ),
    )


def render_verification_email(*, full_name: str | None, verify_url: str) -> RenderedEmail:
    greeting = f"Hi {full_name}," if full_name else "Hi there,"
    ttl_hours = settings.verification_token_ttl_hours
    paragraphs = [
        greeting,
        "Thanks for signing up for Wooffy! Please verify your email address to complete your registration.",
        f"This link will expire in {ttl_hours} hours for security reasons.",
        "If you didn't create an account on Wooffy, you can safely ignore this email.",
    ]
    return RenderedEmail(
        subject="Verify Your Email - Wooffy 🐾",
        text="\n\n".join(paragraphs + [f"Verify your email: {verify_url}"]),
        html=_wrap_html(
            heading="Verify Your Email 🐾",
            preview="Please verify your email to complete your Wooffy registration.",
            paragraphs=paragraphs,
            button_label="Verify Email Address",
            button_url=verify_url,
        ),
    )


def render_password_reset_email(*, reset_url: str) -> RenderedEmail:
    paragraphs = [
        "We received a request to reset your Wooffy password.",
        "This link will expire in 1 hour for security reasons.",
        "If you didn't request this password reset, you can safely ignore this email. "
        "Your password will remain unchanged.",
    ]
    return RenderedEmail(
        subject="[Wooffy] Reset Your Password 🔐",
        text="\n\n".join(paragraphs + [f"Reset your password: {reset_url}"]),
        html=_wrap_html(
            heading="Password Reset 🔐",
            preview="Reset your Wooffy password - this link expires in 1 hour.",
            paragraphs=paragraphs,
            button_label="Reset Password",
            button_url=reset_url,
        ),
    )


def send_email(*, recipient_email: str, email: RenderedEmail) -> EmailDeliveryResult:
    if not _smtp_configured():
        return EmailDeliveryResult(
            status="not_configured",
            detail="SMTP not configured",
        )

    message = EmailMessage()
    message["Subject"] = email.subject
    message["From"] = formataddr((settings.email_sender_name, settings.smtp_sender_email))
    message["To"] = recipient_email
    if settings.smtp_reply_to_email:
        message["Reply-To"] = settings.smtp_reply_to_email
    message.set_content(email.text)
    message.add_alternative(email.html, subtype="html")

    try:
        if settings.smtp_use_ssl:
            with smtplib.SMTP_SSL(
                settings.smtp_host,
                settings.smtp_port,
                timeout=settings.smtp_timeout_seconds,
            ) as server:
                if settings.smtp_username:
                    server.login(settings.smtp_username, settings.smtp_password or "")
                server.send_message(message)
        else:
            with smtplib.SMTP(
                settings.smtp_host,
                settings.smtp_port,
                timeout=settings.smtp_timeout_seconds,
            ) as server:
                if settings.smtp_use_starttls:
                    server.starttls()
                if settings.smtp_username:
                    server.login(settings.smtp_username, settings.smtp_password or "")
                server.send_message(message)
    except Exception as exc:  # noqa: BLE001 - expose short status back to caller
        return EmailDeliveryResult(status="failed", detail=str(exc))

    return EmailDeliveryResult(status="sent", detail=None)
