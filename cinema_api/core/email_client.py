# cinema_api/core/email_client.py
"""
Email client utilities for the Cinema API.

Responsibilities:
  - Build an SMTP connection from Settings (SMTP_* env vars).
  - Provide send_email(...) plus the two transactional messages the
    account flows need: password reset and email verification.
  - Support both TLS (STARTTLS) and SSL connections.

Typical .env configuration:

    SMTP_HOST=smtp-relay.example.com
    SMTP_PORT=587
    SMTP_USERNAME=noreply@example.com
    SMTP_PASSWORD=...
    SMTP_FROM_EMAIL=noreply@example.com
    SMTP_FROM_NAME=Lao Cinema
    SMTP_USE_TLS=true
    SMTP_USE_SSL=false
"""
from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Literal

from cinema_api.core.config import Settings, get_settings

Locale = Literal["en", "lo"]


def _create_smtp_client(settings: Settings) -> smtplib.SMTP:
    """
    Create and return an SMTP client configured for TLS or SSL.

    Priority:
      - If SMTP_USE_SSL is True → use smtplib.SMTP_SSL (commonly port 465).
      - Else → use smtplib.SMTP + optional STARTTLS if SMTP_USE_TLS is True.
    """
    if not settings.SMTP_HOST:
        raise RuntimeError("SMTP_HOST is not configured. Please set it in .env.")

    if settings.SMTP_USE_SSL:
        server: smtplib.SMTP = smtplib.SMTP_SSL(
            settings.SMTP_HOST, settings.SMTP_PORT, timeout=30
        )
    else:
        server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
        if settings.SMTP_USE_TLS:
            server.starttls()

    return server


def send_email(
    to_email: str,
    subject: str,
    text_body: str,
    html_body: str | None = None,
) -> None:
    """
    Send an email to a single recipient.

    Raises
    ------
    RuntimeError:
        If required SMTP configuration is missing.
    smtplib.SMTPException:
        If the underlying SMTP connection or send fails.
    """
    settings = get_settings()
    if not (settings.SMTP_HOST and settings.SMTP_USERNAME and settings.SMTP_PASSWORD):
        raise RuntimeError(
            "SMTP is not configured correctly. "
            "Please set SMTP_HOST, SMTP_USERNAME, and SMTP_PASSWORD in .env."
        )

    msg = EmailMessage()
    from_email = settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{from_email}>"
    msg["To"] = to_email
    msg["Subject"] = subject

    msg.set_content(text_body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    server = _create_smtp_client(settings)
    try:
        server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)
    finally:
        try:
            server.quit()
        except Exception:
            # Connection is being torn down anyway.
            pass


# ---------------------------------------------------------------------------
# Transactional messages
# ---------------------------------------------------------------------------

_RESET_COPY: dict[str, dict[str, str]] = {
    "en": {
        "subject": "Reset your password",
        "intro": "We received a request to reset your password.",
        "action": "Reset password",
        "expiry": "This link expires in {minutes} minutes. "
        "If you did not request a reset, you can ignore this email.",
    },
    "lo": {
        "subject": "ຕັ້ງລະຫັດຜ່ານໃໝ່",
        "intro": "ພວກເຮົາໄດ້ຮັບຄຳຮ້ອງຂໍຕັ້ງລະຫັດຜ່ານໃໝ່ຂອງທ່ານ.",
        "action": "ຕັ້ງລະຫັດຜ່ານໃໝ່",
        "expiry": "ລິ້ງນີ້ຈະໝົດອາຍຸໃນ {minutes} ນາທີ. "
        "ຖ້າທ່ານບໍ່ໄດ້ຮ້ອງຂໍ, ທ່ານສາມາດລະເລີຍອີເມວນີ້ໄດ້.",
    },
}

_VERIFY_COPY: dict[str, dict[str, str]] = {
    "en": {
        "subject": "Verify your email address",
        "intro": "Please confirm that this is your email address.",
        "action": "Verify email",
        "expiry": "This link expires in {hours} hours.",
    },
    "lo": {
        "subject": "ຢືນຢັນທີ່ຢູ່ອີເມວຂອງທ່ານ",
        "intro": "ກະລຸນາຢືນຢັນວ່ານີ້ແມ່ນທີ່ຢູ່ອີເມວຂອງທ່ານ.",
        "action": "ຢືນຢັນອີເມວ",
        "expiry": "ລິ້ງນີ້ຈະໝົດອາຍຸໃນ {hours} ຊົ່ວໂມງ.",
    },
}


def _frontend_link(settings: Settings, locale: str, path: str, token: str) -> str:
    return f"{settings.FRONTEND_BASE_URL.rstrip('/')}/{locale}/{path}?token={token}"


def _render(copy: dict[str, str], link: str, expiry: str) -> tuple[str, str]:
    text_body = f"{copy['intro']}\n\n{copy['action']}: {link}\n\n{expiry}\n"
    html_body = (
        f"<p>{copy['intro']}</p>"
        f'<p><a href="{link}">{copy["action"]}</a></p>'
        f"<p>{expiry}</p>"
    )
    return text_body, html_body


def send_password_reset_email(to_email: str, token: str, locale: Locale = "en") -> None:
    settings = get_settings()
    copy = _RESET_COPY.get(locale, _RESET_COPY["en"])
    link = _frontend_link(settings, locale, "reset-password", token)
    expiry = copy["expiry"].format(minutes=settings.PASSWORD_RESET_TOKEN_TTL_MINUTES)
    text_body, html_body = _render(copy, link, expiry)
    send_email(to_email, copy["subject"], text_body, html_body)


def send_verification_email(to_email: str, token: str, locale: Locale = "en") -> None:
    settings = get_settings()
    copy = _VERIFY_COPY.get(locale, _VERIFY_COPY["en"])
    link = _frontend_link(settings, locale, "verify-email", token)
    expiry = copy["expiry"].format(hours=settings.EMAIL_VERIFICATION_TOKEN_TTL_HOURS)
    text_body, html_body = _render(copy, link, expiry)
    send_email(to_email, copy["subject"], text_body, html_body)


class Mailer:
    """
    Thin seam over the module functions so routes can receive a mailer
    through FastAPI dependencies (and tests can swap in a recorder).
    """

    def send_password_reset_email(self, to_email: str, token: str, locale: Locale = "en") -> None:
        send_password_reset_email(to_email, token, locale)

    def send_verification_email(self, to_email: str, token: str, locale: Locale = "en") -> None:
        send_verification_email(to_email, token, locale)


def get_mailer() -> Mailer:
    return Mailer()
