"""
Activation email delivery.

Runs as a FastAPI background task after the registration response has been
sent, so a slow or failing mail server never delays or fails registration.
Delivery failures are logged; the user can request a new activation token
through POST /v1/tokens/activation.

If SMTP is not configured the email is skipped with a warning. The token
itself is never logged.
"""

import logging
import smtplib
from email.mime.text import MIMEText

from impart.config import settings

logger = logging.getLogger(__name__)


def build_activation_message(recipient: str, user_id: int, token: str) -> MIMEText:
    body = (
        "Welcome to Impart.\n\n"
        "To activate your account, send a PUT request to /v1/users/activated "
        "with the following JSON body:\n\n"
        f'    {{"token": "{token}"}}\n\n'
        f"Your user ID is {user_id}. "
        f"This token expires in {settings.ACTIVATION_TOKEN_TTL_HOURS} hours.\n"
    )
    msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = "Activate your Impart account"
    msg["From"] = settings.SMTP_SENDER
    msg["To"] = recipient
    return msg


def send_activation_email(recipient: str, user_id: int, token: str) -> None:
    if not settings.SMTP_HOST:
        logger.warning(
            "SMTP not configured - activation email for user_id=%s not sent", user_id
        )
        return

    msg = build_activation_message(recipient, user_id, token)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
            server.starttls()
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("failed to send activation email for user_id=%s", user_id)
        return

    logger.info("sent activation email for user_id=%s", user_id)
