import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional, Sequence

from ..core.config import Settings
from ..core.logger import FileLogger


logger = logging.getLogger(__name__)

X_MAILER = "neuFramework (https://github.com/synapt/neuframework)"
DEFAULT_SMTP_PORT = 465


def _address(pair: Sequence[str]) -> str:
    email, name = pair
    return formataddr((name, email))


def build_message(
    from_: Sequence[str],
    reply_to: Sequence[str],
    to: Sequence[str],
    subject: str,
    body: str,
    plain_body: Optional[str] = None,
) -> EmailMessage:
    """Build the message; with ``plain_body`` set, ``body`` is sent as HTML."""
    message = EmailMessage()
    message["From"] = _address(from_)
    message["To"] = _address(to)
    message["Reply-To"] = _address(reply_to)
    message["Subject"] = subject
    message["X-Mailer"] = X_MAILER

    if plain_body is None:
        message.set_content(body)
    else:
        message.set_content(plain_body)
        message.add_alternative(body, subtype="html")
    return message


def smtp_send_email(
    settings: Settings,
    from_: Sequence[str],
    reply_to: Sequence[str],
    to: Sequence[str],
    subject: str,
    body: str,
    plain_body: Optional[str] = None,
) -> bool:
    """Send one message over implicit-TLS SMTP using the ``email_*`` settings.

    Every address is an ``(email, name)`` pair. Returns False instead of
    raising when the pairs are malformed or delivery fails.
    """
    for label, pair in (("From", from_), ("To", to), ("ReplyTo", reply_to)):
        if len(pair) != 2:
            logger.warning(f"{label} needs to be a pair of the email and associated name.")
            return False

    message = build_message(from_, reply_to, to, subject, body, plain_body)

    host = settings.get_setting("email_host")
    port = settings.get_setting("email_port") or DEFAULT_SMTP_PORT
    try:
        with smtplib.SMTP_SSL(host, int(port), context=ssl.create_default_context()) as smtp:
            smtp.login(settings.get_setting("email_user"), settings.get_setting("email_pass"))
            smtp.send_message(message)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("An exception was thrown during mailing attempt.")
        FileLogger(settings).write_dated(f"An exception was thrown during mailing attempt, error was; {e}", "error")
        return False
