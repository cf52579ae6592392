"""Outgoing user notifications.

Only a log transport ships with the template: rendered mail is written to
the ``starter_api.notifications`` logger.  A real transport only has to
implement ``MailTransport.send``.
"""
import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger("starter_api.notifications")

DEFAULT_SENDER = "noreply@starter-api.local"

TEMPLATES = {
    "welcome": (
        "Welcome to Starter API, {name}!",
        "Hi {name},\n\nYour account ({email}) is ready. Sign in any time to get started.\n",
    ),
}


@dataclass
class Mail:
    to: str
    subject: str
    body: str
    sender: str = DEFAULT_SENDER


class MailTransport(Protocol):
    async def send(self, mail: Mail) -> None: ...


class LogTransport:
    """Writes each mail to the log instead of delivering it."""

    async def send(self, mail: Mail) -> None:
        logger.info(
            "Mail to %s: %s",
            mail.to,
            mail.subject,
            extra={"mail_to": mail.to, "mail_from": mail.sender, "subject": mail.subject},
        )


def render(template_name: str, **context: str) -> tuple[str, str]:
    subject, body = TEMPLATES[template_name]
    return subject.format(**context), body.format(**context)


transport: MailTransport = LogTransport()


async def send_welcome_email(email: str, name: str) -> None:
    """
    Background task run after registration.  Delivery failures are logged
    and never reach the client, whose response has already been sent.
    """
    subject, body = render("welcome", name=name, email=email)
    try:
        await transport.send(Mail(to=email, subject=subject, body=body))
    except Exception:
        logger.exception("Failed to send welcome email to %s", email)
