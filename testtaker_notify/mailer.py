"""
Notification delivery.

Each sender makes a single delivery attempt and raises NotificationError
on failure. Retrying is left to the operator.
"""

import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from rich.console import Console

from testtaker_notify.config import Config, SmtpSettings
from testtaker_notify.exceptions import NotificationError
from testtaker_notify.models import Email, EmailAddress

console = Console()


class LogSender:
    """Prints messages to the console instead of delivering them."""

    def __init__(self, output: Console = console):
        self.output = output

    def send(self, to: EmailAddress, sender: EmailAddress, email: Email) -> None:
        self.output.print(f"[green]✉  to:[/green] {formataddr((to.name, to.address))}")
        self.output.print(f"[dim]   from: {formataddr((sender.name, sender.address))}[/dim]")
        self.output.print(f"[dim]   subject: {email.subject}[/dim]")


class SmtpSender:
    """Delivers messages through an SMTP relay."""

    def __init__(self, settings: SmtpSettings, timeout: float = 30.0):
        self.settings = settings
        self.timeout = timeout

    def build_message(self, to: EmailAddress, sender: EmailAddress, email: Email) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((sender.name, sender.address))
        message["To"] = formataddr((to.name, to.address))
        message["Subject"] = email.subject
        message.set_content(email.body)
        return message

    def send(self, to: EmailAddress, sender: EmailAddress, email: Email) -> None:
        message = self.build_message(to, sender, email)
        try:
            with smtplib.SMTP(self.settings.host, self.settings.port, timeout=self.timeout) as smtp:
                if self.settings.use_tls:
                    smtp.starttls()
                if self.settings.username:
                    smtp.login(self.settings.username, self.settings.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"could not send email to {to.address}: {e}") from e


def create_notifier(config: Config):
    """Build the notifier selected by config.mailer."""
    if config.mailer == "smtp":
        return SmtpSender(config.smtp, timeout=config.request_timeout)
    return LogSender()
