"""Outbound email: provider abstraction, SMTP provider and kind-based dispatcher."""

import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, List, Mapping, Optional, Protocol

from app.core.errors import DispatchError
from app.models.enums import EmailKind
from app.services import email_templates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: str
    cc: List[str] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)


@dataclass(frozen=True)
class EmailReceipt:
    kind: EmailKind
    recipient: str
    message_id: str


class EmailProvider(Protocol):
    """Delivers one message and returns its provider message id."""

    def deliver(self, email: OutgoingEmail) -> str:
        ...


class SmtpEmailProvider:
    """SMTP delivery with STARTTLS and a bounded connect/read timeout."""

    def __init__(
        self,
        server: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        timeout_s: float = 10.0,
        sender: Optional[str] = None,
    ):
        self.server = server
        self.port = port
        self.username = username
        self._password = password
        self.use_tls = use_tls
        self.timeout_s = timeout_s
        self.sender = sender or username

    @classmethod
    def from_settings(cls, settings) -> "SmtpEmailProvider":
        return cls(
            server=settings.MAIL_SERVER,
            port=settings.MAIL_PORT,
            username=settings.MAIL_USERNAME,
            password=settings.MAIL_PASSWORD.get_secret_value(),
            use_tls=settings.MAIL_USE_TLS,
            timeout_s=settings.EMAIL_TIMEOUT_S,
            sender=settings.MAIL_USERNAME,
        )

    def build_message(self, email: OutgoingEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = email.subject
        msg["From"] = self.sender
        msg["To"] = email.to
        if email.cc:
            msg["Cc"] = ", ".join(email.cc)
        msg["Message-ID"] = make_msgid()

        msg.set_content(email.text)
        msg.add_alternative(email.html, subtype="html")
        for attachment in email.attachments:
            maintype, subtype = attachment.mime_type.split("/", 1)
            msg.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype,
                filename=attachment.filename,
            )
        return msg

    def deliver(self, email: OutgoingEmail) -> str:
        msg = self.build_message(email)
        with smtplib.SMTP(self.server, self.port, timeout=self.timeout_s) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self._password)
            smtp.send_message(msg)
        return msg["Message-ID"]


class NotificationDispatcher:
    """Render the template for an email kind and hand it to the provider.

    Every failure (template data, SMTP, network) surfaces as DispatchError;
    nothing is retried here.
    """

    def __init__(self, provider: EmailProvider, provider_name: str = ""):
        self.provider = provider
        self.provider_name = provider_name

    def send(
        self,
        kind: EmailKind,
        recipient: str,
        data: Mapping[str, Any],
        attachments: Optional[List[Attachment]] = None,
        cc: Optional[List[str]] = None,
    ) -> EmailReceipt:
        if not recipient:
            raise DispatchError(f"No recipient for {kind.value} email")

        context = {"provider_name": self.provider_name, **data}
        try:
            rendered = email_templates.render(kind, context)
        except KeyError as exc:
            raise DispatchError(f"Template data for {kind.value} is missing {exc}") from exc

        email = OutgoingEmail(
            to=recipient,
            subject=rendered.subject,
            text=rendered.text,
            html=rendered.html,
            cc=[address for address in (cc or []) if address and address != recipient],
            attachments=list(attachments or []),
        )
        try:
            message_id = self.provider.deliver(email)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "Email delivery failed",
                extra={"kind": kind.value, "recipient": recipient, "error": str(exc)},
            )
            raise DispatchError(f"Failed to send {kind.value} email to {recipient}: {exc}") from exc

        logger.info("Email sent", extra={"kind": kind.value, "recipient": recipient, "message_id": message_id})
        return EmailReceipt(kind=kind, recipient=recipient, message_id=message_id)
