import smtplib
from unittest.mock import MagicMock, patch

import pytest

from app.core.errors import DispatchError
from app.models.enums import EmailKind
from app.services import email_templates
from app.services.email_service import Attachment, NotificationDispatcher, OutgoingEmail, SmtpEmailProvider
from tests.utils.test_utils import FakeEmailProvider


class TestEmailTemplates:
    """Test cases for the email template registry."""

    def test_every_kind_has_a_template(self):
        assert email_templates.registered_kinds() == set(EmailKind)

    def test_quote_template_escapes_html(self):
        rendered = email_templates.render(
            EmailKind.QUOTE,
            {
                "client_name": "<b>Jane</b>",
                "project_type": "E-commerce",
                "price": "£1,500.00",
                "accept_url": "https://studio.example.com/accept?id=1&token=abc",
                "notes": "",
                "provider_name": "Freelance Studio",
            },
        )

        assert "&lt;b&gt;Jane&lt;/b&gt;" in rendered.html
        assert "<b>Jane</b>" in rendered.text
        assert "£1,500.00" in rendered.text
        assert "https://studio.example.com/accept?id=1&token=abc" in rendered.text

    def test_missing_field_raises_key_error(self):
        with pytest.raises(KeyError):
            email_templates.render(EmailKind.SIGNING_LINK, {"client_name": "Jane"})


class TestNotificationDispatcher:
    """Test cases for the NotificationDispatcher."""

    def signing_data(self):
        return {
            "client_name": "Jane",
            "title": "Service Agreement",
            "document_number": "SA-2610-001",
            "sign_url": "https://studio.example.com/sign/1",
        }

    def test_send_success(self):
        provider = FakeEmailProvider()
        dispatcher = NotificationDispatcher(provider, provider_name="Freelance Studio")

        receipt = dispatcher.send(EmailKind.SIGNING_LINK, "jane@acme.test", self.signing_data())

        assert receipt.kind == EmailKind.SIGNING_LINK
        assert receipt.recipient == "jane@acme.test"
        assert receipt.message_id == "<message-1@test>"
        assert provider.sent[0].subject == "Please sign: Service Agreement"
        assert "Freelance Studio" in provider.sent[0].text

    def test_cc_excludes_recipient_and_blanks(self):
        provider = FakeEmailProvider()
        dispatcher = NotificationDispatcher(provider)

        dispatcher.send(
            EmailKind.SIGNING_LINK,
            "jane@acme.test",
            self.signing_data(),
            cc=["jane@acme.test", "", "admin@example.com"],
        )

        assert provider.sent[0].cc == ["admin@example.com"]

    def test_provider_failure_raises_dispatch_error(self):
        provider = FakeEmailProvider()
        provider.failing = True
        dispatcher = NotificationDispatcher(provider)

        with pytest.raises(DispatchError):
            dispatcher.send(EmailKind.SIGNING_LINK, "jane@acme.test", self.signing_data())

    def test_missing_template_data_raises_dispatch_error(self):
        dispatcher = NotificationDispatcher(FakeEmailProvider())

        with pytest.raises(DispatchError):
            dispatcher.send(EmailKind.INVOICE, "jane@acme.test", {"client_name": "Jane"})

    def test_empty_recipient_raises_dispatch_error(self):
        dispatcher = NotificationDispatcher(FakeEmailProvider())

        with pytest.raises(DispatchError):
            dispatcher.send(EmailKind.SIGNING_LINK, "", self.signing_data())


class TestSmtpEmailProvider:
    """Test cases for the SMTP provider."""

    def make_provider(self):
        return SmtpEmailProvider(
            server="smtp.example.com",
            port=587,
            username="studio@example.com",
            password="pw",
            timeout_s=5.0,
        )

    def make_email(self):
        return OutgoingEmail(
            to="jane@acme.test",
            subject="Invoice INV-2026-001",
            text="plain",
            html="<p>html</p>",
            cc=["admin@example.com"],
            attachments=[Attachment(filename="INV-2026-001.pdf", content=b"%PDF-1.4")],
        )

    def test_build_message(self):
        msg = self.make_provider().build_message(self.make_email())

        assert msg["To"] == "jane@acme.test"
        assert msg["Cc"] == "admin@example.com"
        assert msg["From"] == "studio@example.com"
        assert msg["Message-ID"]
        attachments = list(msg.iter_attachments())
        assert attachments[0].get_filename() == "INV-2026-001.pdf"

    @patch("app.services.email_service.smtplib.SMTP")
    def test_deliver_uses_starttls_and_timeout(self, mock_smtp):
        smtp = MagicMock()
        mock_smtp.return_value.__enter__.return_value = smtp

        message_id = self.make_provider().deliver(self.make_email())

        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=5.0)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("studio@example.com", "pw")
        smtp.send_message.assert_called_once()
        assert message_id

    @patch("app.services.email_service.smtplib.SMTP")
    def test_smtp_error_becomes_dispatch_error(self, mock_smtp):
        mock_smtp.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPException("boom")
        dispatcher = NotificationDispatcher(self.make_provider())

        with pytest.raises(DispatchError):
            dispatcher.send(
                EmailKind.SIGNING_LINK,
                "jane@acme.test",
                {
                    "client_name": "Jane",
                    "title": "Service Agreement",
                    "document_number": "SA-2610-001",
                    "sign_url": "https://studio.example.com/sign/1",
                },
            )
