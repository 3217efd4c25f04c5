"""Quote-to-cash orchestration: quote, acceptance, signing and invoice dispatch.

Each entry point validates state, applies its transition with a conditional
UPDATE, and writes any deferred email to the outbox inside the same
transaction. Confirmation emails sent after a commit never undo it.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Optional
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session, select

from app.core.db import utc_now
from app.core.errors import (
    ConflictError,
    DispatchError,
    NotAvailableError,
    NotFoundError,
    TokenError,
    ValidationError,
)
from app.core.money import format_money
from app.models.domain import Client, Inquiry, Invoice, InvoiceItem, LegalDocument
from app.models.enums import (
    EmailKind,
    InquiryStatus,
    InvoiceStatus,
    LegalDocumentStatus,
    NumberedDocument,
    OutboxTaskKind,
)
from app.services.document_generators import (
    ProviderDetails,
    render_agreement,
    render_invoice_line_items,
    render_standalone_agreement,
)
from app.services.email_service import EmailProvider, EmailReceipt, NotificationDispatcher
from app.services.invoice_service import invoice_attachment, invoice_email_data
from app.services.numbering_service import DocumentNumberingService, with_number_retry
from app.services.outbox_service import OutboxService, TaskHandler
from app.services.pdf_service import BankDetails
from app.services.token_service import QuoteTokenService

logger = logging.getLogger(__name__)


@dataclass
class QuoteResult:
    inquiry: Inquiry
    accept_url: str
    receipt: EmailReceipt


@dataclass
class AcceptanceResult:
    inquiry: Inquiry
    document: LegalDocument
    invoice: Invoice
    client: Client


@dataclass
class SigningResult:
    document: LegalDocument
    invoice_id: Optional[UUID]


class QuoteWorkflowService:
    def __init__(
        self,
        session: Session,
        dispatcher: NotificationDispatcher,
        tokens: QuoteTokenService,
        provider: ProviderDetails,
        base_url: str,
        api_prefix: str = "/api/v1",
        email_delay_s: float = 3,
        invoice_due_days: int = 30,
        admin_email: str = "",
        bank: Optional[BankDetails] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.tokens = tokens
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.email_delay_s = email_delay_s
        self.invoice_due_days = invoice_due_days
        self.admin_email = admin_email
        self.bank = bank
        self.clock = clock
        self.numbering = DocumentNumberingService(session)
        self.outbox = OutboxService(session)

    # Links

    def accept_url(self, inquiry_id: UUID) -> str:
        token = self.tokens.token_for(inquiry_id)
        return f"{self.base_url}{self.api_prefix}/inquiries/accept-quote?id={inquiry_id}&token={token}"

    def sign_url(self, document_id: UUID) -> str:
        return f"{self.base_url}/sign/{document_id}"

    # Quote

    def send_quote(
        self,
        inquiry_id: UUID,
        client_id: UUID,
        final_price_minor: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> QuoteResult:
        """Email the acceptance link. Status is left for the admin to set to QUOTED."""
        inquiry = self._get_inquiry(inquiry_id)
        client = self._get_client(client_id)

        price = final_price_minor if final_price_minor is not None else inquiry.final_price_minor
        if price is None:
            raise ValidationError("No final price set for this inquiry")
        if price < 0:
            raise ValidationError("Final price must not be negative")

        accept_url = self.accept_url(inquiry.id)
        receipt = self.dispatcher.send(
            EmailKind.QUOTE,
            client.primary_email,
            {
                "client_name": client.name,
                "project_type": inquiry.project_type,
                "price": format_money(price, self.provider.currency_symbol),
                "accept_url": accept_url,
                "notes": notes or "",
            },
        )

        inquiry.final_price_minor = price
        inquiry.converted_to_client_id = client.id
        self.session.add(inquiry)
        self.session.commit()
        self.session.refresh(inquiry)

        logger.info("Quote sent", extra={"inquiry_id": str(inquiry.id), "client_id": str(client.id)})
        return QuoteResult(inquiry=inquiry, accept_url=accept_url, receipt=receipt)

    # Acceptance

    def accept_quote(self, inquiry_id: UUID, token: Optional[str]) -> AcceptanceResult:
        if not self.tokens.verify(inquiry_id, token):
            raise TokenError(f"Invalid acceptance token for inquiry {inquiry_id}", public_message="Invalid token")

        inquiry = self._get_inquiry(inquiry_id)
        if inquiry.status == InquiryStatus.ACCEPTED:
            raise ConflictError(
                "Quote has already been accepted",
                public_message="This quote has already been accepted",
            )
        if inquiry.status != InquiryStatus.QUOTED:
            raise ValidationError(
                f"Inquiry is {inquiry.status.value}, expected QUOTED",
                public_message="This quote is not available for acceptance",
            )
        if inquiry.converted_to_client_id is None:
            raise ValidationError(
                "No client linked to this inquiry",
                public_message="This quote is not ready for acceptance",
            )
        if inquiry.final_price_minor is None:
            raise ValidationError(
                "No final price set for this inquiry",
                public_message="This quote is not ready for acceptance",
            )
        client = self._get_client(inquiry.converted_to_client_id)

        document, invoice = self._with_number_retry(lambda: self._record_acceptance(inquiry, client))
        logger.info(
            "Quote accepted",
            extra={
                "inquiry_id": str(inquiry.id),
                "document_number": document.document_number,
                "invoice_number": invoice.invoice_number,
            },
        )

        try:
            self.dispatcher.send(
                EmailKind.ACCEPTANCE_CONFIRMATION,
                client.primary_email,
                {
                    "client_name": client.name,
                    "project_type": inquiry.project_type,
                    "document_number": document.document_number,
                    "invoice_number": invoice.invoice_number,
                    "total": format_money(invoice.total_minor, self.provider.currency_symbol),
                },
            )
        except Exception as exc:
            logger.error(
                "Acceptance confirmation email failed",
                extra={"inquiry_id": str(inquiry.id), "error": str(exc)},
                exc_info=not isinstance(exc, DispatchError),
            )

        return AcceptanceResult(inquiry=inquiry, document=document, invoice=invoice, client=client)

    def _record_acceptance(self, inquiry: Inquiry, client: Client):
        claimed = self.session.execute(
            update(Inquiry)
            .where(Inquiry.id == inquiry.id, Inquiry.status == InquiryStatus.QUOTED)
            .values(status=InquiryStatus.ACCEPTED)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.session.rollback()
            raise ConflictError(
                "Quote has already been accepted",
                public_message="This quote has already been accepted",
            )

        today = self.clock().date()
        document = LegalDocument(
            document_number=self.numbering.next_for_date(NumberedDocument.SERVICE_AGREEMENT, today),
            title=f"Service Agreement - {inquiry.project_type} Website",
            content=render_agreement(client, inquiry, today, self.provider),
            client_id=client.id,
            inquiry_id=inquiry.id,
            jurisdiction=self.provider.jurisdiction,
        )
        self.session.add(document)

        invoice = self._new_invoice(client, inquiry, today)

        # Flush now so a number collision surfaces before the outbox rows are written
        self.session.flush()
        self.outbox.schedule(
            OutboxTaskKind.SIGNING_LINK,
            {"document_id": str(document.id)},
            delay_s=self.email_delay_s,
            idempotency_key=f"signing-link:{document.id}",
            now=self.clock(),
        )
        self.outbox.schedule(
            OutboxTaskKind.INVOICE_NOTICE,
            {"invoice_id": str(invoice.id)},
            delay_s=2 * self.email_delay_s,
            idempotency_key=f"invoice-notice:{invoice.id}",
            now=self.clock(),
        )
        self.session.commit()
        self.session.refresh(inquiry)
        self.session.refresh(document)
        self.session.refresh(invoice)
        return document, invoice

    def _new_invoice(self, client: Client, inquiry: Inquiry, today: date) -> Invoice:
        line_items = render_invoice_line_items(inquiry)
        invoice = Invoice(
            invoice_number=self.numbering.next_for_date(NumberedDocument.INVOICE, today),
            client_id=client.id,
            inquiry_id=inquiry.id,
            issue_date=today,
            due_date=today + timedelta(days=self.invoice_due_days),
            total_minor=sum(item.quantity * item.unit_price_minor for item in line_items),
        )
        self.session.add(invoice)
        for item in line_items:
            self.session.add(
                InvoiceItem(
                    invoice_id=invoice.id,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price_minor=item.unit_price_minor,
                )
            )
        return invoice

    # Signing

    def sign_document(self, document_id: UUID, signature: Optional[str]) -> SigningResult:
        document = self._get_document(document_id)

        if document.status == LegalDocumentStatus.DRAFT:
            raise NotAvailableError(
                "Document not available for signing",
                public_message="Document not available for signing",
            )
        if document.status == LegalDocumentStatus.ACKNOWLEDGED:
            raise ConflictError(
                "Document has already been signed",
                public_message="Document has already been signed",
            )
        if document.status in (LegalDocumentStatus.EXPIRED, LegalDocumentStatus.VOIDED):
            raise NotAvailableError(
                f"Document is {document.status.value}",
                public_message="Document not available for signing",
            )
        if not signature or not signature.strip():
            raise ValidationError("Signature is required", public_message="Signature is required")

        signed_at = self.clock()
        result = self.session.execute(
            update(LegalDocument)
            .where(LegalDocument.id == document.id, LegalDocument.status == LegalDocumentStatus.SENT)
            .values(
                status=LegalDocumentStatus.ACKNOWLEDGED,
                client_signature=signature,
                acknowledged_at=signed_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            raise ConflictError(
                "Document has already been signed",
                public_message="Document has already been signed",
            )

        invoice = self._invoice_for_document(document)
        if invoice is not None:
            self.outbox.schedule(
                OutboxTaskKind.INVOICE_DISPATCH,
                {"invoice_id": str(invoice.id)},
                delay_s=self.email_delay_s,
                idempotency_key=f"invoice-dispatch:{document.id}",
                now=self.clock(),
            )
        else:
            logger.warning("No invoice found to dispatch after signing", extra={"document_id": str(document.id)})

        self.session.commit()
        self.session.refresh(document)
        logger.info("Document signed", extra={"document_id": str(document.id)})

        self._send_signed_confirmations(document)
        return SigningResult(document=document, invoice_id=invoice.id if invoice else None)

    def _invoice_for_document(self, document: LegalDocument) -> Optional[Invoice]:
        if document.inquiry_id is not None:
            invoice = self.session.exec(
                select(Invoice)
                .where(Invoice.inquiry_id == document.inquiry_id, Invoice.status == InvoiceStatus.UNPAID)
                .order_by(Invoice.created_at.desc())
            ).first()
            if invoice is not None:
                return invoice
        return self.session.exec(
            select(Invoice)
            .where(Invoice.client_id == document.client_id, Invoice.status == InvoiceStatus.UNPAID)
            .order_by(Invoice.created_at.desc())
        ).first()

    def _send_signed_confirmations(self, document: LegalDocument) -> None:
        client = document.client
        data = {
            "client_name": client.name,
            "client_email": client.primary_email,
            "title": document.title,
            "document_number": document.document_number,
            "signed_at": f"{document.acknowledged_at:%d/%m/%Y %H:%M} UTC",
        }
        for kind, recipient in (
            (EmailKind.SIGNED_CLIENT, client.primary_email),
            (EmailKind.SIGNED_ADMIN, self.admin_email),
        ):
            try:
                self.dispatcher.send(kind, recipient, data)
            except Exception as exc:
                logger.error(
                    "Signing confirmation email failed",
                    extra={"document_id": str(document.id), "kind": kind.value, "error": str(exc)},
                    exc_info=not isinstance(exc, DispatchError),
                )

    # Agreements

    def send_legal_document(self, document_id: UUID) -> LegalDocument:
        """Email the signing link; DRAFT moves to SENT, a SENT document is re-sent."""
        document = self._get_document(document_id)
        if document.status not in (LegalDocumentStatus.DRAFT, LegalDocumentStatus.SENT):
            raise ConflictError(f"Document is {document.status.value} and cannot be sent")

        client = document.client
        self.dispatcher.send(
            EmailKind.SIGNING_LINK,
            client.primary_email,
            {
                "client_name": client.name,
                "title": document.title,
                "document_number": document.document_number,
                "sign_url": self.sign_url(document.id),
            },
        )

        result = self.session.execute(
            update(LegalDocument)
            .where(
                LegalDocument.id == document.id,
                LegalDocument.status.in_([LegalDocumentStatus.DRAFT, LegalDocumentStatus.SENT]),
            )
            .values(status=LegalDocumentStatus.SENT, sent_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        if result.rowcount != 1:
            raise ConflictError("Document changed state while the signing link was being sent")

        self.session.refresh(document)
        logger.info("Signing link sent", extra={"document_id": str(document.id)})
        return document

    def create_service_agreement(
        self,
        client_id: UUID,
        title: str,
        description: Optional[str] = None,
        estimated_value_minor: Optional[int] = None,
        timeline: Optional[str] = None,
    ) -> LegalDocument:
        client = self._get_client(client_id)
        if not title or not title.strip():
            raise ValidationError("Title is required")
        if estimated_value_minor is not None and estimated_value_minor < 0:
            raise ValidationError("Estimated value must not be negative")

        def create() -> LegalDocument:
            today = self.clock().date()
            document = LegalDocument(
                document_number=self.numbering.next_for_date(NumberedDocument.SERVICE_AGREEMENT, today),
                title=title.strip(),
                content=render_standalone_agreement(
                    client, title.strip(), description, estimated_value_minor, timeline, today, self.provider
                ),
                client_id=client.id,
                jurisdiction=self.provider.jurisdiction,
            )
            self.session.add(document)
            self.session.commit()
            self.session.refresh(document)
            return document

        document = self._with_number_retry(create)
        logger.info("Service agreement created", extra={"document_number": document.document_number})
        return document

    # Invoices

    def dispatch_invoice(self, invoice_id: UUID) -> Invoice:
        """Email the invoice PDF to the client, copying the admin inbox."""
        invoice = self._get_invoice(invoice_id)
        if invoice.status in (InvoiceStatus.CANCELLED, InvoiceStatus.PAID):
            raise ConflictError(f"Cannot send a {invoice.status.value} invoice")

        client = invoice.client
        self.dispatcher.send(
            EmailKind.INVOICE,
            client.primary_email,
            invoice_email_data(invoice, client, self.provider.currency_symbol),
            attachments=[invoice_attachment(invoice, client, self.provider, self.bank)],
            cc=[self.admin_email],
        )

        invoice.sent_at = self.clock()
        invoice.updated_at = invoice.sent_at
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)
        logger.info("Invoice sent", extra={"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number})
        return invoice

    def send_invoice_notice(self, invoice_id: UUID) -> EmailReceipt:
        invoice = self._get_invoice(invoice_id)
        client = invoice.client
        return self.dispatcher.send(
            EmailKind.INVOICE_NOTICE,
            client.primary_email,
            invoice_email_data(invoice, client, self.provider.currency_symbol),
        )

    def task_handlers(self) -> Dict[OutboxTaskKind, TaskHandler]:
        return {
            OutboxTaskKind.SIGNING_LINK: lambda payload: self.send_legal_document(UUID(payload["document_id"])),
            OutboxTaskKind.INVOICE_NOTICE: lambda payload: self.send_invoice_notice(UUID(payload["invoice_id"])),
            OutboxTaskKind.INVOICE_DISPATCH: lambda payload: self.dispatch_invoice(UUID(payload["invoice_id"])),
        }

    # Lookups

    def _with_number_retry(self, operation):
        return with_number_retry(self.session, operation)

    def _get_inquiry(self, inquiry_id: UUID) -> Inquiry:
        inquiry = self.session.get(Inquiry, inquiry_id)
        if inquiry is None:
            raise NotFoundError(f"Inquiry {inquiry_id} not found", public_message="Quote not found")
        return inquiry

    def _get_client(self, client_id: UUID) -> Client:
        client = self.session.get(Client, client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found", public_message="Client not found")
        return client

    def _get_document(self, document_id: UUID) -> LegalDocument:
        document = self.session.get(LegalDocument, document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found", public_message="Document not found")
        return document

    def _get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found", public_message="Invoice not found")
        return invoice


def build_quote_workflow(session: Session, settings, email_provider: EmailProvider) -> QuoteWorkflowService:
    """Wire a workflow service from settings."""
    provider = ProviderDetails.from_settings(settings)
    return QuoteWorkflowService(
        session=session,
        dispatcher=NotificationDispatcher(email_provider, provider_name=provider.name),
        tokens=QuoteTokenService(
            settings.QUOTE_TOKEN_SECRET.get_secret_value(),
            length=settings.QUOTE_TOKEN_LENGTH,
        ),
        provider=provider,
        base_url=settings.BASE_URL,
        api_prefix=settings.API_V1_STR,
        email_delay_s=settings.EMAIL_SEND_DELAY_SECONDS,
        invoice_due_days=settings.INVOICE_DUE_DAYS,
        admin_email=settings.admin_email,
        bank=BankDetails.from_settings(settings),
    )
