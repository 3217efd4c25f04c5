"""Invoice administration: ad-hoc invoices, listing with derived overdue state,
manual status, reminders and the public lookup the payment page reads.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlmodel import Session, select

from app.core.db import utc_now
from app.core.errors import NotFoundError, ValidationError
from app.core.money import format_money
from app.models.domain import Client, Invoice, InvoiceItem
from app.models.enums import EmailKind, InvoiceStatus, NumberedDocument
from app.services.document_generators import LineItem, ProviderDetails
from app.services.email_service import Attachment, EmailReceipt, NotificationDispatcher
from app.services.numbering_service import DocumentNumberingService, with_number_retry
from app.services.pdf_service import BankDetails, render_invoice_pdf

logger = logging.getLogger(__name__)


@dataclass
class InvoiceView:
    invoice: Invoice
    client: Optional[Client]
    effective_status: InvoiceStatus


@dataclass
class InvoiceStats:
    total_invoiced_minor: int = 0
    total_paid_minor: int = 0
    total_unpaid_minor: int = 0
    total_overdue_minor: int = 0
    invoice_count: int = 0
    paid_count: int = 0
    overdue_count: int = 0


def effective_status(invoice: Invoice, today: date) -> InvoiceStatus:
    """UNPAID past its due date reads as OVERDUE; nothing else is derived."""
    if invoice.status == InvoiceStatus.UNPAID and invoice.due_date < today:
        return InvoiceStatus.OVERDUE
    return invoice.status


def invoice_email_data(invoice: Invoice, client: Client, currency_symbol: str = "£") -> Dict[str, str]:
    return {
        "client_name": client.name,
        "invoice_number": invoice.invoice_number,
        "total": format_money(invoice.total_minor, currency_symbol),
        "balance": format_money(invoice.balance_minor, currency_symbol),
        "due_date": f"{invoice.due_date:%d/%m/%Y}",
    }


def invoice_attachment(invoice: Invoice, client: Client, provider: ProviderDetails, bank: Optional[BankDetails]) -> Attachment:
    return Attachment(
        filename=f"{invoice.invoice_number}.pdf",
        content=render_invoice_pdf(invoice, client, provider, bank),
    )


class InvoiceService:
    def __init__(
        self,
        session: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        provider: Optional[ProviderDetails] = None,
        bank: Optional[BankDetails] = None,
        admin_email: str = "",
        invoice_due_days: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.provider = provider
        self.bank = bank
        self.admin_email = admin_email
        self.invoice_due_days = invoice_due_days
        self.clock = clock
        self.numbering = DocumentNumberingService(session)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found", public_message="Invoice not found")
        return invoice

    def get_by_number(self, invoice_number: str) -> InvoiceView:
        """Public lookup; numbers are matched case-insensitively."""
        number = (invoice_number or "").strip().upper()
        invoice = self.session.exec(select(Invoice).where(Invoice.invoice_number == number)).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {number} not found", public_message="Invoice not found")
        return InvoiceView(
            invoice=invoice,
            client=invoice.client,
            effective_status=effective_status(invoice, self.clock().date()),
        )

    def create_invoice(
        self,
        client_id: UUID,
        items: Sequence[LineItem],
        issue_date: Optional[date] = None,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
        send: bool = True,
    ) -> Invoice:
        """Number and store an invoice for arbitrary line items.

        With ``send`` the PDF is emailed straight away. A failed email raises
        ``DispatchError`` but the invoice stays stored and can be re-sent.
        """
        client = self.session.get(Client, client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found", public_message="Client not found")
        if not items:
            raise ValidationError("At least one line item is required")
        for item in items:
            if not item.description or not item.description.strip():
                raise ValidationError("Every line item needs a description")
            if item.quantity < 1:
                raise ValidationError("Line item quantity must be at least 1")
            if item.unit_price_minor < 0:
                raise ValidationError("Line item price must not be negative")

        issue_date = issue_date or self.clock().date()
        due_date = due_date or issue_date + timedelta(days=self.invoice_due_days)
        if due_date < issue_date:
            raise ValidationError("Due date must not be before the issue date")

        def create() -> Invoice:
            invoice = Invoice(
                invoice_number=self.numbering.next_for_date(NumberedDocument.INVOICE, issue_date),
                client_id=client_id,
                issue_date=issue_date,
                due_date=due_date,
                total_minor=sum(item.quantity * item.unit_price_minor for item in items),
                notes=notes,
            )
            self.session.add(invoice)
            for item in items:
                self.session.add(
                    InvoiceItem(
                        invoice_id=invoice.id,
                        description=item.description.strip(),
                        quantity=item.quantity,
                        unit_price_minor=item.unit_price_minor,
                    )
                )
            self.session.commit()
            self.session.refresh(invoice)
            return invoice

        invoice = with_number_retry(self.session, create)
        logger.info(
            "Invoice created",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "total_minor": invoice.total_minor,
            },
        )

        if send:
            self._send_invoice(invoice)
        return invoice

    def _send_invoice(self, invoice: Invoice) -> None:
        client = invoice.client
        self.dispatcher.send(
            EmailKind.INVOICE,
            client.primary_email,
            invoice_email_data(invoice, client, self.provider.currency_symbol),
            attachments=[invoice_attachment(invoice, client, self.provider, self.bank)],
            cc=[self.admin_email] if self.admin_email else None,
        )
        invoice.sent_at = self.clock()
        invoice.updated_at = invoice.sent_at
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)
        logger.info("Invoice sent", extra={"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number})

    def list_invoices(self, today: Optional[date] = None) -> Tuple[List[InvoiceView], InvoiceStats]:
        today = today or utc_now().date()
        invoices = self.session.exec(select(Invoice).order_by(Invoice.created_at.desc())).all()

        views: List[InvoiceView] = []
        stats = InvoiceStats()
        for invoice in invoices:
            status = effective_status(invoice, today)
            views.append(InvoiceView(invoice=invoice, client=invoice.client, effective_status=status))

            stats.invoice_count += 1
            if status == InvoiceStatus.CANCELLED:
                continue
            stats.total_invoiced_minor += invoice.total_minor
            stats.total_paid_minor += min(invoice.amount_paid_minor, invoice.total_minor)
            if status == InvoiceStatus.PAID:
                stats.paid_count += 1
                continue
            stats.total_unpaid_minor += invoice.balance_minor
            if status == InvoiceStatus.OVERDUE:
                stats.overdue_count += 1
                stats.total_overdue_minor += invoice.balance_minor

        return views, stats

    def update_status(self, invoice_id: UUID, status: InvoiceStatus) -> Invoice:
        """Manual admin override of the stored status."""
        if status == InvoiceStatus.OVERDUE:
            raise ValidationError("OVERDUE is derived from the due date and cannot be set manually")

        invoice = self.get_invoice(invoice_id)
        previous = invoice.status
        invoice.status = status
        if status == InvoiceStatus.PAID:
            invoice.paid_date = invoice.paid_date or utc_now()
        else:
            invoice.paid_date = None
        invoice.updated_at = utc_now()

        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)
        logger.info(
            "Invoice status updated",
            extra={"invoice_id": str(invoice.id), "from": previous.value, "to": status.value},
        )
        return invoice

    def send_reminder(self, invoice_id: UUID) -> EmailReceipt:
        invoice = self.get_invoice(invoice_id)
        if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise ValidationError(f"Cannot send a reminder for a {invoice.status.value} invoice")

        client = invoice.client
        receipt = self.dispatcher.send(
            EmailKind.INVOICE_REMINDER,
            client.primary_email,
            invoice_email_data(invoice, client, self.provider.currency_symbol),
            attachments=[invoice_attachment(invoice, client, self.provider, self.bank)],
        )
        logger.info("Invoice reminder sent", extra={"invoice_id": str(invoice.id)})
        return receipt
