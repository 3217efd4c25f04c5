"""Request and response models for the HTTP API.

Money crosses the API in major units (Decimal pounds); services work in
integer minor units.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic import Field as PydanticField
from sqlmodel import Field, SQLModel

from app.models.enums import (
    InquiryStatus,
    InvoiceStatus,
    LegalDocumentStatus,
    OutboxTaskKind,
    OutboxTaskStatus,
    Timeline,
)


class SendQuoteRequest(SQLModel):
    """Request model for send-quote endpoint."""
    inquiry_id: UUID
    client_id: UUID
    final_price: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None


class SendQuoteResponse(SQLModel):
    """Response model for send-quote endpoint."""
    success: bool = True
    inquiry_id: UUID
    accept_url: str
    message_id: str


class InquiryUpdateRequest(SQLModel):
    """Request model for the generic inquiry update."""
    status: Optional[InquiryStatus] = None
    final_price: Optional[Decimal] = Field(default=None, ge=0)
    converted_to_client_id: Optional[UUID] = None


class InquiryResponse(SQLModel):
    id: UUID
    name: str
    email: str
    company: Optional[str] = None
    project_type: str
    project_goal: str
    timeline: Optional[Timeline] = None
    status: InquiryStatus
    final_price: Optional[Decimal] = None
    quoted_at: Optional[datetime] = None
    converted_to_client_id: Optional[UUID] = None


class CreateAgreementRequest(SQLModel):
    """Request model for a standalone service agreement."""
    client_id: UUID
    title: str
    description: Optional[str] = None
    estimated_value: Optional[Decimal] = Field(default=None, ge=0)
    timeline: Optional[Timeline] = None


class SendLegalDocumentRequest(SQLModel):
    document_id: UUID


class LegalDocumentResponse(SQLModel):
    id: UUID
    document_number: str
    title: str
    status: LegalDocumentStatus
    client_id: UUID
    inquiry_id: Optional[UUID] = None
    sent_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    created_at: datetime


class PublicLegalDocumentResponse(SQLModel):
    """What a client sees on the signing page."""
    id: UUID
    document_number: str
    title: str
    content: str
    status: LegalDocumentStatus
    client_name: str
    jurisdiction: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    created_at: datetime


class SignDocumentRequest(SQLModel):
    signature: str


class SignDocumentResponse(SQLModel):
    success: bool = True
    document_id: UUID
    status: LegalDocumentStatus
    acknowledged_at: Optional[datetime] = None


class InvoiceSummary(SQLModel):
    id: UUID
    invoice_number: str
    client_id: UUID
    client_name: Optional[str] = None
    issue_date: date
    due_date: date
    total: Decimal
    amount_paid: Decimal
    status: InvoiceStatus
    payment_method: Optional[str] = None
    sent_at: Optional[datetime] = None


class InvoiceStatsResponse(SQLModel):
    total_invoiced: Decimal
    total_paid: Decimal
    total_unpaid: Decimal
    total_overdue: Decimal
    invoice_count: int
    paid_count: int
    overdue_count: int


class InvoiceListResponse(SQLModel):
    """Response model for invoice list endpoint."""
    invoices: List[InvoiceSummary] = Field(default_factory=list)
    stats: InvoiceStatsResponse


class InvoiceStatusRequest(SQLModel):
    invoice_id: UUID
    status: InvoiceStatus


class InvoiceActionRequest(SQLModel):
    invoice_id: UUID


class InvoiceActionResponse(SQLModel):
    success: bool = True
    invoice_id: UUID
    message: str


class InvoiceLineRequest(SQLModel):
    description: str
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(ge=0)


class GenerateInvoiceRequest(SQLModel):
    """Request model for an ad-hoc invoice; ``send`` emails it immediately."""
    client_id: UUID
    items: List[InvoiceLineRequest]
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    send: bool = True


class GenerateInvoiceResponse(SQLModel):
    success: bool = True
    invoice: InvoiceSummary
    message: str


class PaymentStatusRequest(SQLModel):
    """Sent by the payment success page after Stripe confirms the charge."""
    invoice_id: UUID
    payment_intent_id: str


class PaymentStatusResponse(SQLModel):
    success: bool = True
    invoice_id: UUID
    invoice_number: str
    status: InvoiceStatus
    message: str


class PublicClientDetails(SQLModel):
    name: str
    email: str
    address: str


class PublicInvoiceItem(SQLModel):
    description: str
    quantity: int
    price: Decimal
    total: Decimal


class PublicInvoiceResponse(SQLModel):
    """What the payment page shows for an invoice number."""
    id: UUID
    invoice_number: str
    issue_date: date
    due_date: date
    status: InvoiceStatus
    total: Decimal
    amount_paid: Decimal
    balance: Decimal
    notes: Optional[str] = None
    paid_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    client: Optional[PublicClientDetails] = None
    items: List[PublicInvoiceItem] = Field(default_factory=list)


class PaymentIntentRequest(BaseModel):
    """Either an invoice to settle or a free amount in major units."""
    # Plain pydantic: SQLModel reserves the `metadata` attribute
    invoice_id: Optional[UUID] = None
    amount: Optional[Decimal] = PydanticField(default=None, gt=0)
    currency: Optional[str] = None
    metadata: Dict[str, str] = PydanticField(default_factory=dict)


class PaymentIntentResponse(SQLModel):
    client_secret: str
    payment_intent_id: str


class WebhookResponse(SQLModel):
    received: bool = True
    outcome: str


class OutboxTaskResponse(SQLModel):
    id: UUID
    kind: OutboxTaskKind
    status: OutboxTaskStatus
    idempotency_key: str
    run_after: datetime
    attempts: int
    last_error: Optional[str] = None
    completed_at: Optional[datetime] = None
