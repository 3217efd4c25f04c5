"""Domain models for the quote-to-cash workflow."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, Field, Relationship, SQLModel, Text

from app.core.db import UTCDateTime, utc_now
from app.core.money import to_major
from app.models.enums import (
    DocumentType,
    InquiryStatus,
    InvoiceStatus,
    LegalDocumentStatus,
    PaymentMethod,
    Timeline,
)


class Client(SQLModel, table=True):
    """Billing party. Email addresses are normalized to a non-empty list."""

    __tablename__ = "clients"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    emails: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    address: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))

    # Relationships
    legal_documents: list["LegalDocument"] = Relationship(back_populates="client")
    invoices: list["Invoice"] = Relationship(back_populates="client")

    @property
    def primary_email(self) -> str:
        return self.emails[0]


class Inquiry(SQLModel, table=True):
    """A prospective project lead."""

    __tablename__ = "inquiries"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    email: str
    company: Optional[str] = None
    project_type: str
    project_goal: str
    target_audience: Optional[str] = None
    timeline: Optional[Timeline] = None
    status: InquiryStatus = Field(default=InquiryStatus.NEW, index=True)
    final_price_minor: Optional[int] = Field(default=None, ge=0)
    quoted_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    converted_to_client_id: Optional[UUID] = Field(default=None, foreign_key="clients.id")
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))


class LegalDocument(SQLModel, table=True):
    """Service agreement presented to a client for signature."""

    __tablename__ = "legal_documents"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    document_number: str = Field(unique=True, index=True)
    title: str
    document_type: DocumentType = Field(default=DocumentType.SERVICE_AGREEMENT)
    content: str = Field(sa_column=Column(Text, nullable=False))
    status: LegalDocumentStatus = Field(default=LegalDocumentStatus.DRAFT, index=True)
    client_id: UUID = Field(foreign_key="clients.id", index=True)
    inquiry_id: Optional[UUID] = Field(default=None, foreign_key="inquiries.id")
    jurisdiction: Optional[str] = None
    client_signature: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    sent_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    acknowledged_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))

    # Relationships
    client: Optional[Client] = Relationship(back_populates="legal_documents")


class Invoice(SQLModel, table=True):
    """Billable instrument. Money fields are integer minor units."""

    __tablename__ = "invoices"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    invoice_number: str = Field(unique=True, index=True)
    client_id: UUID = Field(foreign_key="clients.id", index=True)
    inquiry_id: Optional[UUID] = Field(default=None, foreign_key="inquiries.id")
    issue_date: date
    due_date: date
    total_minor: int = Field(ge=0)
    amount_paid_minor: int = Field(default=0, ge=0)
    status: InvoiceStatus = Field(default=InvoiceStatus.UNPAID, index=True)
    paid_date: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    sent_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))

    # Relationships
    client: Optional[Client] = Relationship(back_populates="invoices")
    items: list["InvoiceItem"] = Relationship(back_populates="invoice")

    @property
    def total(self) -> Decimal:
        return to_major(self.total_minor)

    @property
    def amount_paid(self) -> Decimal:
        return to_major(self.amount_paid_minor)

    @property
    def balance_minor(self) -> int:
        return max(self.total_minor - self.amount_paid_minor, 0)


class InvoiceItem(SQLModel, table=True):
    """Invoice line."""

    __tablename__ = "invoice_items"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    invoice_id: UUID = Field(foreign_key="invoices.id", index=True)
    description: str
    quantity: int = Field(default=1, ge=1)
    unit_price_minor: int = Field(ge=0)

    # Relationships
    invoice: Optional[Invoice] = Relationship(back_populates="items")

    @property
    def line_total_minor(self) -> int:
        return self.quantity * self.unit_price_minor
