"""Status and kind enumerations shared by models and services."""

from enum import Enum


class InquiryStatus(str, Enum):
    NEW = "NEW"
    QUOTED = "QUOTED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    ARCHIVED = "ARCHIVED"


class Timeline(str, Enum):
    RUSH = "rush"
    NORMAL = "normal"
    FLEXIBLE = "flexible"


class DocumentType(str, Enum):
    SERVICE_AGREEMENT = "SERVICE_AGREEMENT"


class LegalDocumentStatus(str, Enum):
    """DRAFT -> SENT -> ACKNOWLEDGED; EXPIRED and VOIDED are terminal."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    EXPIRED = "EXPIRED"
    VOIDED = "VOIDED"


class InvoiceStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    STRIPE = "STRIPE"
    BANK_TRANSFER = "BANK_TRANSFER"


class NumberedDocument(str, Enum):
    """Document families that draw from their own number sequence."""

    SERVICE_AGREEMENT = "SERVICE_AGREEMENT"
    INVOICE = "INVOICE"


class EmailKind(str, Enum):
    QUOTE = "QUOTE"
    ACCEPTANCE_CONFIRMATION = "ACCEPTANCE_CONFIRMATION"
    SIGNING_LINK = "SIGNING_LINK"
    INVOICE_NOTICE = "INVOICE_NOTICE"
    SIGNED_CLIENT = "SIGNED_CLIENT"
    SIGNED_ADMIN = "SIGNED_ADMIN"
    INVOICE = "INVOICE"
    INVOICE_REMINDER = "INVOICE_REMINDER"


class OutboxTaskKind(str, Enum):
    SIGNING_LINK = "signing_link"
    INVOICE_NOTICE = "invoice_notice"
    INVOICE_DISPATCH = "invoice_dispatch"


class OutboxTaskStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"
