"""Initialize services package."""

from .client_service import ClientService
from .email_service import NotificationDispatcher, SmtpEmailProvider
from .inquiry_service import InquiryService
from .invoice_service import InvoiceService
from .numbering_service import DocumentNumberingService
from .outbox_service import OutboxService, OutboxWorker
from .payment_service import PaymentService
from .token_service import QuoteTokenService
from .workflow_service import QuoteWorkflowService
