"""Stripe payment intents and webhook reconciliation against invoices."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

import stripe
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.db import utc_now
from app.core.errors import (
    NotFoundError,
    PaymentProviderError,
    ValidationError,
    WebhookSignatureError,
)
from app.models.domain import Invoice
from app.models.enums import InvoiceStatus, PaymentMethod
from app.models.outbox import ProcessedPaymentEvent

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentEvent(BaseModel):
    """The subset of a Stripe event envelope reconciliation reads."""

    id: str
    type: str
    object: Dict[str, Any] = {}

    @property
    def invoice_id(self) -> Optional[str]:
        metadata = self.object.get("metadata") or {}
        return metadata.get("invoice_id") or metadata.get("invoiceId")


@dataclass
class ReconciliationOutcome:
    outcome: str
    event_id: str
    invoice_id: Optional[UUID] = None


@dataclass
class PaymentIntentResult:
    client_secret: str
    payment_intent_id: str


class PaymentService:
    def __init__(
        self,
        session: Session,
        webhook_secret: str = "",
        tolerance_s: int = 300,
        stripe_client: Optional[Any] = None,
        currency: str = "gbp",
    ):
        self.session = session
        self.webhook_secret = webhook_secret
        self.tolerance_s = tolerance_s
        self.stripe_client = stripe_client
        self.currency = currency

    # Webhooks

    def verify_event(self, payload: bytes, signature_header: Optional[str]) -> PaymentEvent:
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError("Webhook payload is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(body, signature_header, self.webhook_secret, self.tolerance_s)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Webhook signature verification failed", extra={"error": str(exc)})
            raise WebhookSignatureError(f"Invalid webhook signature: {exc}") from exc

        try:
            envelope = json.loads(body)
            return PaymentEvent(
                id=envelope["id"],
                type=envelope["type"],
                object=(envelope.get("data") or {}).get("object") or {},
            )
        except (ValueError, KeyError, TypeError, AttributeError, PydanticValidationError) as exc:
            raise ValidationError(f"Webhook payload is not a valid event: {exc}") from exc

    def reconcile(self, event: PaymentEvent) -> ReconciliationOutcome:
        """Apply an event at most once, keyed by its provider event id."""
        if self.session.get(ProcessedPaymentEvent, event.id) is not None:
            logger.info("Duplicate payment event ignored", extra={"event_id": event.id})
            return ReconciliationOutcome(outcome="duplicate", event_id=event.id)

        if event.type == PAYMENT_SUCCEEDED:
            outcome = self._apply_payment(event)
        elif event.type == PAYMENT_FAILED:
            error = (event.object.get("last_payment_error") or {}).get("message")
            logger.warning(
                "Payment failed",
                extra={"event_id": event.id, "payment_intent": event.object.get("id"), "error": error},
            )
            outcome = ReconciliationOutcome(outcome="payment_failed", event_id=event.id)
        else:
            logger.info("Unhandled payment event type", extra={"event_id": event.id, "type": event.type})
            outcome = ReconciliationOutcome(outcome="ignored", event_id=event.id)

        self.session.add(
            ProcessedPaymentEvent(
                event_id=event.id,
                event_type=event.type,
                invoice_id=outcome.invoice_id,
                outcome=outcome.outcome,
            )
        )
        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent delivery of the same event committed first
            self.session.rollback()
            logger.info("Duplicate payment event ignored", extra={"event_id": event.id})
            return ReconciliationOutcome(outcome="duplicate", event_id=event.id)
        return outcome

    def _apply_payment(self, event: PaymentEvent) -> ReconciliationOutcome:
        raw_invoice_id = event.invoice_id
        if not raw_invoice_id:
            logger.info("Payment without invoice metadata", extra={"event_id": event.id})
            return ReconciliationOutcome(outcome="no_invoice", event_id=event.id)

        try:
            invoice_id = UUID(str(raw_invoice_id))
        except ValueError:
            invoice_id = None
        invoice = self.session.get(Invoice, invoice_id) if invoice_id else None
        if invoice is None:
            logger.error(
                "Invoice referenced by payment not found",
                extra={"event_id": event.id, "invoice_id": raw_invoice_id},
            )
            return ReconciliationOutcome(outcome="invoice_not_found", event_id=event.id)

        if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            logger.info(
                "Payment for settled invoice not applied",
                extra={"event_id": event.id, "invoice_id": str(invoice.id), "status": invoice.status.value},
            )
            return ReconciliationOutcome(outcome="skipped", event_id=event.id, invoice_id=invoice.id)

        amount = event.object.get("amount_received") or event.object.get("amount") or 0
        paid = invoice.amount_paid_minor + int(amount)
        if paid > invoice.total_minor:
            logger.warning(
                "Overpayment capped at invoice total",
                extra={
                    "invoice_id": str(invoice.id),
                    "excess_minor": paid - invoice.total_minor,
                    "event_id": event.id,
                },
            )
            paid = invoice.total_minor

        invoice.amount_paid_minor = paid
        invoice.payment_method = PaymentMethod.STRIPE
        invoice.payment_reference = event.object.get("id")
        invoice.updated_at = utc_now()
        if paid >= invoice.total_minor:
            invoice.status = InvoiceStatus.PAID
            invoice.paid_date = invoice.updated_at
        self.session.add(invoice)

        logger.info(
            "Payment applied to invoice",
            extra={
                "invoice_id": str(invoice.id),
                "amount_minor": int(amount),
                "status": invoice.status.value,
                "event_id": event.id,
            },
        )
        return ReconciliationOutcome(outcome="applied", event_id=event.id, invoice_id=invoice.id)

    # Intents

    def create_payment_intent(
        self,
        amount_minor: int,
        currency: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentIntentResult:
        if amount_minor <= 0:
            raise ValidationError("Amount must be greater than zero")
        if self.stripe_client is None:
            raise PaymentProviderError("Stripe is not configured")

        try:
            intent = self.stripe_client.payment_intents.create(
                params={
                    "amount": amount_minor,
                    "currency": currency or self.currency,
                    "metadata": metadata or {},
                    "automatic_payment_methods": {"enabled": True},
                }
            )
        except stripe.StripeError as exc:
            logger.error("Stripe payment intent creation failed", extra={"error": str(exc)})
            raise PaymentProviderError(f"Failed to create payment intent: {exc}") from exc

        logger.info("Payment intent created", extra={"payment_intent": intent.id, "amount_minor": amount_minor})
        return PaymentIntentResult(client_secret=intent.client_secret, payment_intent_id=intent.id)

    def create_invoice_payment_intent(self, invoice_id: UUID) -> PaymentIntentResult:
        """Charge the outstanding balance, tagging the intent with the invoice id."""
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found", public_message="Invoice not found")
        if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise ValidationError(
                f"Invoice is {invoice.status.value}",
                public_message="This invoice cannot be paid online",
            )
        if invoice.balance_minor <= 0:
            raise ValidationError("Invoice has no outstanding balance", public_message="Nothing to pay")

        return self.create_payment_intent(
            invoice.balance_minor,
            metadata={"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number},
        )

    def confirm_invoice_payment(self, invoice_id: UUID, payment_intent_id: str) -> Invoice:
        """Mark an invoice PAID once Stripe reports its payment intent succeeded.

        Called from the payment success page, so the webhook may already have
        settled the invoice; a PAID invoice is returned unchanged.
        """
        if not payment_intent_id:
            raise ValidationError(
                "Payment intent id is required",
                public_message="Payment intent ID and invoice ID are required",
            )
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found", public_message="Invoice not found")
        if invoice.status == InvoiceStatus.PAID:
            logger.info(
                "Invoice already paid",
                extra={"invoice_id": str(invoice.id), "payment_intent": payment_intent_id},
            )
            return invoice
        if invoice.status == InvoiceStatus.CANCELLED:
            raise ValidationError(
                "Invoice is CANCELLED",
                public_message="This invoice cannot be paid online",
            )
        if self.stripe_client is None:
            raise PaymentProviderError("Stripe is not configured")

        try:
            intent = self.stripe_client.payment_intents.retrieve(payment_intent_id)
        except stripe.StripeError as exc:
            logger.error(
                "Stripe payment intent lookup failed",
                extra={"payment_intent": payment_intent_id, "error": str(exc)},
            )
            raise PaymentProviderError(f"Failed to retrieve payment intent: {exc}") from exc

        if intent.status != "succeeded":
            raise ValidationError(
                f"Payment intent {payment_intent_id} is {intent.status}",
                public_message="Payment not completed",
            )
        tagged_invoice = (intent.metadata or {}).get("invoice_id")
        if tagged_invoice and tagged_invoice != str(invoice.id):
            raise ValidationError(
                f"Payment intent {payment_intent_id} belongs to invoice {tagged_invoice}",
                public_message="Payment does not match this invoice",
            )

        invoice.status = InvoiceStatus.PAID
        invoice.amount_paid_minor = invoice.total_minor
        invoice.payment_method = PaymentMethod.STRIPE
        invoice.payment_reference = payment_intent_id
        invoice.updated_at = utc_now()
        invoice.paid_date = invoice.updated_at
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)

        logger.info(
            "Invoice marked paid from payment intent",
            extra={"invoice_id": str(invoice.id), "payment_intent": payment_intent_id},
        )
        return invoice


def build_stripe_client(settings) -> Optional[Any]:
    secret = settings.STRIPE_SECRET_KEY.get_secret_value()
    if not secret:
        return None
    return stripe.StripeClient(
        secret,
        http_client=stripe.new_default_http_client(timeout=settings.STRIPE_TIMEOUT_S),
        max_network_retries=0,
    )


def build_payment_service(session: Session, settings, stripe_client: Optional[Any] = None) -> PaymentService:
    return PaymentService(
        session=session,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET.get_secret_value(),
        tolerance_s=settings.WEBHOOK_TOLERANCE_S,
        stripe_client=stripe_client if stripe_client is not None else build_stripe_client(settings),
        currency=settings.CURRENCY,
    )
