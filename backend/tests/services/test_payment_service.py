import time
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import stripe
from sqlmodel import Session

from app.core.errors import NotFoundError, PaymentProviderError, ValidationError, WebhookSignatureError
from app.models.domain import Invoice
from app.models.enums import InvoiceStatus, PaymentMethod
from app.models.outbox import ProcessedPaymentEvent
from app.services.payment_service import PaymentEvent, PaymentService
from tests.utils.test_utils import (
    create_test_client,
    create_test_invoice,
    signed_event_body,
    stripe_event,
    stripe_signature,
)

SECRET = "whsec_unit_secret"


def make_service(db: Session, stripe_client=None) -> PaymentService:
    return PaymentService(db, webhook_secret=SECRET, tolerance_s=300, stripe_client=stripe_client)


def succeeded(invoice: Invoice, amount: int, event_id: str = "evt_1") -> PaymentEvent:
    envelope = stripe_event(event_id=event_id, amount=amount, metadata={"invoice_id": str(invoice.id)})
    return PaymentEvent(id=envelope["id"], type=envelope["type"], object=envelope["data"]["object"])


class TestVerifyEvent:
    """Test cases for webhook signature verification."""

    def test_valid_signature(self, db: Session):
        payload, header = signed_event_body(stripe_event(metadata={"invoiceId": "abc"}), SECRET)

        event = make_service(db).verify_event(payload, header)

        assert event.id == "evt_test_1"
        assert event.type == "payment_intent.succeeded"
        assert event.invoice_id == "abc"

    def test_wrong_secret(self, db: Session):
        payload, header = signed_event_body(stripe_event(), "whsec_other")

        with pytest.raises(WebhookSignatureError):
            make_service(db).verify_event(payload, header)

    def test_tampered_payload(self, db: Session):
        payload, header = signed_event_body(stripe_event(amount=100), SECRET)

        with pytest.raises(WebhookSignatureError):
            make_service(db).verify_event(payload.replace(b"100", b"999"), header)

    def test_stale_timestamp(self, db: Session):
        payload = '{"id": "evt_1", "type": "payment_intent.succeeded"}'
        header = stripe_signature(payload, SECRET, timestamp=int(time.time()) - 3600)

        with pytest.raises(WebhookSignatureError):
            make_service(db).verify_event(payload.encode(), header)

    def test_missing_header(self, db: Session):
        with pytest.raises(WebhookSignatureError):
            make_service(db).verify_event(b"{}", None)

    def test_unconfigured_secret(self, db: Session):
        payload, header = signed_event_body(stripe_event(), SECRET)

        with pytest.raises(WebhookSignatureError):
            PaymentService(db, webhook_secret="").verify_event(payload, header)

    def test_signed_but_not_an_event(self, db: Session):
        payload = '{"hello": "world"}'

        with pytest.raises(ValidationError):
            make_service(db).verify_event(payload.encode(), stripe_signature(payload, SECRET))


class TestReconcile:
    """Test cases for applying payment events to invoices."""

    def test_full_payment_marks_paid(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))

        result = make_service(db).reconcile(succeeded(invoice, 150000))

        db.refresh(invoice)
        assert result.outcome == "applied"
        assert result.invoice_id == invoice.id
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.amount_paid_minor == 150000
        assert invoice.paid_date is not None
        assert invoice.payment_method == PaymentMethod.STRIPE
        assert invoice.payment_reference == "pi_test_1"

    def test_partial_payment_stays_unpaid(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))

        make_service(db).reconcile(succeeded(invoice, 75000))

        db.refresh(invoice)
        assert invoice.status == InvoiceStatus.UNPAID
        assert invoice.amount_paid_minor == 75000
        assert invoice.paid_date is None

    def test_two_partials_settle_invoice(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        service = make_service(db)

        service.reconcile(succeeded(invoice, 75000, event_id="evt_a"))
        service.reconcile(succeeded(invoice, 75000, event_id="evt_b"))

        db.refresh(invoice)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.amount_paid_minor == 150000

    def test_overpayment_capped(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db), amount_paid_minor=100000)

        make_service(db).reconcile(succeeded(invoice, 90000))

        db.refresh(invoice)
        assert invoice.amount_paid_minor == 150000
        assert invoice.status == InvoiceStatus.PAID

    def test_duplicate_event_applied_once(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        service = make_service(db)

        first = service.reconcile(succeeded(invoice, 50000))
        second = service.reconcile(succeeded(invoice, 50000))

        db.refresh(invoice)
        assert first.outcome == "applied"
        assert second.outcome == "duplicate"
        assert invoice.amount_paid_minor == 50000

    @pytest.mark.parametrize("status", [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
    def test_settled_invoice_not_changed(self, db: Session, status):
        invoice = create_test_invoice(db, create_test_client(db), status=status)

        result = make_service(db).reconcile(succeeded(invoice, 150000))

        db.refresh(invoice)
        assert result.outcome == "skipped"
        assert invoice.status == status
        assert invoice.amount_paid_minor == 0

    def test_unknown_invoice(self, db: Session):
        event = PaymentEvent(
            id="evt_x",
            type="payment_intent.succeeded",
            object={"id": "pi_x", "amount": 100, "metadata": {"invoice_id": "not-a-uuid"}},
        )

        result = make_service(db).reconcile(event)

        assert result.outcome == "invoice_not_found"
        assert db.get(ProcessedPaymentEvent, "evt_x").outcome == "invoice_not_found"

    def test_no_invoice_metadata(self, db: Session):
        event = PaymentEvent(id="evt_y", type="payment_intent.succeeded", object={"id": "pi_y", "amount": 100})

        assert make_service(db).reconcile(event).outcome == "no_invoice"

    def test_payment_failed_changes_nothing(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        envelope = stripe_event(event_type="payment_intent.payment_failed", metadata={"invoice_id": str(invoice.id)})
        event = PaymentEvent(id=envelope["id"], type=envelope["type"], object=envelope["data"]["object"])

        result = make_service(db).reconcile(event)

        db.refresh(invoice)
        assert result.outcome == "payment_failed"
        assert invoice.status == InvoiceStatus.UNPAID

    def test_other_event_types_ignored(self, db: Session):
        event = PaymentEvent(id="evt_z", type="charge.refunded", object={})

        assert make_service(db).reconcile(event).outcome == "ignored"


class TestPaymentIntents:
    """Test cases for creating Stripe payment intents."""

    def test_create_intent(self, db: Session, stripe_client):
        result = make_service(db, stripe_client).create_payment_intent(5000, metadata={"ref": "x"})

        assert result.payment_intent_id == "pi_test_123"
        assert result.client_secret == "pi_test_123_secret_abc"
        params = stripe_client.payment_intents.create.call_args.kwargs["params"]
        assert params["amount"] == 5000
        assert params["currency"] == "gbp"
        assert params["metadata"] == {"ref": "x"}

    def test_invoice_intent_charges_balance(self, db: Session, stripe_client):
        invoice = create_test_invoice(db, create_test_client(db), amount_paid_minor=50000)

        make_service(db, stripe_client).create_invoice_payment_intent(invoice.id)

        params = stripe_client.payment_intents.create.call_args.kwargs["params"]
        assert params["amount"] == 100000
        assert params["metadata"] == {"invoice_id": str(invoice.id), "invoice_number": "INV-2026-001"}

    def test_paid_invoice_rejected(self, db: Session, stripe_client):
        invoice = create_test_invoice(db, create_test_client(db), status=InvoiceStatus.PAID)

        with pytest.raises(ValidationError):
            make_service(db, stripe_client).create_invoice_payment_intent(invoice.id)

    def test_unknown_invoice(self, db: Session, stripe_client):
        with pytest.raises(NotFoundError):
            make_service(db, stripe_client).create_invoice_payment_intent(uuid4())

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, db: Session, stripe_client, amount):
        with pytest.raises(ValidationError):
            make_service(db, stripe_client).create_payment_intent(amount)

    def test_not_configured(self, db: Session):
        with pytest.raises(PaymentProviderError):
            make_service(db).create_payment_intent(5000)

    def test_stripe_error_wrapped(self, db: Session):
        client = MagicMock()
        client.payment_intents.create.side_effect = stripe.APIConnectionError("network down")

        with pytest.raises(PaymentProviderError):
            make_service(db, client).create_payment_intent(5000)


def retrieved_intent(status: str = "succeeded", metadata=None) -> MagicMock:
    client = MagicMock()
    intent = MagicMock()
    intent.id = "pi_page_1"
    intent.status = status
    intent.metadata = metadata or {}
    client.payment_intents.retrieve.return_value = intent
    return client


class TestConfirmInvoicePayment:
    """Test cases for confirming a payment from the success page."""

    def test_succeeded_intent_marks_paid(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        client = retrieved_intent(metadata={"invoice_id": str(invoice.id)})

        updated = make_service(db, client).confirm_invoice_payment(invoice.id, "pi_page_1")

        client.payment_intents.retrieve.assert_called_once_with("pi_page_1")
        assert updated.status == InvoiceStatus.PAID
        assert updated.amount_paid_minor == 150000
        assert updated.payment_method == PaymentMethod.STRIPE
        assert updated.payment_reference == "pi_page_1"
        assert updated.paid_date is not None

    def test_incomplete_intent_rejected(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))

        with pytest.raises(ValidationError) as exc_info:
            make_service(db, retrieved_intent(status="processing")).confirm_invoice_payment(invoice.id, "pi_page_1")

        assert exc_info.value.public_message == "Payment not completed"
        db.refresh(invoice)
        assert invoice.status == InvoiceStatus.UNPAID

    def test_intent_for_another_invoice_rejected(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        client = retrieved_intent(metadata={"invoice_id": str(uuid4())})

        with pytest.raises(ValidationError):
            make_service(db, client).confirm_invoice_payment(invoice.id, "pi_page_1")

    def test_already_paid_is_unchanged(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db), status=InvoiceStatus.PAID,
                                      amount_paid_minor=150000)
        client = retrieved_intent()

        updated = make_service(db, client).confirm_invoice_payment(invoice.id, "pi_page_1")

        assert updated.status == InvoiceStatus.PAID
        assert updated.payment_reference is None
        client.payment_intents.retrieve.assert_not_called()

    def test_cancelled_invoice_rejected(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db), status=InvoiceStatus.CANCELLED)

        with pytest.raises(ValidationError):
            make_service(db, retrieved_intent()).confirm_invoice_payment(invoice.id, "pi_page_1")

    def test_unknown_invoice(self, db: Session):
        with pytest.raises(NotFoundError):
            make_service(db, retrieved_intent()).confirm_invoice_payment(uuid4(), "pi_page_1")

    def test_stripe_error_wrapped(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        client = MagicMock()
        client.payment_intents.retrieve.side_effect = stripe.APIConnectionError("network down")

        with pytest.raises(PaymentProviderError):
            make_service(db, client).confirm_invoice_payment(invoice.id, "pi_page_1")

    def test_webhook_after_confirmation_is_skipped(self, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        service = make_service(db, retrieved_intent())
        service.confirm_invoice_payment(invoice.id, "pi_page_1")

        outcome = service.reconcile(succeeded(invoice, 150000, event_id="evt_after_page"))

        assert outcome.outcome == "skipped"
        db.refresh(invoice)
        assert invoice.amount_paid_minor == 150000
