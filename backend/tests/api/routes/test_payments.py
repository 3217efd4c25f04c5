from fastapi.testclient import TestClient
from sqlmodel import Session

from app.models.domain import Invoice
from app.models.enums import InvoiceStatus
from tests.utils.test_utils import (
    assert_response_error,
    assert_response_success,
    create_test_client,
    create_test_invoice,
    signed_event_body,
    stripe_event,
)

WEBHOOK_SECRET = "whsec_test_secret"


def post_event(client: TestClient, event, secret: str = WEBHOOK_SECRET):
    payload, header = signed_event_body(event, secret)
    return client.post(
        "/api/v1/payments/webhook",
        content=payload,
        headers={"Stripe-Signature": header, "Content-Type": "application/json"},
    )


class TestCreateIntentAPI:
    """Test cases for payment intent creation."""

    def test_intent_for_invoice(self, client: TestClient, db: Session, stripe_client):
        invoice = create_test_invoice(db, create_test_client(db))

        response = client.post("/api/v1/payments/create-intent", json={"invoice_id": str(invoice.id)})

        assert_response_success(response)
        assert response.json() == {
            "client_secret": "pi_test_123_secret_abc",
            "payment_intent_id": "pi_test_123",
        }
        params = stripe_client.payment_intents.create.call_args.kwargs["params"]
        assert params["amount"] == 150000
        assert params["metadata"]["invoice_id"] == str(invoice.id)

    def test_intent_for_amount(self, client: TestClient, stripe_client):
        response = client.post(
            "/api/v1/payments/create-intent",
            json={"amount": "25.50", "currency": "eur", "metadata": {"ref": "deposit"}},
        )

        assert_response_success(response)
        params = stripe_client.payment_intents.create.call_args.kwargs["params"]
        assert params["amount"] == 2550
        assert params["currency"] == "eur"
        assert params["metadata"] == {"ref": "deposit"}

    def test_amount_or_invoice_required(self, client: TestClient):
        response = client.post("/api/v1/payments/create-intent", json={})

        assert response.status_code == 400
        assert response.json() == {"detail": "Amount is required"}

    def test_non_positive_amount(self, client: TestClient):
        response = client.post("/api/v1/payments/create-intent", json={"amount": "0"})

        assert response.status_code == 422

    def test_paid_invoice(self, client: TestClient, db: Session):
        invoice = create_test_invoice(db, create_test_client(db), status=InvoiceStatus.PAID)

        response = client.post("/api/v1/payments/create-intent", json={"invoice_id": str(invoice.id)})

        assert response.status_code == 400
        assert response.json() == {"detail": "This invoice cannot be paid online"}


class TestWebhookAPI:
    """Test cases for the Stripe webhook."""

    def test_payment_applied(self, client: TestClient, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))

        response = post_event(client, stripe_event(metadata={"invoice_id": str(invoice.id)}))

        assert_response_success(response)
        assert response.json() == {"received": True, "outcome": "applied"}
        db.expire_all()
        stored = db.get(Invoice, invoice.id)
        assert stored.status == InvoiceStatus.PAID
        assert stored.payment_reference == "pi_test_1"

    def test_redelivery_is_acknowledged(self, client: TestClient, db: Session):
        invoice = create_test_invoice(db, create_test_client(db))
        event = stripe_event(amount=50000, metadata={"invoice_id": str(invoice.id)})
        post_event(client, event)

        response = post_event(client, event)

        assert_response_success(response)
        assert response.json()["outcome"] == "duplicate"
        db.expire_all()
        assert db.get(Invoice, invoice.id).amount_paid_minor == 50000

    def test_bad_signature(self, client: TestClient):
        response = post_event(client, stripe_event(), secret="whsec_wrong")

        assert_response_error(response, 400)
        assert response.json() == {"detail": "Invalid signature"}

    def test_missing_signature(self, client: TestClient):
        response = client.post("/api/v1/payments/webhook", content=b"{}")

        assert_response_error(response, 400)

    def test_unknown_invoice_still_acknowledged(self, client: TestClient):
        response = post_event(
            client,
            stripe_event(metadata={"invoice_id": "00000000-0000-0000-0000-000000000000"}),
        )

        assert_response_success(response)
        assert response.json()["outcome"] == "invoice_not_found"
