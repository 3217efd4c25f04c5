from fastapi.testclient import TestClient
from sqlmodel import Session

from app.services.token_service import QuoteTokenService
from tests.utils.test_utils import assert_response_success, create_test_client, create_test_inquiry


class TestOutboxAPI:
    """Test cases for outbox task visibility."""

    def test_requires_admin(self, client: TestClient):
        response = client.get("/api/v1/outbox/tasks")

        assert response.status_code == 401

    def test_tasks_after_acceptance(self, admin_client: TestClient, db: Session):
        inquiry = create_test_inquiry(db, create_test_client(db))
        token = QuoteTokenService("test-quote-secret").token_for(inquiry.id)
        admin_client.get(f"/api/v1/inquiries/accept-quote?id={inquiry.id}&token={token}")

        response = admin_client.get("/api/v1/outbox/tasks")

        assert_response_success(response)
        tasks = response.json()
        assert [task["kind"] for task in tasks] == ["invoice_notice", "signing_link"]
        assert all(task["status"] == "PENDING" for task in tasks)
        assert tasks[1]["idempotency_key"].startswith("signing-link:")

    def test_status_filter(self, admin_client: TestClient, db: Session):
        inquiry = create_test_inquiry(db, create_test_client(db))
        token = QuoteTokenService("test-quote-secret").token_for(inquiry.id)
        admin_client.get(f"/api/v1/inquiries/accept-quote?id={inquiry.id}&token={token}")

        assert len(admin_client.get("/api/v1/outbox/tasks?status=PENDING").json()) == 2
        assert admin_client.get("/api/v1/outbox/tasks?status=DONE").json() == []

    def test_invalid_status(self, admin_client: TestClient):
        response = admin_client.get("/api/v1/outbox/tasks?status=BOGUS")

        assert response.status_code == 422
