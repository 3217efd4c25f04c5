from fastapi.testclient import TestClient

from tests.utils.test_utils import assert_response_success


class TestHealthCheckAPI:
    """Test cases for the health check API endpoint."""

    def test_health_check_endpoint_success(self, client: TestClient):
        """Test successful health check request."""
        response = client.get("/api/v1/health-check/")
        assert_response_success(response)

        response_data = response.json()
        assert response_data["status"] == "healthy"
        assert response_data["service"] == "quote-to-cash"

    def test_health_check_endpoint_methods(self, client: TestClient):
        """Test that health check only accepts GET requests."""
        assert client.post("/api/v1/health-check/").status_code == 405
        assert client.put("/api/v1/health-check/").status_code == 405
        assert client.delete("/api/v1/health-check/").status_code == 405

    def test_health_check_endpoint_no_auth_required(self, client: TestClient):
        """Test that health check doesn't require the admin cookie."""
        response = client.get("/api/v1/health-check/")
        assert_response_success(response)
