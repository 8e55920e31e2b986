"""
Tests for the HTTP surface: integration actions, log viewer and health checks.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_activity_logger, get_broker
from app.main import app
from app.models.broker import Platform
from app.routers.integrations import status_for
from app.services.broker import IntegrationBroker
from tests.fakes import MERCHANT_ID, OTHER_MERCHANT_ID


@pytest.fixture
def broker():
    broker = AsyncMock(spec=IntegrationBroker)
    broker.dispatch.return_value = {"success": True, "integrations": []}
    return broker


@pytest.fixture
def client(broker, activity):
    app.dependency_overrides[get_broker] = lambda: broker
    app.dependency_overrides[get_activity_logger] = lambda: activity
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestIntegrationEndpoint:
    """Tests for POST /api/integrations/{platform}."""

    def test_dispatches_with_merchant_header(self, client, broker):
        response = client.post(
            "/api/integrations/woocommerce",
            json={"action": "list"},
            headers={"X-Merchant-Id": MERCHANT_ID},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "integrations": []}
        broker.dispatch.assert_awaited_once_with(MERCHANT_ID, Platform.WOOCOMMERCE, {"action": "list"})

    def test_default_merchant(self, client, broker):
        client.post("/api/integrations/shopify", json={"action": "list"})

        merchant_id, platform, _ = broker.dispatch.await_args.args
        assert merchant_id == "00000000-0000-0000-0000-000000000001"
        assert platform is Platform.SHOPIFY

    def test_unknown_platform(self, client, broker):
        response = client.post("/api/integrations/magento", json={"action": "list"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Unsupported platform"}
        broker.dispatch.assert_not_awaited()

    @pytest.mark.parametrize("content", [b"{not json", b"[1, 2]", b""])
    def test_malformed_body(self, client, broker, content):
        response = client.post(
            "/api/integrations/woocommerce",
            content=content,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["errorKind"] == "InvalidInput"
        broker.dispatch.assert_not_awaited()

    @pytest.mark.parametrize(
        "kind,status_code",
        [
            ("InvalidInput", 400),
            ("InvalidCredentials", 401),
            ("InsufficientPermissions", 403),
            ("ApiNotFound", 404),
            ("RemotePlatformError", 502),
            ("TransientNetworkError", 504),
            ("DecryptionError", 500),
            ("PersistenceError", 500),
        ],
    )
    def test_failure_status_mapping(self, client, broker, kind, status_code):
        broker.dispatch.return_value = {"success": False, "error": "boom", "errorKind": kind}

        response = client.post("/api/integrations/woocommerce", json={"action": "test"})

        assert response.status_code == status_code
        assert response.json()["errorKind"] == kind

    def test_internal_error_is_500(self):
        assert status_for({"success": False, "error": "Internal error"}) == 500


class TestLogEndpoints:
    """Tests for the log viewer endpoints."""

    def test_list_logs(self, client, activity):
        activity.info("PROBER", "first")
        activity.error("IMPORTER", "second", details={"sku": "ABC"})

        response = client.get("/api/logs")

        body = response.json()
        assert response.status_code == 200
        assert body["count"] == 2
        assert [entry["message"] for entry in body["logs"]] == ["second", "first"]

    def test_filter_by_level(self, client, activity):
        activity.info("PROBER", "first")
        activity.error("IMPORTER", "second")

        body = client.get("/api/logs", params={"level": "error"}).json()

        assert [entry["message"] for entry in body["logs"]] == ["second"]

    def test_unknown_level(self, client):
        assert client.get("/api/logs", params={"level": "LOUD"}).status_code == 400

    def test_export(self, client, activity):
        activity.success("SHOPIFY", "Imported ABC")

        response = client.get("/api/logs/export")

        assert response.status_code == 200
        assert "[SUCCESS] [SHOPIFY] Imported ABC" in response.text
        assert "attachment" in response.headers["content-disposition"]

    def test_clear_only_clears_view(self, client, activity, sink):
        activity.info("BROKER", "kept in sink")

        response = client.delete("/api/logs")

        assert response.json() == {"success": True}
        assert activity.recent() == []
        assert len(sink.entries) == 1

    def test_merchant_header_scopes_view(self, client, activity):
        activity.info("IMPORTER", "mine", merchant_id=MERCHANT_ID)
        activity.info("IMPORTER", "theirs", merchant_id=OTHER_MERCHANT_ID)
        headers = {"X-Merchant-Id": MERCHANT_ID}

        body = client.get("/api/logs", headers=headers).json()
        exported = client.get("/api/logs/export", headers=headers).text

        assert [entry["message"] for entry in body["logs"]] == ["mine"]
        assert "mine" in exported
        assert "theirs" not in exported

    def test_merchant_header_scopes_clear(self, client, activity):
        activity.info("IMPORTER", "mine", merchant_id=MERCHANT_ID)
        activity.info("IMPORTER", "theirs", merchant_id=OTHER_MERCHANT_ID)

        client.delete("/api/logs", headers={"X-Merchant-Id": MERCHANT_ID})

        assert [entry.message for entry in activity.recent()] == ["theirs"]


class TestHealth:
    """Tests for health endpoints."""

    @pytest.mark.parametrize("path", ["/", "/health", "/healthz"])
    def test_health(self, client, path):
        response = client.get(path)
        assert response.status_code == 200
