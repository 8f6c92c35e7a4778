"""
HTTP surface: status codes, error JSON and plain-text webhook answers.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.server import create_app
from api.state import AppState
from connectors.accounting_base import InvoiceStatus
from core.config import AppConfig
from core.observability.metrics import MetricsCollector
from core.security.signature import compute_signature

from conftest import TENANT, FakeConnector, FakeSession, media_line

KEY = "webhook-key"
REF = "SEPT-PAID-SOCIAL"


class FakeOAuth(FakeSession):
    """Connected session with the provider's status surface."""

    is_connected = True

    def status(self):
        return {
            "connected": bool(self.tenant_id),
            "tenant_id": self.tenant_id,
            "tenant_name": "Demo Company (UK)",
            "expires_at": None,
            "scopes": ["offline_access"],
        }

    async def restore(self):
        return False

    async def disconnect(self):
        was_connected = bool(self.tenant_id)
        self.tenant_id = None
        return was_connected


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest.fixture
def state(fake_connector):
    return AppState.build(
        AppConfig(webhook_key=KEY),
        oauth=FakeOAuth(),
        connector=fake_connector,
        metrics=MetricsCollector(),
    )


@pytest.fixture
def client(state):
    return TestClient(create_app(state=state))


def signed_post(client, body: bytes, signature=None):
    return client.post(
        "/webhooks/xero",
        content=body,
        headers={
            "x-xero-signature": signature if signature is not None else compute_signature(body, KEY),
            "content-type": "application/json",
        },
    )


def bill_delivery(resource_id="bill-1") -> bytes:
    return (
        '{"events":[{"resourceId":"%s","eventCategory":"INVOICE","eventType":"UPDATE",'
        '"tenantId":"tenant-1"}],"firstEventSequence":1,"lastEventSequence":1,"entropy":"X"}'
        % resource_id
    ).encode()


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "Xero Media Accrual Plug-in is running."

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["services"]["webhooks"] == "configured"


class TestCampaigns:

    def test_create_campaign(self, client, state, fake_connector):
        response = client.post("/campaigns", json={
            "clientContactName": "Acme Retail",
            "campaignRef": REF,
            "saleNet": 10000,
            "expectedCostNet": 8000,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["invoiceNumber"] == "INV-0001"
        assert data["campaignRef"] == REF
        assert data["accrued"] == 8000.0
        assert state.ledger.accrued(REF) == Decimal("8000")

    def test_missing_fields_is_400_with_error_json(self, client, fake_connector):
        response = client.post("/campaigns", json={"campaignRef": REF})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Required: campaignRef, saleNet, expectedCostNet, clientContactId or clientContactName",
        }
        assert fake_connector.writes == []

    def test_invalid_json_is_400(self, client):
        response = client.post("/campaigns", content=b"{nope", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_no_tenant_is_401(self, client, state):
        state.oauth.tenant_id = None
        response = client.post("/campaigns", json={
            "clientContactName": "Acme", "campaignRef": REF, "saleNet": 1, "expectedCostNet": 1,
        })
        assert response.status_code == 401
        assert response.json() == {"error": "Connect to Xero first at /connect"}

    def test_provider_failure_is_500_with_message(self, client, fake_connector):
        fake_connector.fail_on = "create_invoice"
        response = client.post("/campaigns", json={
            "clientContactName": "Acme", "campaignRef": REF, "saleNet": 1, "expectedCostNet": 1,
        })
        assert response.status_code == 500
        assert response.json() == {"error": "Xero rejected create_invoice"}


class TestWebhooks:

    def test_bad_signature_is_401_with_no_side_effects(self, client, state, fake_connector):
        fake_connector.add_bill("bill-1", REF, [media_line("8500")])
        body = bill_delivery()

        response = signed_post(client, body, signature=compute_signature(body + b" ", KEY))

        assert response.status_code == 401
        assert response.text == "Invalid signature"
        assert fake_connector.writes == []

    def test_reconciled_delivery_is_ok(self, client, state, fake_connector):
        fake_connector.add_bill("bill-1", REF, [media_line("8500")])

        response = signed_post(client, bill_delivery())

        assert response.status_code == 200
        assert response.text == "ok"
        assert fake_connector.invoices["bill-1"].status == InvoiceStatus.AUTHORISED
        assert len(fake_connector.journals) == 1

    def test_failed_event_is_500(self, client, fake_connector):
        fake_connector.add_bill("bill-1", REF, [media_line("8500")])
        fake_connector.fail_on = "update_invoice_lines"

        response = signed_post(client, bill_delivery())

        assert response.status_code == 500
        assert response.text == "Xero rejected update_invoice_lines"


class TestSettings:

    def test_read_and_update(self, client, state):
        assert client.get("/api/settings").json()["accrualCode"] == "850"

        response = client.post("/api/settings", json={"accrualCode": "2150", "autoApproveBills": "false"})

        assert response.status_code == 200
        assert response.json()["settings"]["accrualCode"] == "2150"
        assert response.json()["settings"]["autoApproveBills"] is False
        assert state.settings.current.accrual_code == "2150"
        assert client.get("/api/logs").json()[0]["msg"].startswith("Settings updated")

    def test_non_object_body_is_400(self, client):
        response = client.post("/api/settings", json=["costCode"])
        assert response.status_code == 400

    def test_check(self, client):
        response = client.get("/api/settings/check")
        assert response.json() == {
            "revenueCode": True,
            "costCode": True,
            "accrualCode": True,
            "salesTaxName": True,
        }

    def test_reference_data(self, client):
        data = client.get("/api/reference-data").json()
        assert {r["name"] for r in data["taxRates"]} == {"20% (VAT on Income)", "20% (VAT on Expenses)"}
        assert [a["code"] for a in data["accounts"]] == ["400", "500", "850"]
        assert data["trackingCategories"][0]["options"][0]["name"] == REF

    def test_metrics(self, client):
        client.post("/campaigns", json={})
        summary = client.get("/metrics").json()
        assert summary["campaigns"]["failed"] == 1
        assert "ledger" in summary


class TestAuth:

    def test_status_and_disconnect(self, client):
        assert client.get("/api/auth/status").json()["tenant_id"] == TENANT

        response = client.post("/api/auth/disconnect")

        assert response.json() == {"success": True, "message": "Disconnected from Xero"}
        assert client.get("/api/auth/status").json()["connected"] is False

    def test_connect_requires_client_id(self, client):
        response = client.get("/connect", follow_redirects=False)
        assert response.status_code == 500
