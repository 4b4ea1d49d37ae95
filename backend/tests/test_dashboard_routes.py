"""Dashboard API: customers, payments, totals, provider settings."""
import pytest

from whatsapp_accounting.core.config import settings
from whatsapp_accounting.services import reply_renderer as replies

OWNER = "+919876543210"


def _customer(client, name="Rahul", phone=None):
    payload = {"name": name}
    if phone is not None:
        payload["phoneNumber"] = phone
    response = client.post("/api/customers", json=payload)
    assert response.status_code == 201
    return response.json()


def _payment(client, customer_id, amount, direction, **extra):
    response = client.post(
        "/api/payments",
        json={"customerId": customer_id, "amount": amount, "direction": direction, **extra},
    )
    assert response.status_code == 201
    return response.json()


# ==============================================================================
# CUSTOMERS
# ==============================================================================

def test_create_customer_normalizes_phone(client):
    customer = _customer(client, phone="+91 98765 43210")

    assert customer["name"] == "Rahul"
    assert customer["phoneNumber"] == OWNER
    assert customer["balance"] == 0


def test_duplicate_phone_is_rejected(client):
    _customer(client, phone=OWNER)

    response = client.post("/api/customers", json={"name": "Other", "phoneNumber": OWNER})

    assert response.status_code == 400
    assert response.json()["detail"] == "Customer with this phone number already exists"


def test_malformed_phone_is_rejected(client):
    response = client.post("/api/customers", json={"name": "Rahul", "phoneNumber": "123"})

    assert response.status_code == 400


def test_list_customers_with_balances(client):
    rahul = _customer(client, "Rahul", OWNER)
    _customer(client, "Amit")
    _payment(client, rahul["id"], 500, "CREDIT")
    _payment(client, rahul["id"], 200, "DEBIT")

    rows = {row["name"]: row for row in client.get("/api/customers").json()}

    assert rows["Rahul"]["balance"] == 300
    assert rows["Rahul"]["transactionCount"] == 2
    assert rows["Amit"] == {"id": rows["Amit"]["id"], "name": "Amit", "phoneNumber": None, "balance": 0, "transactionCount": 0}


def test_chat_and_dashboard_agree_on_balance(client):
    client.post("/webhook", json={"from": OWNER, "text": "500 received from Rahul"})
    client.post("/webhook", json={"from": OWNER, "text": "paid 200 to rahul"})

    rows = client.get("/api/customers").json()
    chat = client.post("/webhook", json={"from": OWNER, "text": "rahul balance"}).json()

    assert rows[0]["balance"] == 300
    assert rows[0]["phoneNumber"] is None
    assert "Current Balance: ₹300 (to receive)" in chat["message"]


def test_get_and_update_customer(client):
    created = _customer(client, phone=OWNER)

    fetched = client.get(f"/api/customers/{created['id']}").json()
    renamed = client.put(f"/api/customers/{created['id']}", json={"name": "Rahul Shah"}).json()
    cleared = client.put(f"/api/customers/{created['id']}", json={"phoneNumber": ""}).json()

    assert fetched["phoneNumber"] == OWNER
    assert renamed["name"] == "Rahul Shah"
    assert renamed["phoneNumber"] == OWNER
    assert cleared["phoneNumber"] is None


def test_update_to_taken_phone_is_rejected(client):
    _customer(client, "Rahul", OWNER)
    amit = _customer(client, "Amit")

    response = client.put(f"/api/customers/{amit['id']}", json={"phoneNumber": OWNER})

    assert response.status_code == 400


def test_unknown_customer_is_404(client):
    assert client.get("/api/customers/999").status_code == 404
    assert client.put("/api/customers/999", json={"name": "x"}).status_code == 404
    assert client.get("/api/customers/999/history").status_code == 404


def test_customer_history_pagination(client):
    rahul = _customer(client)
    for day in range(1, 4):
        _payment(client, rahul["id"], day * 100, "CREDIT", date=f"2024-01-0{day}T10:00:00")

    page_one = client.get(f"/api/customers/{rahul['id']}/history", params={"page": 1, "limit": 2}).json()
    page_two = client.get(f"/api/customers/{rahul['id']}/history", params={"page": 2, "limit": 2}).json()

    assert page_one["pagination"] == {"total": 3, "pages": 2, "currentPage": 1, "limit": 2}
    assert [float(p["amount"]) for p in page_one["payments"]] == [300.0, 200.0]
    assert [float(p["amount"]) for p in page_two["payments"]] == [100.0]
    assert page_one["payments"][0]["customer"]["name"] == "Rahul"


# ==============================================================================
# PAYMENTS
# ==============================================================================

def test_payment_for_missing_customer(client):
    response = client.post("/api/payments", json={"customerId": 42, "amount": 100, "direction": "CREDIT"})

    assert response.status_code == 404
    assert response.json()["detail"] == "Customer not found"


@pytest.mark.parametrize(
    "payload",
    [
        {"amount": 0, "direction": "CREDIT"},
        {"amount": 100, "direction": "SIDEWAYS"},
        {"direction": "CREDIT"},
    ],
)
def test_payment_validation(client, payload):
    rahul = _customer(client)

    response = client.post("/api/payments", json={"customerId": rahul["id"], **payload})

    assert response.status_code == 422


def test_payment_defaults(client):
    rahul = _customer(client)

    payment = _payment(client, rahul["id"], 250, "DEBIT", note="advance")

    assert payment["method"] == "Cash"
    assert payment["note"] == "advance"
    assert payment["recorded_by"] == "dashboard"
    assert payment["date"] is not None


def test_summary(client):
    rahul = _customer(client, "Rahul")
    amit = _customer(client, "Amit")
    _payment(client, rahul["id"], 1000, "CREDIT")
    _payment(client, amit["id"], 400, "DEBIT")

    response = client.get("/api/payments/summary")

    body = response.json()
    assert body["summary"] == {"totalReceived": 1000.0, "totalPaid": 400.0, "outstandingBalance": 600.0}
    assert len(body["recentTransactions"]) == 2
    assert response.headers["Cache-Control"].startswith("no-store")


def test_list_payments_paginates(client):
    rahul = _customer(client)
    for amount in (100, 200, 300):
        _payment(client, rahul["id"], amount, "CREDIT")

    body = client.get("/api/payments", params={"limit": 2}).json()

    assert body["pagination"] == {"total": 3, "pages": 2, "currentPage": 1, "limit": 2}
    assert len(body["payments"]) == 2


def test_delete_payment(client):
    rahul = _customer(client)
    payment = _payment(client, rahul["id"], 100, "CREDIT")

    deleted = client.delete(f"/api/payments/{payment['id']}")
    again = client.delete(f"/api/payments/{payment['id']}")

    assert deleted.status_code == 200
    assert deleted.json()["id"] == payment["id"]
    assert again.status_code == 404
    assert client.get(f"/api/customers/{rahul['id']}").json()["balance"] == 0


def test_dashboard_routes_are_rate_limited_headers(client):
    response = client.get("/api/customers")

    assert response.headers["X-RateLimit-Limit"] == str(settings.RATE_LIMIT_REQUESTS)


# ==============================================================================
# SETTINGS
# ==============================================================================

def test_settings_masks_credentials(client, monkeypatch):
    monkeypatch.setattr(settings, "BOTBIZ_API_KEY", "abcd1234efgh5678")
    monkeypatch.setattr(settings, "BOTBIZ_PHONE_NUMBER", "+14155238886")

    body = client.get("/api/settings/whatsapp").json()

    assert body["activeProvider"] == "recording"
    assert body["botbiz"]["apiKey"] == "abcd********5678"
    assert body["botbiz"]["phoneNumber"] == "+14155238886"
    assert body["botbiz"]["enabled"] is False


def test_settings_test_message(client, provider):
    response = client.post("/api/settings/whatsapp/test", json={"phoneNumber": OWNER})

    assert response.status_code == 200
    assert response.json()["provider"] == "recording"
    assert provider.sent == [(OWNER, replies.TEST_MESSAGE)]


@pytest.mark.parametrize(
    "payload",
    [{}, {"phoneNumber": "123"}, {"provider": "twilio", "phoneNumber": OWNER}],
)
def test_settings_test_message_rejected(client, provider, payload):
    response = client.post("/api/settings/whatsapp/test", json=payload)

    assert response.status_code == 400
    assert provider.sent == []


def test_settings_test_message_send_failure(client, provider):
    provider.fail = True

    response = client.post("/api/settings/whatsapp/test", json={"phoneNumber": OWNER})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to send test message"


def test_health_and_root(client):
    assert client.get("/health").json() == {"status": "ok", "provider": "recording"}
    assert client.get("/").status_code == 200
