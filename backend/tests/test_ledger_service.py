"""Ledger service against a real (in-memory) database."""
from datetime import datetime
from decimal import Decimal

from whatsapp_accounting.agent.intent_schema import Direction
from whatsapp_accounting.core.exceptions import LedgerStoreError
from whatsapp_accounting.models import Customer, Payment, PaymentDirection
from whatsapp_accounting.services import ledger_service
from whatsapp_accounting.services import reply_renderer as replies
from whatsapp_accounting.services.ledger_service import LedgerFailure, LedgerSuccess
from whatsapp_accounting.services.store import CustomerStore, PaymentStore, is_placeholder_phone

OWNER = "+919876543210"


def _payments(db):
    return db.query(Payment).all()


# ==============================================================================
# RECORDING
# ==============================================================================

def test_record_received_payment_creates_counterparty(db):
    result = ledger_service.record_payment(db, "rahul", 500, Direction.RECEIVED, OWNER)

    assert isinstance(result, LedgerSuccess)
    assert result.reply == (
        "✅ Successfully recorded: ₹500 received from rahul.\n\n"
        "Current balance with rahul: ₹500 (to receive)"
    )
    customer = db.query(Customer).one()
    assert customer.name == "rahul"
    assert is_placeholder_phone(customer.phone_number)
    assert result.payment.direction == PaymentDirection.CREDIT
    assert result.payment.recorded_by == OWNER
    assert result.balance == Decimal("500")


def test_record_paid_payment_goes_negative(db):
    result = ledger_service.record_payment(db, "priya", 1000, Direction.PAID, OWNER)

    assert result.payment.direction == PaymentDirection.DEBIT
    assert result.reply.endswith("Current balance with priya: ₹1,000 (to pay)")


def test_names_match_case_insensitively(db):
    ledger_service.record_payment(db, "Rahul", 500, Direction.RECEIVED, OWNER)
    result = ledger_service.record_payment(db, "rahul", 200, Direction.PAID, OWNER)

    assert db.query(Customer).count() == 1
    assert result.balance == Decimal("300")
    assert "₹300 (to receive)" in result.reply


def test_two_placeholder_customers_do_not_collide(db):
    ledger_service.record_payment(db, "rahul", 500, Direction.RECEIVED, OWNER)
    ledger_service.record_payment(db, "priya", 500, Direction.RECEIVED, OWNER)

    phones = {c.phone_number for c in db.query(Customer).all()}
    assert len(phones) == 2


def test_invalid_payment_is_rejected_without_writes(db):
    for name, amount, direction in [
        ("", 500, Direction.RECEIVED),
        ("rahul", 0, Direction.RECEIVED),
        ("rahul", -5, Direction.PAID),
        ("rahul", None, Direction.PAID),
        ("rahul", 500, "sideways"),
        ("rahul", 500, None),
    ]:
        result = ledger_service.record_payment(db, name, amount, direction, OWNER)

        assert isinstance(result, LedgerFailure)
        assert result.error == "Invalid payment information"
        assert result.reply == replies.INVALID_PAYMENT_REPLY

    assert db.query(Customer).count() == 0
    assert _payments(db) == []


def test_same_message_id_records_once(db):
    first = ledger_service.record_payment(db, "rahul", 500, Direction.RECEIVED, OWNER, message_id="wamid.1")
    second = ledger_service.record_payment(db, "rahul", 500, Direction.RECEIVED, OWNER, message_id="wamid.1")

    assert len(_payments(db)) == 1
    assert second.payment.id == first.payment.id
    assert second.reply == first.reply


def test_store_failure_becomes_technical_reply(db, monkeypatch):
    def broken_insert(self, **kwargs):
        raise LedgerStoreError("payment.insert", RuntimeError("disk full"))

    monkeypatch.setattr(PaymentStore, "insert", broken_insert)

    result = ledger_service.record_payment(db, "rahul", 500, Direction.RECEIVED, OWNER)

    assert isinstance(result, LedgerFailure)
    assert result.error == "Failed to record payment"
    assert result.reply == "I couldn't save that payment due to a technical issue. Please try again later."
    assert "disk full" not in result.reply


# ==============================================================================
# BALANCE
# ==============================================================================

def test_balance_statement(db):
    ledger_service.record_payment(db, "rahul", 500, Direction.RECEIVED, OWNER)
    ledger_service.record_payment(db, "rahul", 200, Direction.PAID, OWNER)

    result = ledger_service.query_balance(db, "rahul", OWNER)

    assert result.reply == (
        "📊 *Balance Statement for rahul*\n\n"
        "Total Received: ₹500\n"
        "Total Paid: ₹200\n"
        "Current Balance: ₹300 (to receive)"
    )
    assert result.customer_data == {"name": "rahul", "totalReceived": 500.0, "totalPaid": 200.0, "balance": 300.0}


def test_balance_for_unknown_name_never_creates(db):
    result = ledger_service.query_balance(db, "ghost", OWNER)

    assert isinstance(result, LedgerFailure)
    assert result.error == "Customer not found"
    assert result.reply == replies.customer_not_found_reply("ghost")
    assert db.query(Customer).count() == 0


def test_balance_without_name_uses_sender_phone(db):
    customer = CustomerStore(db).create(name="Self", phone=OWNER)
    PaymentStore(db).insert(customer.id, 150, PaymentDirection.CREDIT)

    result = ledger_service.query_balance(db, None, OWNER)

    assert isinstance(result, LedgerSuccess)
    assert "Balance Statement for Self" in result.reply

    missing = ledger_service.query_balance(db, None, "+911111111111")
    assert missing.reply == replies.customer_not_found_reply(None)


def test_balance_is_order_independent(db):
    customer = CustomerStore(db).create(name="rahul")
    store = PaymentStore(db)
    store.insert(customer.id, 100, PaymentDirection.DEBIT)
    store.insert(customer.id, 400, PaymentDirection.CREDIT)
    store.insert(customer.id, 50, PaymentDirection.DEBIT)

    payments = store.list_by_customer(customer.id)

    assert ledger_service.compute_balance(payments) == Decimal("250")
    assert ledger_service.compute_balance(reversed(payments)) == Decimal("250")


# ==============================================================================
# HISTORY
# ==============================================================================

def test_history_shows_five_newest_first(db):
    customer = CustomerStore(db).create(name="rahul")
    store = PaymentStore(db)
    for day in range(1, 7):
        direction = PaymentDirection.CREDIT if day % 2 else PaymentDirection.DEBIT
        store.insert(customer.id, day * 100, direction, date=datetime(2024, 1, day))

    result = ledger_service.query_history(db, "rahul", OWNER)

    lines = result.reply.split("\n\n", 1)[1].split("\n")
    assert result.reply.startswith("📝 *Recent Transactions for rahul*")
    assert len(lines) == 5
    assert lines[0] == "06/01/2024: Paid ₹600 via Cash"
    assert lines[-1] == "02/01/2024: Paid ₹200 via Cash"
    assert [t["amount"] for t in result.customer_data["transactions"]] == [600.0, 500.0, 400.0, 300.0, 200.0]


def test_history_for_customer_without_payments(db):
    CustomerStore(db).create(name="rahul")

    result = ledger_service.query_history(db, "rahul", OWNER)

    assert isinstance(result, LedgerSuccess)
    assert result.reply == replies.no_history_reply("rahul")


def test_history_for_unknown_name(db):
    result = ledger_service.query_history(db, "ghost", OWNER)

    assert isinstance(result, LedgerFailure)
    assert result.error == "Customer not found"
