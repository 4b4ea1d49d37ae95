"""
Ledger service - payments recorded from chat, balance and history queries.

SIGN CONVENTION (the only place balance arithmetic lives):
    CREDIT = money the business received from the customer
    DEBIT  = money the business paid to the customer
    balance = sum(CREDIT) - sum(DEBIT)
    balance > 0: the customer owes the business ("to receive")
    balance < 0: the business owes the customer ("to pay")

WhatsApp replies, the dashboard customer list and the dashboard summary all
go through compute_balance()/summarize().

Every operation returns LedgerSuccess or LedgerFailure. Store failures are
logged here and turned into a generic reply; nothing from the database ever
reaches the chat.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from whatsapp_accounting.agent.intent_schema import Direction
from whatsapp_accounting.core.audit import AuditLog
from whatsapp_accounting.core.config import settings
from whatsapp_accounting.core.exceptions import LedgerStoreError
from whatsapp_accounting.models.customer import Customer
from whatsapp_accounting.models.payment import Payment, PaymentDirection
from whatsapp_accounting.services import reply_renderer as replies
from whatsapp_accounting.services.store import CustomerStore, PaymentStore

logger = logging.getLogger(__name__)

CREDIT_INCREASES_BALANCE = True


# ==============================================================================
# RESULTS
# ==============================================================================

@dataclass
class LedgerSuccess:
    message: str
    payment: Optional[Payment] = None
    balance: Optional[Decimal] = None
    customer_data: dict = field(default_factory=dict)

    @property
    def reply(self) -> str:
        return self.message


@dataclass
class LedgerFailure:
    error: str
    response_message: str

    @property
    def reply(self) -> str:
        return self.response_message


LedgerResult = Union[LedgerSuccess, LedgerFailure]


@dataclass
class LedgerSummary:
    total_received: Decimal
    total_paid: Decimal
    balance: Decimal

    def to_dict(self) -> dict:
        return {
            "totalReceived": float(self.total_received),
            "totalPaid": float(self.total_paid),
            "balance": float(self.balance),
        }


# ==============================================================================
# BALANCE ARITHMETIC
# ==============================================================================

def signed_amount(payment: Payment) -> Decimal:
    amount = Decimal(str(payment.amount or 0))
    increases = (payment.direction == PaymentDirection.CREDIT) == CREDIT_INCREASES_BALANCE
    return amount if increases else -amount


def compute_balance(payments: Iterable[Payment]) -> Decimal:
    """Net balance over the full payment set. Order-independent."""
    return sum((signed_amount(p) for p in payments), Decimal("0"))


def summarize(payments: Iterable[Payment]) -> LedgerSummary:
    payments = list(payments)
    total_received = sum(
        (Decimal(str(p.amount)) for p in payments if p.direction == PaymentDirection.CREDIT),
        Decimal("0"),
    )
    total_paid = sum(
        (Decimal(str(p.amount)) for p in payments if p.direction == PaymentDirection.DEBIT),
        Decimal("0"),
    )
    return LedgerSummary(
        total_received=total_received,
        total_paid=total_paid,
        balance=compute_balance(payments),
    )


def to_ledger_direction(direction: Union[Direction, str]) -> PaymentDirection:
    """Chat direction -> ledger enum. Raises ValueError for anything else."""
    if Direction(direction) == Direction.RECEIVED:
        return PaymentDirection.CREDIT
    return PaymentDirection.DEBIT


def _valid_amount(amount) -> Optional[Decimal]:
    if amount is None or isinstance(amount, bool):
        return None
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


# ==============================================================================
# OPERATIONS
# ==============================================================================

def resolve_customer(db: Session, name: Optional[str], sender_phone: Optional[str]) -> Optional[Customer]:
    """Named lookup when a name was given, otherwise the sender's own number."""
    customers = CustomerStore(db)
    if name:
        return customers.find_by_name_ci(name)
    if sender_phone:
        return customers.find_by_phone(sender_phone)
    return None


def record_payment(
    db: Session,
    name: Optional[str],
    amount,
    direction: Union[Direction, str, None],
    recorded_by: Optional[str],
    message_id: Optional[str] = None,
) -> LedgerResult:
    """
    Record a payment against the named counterparty, creating them if needed.

    The counterparty is never the sender: the sender is whoever keeps the
    books, ``name`` is who the money moved with.

    Returns:
        LedgerSuccess(message, payment, balance) or LedgerFailure(error, response_message)
    """
    name = name.strip() if isinstance(name, str) else ""
    value = _valid_amount(amount)
    try:
        ledger_direction = to_ledger_direction(direction)
    except ValueError:
        ledger_direction = None

    if not name or value is None or ledger_direction is None:
        logger.info(f"[Ledger] Rejected payment: name={name!r} amount={amount!r} direction={direction!r}")
        return LedgerFailure(
            error="Invalid payment information",
            response_message=replies.invalid_payment_reply(),
        )

    customers = CustomerStore(db)
    payments = PaymentStore(db)

    try:
        if message_id:
            existing = payments.find_by_message_id(message_id)
            if existing:
                logger.warning(f"[Ledger] Duplicate delivery for message {message_id}; payment #{existing.id} kept")
                return _payment_confirmation(payments, existing.customer, existing)

        customer = customers.find_by_name_ci(name)
        if not customer:
            customer = customers.create(name=name)
            AuditLog.log_customer_created(customer.id, customer.name)
            logger.info(f"[Ledger] Created customer #{customer.id} '{customer.name}'")

        payment = payments.insert(
            customer_id=customer.id,
            amount=value,
            direction=ledger_direction,
            method=settings.DEFAULT_PAYMENT_METHOD,
            recorded_by=recorded_by,
            message_id=message_id,
        )
        AuditLog.log_payment_recorded(
            payment.id, customer.id, payment.amount, ledger_direction.value, recorded_by
        )
        return _payment_confirmation(payments, customer, payment, display_name=name)

    except LedgerStoreError as e:
        logger.error(f"[Ledger] Error recording payment for '{name}': {e}", exc_info=True)
        return LedgerFailure(
            error="Failed to record payment",
            response_message=replies.technical_issue_reply("save that payment"),
        )


def _payment_confirmation(
    payments: PaymentStore,
    customer: Customer,
    payment: Payment,
    display_name: Optional[str] = None,
) -> LedgerSuccess:
    # Full re-scan of the customer's payments, not incremental
    balance = compute_balance(payments.list_by_customer(customer.id))
    message = replies.payment_recorded_reply(
        name=display_name or customer.name,
        amount=payment.amount,
        received=payment.direction == PaymentDirection.CREDIT,
        balance=balance,
    )
    return LedgerSuccess(message=message, payment=payment, balance=balance)


def query_balance(db: Session, name: Optional[str], sender_phone: Optional[str]) -> LedgerResult:
    """Totals and net balance for a customer. Never creates a customer."""
    try:
        customer = resolve_customer(db, name, sender_phone)
        if not customer:
            return LedgerFailure(
                error="Customer not found",
                response_message=replies.customer_not_found_reply(name),
            )

        summary = summarize(PaymentStore(db).list_by_customer(customer.id))
        message = replies.balance_reply(
            customer.name, summary.total_received, summary.total_paid, summary.balance
        )
        return LedgerSuccess(
            message=message,
            balance=summary.balance,
            customer_data={"name": customer.name, **summary.to_dict()},
        )

    except LedgerStoreError as e:
        logger.error(f"[Ledger] Error fetching balance (name={name!r}, sender={sender_phone}): {e}", exc_info=True)
        return LedgerFailure(
            error="Failed to fetch balance",
            response_message=replies.technical_issue_reply("retrieve the balance information"),
        )


def recent_payments(payments: List[Payment], limit: int = replies.HISTORY_LIMIT) -> List[Payment]:
    return sorted(payments, key=lambda p: (p.date, p.id), reverse=True)[:limit]


def query_history(db: Session, name: Optional[str], sender_phone: Optional[str]) -> LedgerResult:
    """Five most recent transactions for a customer, newest first."""
    try:
        customer = resolve_customer(db, name, sender_phone)
        if not customer:
            return LedgerFailure(
                error="Customer not found",
                response_message=replies.customer_not_found_reply(name),
            )

        recent = recent_payments(PaymentStore(db).list_by_customer(customer.id))
        if not recent:
            return LedgerSuccess(
                message=replies.no_history_reply(customer.name),
                customer_data={"name": customer.name, "transactions": []},
            )

        lines = [
            replies.history_line(
                p.date, p.direction == PaymentDirection.CREDIT, p.amount, p.method, p.note
            )
            for p in recent
        ]
        return LedgerSuccess(
            message=replies.history_reply(customer.name, lines),
            customer_data={
                "name": customer.name,
                "transactions": [
                    {
                        "id": p.id,
                        "date": p.date.isoformat() if p.date else None,
                        "amount": float(p.amount),
                        "direction": p.direction.value,
                        "method": p.method,
                        "note": p.note,
                    }
                    for p in recent
                ],
            },
        )

    except LedgerStoreError as e:
        logger.error(f"[Ledger] Error fetching history (name={name!r}, sender={sender_phone}): {e}", exc_info=True)
        return LedgerFailure(
            error="Failed to fetch history",
            response_message=replies.technical_issue_reply("retrieve the transaction history"),
        )
