"""Dashboard: manual payment entry, paginated list, totals and deletion."""
import logging
import math

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from whatsapp_accounting.api.deps import get_db
from whatsapp_accounting.core.audit import AuditLog
from whatsapp_accounting.core.exceptions import BusinessError, LedgerStoreError
from whatsapp_accounting.schemas.payment import PaymentCreate, PaymentPage, PaymentRecord, PaymentSummary
from whatsapp_accounting.services import ledger_service
from whatsapp_accounting.services.store import CustomerStore, PaymentStore

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_TRANSACTIONS = 5

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.post("", response_model=PaymentRecord, status_code=status.HTTP_201_CREATED)
def create_payment(data: PaymentCreate, db: Session = Depends(get_db)):
    try:
        customer = CustomerStore(db).get(data.customer_id)
        if not customer:
            raise BusinessError.not_found("Customer", reason=f"id={data.customer_id}")

        payment = PaymentStore(db).insert(
            customer_id=customer.id,
            amount=data.amount,
            direction=data.direction,
            method=data.method,
            date=data.date,
            note=data.note,
            recorded_by="dashboard",
        )
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to create payment")

    AuditLog.log_payment_recorded(
        payment.id, customer.id, payment.amount, payment.direction.value, "dashboard", source="dashboard"
    )
    return PaymentRecord.model_validate(payment)


@router.get("/summary", response_model=PaymentSummary)
def payment_summary(response: Response, db: Session = Depends(get_db)):
    """Totals across every customer plus the latest transactions."""
    response.headers.update(NO_CACHE_HEADERS)
    try:
        payments = PaymentStore(db)
        summary = ledger_service.summarize(payments.list_all())
        recent = payments.list_recent(limit=RECENT_TRANSACTIONS)
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to fetch summary")

    logger.debug(f"[Payments] Summary: {summary.to_dict()}")
    return PaymentSummary(
        summary={
            "totalReceived": float(summary.total_received),
            "totalPaid": float(summary.total_paid),
            "outstandingBalance": float(summary.balance),
        },
        recentTransactions=[PaymentRecord.model_validate(p) for p in recent],
    )


@router.get("", response_model=PaymentPage)
def list_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    try:
        payments = PaymentStore(db)
        total = payments.count()
        rows = payments.list_recent(limit=limit, offset=(page - 1) * limit)
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to fetch payments")

    return PaymentPage(
        payments=[PaymentRecord.model_validate(p) for p in rows],
        pagination={
            "total": total,
            "pages": math.ceil(total / limit),
            "currentPage": page,
            "limit": limit,
        },
    )


@router.delete("/{payment_id}", response_model=PaymentRecord)
def delete_payment(payment_id: int, db: Session = Depends(get_db)):
    store = PaymentStore(db)
    try:
        payment = store.get(payment_id)
        if not payment:
            raise BusinessError.not_found("Payment", reason=f"id={payment_id}")
        deleted = PaymentRecord.model_validate(payment)
        store.delete(payment)
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to delete payment")

    AuditLog.log_payment_deleted(deleted.id, deleted.customer_id, deleted.amount, deleted.direction.value)
    return deleted
