"""Dashboard: customers with their running balances and payment history."""
import logging
import math

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from whatsapp_accounting.api.deps import get_db
from whatsapp_accounting.core.audit import AuditLog
from whatsapp_accounting.core.exceptions import BusinessError, LedgerStoreError
from whatsapp_accounting.models.customer import Customer
from whatsapp_accounting.schemas.customer import CustomerCreate, CustomerDetail, CustomerSummary, CustomerUpdate
from whatsapp_accounting.schemas.payment import PaymentPage, PaymentRecord
from whatsapp_accounting.services import ledger_service
from whatsapp_accounting.services.store import CustomerStore, PaymentStore, is_placeholder_phone
from whatsapp_accounting.whatsapp.phone import is_valid_whatsapp_number, normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter()


def _display_phone(customer: Customer):
    return None if is_placeholder_phone(customer.phone_number) else customer.phone_number


def _clean_phone(raw) -> str:
    """Normalized dashboard phone; "" means unknown. Raises 400 when malformed."""
    if not raw or not raw.strip():
        return ""
    if not is_valid_whatsapp_number(raw):
        raise BusinessError.bad_request("Phone number must contain 10 to 15 digits")
    return normalize_phone(raw)


def _detail(customer: Customer) -> CustomerDetail:
    summary = ledger_service.summarize(customer.payments)
    return CustomerDetail(
        id=customer.id,
        name=customer.name,
        phoneNumber=_display_phone(customer),
        balance=float(summary.balance),
        totalReceived=float(summary.total_received),
        totalPaid=float(summary.total_paid),
        created_at=customer.created_at,
    )


def _get_customer(store: CustomerStore, customer_id: int) -> Customer:
    customer = store.get(customer_id)
    if not customer:
        raise BusinessError.not_found("Customer", reason=f"id={customer_id}")
    return customer


@router.get("", response_model=list[CustomerSummary])
def list_customers(db: Session = Depends(get_db)):
    """All customers with balance = received - paid."""
    try:
        customers = CustomerStore(db).list_all()
        return [
            CustomerSummary(
                id=c.id,
                name=c.name,
                phoneNumber=_display_phone(c),
                balance=float(ledger_service.compute_balance(c.payments)),
                transactionCount=len(c.payments),
            )
            for c in customers
        ]
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to fetch customers")


@router.post("", response_model=CustomerDetail, status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db)):
    store = CustomerStore(db)
    phone = _clean_phone(data.phone_number)
    name = data.name.strip()
    if not name:
        raise BusinessError.bad_request("Name is required")

    try:
        if phone and store.find_by_phone(phone):
            raise BusinessError.bad_request("Customer with this phone number already exists")
        customer = store.create(name=name, phone=phone or None)
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to create customer")

    AuditLog.log_customer_created(customer.id, customer.name, source="dashboard")
    logger.info(f"[Customers] Created customer #{customer.id} '{customer.name}' from dashboard")
    return _detail(customer)


@router.get("/{customer_id}", response_model=CustomerDetail)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    try:
        return _detail(_get_customer(CustomerStore(db), customer_id))
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to fetch customer")


@router.put("/{customer_id}", response_model=CustomerDetail)
def update_customer(customer_id: int, data: CustomerUpdate, db: Session = Depends(get_db)):
    """Rename and/or set the phone number. An empty phone resets it to unknown."""
    store = CustomerStore(db)
    phone = None if data.phone_number is None else _clean_phone(data.phone_number)

    try:
        customer = _get_customer(store, customer_id)
        if phone:
            owner = store.find_by_phone(phone)
            if owner and owner.id != customer.id:
                raise BusinessError.bad_request("Customer with this phone number already exists")
        name = data.name.strip() if data.name is not None else None
        customer = store.update(customer, name=name or None, phone=phone)
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to update customer")

    logger.info(f"[Customers] Updated customer #{customer.id}")
    return _detail(customer)


@router.get("/{customer_id}/history", response_model=PaymentPage)
def customer_history(
    customer_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Paginated payments for one customer, newest first."""
    try:
        _get_customer(CustomerStore(db), customer_id)
        payments = PaymentStore(db)
        total = payments.count(customer_id=customer_id)
        rows = payments.list_recent(limit=limit, offset=(page - 1) * limit, customer_id=customer_id)
    except LedgerStoreError as e:
        raise BusinessError.server_error(e, "Failed to fetch payment history")

    return PaymentPage(
        payments=[PaymentRecord.model_validate(p) for p in rows],
        pagination={
            "total": total,
            "pages": math.ceil(total / limit),
            "currentPage": page,
            "limit": limit,
        },
    )
