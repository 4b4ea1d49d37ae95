"""Customer and payment store over a SQLAlchemy session.

Every failed read/write is rolled back and re-raised as LedgerStoreError,
so callers deal with one exception type regardless of the database driver.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_accounting.core.exceptions import LedgerStoreError
from whatsapp_accounting.models.customer import Customer
from whatsapp_accounting.models.payment import Payment, PaymentDirection

logger = logging.getLogger(__name__)

PLACEHOLDER_PHONE_PREFIX = "pending-"


def placeholder_phone() -> str:
    """Unique stand-in for a counterparty whose number is not known yet."""
    return f"{PLACEHOLDER_PHONE_PREFIX}{uuid.uuid4().hex[:16]}"


def is_placeholder_phone(phone: Optional[str]) -> bool:
    return not phone or phone.startswith(PLACEHOLDER_PHONE_PREFIX)


class _Store:
    def __init__(self, db: Session):
        self.db = db

    def _fail(self, operation: str, error: Exception):
        self.db.rollback()
        logger.error(f"[Store] {operation} failed: {type(error).__name__}: {error}")
        raise LedgerStoreError(operation, error) from error


class CustomerStore(_Store):

    def find_by_name_ci(self, name: str) -> Optional[Customer]:
        """Case-insensitive exact match; oldest customer wins when names repeat."""
        try:
            return (
                self.db.query(Customer)
                .filter(func.lower(Customer.name) == name.strip().lower())
                .order_by(Customer.id)
                .first()
            )
        except SQLAlchemyError as e:
            self._fail("customer.find_by_name", e)

    def find_by_phone(self, phone: str) -> Optional[Customer]:
        try:
            return (
                self.db.query(Customer)
                .filter(Customer.phone_number == phone)
                .order_by(Customer.id)
                .first()
            )
        except SQLAlchemyError as e:
            self._fail("customer.find_by_phone", e)

    def get(self, customer_id: int) -> Optional[Customer]:
        try:
            return self.db.get(Customer, customer_id)
        except SQLAlchemyError as e:
            self._fail("customer.get", e)

    def list_all(self) -> List[Customer]:
        try:
            return self.db.query(Customer).order_by(Customer.name, Customer.id).all()
        except SQLAlchemyError as e:
            self._fail("customer.list", e)

    def create(self, name: str, phone: Optional[str] = None) -> Customer:
        customer = Customer(name=name, phone_number=phone or placeholder_phone())
        try:
            self.db.add(customer)
            self.db.commit()
            self.db.refresh(customer)
        except SQLAlchemyError as e:
            self._fail("customer.create", e)
        return customer

    def update(self, customer: Customer, name: Optional[str] = None, phone: Optional[str] = None) -> Customer:
        if name is not None:
            customer.name = name
        if phone is not None:
            customer.phone_number = phone or placeholder_phone()
        try:
            self.db.commit()
            self.db.refresh(customer)
        except SQLAlchemyError as e:
            self._fail("customer.update", e)
        return customer


class PaymentStore(_Store):

    def insert(
        self,
        customer_id: int,
        amount,
        direction: PaymentDirection,
        method: str = "Cash",
        date: Optional[datetime] = None,
        note: Optional[str] = None,
        recorded_by: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> Payment:
        payment = Payment(
            customer_id=customer_id,
            amount=Decimal(str(amount)),
            direction=direction,
            method=method or "Cash",
            date=date or datetime.now(timezone.utc),
            note=note,
            recorded_by=recorded_by,
            message_id=message_id,
        )
        try:
            self.db.add(payment)
            self.db.commit()
            self.db.refresh(payment)
        except SQLAlchemyError as e:
            self._fail("payment.insert", e)
        return payment

    def find_by_message_id(self, message_id: str) -> Optional[Payment]:
        try:
            return self.db.query(Payment).filter(Payment.message_id == message_id).first()
        except SQLAlchemyError as e:
            self._fail("payment.find_by_message_id", e)

    def list_by_customer(self, customer_id: int) -> List[Payment]:
        try:
            return self.db.query(Payment).filter(Payment.customer_id == customer_id).all()
        except SQLAlchemyError as e:
            self._fail("payment.list_by_customer", e)

    def list_recent(self, limit: int = 10, offset: int = 0, customer_id: Optional[int] = None) -> List[Payment]:
        """Newest first by payment date."""
        try:
            q = self.db.query(Payment)
            if customer_id is not None:
                q = q.filter(Payment.customer_id == customer_id)
            return q.order_by(Payment.date.desc(), Payment.id.desc()).offset(offset).limit(limit).all()
        except SQLAlchemyError as e:
            self._fail("payment.list_recent", e)

    def list_all(self) -> List[Payment]:
        try:
            return self.db.query(Payment).all()
        except SQLAlchemyError as e:
            self._fail("payment.list_all", e)

    def count(self, customer_id: Optional[int] = None) -> int:
        try:
            q = self.db.query(func.count(Payment.id))
            if customer_id is not None:
                q = q.filter(Payment.customer_id == customer_id)
            return q.scalar() or 0
        except SQLAlchemyError as e:
            self._fail("payment.count", e)

    def get(self, payment_id: int) -> Optional[Payment]:
        try:
            return self.db.get(Payment, payment_id)
        except SQLAlchemyError as e:
            self._fail("payment.get", e)

    def delete(self, payment: Payment) -> None:
        try:
            self.db.delete(payment)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail("payment.delete", e)
