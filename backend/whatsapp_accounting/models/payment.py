import enum

from sqlalchemy import Column, Integer, ForeignKey, Numeric, DateTime, String, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from whatsapp_accounting.db.base import Base


class PaymentDirection(str, enum.Enum):
    CREDIT = "CREDIT"  # money the business received from the customer
    DEBIT = "DEBIT"    # money the business paid to the customer


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    direction = Column(Enum(PaymentDirection, name="payment_direction"), nullable=False)
    method = Column(String(64), nullable=False, default="Cash")
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    note = Column(String(512), nullable=True)
    recorded_by = Column(String(64), nullable=True)
    # Provider message id; unique so a redelivered webhook cannot insert twice
    message_id = Column(String(128), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("Customer", back_populates="payments")

    def __repr__(self):
        return f"<Payment id={self.id} {self.direction.value if self.direction else None} {self.amount}>"
