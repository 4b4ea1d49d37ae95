from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from whatsapp_accounting.models.payment import PaymentDirection


class PaymentCreate(BaseModel):
    customer_id: int = Field(..., alias="customerId")
    amount: Decimal = Field(..., gt=0)
    direction: PaymentDirection
    method: str = "Cash"
    date: Optional[datetime] = None
    note: Optional[str] = None

    class Config:
        populate_by_name = True


class PaymentCustomer(BaseModel):
    name: str
    phone_number: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentRecord(BaseModel):
    id: int
    customer_id: int
    amount: Decimal
    direction: PaymentDirection
    method: Optional[str] = None
    date: Optional[datetime] = None
    note: Optional[str] = None
    recorded_by: Optional[str] = None
    created_at: Optional[datetime] = None
    customer: Optional[PaymentCustomer] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    pages: int
    currentPage: int
    limit: int


class PaymentPage(BaseModel):
    payments: List[PaymentRecord]
    pagination: Pagination


class PaymentTotals(BaseModel):
    totalReceived: float
    totalPaid: float
    outstandingBalance: float


class PaymentSummary(BaseModel):
    summary: PaymentTotals
    recentTransactions: List[PaymentRecord]
