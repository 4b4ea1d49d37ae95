from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, alias="phoneNumber")

    class Config:
        populate_by_name = True


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, alias="phoneNumber")

    class Config:
        populate_by_name = True


class CustomerSummary(BaseModel):
    """Dashboard list row: the customer plus their running balance."""
    id: int
    name: str
    phoneNumber: Optional[str] = None
    balance: float
    transactionCount: int


class CustomerDetail(BaseModel):
    id: int
    name: str
    phoneNumber: Optional[str] = None
    balance: float
    totalReceived: float
    totalPaid: float
    created_at: Optional[datetime] = None
