from typing import Optional

from pydantic import BaseModel, Field


class ProviderTestRequest(BaseModel):
    provider: Optional[str] = None
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    message: Optional[str] = None

    class Config:
        populate_by_name = True
