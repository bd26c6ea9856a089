# usage_billing/models/customers.py

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CustomerIn(BaseModel):
    company_code: str = Field(min_length=1)
    company_name: str = Field(min_length=1)
    unit_price: Decimal = Field(ge=0)
    currency: str = Field(min_length=1)


class CustomerUpdate(BaseModel):
    company_code: Optional[str] = Field(default=None, min_length=1)
    company_name: Optional[str] = Field(default=None, min_length=1)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=1)


class CustomerOut(BaseModel):
    id: int
    company_code: str
    company_name: str
    si_partner_name: str
    unit_price: Decimal
    currency: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
