# usage_billing/models/invoices.py

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class UploadRequest(BaseModel):
    """
    Envelope of a usage upload. Rows in `summaries` stay raw dicts; they are
    checked column by column in services.validation.
    """
    company_id: int = Field(alias="companyId")
    company_code: str = Field(alias="companyCode", min_length=1)
    company_name: str = Field(alias="companyName", min_length=1)
    issued_date: str = Field(alias="issuedDate", min_length=1)
    currency: str = Field(min_length=1)
    ttm: Optional[Decimal] = None
    tts: Optional[Decimal] = None
    ttb: Optional[Decimal] = None
    summaries: List[Dict[str, Any]]

    class Config:
        populate_by_name = True


class InvoiceRef(BaseModel):
    id: int
    invoice_code: int
    issued_date: str


class UploadResponse(BaseModel):
    invoice: InvoiceRef


class IssuedInvoiceOut(BaseModel):
    id: int
    company_code: str
    company_name: str
    issued_date: str
    invoice_code: int
    currency: str
    ttm: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StoreSummaryOut(BaseModel):
    store_code: str
    store_name: Optional[str] = None
    start_date_of_use: date
    usage_days: int
    avg_label_count: Optional[float] = None
    avg_product_update_count: Optional[float] = None
