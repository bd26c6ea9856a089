# usage_billing/api/invoices.py

from typing import Any, List, Optional

from fastapi import APIRouter, Body, File, Form, Query, UploadFile

from usage_billing.config import settings
from usage_billing.db.engine import get_engine
from usage_billing.errors import MalformedRequest
from usage_billing.models.invoices import (
    IssuedInvoiceOut,
    StoreSummaryOut,
    UploadResponse,
)
from usage_billing.services.aggregation import summarize
from usage_billing.services.csv_import import decode_csv, parse_usage_csv
from usage_billing.services.invoice_ledger import list_for_customer
from usage_billing.services.upload import upload_usage
from usage_billing.services.validation import parse_target_month

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _row_to_invoice(row) -> IssuedInvoiceOut:
    return IssuedInvoiceOut(
        id=row["id"],
        company_code=row["customer_code"],
        company_name=row["customer_name"],
        issued_date=row["issued_date"],
        invoice_code=row["invoice_code"],
        currency=row["currency"],
        ttm=float(row["ttm"]) if row["ttm"] is not None else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_summary(row) -> StoreSummaryOut:
    avg_labels = row["avg_label_count"]
    avg_updates = row["avg_product_update_count"]
    return StoreSummaryOut(
        store_code=row["store_code"],
        store_name=row["store_name"],
        start_date_of_use=row["start_date_of_use"],
        usage_days=row["usage_days"],
        avg_label_count=float(avg_labels) if avg_labels is not None else None,
        avg_product_update_count=float(avg_updates) if avg_updates is not None else None,
    )


def _require_code(company_code: Optional[str]) -> str:
    if company_code is None or company_code.strip() == "":
        raise MalformedRequest("companyCode is required")
    return company_code


@router.post("/upload", response_model=UploadResponse, status_code=201)
def upload_invoice(payload: Any = Body(...)) -> UploadResponse:
    """
    Register a month of store usage for a customer and issue (or refresh) the
    month's invoice. The whole batch is rejected on the first invalid row.
    """
    return UploadResponse(**upload_usage(payload))


@router.post("/upload-csv", response_model=UploadResponse, status_code=201)
def upload_invoice_csv(
    file: UploadFile = File(...),
    company_id: int = Form(..., alias="companyId"),
    company_code: str = Form(..., alias="companyCode"),
    company_name: str = Form(..., alias="companyName"),
    issued_date: str = Form(..., alias="issuedDate"),
    currency: str = Form(...),
    ttm: Optional[str] = Form(default=None),
    tts: Optional[str] = Form(default=None),
    ttb: Optional[str] = Form(default=None),
) -> UploadResponse:
    """
    Same as /invoices/upload, with the usage rows read from a .csv file.
    """
    if not (file.filename or "").lower().endswith(".csv"):
        raise MalformedRequest("Only .csv files can be uploaded.")

    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise MalformedRequest("The usage data file is too large.")

    rows, _ = parse_usage_csv(decode_csv(content))

    payload = {
        "companyId": company_id,
        "companyCode": company_code,
        "companyName": company_name,
        "issuedDate": issued_date,
        "currency": currency,
        "ttm": ttm or None,
        "tts": tts or None,
        "ttb": ttb or None,
        "summaries": rows,
    }
    return UploadResponse(**upload_usage(payload))


@router.get("/issued", response_model=List[IssuedInvoiceOut])
def list_issued_invoices(
    company_code: Optional[str] = Query(default=None, alias="companyCode"),
) -> List[IssuedInvoiceOut]:
    """
    Invoices issued to a customer, newest month first.
    """
    company_code = _require_code(company_code)

    with get_engine().connect() as conn:
        rows = list_for_customer(conn, company_code)

    return [_row_to_invoice(row) for row in rows]


@router.get("/summaries", response_model=List[StoreSummaryOut])
def store_summaries(
    company_code: Optional[str] = Query(default=None, alias="companyCode"),
    issued_date: Optional[str] = Query(
        default=None,
        alias="issuedDate",
        description="Target month in YYYY-MM format",
    ),
) -> List[StoreSummaryOut]:
    """
    Per-store usage figures of a customer for the target month, in invoice line order.
    """
    company_code = _require_code(company_code)
    if issued_date is None or issued_date.strip() == "":
        raise MalformedRequest("issuedDate is required")
    parse_target_month(issued_date)

    with get_engine().connect() as conn:
        rows = summarize(conn, company_code, issued_date)

    return [_row_to_summary(row) for row in rows]
