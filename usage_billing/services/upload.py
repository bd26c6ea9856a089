# usage_billing/services/upload.py

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from usage_billing.config import settings
from usage_billing.db.engine import get_engine
from usage_billing.db.schema import customers
from usage_billing.errors import NotFound, StorageFailure
from usage_billing.services.invoice_ledger import upsert_invoice_for_month
from usage_billing.services.store_names import resolve_store_names
from usage_billing.services.usage_store import replace_month
from usage_billing.services.validation import ValidatedUpload, validate_upload

logger = logging.getLogger(__name__)


def _require_customer(conn: Connection, customer_id: int, customer_code: str) -> None:
    stmt = select(customers.c.id).where(
        customers.c.id == customer_id,
        customers.c.company_code == customer_code,
    )
    if conn.execute(stmt).first() is None:
        raise NotFound("The specified customer was not found.")


def _write(conn: Connection, upload: ValidatedUpload) -> Dict[str, Any]:
    _require_customer(conn, upload.company_id, upload.company_code)

    records = resolve_store_names(conn, upload.company_code, upload.records)
    inserted = replace_month(conn, upload.company_code, upload.issued_date, records)
    logger.info(
        "Stored %s usage rows for %s in %s", inserted, upload.company_code, upload.issued_date
    )

    return upsert_invoice_for_month(
        conn,
        customer_code=upload.company_code,
        customer_name=upload.company_name,
        target_month=upload.issued_date,
        currency=upload.currency,
        ttm=upload.ttm,
    )


def store_upload(upload: ValidatedUpload, engine: Optional[Engine] = None) -> Dict[str, Any]:
    """
    Persist a validated upload in one transaction and return the invoice row.

    A unique-constraint violation (two first uploads of a month racing for the
    same invoice code) rolls the transaction back and the whole write is tried
    again, up to INVOICE_ALLOCATION_ATTEMPTS times.
    """
    engine = engine or get_engine()
    attempts = max(1, settings.INVOICE_ALLOCATION_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        try:
            with engine.begin() as conn:
                return _write(conn, upload)
        except IntegrityError as exc:
            if attempt == attempts:
                logger.error(
                    "Giving up on upload for %s in %s after %s attempts: %s",
                    upload.company_code, upload.issued_date, attempts, exc,
                )
                raise StorageFailure("Failed to register the usage data.") from exc
            logger.warning(
                "Invoice allocation conflict for %s in %s (attempt %s/%s), retrying",
                upload.company_code, upload.issued_date, attempt, attempts,
            )
        except SQLAlchemyError as exc:
            logger.exception("Storage error while registering usage for %s", upload.company_code)
            raise StorageFailure("Failed to register the usage data.") from exc


def upload_usage(payload: Any, engine: Optional[Engine] = None) -> Dict[str, Any]:
    """
    Validate an upload payload, store it and create or refresh the month's invoice.

    Returns {"invoice": {"id", "invoice_code", "issued_date"}}.
    """
    upload = validate_upload(payload)
    logger.info(
        "Upload for %s in %s: %s validated rows",
        upload.company_code, upload.issued_date, len(upload.records),
    )

    invoice = store_upload(upload, engine)
    return {
        "invoice": {
            "id": invoice["id"],
            "invoice_code": invoice["invoice_code"],
            "issued_date": invoice["issued_date"],
        }
    }
