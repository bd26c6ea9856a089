# usage_billing/services/invoice_ledger.py
"""
Issued-invoice ledger.

Invoice codes are numbered per issued month across all customers: the first
invoice of 2024-05 is 1, the next one 2, whoever the customer is. Re-issuing a
month that already has an invoice keeps its code and only refreshes the
customer name, currency and rate.

Allocation reads the month's current maximum and inserts max + 1 on the
caller's transaction. Concurrent writers are kept apart by a transaction-scoped
advisory lock on PostgreSQL and, on every engine, by the unique constraint on
(issued_date, invoice_code); the upload service retries the transaction when
that constraint fires.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy.engine import Connection

from usage_billing.db.schema import issued_invoices
from usage_billing.services.validation import parse_target_month

logger = logging.getLogger(__name__)

_INVOICE_COLUMNS = (
    issued_invoices.c.id,
    issued_invoices.c.customer_code,
    issued_invoices.c.customer_name,
    issued_invoices.c.issued_date,
    issued_invoices.c.invoice_code,
    issued_invoices.c.currency,
    issued_invoices.c.ttm,
    issued_invoices.c.created_at,
    issued_invoices.c.updated_at,
)


def _lock_month(conn: Connection, target_month: str) -> None:
    if conn.dialect.name != "postgresql":
        return
    year, month = parse_target_month(target_month)
    conn.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": year * 100 + month},
    )


def find_invoice(conn: Connection, customer_code: str, target_month: str) -> Optional[Dict[str, Any]]:
    stmt = select(*_INVOICE_COLUMNS).where(
        issued_invoices.c.customer_code == customer_code,
        issued_invoices.c.issued_date == target_month,
    )
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row is not None else None


def current_max_invoice_code(conn: Connection, target_month: str) -> int:
    """Highest code issued so far for the month, 0 when none."""
    stmt = select(func.coalesce(func.max(issued_invoices.c.invoice_code), 0)).where(
        issued_invoices.c.issued_date == target_month
    )
    return conn.execute(stmt).scalar_one()


def _get(conn: Connection, invoice_id: int) -> Dict[str, Any]:
    stmt = select(*_INVOICE_COLUMNS).where(issued_invoices.c.id == invoice_id)
    return dict(conn.execute(stmt).mappings().one())


def _reissue(
    conn: Connection,
    existing: Dict[str, Any],
    customer_name: str,
    currency: str,
    ttm: Optional[Decimal],
) -> Dict[str, Any]:
    conn.execute(
        issued_invoices.update()
        .where(issued_invoices.c.id == existing["id"])
        .values(customer_name=customer_name, currency=currency, ttm=ttm)
    )
    logger.info(
        "Re-issued invoice %s-%s for %s",
        existing["issued_date"], existing["invoice_code"], existing["customer_code"],
    )
    return _get(conn, existing["id"])


def _issue(
    conn: Connection,
    customer_code: str,
    customer_name: str,
    target_month: str,
    currency: str,
    ttm: Optional[Decimal],
) -> Dict[str, Any]:
    invoice_code = current_max_invoice_code(conn, target_month) + 1
    result = conn.execute(
        issued_invoices.insert().values(
            customer_code=customer_code,
            customer_name=customer_name,
            issued_date=target_month,
            invoice_code=invoice_code,
            currency=currency,
            ttm=ttm,
        )
    )
    logger.info("Issued invoice %s-%s for %s", target_month, invoice_code, customer_code)
    return _get(conn, result.inserted_primary_key[0])


def upsert_invoice_for_month(
    conn: Connection,
    customer_code: str,
    customer_name: str,
    target_month: str,
    currency: str,
    ttm: Optional[Decimal],
) -> Dict[str, Any]:
    _lock_month(conn, target_month)

    existing = find_invoice(conn, customer_code, target_month)
    if existing is not None:
        return _reissue(conn, existing, customer_name, currency, ttm)
    return _issue(conn, customer_code, customer_name, target_month, currency, ttm)


def list_for_customer(conn: Connection, customer_code: str) -> List[Dict[str, Any]]:
    """All invoices of a customer, most recent month first."""
    stmt = (
        select(*_INVOICE_COLUMNS)
        .where(issued_invoices.c.customer_code == customer_code)
        .order_by(issued_invoices.c.issued_date.desc(), issued_invoices.c.invoice_code.desc())
    )
    return [dict(row) for row in conn.execute(stmt).mappings().all()]
