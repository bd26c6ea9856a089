# usage_billing/services/usage_store.py

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql import Select

from usage_billing.db.schema import store_usage
from usage_billing.services.validation import parse_target_month

logger = logging.getLogger(__name__)


def month_range(target_month: str) -> Tuple[date, date]:
    """Half-open [first day, first day of next month) for a YYYY-MM string."""
    year, m = parse_target_month(target_month)
    first_day = date(year, m, 1)
    next_month = date(year + (m == 12), (m % 12) + 1, 1)
    return first_day, next_month


def replace_month(
    conn: Connection,
    customer_code: str,
    target_month: str,
    records: List[Dict[str, Any]],
) -> int:
    """
    Replace every usage row of `customer_code` in `target_month` with `records`.

    Runs on the caller's transaction; rows of the month that are absent from
    `records` are gone afterwards. Returns the number of rows inserted.
    """
    first_day, next_month = month_range(target_month)

    result = conn.execute(
        delete(store_usage).where(
            store_usage.c.customer_code == customer_code,
            store_usage.c.usage_date >= first_day,
            store_usage.c.usage_date < next_month,
        )
    )
    logger.info(
        "Removed %s usage rows for %s in %s", result.rowcount, customer_code, target_month
    )

    if records:
        conn.execute(store_usage.insert(), records)
    return len(records)


def fetch_usage(
    conn: Connection,
    customer_code: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_code: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Usage rows of a customer ordered by day then store.
    `start` is inclusive, `end` exclusive; either may be omitted.
    """
    conditions = [store_usage.c.customer_code == customer_code]
    if start is not None:
        conditions.append(store_usage.c.usage_date >= start)
    if end is not None:
        conditions.append(store_usage.c.usage_date < end)
    if store_code is not None:
        conditions.append(store_usage.c.store_code == store_code)

    stmt = (
        select(
            store_usage.c.customer_code,
            store_usage.c.store_code,
            store_usage.c.store_name,
            store_usage.c.usage_date,
            store_usage.c.total_labels,
            store_usage.c.product_updated,
        )
        .where(and_(*conditions))
        .order_by(store_usage.c.usage_date, store_usage.c.store_code)
    )
    return [dict(row) for row in conn.execute(stmt).mappings().all()]


def first_active_days(customer_code: str, before: Optional[date] = None) -> Select:
    """
    Earliest day with a positive label count per store, over the customer's
    whole history. With `before`, stores whose first such day is on or after
    it are left out.
    """
    start_date_of_use = func.min(store_usage.c.usage_date)
    stmt = (
        select(
            store_usage.c.store_code,
            start_date_of_use.label("start_date_of_use"),
        )
        .where(
            store_usage.c.customer_code == customer_code,
            store_usage.c.total_labels > 0,
        )
        .group_by(store_usage.c.store_code)
    )
    if before is not None:
        stmt = stmt.having(start_date_of_use < before)
    return stmt


def first_active_day(conn: Connection, customer_code: str, store_code: str) -> Optional[date]:
    """Earliest day, over the store's whole history, with a positive label count."""
    started = first_active_days(customer_code).subquery()
    stmt = select(started.c.start_date_of_use).where(started.c.store_code == store_code)
    return conn.execute(stmt).scalar_one_or_none()
