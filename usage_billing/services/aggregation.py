# usage_billing/services/aggregation.py
"""
Per-store usage figures that drive the billed amounts of a month.

A store is listed for a month once it has had a day with labels > 0 in that
month or any earlier one. For the target month it reports:

* start_date_of_use      first day with labels > 0, across all months
* usage_days             days of the month with labels > 0
* avg_label_count        mean labels over those days
* avg_product_update_count
                         mean product updates over those days

Averages are rounded half-up to 3 places and are None for a store with no
usage day in the month. Rows are ordered by start_date_of_use, store_code.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import case, distinct, func, select
from sqlalchemy.engine import Connection

from usage_billing.db.schema import store_usage
from usage_billing.services.usage_store import first_active_days, month_range

AVERAGE_QUANTUM = Decimal("0.001")


def _average(total: Optional[int], days: int) -> Optional[Decimal]:
    if not days:
        return None
    return (Decimal(total or 0) / Decimal(days)).quantize(AVERAGE_QUANTUM, rounding=ROUND_HALF_UP)


def summarize(conn: Connection, customer_code: str, target_month: str) -> List[Dict[str, Any]]:
    first_day, next_month = month_range(target_month)
    used = store_usage.c.total_labels > 0

    # Whole history: a store's first day of use may predate the month.
    # Stores that only started after the month do not belong to it.
    started = first_active_days(customer_code, before=next_month).cte("started")

    known_names = (
        select(
            store_usage.c.store_code,
            func.max(store_usage.c.store_name).label("store_name"),
        )
        .where(store_usage.c.customer_code == customer_code)
        .group_by(store_usage.c.store_code)
        .cte("known_names")
    )

    monthly = (
        select(
            store_usage.c.store_code,
            func.max(store_usage.c.store_name).label("store_name"),
            func.count(distinct(case((used, store_usage.c.usage_date)))).label("usage_days"),
            func.sum(case((used, store_usage.c.total_labels), else_=0)).label("label_total"),
            func.sum(case((used, store_usage.c.product_updated), else_=0)).label("update_total"),
        )
        .where(
            store_usage.c.customer_code == customer_code,
            store_usage.c.usage_date >= first_day,
            store_usage.c.usage_date < next_month,
        )
        .group_by(store_usage.c.store_code)
        .cte("monthly")
    )

    stmt = (
        select(
            started.c.store_code,
            func.coalesce(monthly.c.store_name, known_names.c.store_name).label("store_name"),
            started.c.start_date_of_use,
            monthly.c.usage_days,
            monthly.c.label_total,
            monthly.c.update_total,
        )
        .select_from(
            started
            .outerjoin(monthly, monthly.c.store_code == started.c.store_code)
            .outerjoin(known_names, known_names.c.store_code == started.c.store_code)
        )
        .order_by(started.c.start_date_of_use, started.c.store_code)
    )

    summaries = []
    for row in conn.execute(stmt).mappings().all():
        usage_days = int(row["usage_days"] or 0)
        summaries.append(
            {
                "store_code": row["store_code"],
                "store_name": row["store_name"],
                "start_date_of_use": row["start_date_of_use"],
                "usage_days": usage_days,
                "avg_label_count": _average(row["label_total"], usage_days),
                "avg_product_update_count": _average(row["update_total"], usage_days),
            }
        )
    return summaries
