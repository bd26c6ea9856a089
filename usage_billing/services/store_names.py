# usage_billing/services/store_names.py

from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.engine import Connection

from usage_billing.db.schema import store_directory


def resolve_store_names(
    conn: Connection, customer_code: str, records: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Fill missing store names from the store directory of `customer_code`.

    Records without a directory entry keep store_name=None. The input list is
    left untouched; enriched copies are returned.
    """
    missing = sorted({r["store_code"] for r in records if r["store_name"] is None})
    if not missing:
        return [dict(r) for r in records]

    stmt = (
        select(store_directory.c.store_code, store_directory.c.store_name)
        .where(
            store_directory.c.customer_code == customer_code,
            store_directory.c.store_code.in_(missing),
        )
    )
    names = {row.store_code: row.store_name for row in conn.execute(stmt)}

    resolved = []
    for record in records:
        record = dict(record)
        if record["store_name"] is None:
            record["store_name"] = names.get(record["store_code"]) or None
        resolved.append(record)
    return resolved
