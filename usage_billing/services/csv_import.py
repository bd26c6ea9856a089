# usage_billing/services/csv_import.py

import csv
import io
from typing import Any, Dict, List, Tuple

from usage_billing.errors import MalformedRequest


def decode_csv(content: bytes) -> str:
    """Decode an uploaded file; UTF-8 with or without BOM."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise MalformedRequest("The usage data file is not valid UTF-8.") from None


def parse_usage_csv(text: str) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Read usage rows from CSV text, keeping the raw header names.

    Column names are resolved later by the validator, so any accepted
    spelling ("Total Labels", "totalLabels", ...) is fine here.
    """
    rows: List[Dict[str, Any]] = []
    stores = set()
    months = set()
    companies = set()
    n_blank = 0

    reader = csv.DictReader(io.StringIO(text))
    for row in reader:
        # DictReader files surplus cells under the None key
        row.pop(None, None)
        if all(value is None or not value.strip() for value in row.values()):
            n_blank += 1
            continue

        rows.append(row)

        day = (row.get("Day") or row.get("day") or "").strip().replace("/", "-")
        if len(day) >= 7:
            months.add(day[:7])
        store = (row.get("Store") or row.get("store") or "").strip()
        if store:
            stores.add(store)
        company = (row.get("Company") or row.get("company") or "").strip()
        if company:
            companies.add(company)

    stats = {
        "n_rows": len(rows),
        "n_blank": n_blank,
        "headers": list(reader.fieldnames or []),
        "n_stores": len(stores),
        "companies": sorted(companies),
        "months": sorted(months),
    }
    return rows, stats
