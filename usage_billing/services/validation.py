# usage_billing/services/validation.py
"""
Validation of uploaded usage batches.

An upload is accepted or rejected as a whole: the first failed check raises and
nothing is written. Accepted rows come back as dicts keyed by `store_usage`
column names, deduplicated on (customer, store, day) with the last row winning.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from usage_billing.config import settings
from usage_billing.errors import BusinessRuleViolation, MalformedRequest, SchemaViolation
from usage_billing.models.invoices import UploadRequest

REQUIRED_COLUMNS = ["Day", "Company", "Store", "Total Labels", "Product Updated"]

# Accepted header spellings -> canonical column name.
# Covers the JSON upload (camelCase), snake_case callers and raw CSV headers.
COLUMN_ALIASES: Dict[str, str] = {
    "day": "Day",
    "Day": "Day",
    "date": "Day",
    "Date": "Day",
    "company": "Company",
    "Company": "Company",
    "store": "Store",
    "Store": "Store",
    "name": "Name",
    "Name": "Name",
    "storeName": "Name",
    "store_name": "Name",
    "Store Name": "Name",
    "totalLabels": "Total Labels",
    "total_labels": "Total Labels",
    "Total Labels": "Total Labels",
    "productUpdated": "Product Updated",
    "product_updated": "Product Updated",
    "Product Updated": "Product Updated",
}

INVALID_USAGE_DATA = "Usage data is invalid. Please check the contents of the usage data."
INVALID_MONTH = "Usage month format is invalid (YYYY-MM)."
INVALID_DAY = "Invalid date."

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

TTM_QUANTUM = Decimal("0.01")

# Largest value the INTEGER count columns hold on every supported engine
MAX_COUNT = 2_147_483_647


@dataclass
class ValidatedUpload:
    company_id: int
    company_code: str
    company_name: str
    issued_date: str
    currency: str
    ttm: Optional[Decimal]
    records: List[Dict[str, Any]] = field(default_factory=list)


def parse_target_month(value: str) -> Tuple[int, int]:
    """Split a YYYY-MM string into (year, month) or raise."""
    m = MONTH_PATTERN.match(value or "")
    if not m:
        raise BusinessRuleViolation(INVALID_MONTH)
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        raise BusinessRuleViolation(INVALID_MONTH)
    return year, month


def normalize_columns(row: Dict[str, Any]) -> Dict[str, Any]:
    """Map a raw row's keys onto canonical column names; unknown keys are kept as-is."""
    normalized: Dict[str, Any] = {}
    for key, value in row.items():
        name = key.strip() if isinstance(key, str) else key
        normalized[COLUMN_ALIASES.get(name, name)] = value
    return normalized


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _is_blank_row(row: Dict[str, Any]) -> bool:
    return all(_is_blank(row.get(column)) for column in REQUIRED_COLUMNS)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _coerce_number(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    elif not isinstance(value, (int, float, Decimal)):
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def _parse_count(number: Decimal, raw: Any) -> int:
    if number < 0 or number != number.to_integral_value():
        raise BusinessRuleViolation(
            f"Label count or update count must be a whole number of zero or more: {raw}"
        )
    if number > MAX_COUNT:
        raise BusinessRuleViolation(
            f"Label count or update count must not exceed {MAX_COUNT}: {raw}"
        )
    return int(number)


def _parse_day(raw: Any, target_month: str) -> date:
    day_raw = _as_text(raw)
    if len(day_raw) < 7:
        raise BusinessRuleViolation(INVALID_DAY)

    normalized = day_raw.replace("/", "-")
    if len(normalized) < 10:
        raise BusinessRuleViolation(INVALID_DAY)

    if normalized[:7] != target_month:
        raise BusinessRuleViolation([
            "Usage month does not match.",
            "Check the usage data and specify the correct usage month.",
        ])

    try:
        return datetime.strptime(normalized[:10], "%Y-%m-%d").date()
    except ValueError:
        raise BusinessRuleViolation(f"Invalid date: {day_raw}") from None


def _parse_store_code(raw: Any) -> str:
    store_code = "" if isinstance(raw, bool) else _as_text(raw)
    if store_code == "":
        raise BusinessRuleViolation(f"Invalid store code: {raw}")
    return store_code


def resolve_ttm(request: UploadRequest) -> Optional[Decimal]:
    """
    Mid-market rate for the invoice.

    An explicit `ttm` wins; otherwise it is the mean of the `tts`/`ttb` quotes.
    Both are rounded half-up to 2 places. Currencies listed in FX_CURRENCIES
    cannot be billed without one.
    """
    ttm = request.ttm
    if ttm is None and request.tts is not None and request.ttb is not None:
        ttm = (request.tts + request.ttb) / 2

    if ttm is None:
        if request.currency in settings.fx_currencies:
            raise BusinessRuleViolation(
                f"An exchange rate (TTM) is required for currency {request.currency}."
            )
        return None

    if not ttm.is_finite() or ttm <= 0:
        raise BusinessRuleViolation(f"Invalid exchange rate (TTM): {ttm}")
    return ttm.quantize(TTM_QUANTUM, rounding=ROUND_HALF_UP)


def validate_upload(payload: Any) -> ValidatedUpload:
    if not isinstance(payload, dict):
        raise MalformedRequest("Invalid request payload")
    try:
        request = UploadRequest.model_validate(payload)
    except ValidationError:
        raise MalformedRequest("Invalid request payload") from None

    if not request.summaries:
        raise BusinessRuleViolation("Usage data contains no records.")

    rows = [normalize_columns(row) for row in request.summaries]

    missing = [
        column for column in REQUIRED_COLUMNS
        if any(column not in row for row in rows)
    ]
    if missing:
        raise SchemaViolation([
            INVALID_USAGE_DATA,
            f"Missing columns in usage data: {', '.join(missing)}",
        ])

    rows = [row for row in rows if not _is_blank_row(row)]
    if not rows:
        raise BusinessRuleViolation("Usage data contains no records.")

    companies = {_as_text(row["Company"]) for row in rows}
    if len(companies) != 1:
        raise BusinessRuleViolation([
            INVALID_USAGE_DATA,
            "Usage data contains more than one company (Company). "
            "Export usage data for a single customer.",
        ])

    (data_company,) = companies
    if data_company != request.company_code:
        raise BusinessRuleViolation([
            "The selected customer does not match the customer in the usage data. "
            "Please check the contents of the usage data.",
            f"Selected customer: {request.company_code}",
            f"Usage data customer: {data_company}",
        ])

    parse_target_month(request.issued_date)

    records: Dict[Tuple[str, str, date], Dict[str, Any]] = {}
    for row in rows:
        usage_date = _parse_day(row["Day"], request.issued_date)
        store_code = _parse_store_code(row["Store"])

        total_labels = _coerce_number(row["Total Labels"])
        product_updated = _coerce_number(row["Product Updated"])
        if total_labels is None or product_updated is None:
            raise BusinessRuleViolation("Label count or update count is not numeric.")

        name = row.get("Name")
        store_name = name.strip() if isinstance(name, str) and name.strip() else None

        # Same key later in the batch replaces the earlier row
        records[(request.company_code, store_code, usage_date)] = {
            "customer_code": request.company_code,
            "store_code": store_code,
            "store_name": store_name,
            "usage_date": usage_date,
            "total_labels": _parse_count(total_labels, row["Total Labels"]),
            "product_updated": _parse_count(product_updated, row["Product Updated"]),
        }

    return ValidatedUpload(
        company_id=request.company_id,
        company_code=request.company_code,
        company_name=request.company_name,
        issued_date=request.issued_date,
        currency=request.currency,
        ttm=resolve_ttm(request),
        records=list(records.values()),
    )
