# scripts/ingest.py

import argparse
import csv
import logging

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from usage_billing.db.engine import get_engine
from usage_billing.db.schema import customers, store_directory
from usage_billing.services.csv_import import parse_usage_csv
from usage_billing.services.upload import upload_usage

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

FILE_PATH = "data/usage.csv"
STORES_FILE_PATH = "data/stores.csv"


def read_usage_file(file_path: str = FILE_PATH):
    with open(file_path, newline="", encoding="utf-8-sig") as f:
        return parse_usage_csv(f.read())


def _dialect_insert(conn):
    if conn.dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


def upsert_store(conn, store_row: dict) -> None:
    """
    Insert or update a store directory entry by (customer_code, store_code).

    store_row: {"customer_code": "ACME", "store_code": "007", "store_name": "Shibuya"}
    """
    stmt = _dialect_insert(conn)(store_directory).values(**store_row)
    stmt = stmt.on_conflict_do_update(
        index_elements=[store_directory.c.customer_code, store_directory.c.store_code],
        set_={"store_name": stmt.excluded.store_name},
    )
    conn.execute(stmt)


def parse_store_csv(file_path: str = STORES_FILE_PATH):
    """
    Read a store directory CSV with Company, Store and Name columns.
    Rows missing any of the three are counted as errors and skipped.
    """
    stores = {}
    n_rows = 0
    n_errors = 0
    error_examples = []

    with open(file_path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)

        for row in reader:
            n_rows += 1
            customer_code = (row.get("Company") or "").strip()
            store_code = (row.get("Store") or "").strip()
            store_name = (row.get("Name") or "").strip()

            if not (customer_code and store_code and store_name):
                n_errors += 1
                if len(error_examples) < 5:
                    error_examples.append(f"Incomplete store row {n_rows}: {dict(row)}")
                continue

            # Later rows for the same store win
            stores[(customer_code, store_code)] = {
                "customer_code": customer_code,
                "store_code": store_code,
                "store_name": store_name,
            }

    stats = {
        "n_rows": n_rows,
        "n_stores": len(stores),
        "n_errors": n_errors,
        "error_examples": error_examples,
    }
    return list(stores.values()), stats


def load_store_directory(stores_list) -> None:
    engine = get_engine()
    with engine.begin() as conn:
        for store in stores_list:
            upsert_store(conn, store)


def upload_usage_file(file_path: str, customer_code: str, month: str, ttm=None):
    """
    Upload a usage CSV for a registered customer. Name and currency are taken
    from the customer master.
    """
    rows, stats = read_usage_file(file_path)

    engine = get_engine()
    with engine.connect() as conn:
        customer = conn.execute(
            select(customers.c.id, customers.c.company_name, customers.c.currency)
            .where(customers.c.company_code == customer_code)
        ).mappings().first()

    if customer is None:
        raise SystemExit(f"Unknown customer code {customer_code!r}")

    result = upload_usage(
        {
            "companyId": customer["id"],
            "companyCode": customer_code,
            "companyName": customer["company_name"],
            "issuedDate": month,
            "currency": customer["currency"],
            "ttm": ttm,
            "summaries": rows,
        },
        engine,
    )
    return result, stats


def main():
    parser = argparse.ArgumentParser(description="Load the store directory from a CSV file.")
    parser.add_argument("file", nargs="?", default=STORES_FILE_PATH)
    args = parser.parse_args()

    stores_list, stats = parse_store_csv(args.file)
    load_store_directory(stores_list)

    logger.info(f"Store CSV rows read:   {stats['n_rows']}")
    logger.info(f"Stores loaded:         {stats['n_stores']}")
    if stats["error_examples"]:
        logger.warning("Example errors:")
        for example in stats["error_examples"]:
            logger.warning("%s", example)


if __name__ == "__main__":
    main()
