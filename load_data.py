# load_data.py
"""
Upload a store usage CSV for a customer and month, issuing the month's invoice.

    python load_data.py data/usage.csv ACME 2024-05 --ttm 151.25
"""

import argparse

from scripts.ingest import upload_usage_file
from usage_billing.errors import BillingError


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("file")
    parser.add_argument("customer_code")
    parser.add_argument("month", help="Target month, YYYY-MM")
    parser.add_argument("--ttm", default=None, help="Mid-market exchange rate")
    args = parser.parse_args()

    try:
        result, stats = upload_usage_file(args.file, args.customer_code, args.month, args.ttm)
    except BillingError as exc:
        for line in exc.messages:
            print(f"ERROR: {line}")
        raise SystemExit(1)

    invoice = result["invoice"]
    print("Load complete.")
    print(f"Usage rows read:       {stats['n_rows']}")
    print(f"Distinct stores:       {stats['n_stores']}")
    print(f"Invoice:               {invoice['issued_date']} #{invoice['invoice_code']} (id {invoice['id']})")


if __name__ == "__main__":
    main()
