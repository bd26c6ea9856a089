"""Tests for CSV parsing and the ingest script helpers."""

import pytest

from scripts.ingest import load_store_directory, parse_store_csv, upload_usage_file
from usage_billing.errors import MalformedRequest
from usage_billing.services.csv_import import decode_csv, parse_usage_csv
from usage_billing.services.invoice_ledger import list_for_customer
from usage_billing.services.store_names import resolve_store_names


def test_parse_usage_csv_stats():
    text = (
        "Day,Company,Store,Total Labels,Product Updated\n"
        "2024/05/01,ACME,001,12,2\n"
        "2024/05/01,ACME,002,0,0\n"
        " , , , , \n"
        "2024/05/02,ACME,001,3,1\n"
    )

    rows, stats = parse_usage_csv(text)

    assert len(rows) == 3
    assert rows[0]["Store"] == "001"
    assert stats["n_blank"] == 1
    assert stats["n_stores"] == 2
    assert stats["companies"] == ["ACME"]
    assert stats["months"] == ["2024-05"]


def test_decode_csv_strips_bom():
    assert decode_csv("\ufeffDay".encode("utf-8")) == "Day"


def test_decode_csv_rejects_other_encodings():
    with pytest.raises(MalformedRequest):
        decode_csv("Día".encode("latin-1"))


def test_parse_store_csv(tmp_path):
    path = tmp_path / "stores.csv"
    path.write_text(
        "Company,Store,Name\n"
        "ACME,001,Ikebukuro\n"
        "ACME,002,\n"
        "ACME,001,Ikebukuro East\n",
        encoding="utf-8",
    )

    stores, stats = parse_store_csv(str(path))

    assert stores == [{"customer_code": "ACME", "store_code": "001", "store_name": "Ikebukuro East"}]
    assert stats["n_rows"] == 3
    assert stats["n_errors"] == 1


def test_load_store_directory_upserts(db_engine):
    load_store_directory([{"customer_code": "ACME", "store_code": "001", "store_name": "Old"}])
    load_store_directory([{"customer_code": "ACME", "store_code": "001", "store_name": "New"}])

    records = [{"store_code": "001", "store_name": None}, {"store_code": "002", "store_name": "Kept"}]
    with db_engine.connect() as conn:
        resolved = resolve_store_names(conn, "ACME", records)

    assert [r["store_name"] for r in resolved] == ["New", "Kept"]
    assert records[0]["store_name"] is None


def test_upload_usage_file(tmp_path, db_engine, make_customer):
    make_customer("ACME", currency="$")
    path = tmp_path / "usage.csv"
    path.write_text(
        "Day,Company,Store,Total Labels,Product Updated\n"
        "2024-05-01,ACME,001,12,2\n",
        encoding="utf-8",
    )

    result, stats = upload_usage_file(str(path), "ACME", "2024-05", ttm="151.25")

    assert result["invoice"]["invoice_code"] == 1
    assert stats["n_rows"] == 1
    with db_engine.connect() as conn:
        (invoice,) = list_for_customer(conn, "ACME")
    assert invoice["currency"] == "$"
