"""Tests for the month-scoped usage store."""

from datetime import date

import pytest

from usage_billing.errors import BusinessRuleViolation
from usage_billing.services.usage_store import (
    fetch_usage,
    first_active_day,
    first_active_days,
    month_range,
    replace_month,
)


def _record(day, store="S1", labels=10, updates=1, customer="ACME", name=None):
    return {
        "customer_code": customer,
        "store_code": store,
        "store_name": name,
        "usage_date": day,
        "total_labels": labels,
        "product_updated": updates,
    }


@pytest.fixture
def customers_ready(make_customer):
    make_customer("ACME")
    make_customer("BETA", name="Beta Mart")


def test_month_range():
    assert month_range("2024-05") == (date(2024, 5, 1), date(2024, 6, 1))


def test_month_range_rolls_over_the_year():
    assert month_range("2024-12") == (date(2024, 12, 1), date(2025, 1, 1))


def test_month_range_rejects_bad_month():
    with pytest.raises(BusinessRuleViolation):
        month_range("2024-1")


def test_replace_month_swaps_only_the_target_month(db_engine, customers_ready):
    with db_engine.begin() as conn:
        replace_month(conn, "ACME", "2024-04", [_record(date(2024, 4, 30))])
        replace_month(conn, "ACME", "2024-05", [
            _record(date(2024, 5, 1), store="S1"),
            _record(date(2024, 5, 1), store="S2"),
        ])
        replace_month(conn, "BETA", "2024-05", [_record(date(2024, 5, 1), customer="BETA")])

    with db_engine.begin() as conn:
        inserted = replace_month(conn, "ACME", "2024-05", [_record(date(2024, 5, 2), store="S1", labels=99)])
    assert inserted == 1

    with db_engine.connect() as conn:
        acme = fetch_usage(conn, "ACME")
        beta = fetch_usage(conn, "BETA")

    assert [(r["usage_date"], r["store_code"], r["total_labels"]) for r in acme] == [
        (date(2024, 4, 30), "S1", 10),
        (date(2024, 5, 2), "S1", 99),
    ]
    assert len(beta) == 1


def test_replace_month_with_no_records_clears_the_month(db_engine, customers_ready):
    with db_engine.begin() as conn:
        replace_month(conn, "ACME", "2024-05", [_record(date(2024, 5, 1))])
    with db_engine.begin() as conn:
        assert replace_month(conn, "ACME", "2024-05", []) == 0

    with db_engine.connect() as conn:
        assert fetch_usage(conn, "ACME") == []


def test_rolled_back_replace_keeps_previous_rows(db_engine, customers_ready):
    with db_engine.begin() as conn:
        replace_month(conn, "ACME", "2024-05", [_record(date(2024, 5, 1))])

    with pytest.raises(RuntimeError):
        with db_engine.begin() as conn:
            replace_month(conn, "ACME", "2024-05", [_record(date(2024, 5, 2))])
            raise RuntimeError("boom")

    with db_engine.connect() as conn:
        rows = fetch_usage(conn, "ACME")
    assert [r["usage_date"] for r in rows] == [date(2024, 5, 1)]


def test_fetch_usage_filters(db_engine, customers_ready):
    with db_engine.begin() as conn:
        replace_month(conn, "ACME", "2024-05", [
            _record(date(2024, 5, 1), store="S1"),
            _record(date(2024, 5, 2), store="S2"),
            _record(date(2024, 5, 3), store="S1"),
        ])

    with db_engine.connect() as conn:
        ranged = fetch_usage(conn, "ACME", start=date(2024, 5, 2), end=date(2024, 5, 3))
        s1 = fetch_usage(conn, "ACME", store_code="S1")

    assert [r["store_code"] for r in ranged] == ["S2"]
    assert [r["usage_date"] for r in s1] == [date(2024, 5, 1), date(2024, 5, 3)]


def test_first_active_day_scans_all_history(db_engine, customers_ready):
    with db_engine.begin() as conn:
        replace_month(conn, "ACME", "2024-01", [
            _record(date(2024, 1, 10), labels=0),
            _record(date(2024, 1, 20), labels=3),
        ])
        replace_month(conn, "ACME", "2024-05", [_record(date(2024, 5, 1))])

    with db_engine.connect() as conn:
        assert first_active_day(conn, "ACME", "S1") == date(2024, 1, 20)
        assert first_active_day(conn, "ACME", "S2") is None


def test_first_active_days_per_store(db_engine, customers_ready):
    with db_engine.begin() as conn:
        replace_month(conn, "ACME", "2024-03", [
            _record(date(2024, 3, 5), store="S1"),
            _record(date(2024, 3, 9), store="S2", labels=0),
        ])
        replace_month(conn, "ACME", "2024-05", [
            _record(date(2024, 5, 1), store="S1"),
            _record(date(2024, 5, 2), store="S2"),
        ])
        replace_month(conn, "BETA", "2024-01", [_record(date(2024, 1, 1), customer="BETA")])

    with db_engine.connect() as conn:
        everything = sorted(tuple(r) for r in conn.execute(first_active_days("ACME")))
        before_may = conn.execute(first_active_days("ACME", before=date(2024, 5, 1))).all()

    assert everything == [("S1", date(2024, 3, 5)), ("S2", date(2024, 5, 2))]
    assert [tuple(r) for r in before_may] == [("S1", date(2024, 3, 5))]
