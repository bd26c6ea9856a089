"""Shared fixtures: an in-memory database per test and upload payload builders."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from usage_billing.db import engine as engine_module
from usage_billing.db.engine import create_db_engine
from usage_billing.db.schema import customers, metadata, store_directory
from usage_billing.main import app


@pytest.fixture(autouse=True)
def db_engine(monkeypatch):
    """Point the application at a fresh in-memory SQLite database."""
    # StaticPool: every connection shares the same in-memory database
    test_engine = create_db_engine("sqlite://", poolclass=StaticPool)
    metadata.create_all(test_engine)
    monkeypatch.setattr(engine_module, "_engine", test_engine)

    yield test_engine

    metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_customer(db_engine):
    def _make(code="ACME", name="Acme Retail", currency="JPY", unit_price=Decimal("12.5")):
        with db_engine.begin() as conn:
            result = conn.execute(
                customers.insert().values(
                    company_code=code,
                    company_name=name,
                    si_partner_name="BIPROGY株式会社",
                    unit_price=unit_price,
                    currency=currency,
                )
            )
            return result.inserted_primary_key[0]

    return _make


@pytest.fixture
def add_store(db_engine):
    def _add(customer_code, store_code, store_name):
        with db_engine.begin() as conn:
            conn.execute(
                store_directory.insert().values(
                    customer_code=customer_code,
                    store_code=store_code,
                    store_name=store_name,
                )
            )

    return _add


def _usage_row(day, store="S1", labels=100, updates=10, company="ACME", name=None):
    row = {
        "day": day,
        "company": company,
        "store": store,
        "totalLabels": labels,
        "productUpdated": updates,
    }
    if name is not None:
        row["name"] = name
    return row


@pytest.fixture
def usage_row():
    return _usage_row


@pytest.fixture
def make_payload():
    def _make(company_id, rows, code="ACME", month="2024-05", **overrides):
        payload = {
            "companyId": company_id,
            "companyCode": code,
            "companyName": "Acme Retail",
            "issuedDate": month,
            "currency": "JPY",
            "ttm": None,
            "summaries": rows,
        }
        payload.update(overrides)
        return payload

    return _make
