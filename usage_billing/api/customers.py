# usage_billing/api/customers.py

from typing import List

from fastapi import APIRouter
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from usage_billing.config import settings
from usage_billing.db.engine import get_engine
from usage_billing.db.schema import customers
from usage_billing.errors import Conflict, NotFound
from usage_billing.models.customers import (
    CustomerIn,
    CustomerOut,
    CustomerUpdate,
)

router = APIRouter(prefix="/customers", tags=["customers"])

_CUSTOMER_COLUMNS = (
    customers.c.id,
    customers.c.company_code,
    customers.c.company_name,
    customers.c.si_partner_name,
    customers.c.unit_price,
    customers.c.currency,
    customers.c.created_at,
    customers.c.updated_at,
)

DUPLICATE_CODE = "Customer code already exists"


def _fetch(conn, customer_id: int):
    stmt = select(*_CUSTOMER_COLUMNS).where(customers.c.id == customer_id)
    row = conn.execute(stmt).mappings().first()
    if row is None:
        raise NotFound("Customer not found")
    return row


def _code_taken(conn, company_code: str) -> bool:
    stmt = select(customers.c.id).where(customers.c.company_code == company_code)
    return conn.execute(stmt).first() is not None


@router.get("/", response_model=List[CustomerOut])
def list_customers() -> List[CustomerOut]:
    """
    Return all customers ordered by name.
    """
    engine = get_engine()

    with engine.connect() as conn:
        stmt = select(*_CUSTOMER_COLUMNS).order_by(customers.c.company_name, customers.c.id)
        rows = conn.execute(stmt).mappings().all()

    return [CustomerOut(**row) for row in rows]


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: int) -> CustomerOut:
    engine = get_engine()

    with engine.connect() as conn:
        row = _fetch(conn, customer_id)

    return CustomerOut(**row)


@router.post("/", response_model=CustomerOut, status_code=201)
def create_customer(payload: CustomerIn) -> CustomerOut:
    """
    Register a customer. The company code must not be in use yet.
    """
    engine = get_engine()

    try:
        with engine.begin() as conn:
            if _code_taken(conn, payload.company_code):
                raise Conflict(DUPLICATE_CODE)

            result = conn.execute(
                customers.insert().values(
                    company_code=payload.company_code,
                    company_name=payload.company_name,
                    si_partner_name=settings.SI_PARTNER_NAME,
                    unit_price=payload.unit_price,
                    currency=payload.currency,
                )
            )
            row = _fetch(conn, result.inserted_primary_key[0])
    except IntegrityError:
        # Lost a race with a concurrent create of the same code
        raise Conflict(DUPLICATE_CODE) from None

    return CustomerOut(**row)


@router.put("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: int, payload: CustomerUpdate) -> CustomerOut:
    """
    Partial update; a changed company code is re-checked for uniqueness.
    """
    engine = get_engine()
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    try:
        with engine.begin() as conn:
            current = _fetch(conn, customer_id)

            new_code = changes.get("company_code")
            if new_code and new_code != current["company_code"] and _code_taken(conn, new_code):
                raise Conflict(DUPLICATE_CODE)

            conn.execute(
                customers.update()
                .where(customers.c.id == customer_id)
                .values(si_partner_name=settings.SI_PARTNER_NAME, **changes)
            )
            row = _fetch(conn, customer_id)
    except IntegrityError:
        raise Conflict(DUPLICATE_CODE) from None

    return CustomerOut(**row)


@router.delete("/{customer_id}")
def delete_customer(customer_id: int) -> dict:
    engine = get_engine()

    try:
        with engine.begin() as conn:
            _fetch(conn, customer_id)
            conn.execute(customers.delete().where(customers.c.id == customer_id))
    except IntegrityError:
        raise Conflict("Customer still has usage data or issued invoices") from None

    return {"message": "Customer deleted successfully"}
