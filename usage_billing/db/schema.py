# usage_billing/db/schema.py

from sqlalchemy import (
    MetaData, Table, Column, Integer, String,
    Numeric, Date, DateTime, ForeignKey, CheckConstraint,
    UniqueConstraint, Index, func
)

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_code", String, nullable=False, unique=True),
    Column("company_name", String, nullable=False),
    Column("si_partner_name", String, nullable=False),
    Column("unit_price", Numeric(15, 6), nullable=False),
    Column("currency", String, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    CheckConstraint("unit_price >= 0", name="ck_customers_unit_price_nonneg"),
)

# Reference data: authoritative store names, read-only for the upload pipeline
store_directory = Table(
    "store_directory",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_code", String, nullable=False),
    Column("store_code", String, nullable=False),
    Column("store_name", String, nullable=False),
    UniqueConstraint("customer_code", "store_code", name="uq_store_directory_customer_store"),
)

store_usage = Table(
    "store_usage",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "customer_code",
        String,
        ForeignKey("customers.company_code", onupdate="CASCADE"),
        nullable=False,
    ),
    Column("store_code", String, nullable=False),
    Column("store_name", String, nullable=True),
    Column("usage_date", Date, nullable=False),
    Column("total_labels", Integer, nullable=False),
    Column("product_updated", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint(
        "customer_code", "store_code", "usage_date",
        name="uq_store_usage_customer_store_date",
    ),
    Index("ix_store_usage_customer_date", "customer_code", "usage_date"),
    CheckConstraint("total_labels >= 0", name="ck_store_usage_total_labels_nonneg"),
    CheckConstraint("product_updated >= 0", name="ck_store_usage_product_updated_nonneg"),
)

issued_invoices = Table(
    "issued_invoices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "customer_code",
        String,
        ForeignKey("customers.company_code", onupdate="CASCADE"),
        nullable=False,
    ),
    Column("customer_name", String, nullable=False),
    Column("issued_date", String(7), nullable=False),  # YYYY-MM
    Column("invoice_code", Integer, nullable=False),
    Column("currency", String, nullable=False),
    Column("ttm", Numeric(9, 2), nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    UniqueConstraint("customer_code", "issued_date", name="uq_issued_invoices_customer_month"),
    UniqueConstraint("issued_date", "invoice_code", name="uq_issued_invoices_month_code"),
    CheckConstraint("invoice_code >= 1", name="ck_issued_invoices_code_positive"),
)
