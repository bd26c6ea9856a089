"""Tests for customer master endpoints."""

from decimal import Decimal


def _create(client, code="ACME", name="Acme Retail", unit_price="12.5", currency="JPY"):
    return client.post(
        "/customers/",
        json={"company_code": code, "company_name": name, "unit_price": unit_price, "currency": currency},
    )


def test_create_and_get(client):
    created = _create(client)

    assert created.status_code == 201
    body = created.json()
    assert body["company_code"] == "ACME"
    assert body["si_partner_name"] == "BIPROGY株式会社"
    assert Decimal(str(body["unit_price"])) == Decimal("12.5")

    fetched = client.get(f"/customers/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["company_name"] == "Acme Retail"


def test_duplicate_code_conflicts(client):
    _create(client)

    response = _create(client, name="Someone Else")

    assert response.status_code == 409
    assert response.json() == {"error": "Customer code already exists"}


def test_negative_unit_price_rejected(client):
    response = _create(client, unit_price="-1")

    assert response.status_code == 400
    assert "error" in response.json()


def test_missing_fields_rejected(client):
    response = client.post("/customers/", json={"company_code": "ACME"})

    assert response.status_code == 400


def test_list_is_ordered_by_name(client):
    _create(client, code="Z1", name="Zeta")
    _create(client, code="A1", name="Alpha")

    names = [c["company_name"] for c in client.get("/customers/").json()]

    assert names == ["Alpha", "Zeta"]


def test_get_missing_customer(client):
    response = client.get("/customers/999")

    assert response.status_code == 404
    assert response.json() == {"error": "Customer not found"}


def test_update_fields(client):
    customer_id = _create(client).json()["id"]

    response = client.put(f"/customers/{customer_id}", json={"company_name": "Acme Holdings", "currency": "$"})

    assert response.status_code == 200
    assert response.json()["company_name"] == "Acme Holdings"
    assert response.json()["currency"] == "$"
    assert response.json()["company_code"] == "ACME"


def test_update_to_taken_code_conflicts(client):
    _create(client, code="ACME")
    other_id = _create(client, code="BETA").json()["id"]

    response = client.put(f"/customers/{other_id}", json={"company_code": "ACME"})

    assert response.status_code == 409


def test_update_missing_customer(client):
    response = client.put("/customers/999", json={"company_name": "Nobody"})

    assert response.status_code == 404


def test_delete(client):
    customer_id = _create(client).json()["id"]

    response = client.delete(f"/customers/{customer_id}")

    assert response.status_code == 200
    assert client.get(f"/customers/{customer_id}").status_code == 404


def test_delete_customer_with_invoices_conflicts(client, make_payload, usage_row):
    customer_id = _create(client).json()["id"]
    upload = client.post("/invoices/upload", json=make_payload(customer_id, [usage_row("2024-05-01")]))
    assert upload.status_code == 201

    response = client.delete(f"/customers/{customer_id}")

    assert response.status_code == 409
    assert client.get(f"/customers/{customer_id}").status_code == 200
