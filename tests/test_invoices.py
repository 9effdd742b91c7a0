from datetime import timedelta

from bookkeeping.models import Invoice, InvoiceItem


def _payload(customer, **overrides):
    data = {
        "customer_id": customer.id,
        "invoice_date": "2026-03-01",
        "items": [
            {"description": "Consulting", "quantity": 2, "unit_price": 10000, "vat_rate": "standard"},
            {"description": "Books", "quantity": 1, "unit_price": 1010, "vat_rate": "zero"},
        ],
    }
    data.update(overrides)
    return data


def _create(client, customer, **overrides):
    resp = client.post("/api/invoices", json=_payload(customer, **overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_vat_rates(client):
    resp = client.get("/api/vat-rates")
    assert resp.status_code == 200
    rates = {r["id"]: r for r in resp.json()["data"]}
    assert rates["standard"]["rate"] == 20
    assert rates["outside-scope"]["rate"] is None
    assert rates["reduced"]["name"]["tr"] == "İndirimli Oran"


def test_calculate_preview(client):
    resp = client.post(
        "/api/invoices/calculate",
        json={"items": [{"description": "Hours", "quantity": 1.5, "unit_price": 999}]},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["subtotal"] == 1499
    assert data["vat_amount"] == 300
    assert data["total_amount"] == 1799
    assert data["calculated_items"][0]["quantity"] == "1.5"
    assert data["vat_breakdown"] == [
        {"vat_rate_id": "standard", "vat_rate_percent": 20, "net_amount": 1499, "vat_amount": 300}
    ]


def test_calculate_preview_rejects_empty(client):
    resp = client.post("/api/invoices/calculate", json={"items": []})
    assert resp.status_code == 400
    assert resp.json()["error"]["details"][0]["field"] == "items"


def test_create_invoice_stores_totals_and_snapshot(client, db_session, customer):
    data = _create(client, customer, tax_point="2026-02-28")

    assert data["invoice_number"] == "INV-2026-0001"
    assert data["status"] == "draft"
    assert data["subtotal"] == 21010
    assert data["vat_amount"] == 4000
    assert data["total_amount"] == 25010
    assert data["due_date"] == "2026-03-15"
    assert data["tax_point"] == "2026-02-28"
    assert data["currency"] == "GBP"
    assert data["customer_name"] == "Acme Ltd"
    assert data["customer_address"] == "1 High Street, London, SW1A 1AA, United Kingdom"
    assert [i["description"] for i in data["items"]] == ["Consulting", "Books"]
    assert data["items"][0]["vat_rate_percent"] == 20
    assert data["items"][1]["vat_rate_id"] == "zero"

    # later edits to the customer do not touch the invoice
    customer.name = "Acme Holdings"
    db_session.commit()
    inv = db_session.query(Invoice).one()
    assert inv.customer_name == "Acme Ltd"
    assert db_session.query(InvoiceItem).count() == 2


def test_invoice_numbers_are_sequential_per_year(client, customer):
    first = _create(client, customer)
    second = _create(client, customer, invoice_date="2026-12-31")
    next_year = _create(client, customer, invoice_date="2027-01-02")
    assert first["invoice_number"] == "INV-2026-0001"
    assert second["invoice_number"] == "INV-2026-0002"
    assert next_year["invoice_number"] == "INV-2027-0001"


def test_due_date_defaults(client, customer, make_customer):
    explicit = _create(client, customer, due_date="2026-04-30")
    assert explicit["due_date"] == "2026-04-30"

    no_terms = make_customer(name="Cash Buyer", payment_terms_days=None)
    fallback = _create(client, no_terms)
    assert fallback["due_date"] == "2026-03-31"


def test_explicit_sort_order_is_kept(client, customer):
    data = _create(
        client,
        customer,
        items=[
            {"description": "Second", "unit_price": 100, "sort_order": 2},
            {"description": "First", "unit_price": 100, "sort_order": 1},
        ],
    )
    assert [i["description"] for i in data["items"]] == ["First", "Second"]


def test_create_invoice_validation_errors(client, customer):
    resp = client.post(
        "/api/invoices",
        json=_payload(
            customer,
            invoice_date="2026-02-30",
            items=[{"description": "", "unit_price": -1}],
        ),
    )
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert {d["field"] for d in error["details"]} == {
        "invoice_date",
        "items[0].description",
        "items[0].unit_price",
    }
    assert all(d["message_tr"] for d in error["details"])


def test_create_invoice_unknown_customer(client, customer):
    resp = client.post("/api/invoices", json=_payload(customer, customer_id=999))
    assert resp.status_code == 404


def test_list_invoices_paginates_newest_first(client, customer):
    _create(client, customer, invoice_date="2026-01-10")
    _create(client, customer, invoice_date="2026-03-10")
    _create(client, customer, invoice_date="2026-02-10")

    resp = client.get("/api/invoices", params={"page": 1, "limit": 2})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] == 3
    assert [i["issue_date"] for i in data["invoices"]] == ["2026-03-10", "2026-02-10"]

    resp = client.get("/api/invoices", params={"page": 2, "limit": 2})
    assert [i["issue_date"] for i in resp.json()["data"]["invoices"]] == ["2026-01-10"]


def test_list_invoices_by_status(client, customer):
    inv = _create(client, customer)
    _create(client, customer)
    client.patch(f"/api/invoices/{inv['id']}/status", json={"status": "pending"})

    resp = client.get("/api/invoices", params={"status": "pending"})
    assert resp.json()["data"]["total"] == 1

    resp = client.get("/api/invoices", params={"status": "lost"})
    assert resp.status_code == 400


def test_invoice_detail(client, customer):
    inv = _create(client, customer)
    resp = client.get(f"/api/invoices/{inv['id']}")
    assert resp.status_code == 200
    assert len(resp.json()["data"]["items"]) == 2

    assert client.get("/api/invoices/999").status_code == 404


def test_overdue_and_stats(client, customer, today):
    past = (today - timedelta(days=40)).isoformat()
    late = _create(client, customer, invoice_date=past)
    _create(client, customer)
    client.patch(f"/api/invoices/{late['id']}/status", json={"status": "pending"})

    resp = client.get("/api/invoices/overdue")
    assert resp.status_code == 200
    overdue = resp.json()["data"]
    assert [i["id"] for i in overdue] == [late["id"]]
    assert overdue[0]["is_overdue"] is True

    stats = client.get("/api/invoices/stats").json()["data"]
    assert stats["status_counts"]["pending"] == 1
    assert stats["status_counts"]["draft"] == 1
    assert stats["status_counts"]["paid"] == 0
    assert stats["overdue_count"] == 1
    assert stats["overdue_total"] == late["total_amount"]


def test_mark_paid_with_payment_details(client, customer):
    inv = _create(client, customer, notes="Thanks")
    client.patch(f"/api/invoices/{inv['id']}/status", json={"status": "pending"})

    resp = client.patch(
        f"/api/invoices/{inv['id']}/status",
        json={
            "status": "paid",
            "payment_details": {
                "payment_date": "2026-03-20T10:00:00Z",
                "payment_method": "bank_transfer",
                "notes": "Received in full",
            },
        },
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "paid"
    assert data["status_change"]["previous_status"] == "pending"
    assert data["payment"]["method"] == "bank_transfer"
    assert data["payment"]["amount"] == inv["total_amount"]
    assert data["paid_at"].startswith("2026-03-20T10:00:00")
    assert data["notes"].startswith("Thanks\n[Payment received: 2026-03-20T10:00:00")
    assert data["notes"].endswith("Received in full")


def test_invalid_status_transition(client, customer):
    inv = _create(client, customer)
    resp = client.patch(f"/api/invoices/{inv['id']}/status", json={"status": "paid"})
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "BUS_INVALID_STATUS_TRANSITION"
    assert error["valid_transitions"] == ["pending", "cancelled"]


def test_invalid_payment_details(client, customer):
    inv = _create(client, customer)
    client.patch(f"/api/invoices/{inv['id']}/status", json={"status": "pending"})
    resp = client.patch(
        f"/api/invoices/{inv['id']}/status",
        json={"status": "paid", "payment_details": {"payment_method": "barter"}},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["details"][0]["field"] == "payment_method"


def test_unknown_status(client, customer):
    inv = _create(client, customer)
    resp = client.patch(f"/api/invoices/{inv['id']}/status", json={"status": "lost"})
    assert resp.status_code == 400


def test_delete_only_drafts(client, db_session, customer):
    draft = _create(client, customer)
    sent = _create(client, customer)
    client.patch(f"/api/invoices/{sent['id']}/status", json={"status": "pending"})

    resp = client.delete(f"/api/invoices/{sent['id']}")
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "BUS_INVOICE_NOT_DELETABLE"

    resp = client.delete(f"/api/invoices/{draft['id']}")
    assert resp.status_code == 200
    assert resp.json()["message"]["tr"] == "Fatura başarıyla silindi"
    assert client.get(f"/api/invoices/{draft['id']}").status_code == 404
    assert db_session.query(InvoiceItem).count() == 2


def test_calculate_reads_leading_number_of_quantity(client):
    resp = client.post(
        "/api/invoices/calculate",
        json={"items": [{"description": "Boxes", "quantity": "2abc", "unit_price": 500}]},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["calculated_items"][0]["quantity"] == "2"
    assert data["subtotal"] == 1000


def test_calculate_rejects_oversized_quantity(client):
    resp = client.post(
        "/api/invoices/calculate",
        json={"items": [{"description": "x", "quantity": "1e40", "unit_price": 1}]},
    )
    assert resp.status_code == 400
    assert [d["field"] for d in resp.json()["error"]["details"]] == ["items[0].quantity"]


def test_create_rejects_oversized_unit_price(client, db_session, customer):
    resp = client.post(
        "/api/invoices",
        json=_payload(customer, items=[{"description": "x", "unit_price": 10**30}]),
    )
    assert resp.status_code == 400
    assert [d["field"] for d in resp.json()["error"]["details"]] == ["items[0].unit_price"]
    assert db_session.query(Invoice).count() == 0


def test_create_rejects_percent_finer_than_storage(client, customer):
    resp = client.post(
        "/api/invoices",
        json=_payload(customer, items=[{"description": "x", "unit_price": 1000, "vat_rate": 12.345}]),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["details"][0]["field"] == "items[0].vat_rate"

    data = _create(client, customer, items=[{"description": "x", "unit_price": 1000, "vat_rate": 12.35}])
    assert data["items"][0]["vat_rate_percent"] == 12.35
    assert data["vat_amount"] == 124


def test_null_sort_order_is_stored_by_position(client, customer):
    data = _create(
        client,
        customer,
        items=[
            {"description": "First", "unit_price": 100, "sort_order": None},
            {"description": "Second", "unit_price": 100, "sort_order": None},
        ],
    )
    assert [(i["description"], i["sort_order"]) for i in data["items"]] == [
        ("First", 0),
        ("Second", 1),
    ]
