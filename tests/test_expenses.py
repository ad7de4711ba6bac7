import pytest

from app.models import FinancialMovement


def _base(business):
    return f"/business/{business.id}/expenses"


@pytest.fixture
def category_id(api, admin, business):
    categories = api(admin).get(f"{_base(business)}/categories").json()
    return next(c["id"] for c in categories if c["name"] == "Insumos")


def _create(client, business, category_id, **overrides):
    body = {
        "categoryId": category_id,
        "description": "Tintes y oxidantes",
        "amount": 350000,
        "expenseDate": "2026-03-10",
        "vendor": "Distribuidora Color",
    }
    body.update(overrides)
    return client.post(_base(business), json=body)


# ============================================================================
# Categories
# ============================================================================


def test_default_categories_are_seeded_once(api, admin, business):
    client = api(admin)
    first = client.get(f"{_base(business)}/categories").json()
    second = client.get(f"{_base(business)}/categories").json()
    assert len(first) == len(second) == 8
    assert all(c["is_default"] for c in first)


def test_category_names_are_unique_case_insensitive(api, admin, business):
    client = api(admin)
    client.get(f"{_base(business)}/categories")
    r = client.post(f"{_base(business)}/categories", json={"name": "insumos"})
    assert r.status_code == 409

    r = client.post(f"{_base(business)}/categories", json={"name": "Capacitación", "color": "#AABBCC"})
    assert r.status_code == 201
    assert r.json()["color"] == "#aabbcc"
    assert r.json()["is_default"] is False


def test_category_color_must_be_hex(api, admin, business):
    r = api(admin).post(f"{_base(business)}/categories", json={"name": "X", "color": "red"})
    assert r.status_code == 422


def test_category_in_use_is_deactivated(api, admin, business, category_id):
    client = api(admin)
    _create(client, business, category_id)

    r = client.delete(f"{_base(business)}/categories/{category_id}")
    assert r.json()["deactivated"] is True
    active = [c["id"] for c in client.get(f"{_base(business)}/categories").json()]
    assert category_id not in active
    everything = client.get(f"{_base(business)}/categories", params={"includeInactive": True}).json()
    assert category_id in [c["id"] for c in everything]

    assert _create(client, business, category_id).status_code == 400


def test_unused_category_is_deleted(api, admin, business):
    client = api(admin)
    category = client.post(f"{_base(business)}/categories", json={"name": "Temporal"}).json()
    r = client.delete(f"{_base(business)}/categories/{category['id']}")
    assert r.json()["deactivated"] is False
    assert client.delete(f"{_base(business)}/categories/{category['id']}").status_code == 404


# ============================================================================
# Expenses
# ============================================================================


def test_create_expense_is_pending(api, receptionist, admin, business, category_id):
    r = _create(api(receptionist), business, category_id)
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "PENDING"
    assert body["category"]["name"] == "Insumos"
    assert body["created_by"] == receptionist.id


def test_create_expense_validation(api, admin, business, category_id):
    client = api(admin)
    assert _create(client, business, category_id, amount=-5).status_code == 422
    assert _create(client, business, "missing").status_code == 404
    assert _create(client, business, category_id, vendor="v" * 300).status_code == 422
    assert _create(client, business, category_id, paymentMethod="m" * 31).status_code == 422


def test_workflow_pay_creates_financial_movement(api, admin, business, category_id, db):
    client = api(admin)
    expense_id = _create(client, business, category_id).json()["id"]

    assert client.post(f"{_base(business)}/{expense_id}/pay", json={}).status_code == 400

    r = client.post(f"{_base(business)}/{expense_id}/approve")
    assert r.json()["status"] == "APPROVED"
    assert r.json()["approved_by"] == admin.id

    r = client.post(f"{_base(business)}/{expense_id}/pay", json={"paymentMethod": "TRANSFER"})
    assert r.status_code == 200
    assert r.json()["status"] == "PAID"
    assert r.json()["paid_at"] is not None

    movement = db.query(FinancialMovement).filter(FinancialMovement.reference_id == expense_id).one()
    assert movement.type == "EXPENSE"
    assert movement.status == "COMPLETED"
    assert movement.amount == 350000
    assert movement.category == "Insumos"
    assert movement.payment_method == "TRANSFER"


def test_paid_expense_is_locked(api, admin, business, category_id):
    client = api(admin)
    expense_id = _create(client, business, category_id).json()["id"]
    client.post(f"{_base(business)}/{expense_id}/approve")
    client.post(f"{_base(business)}/{expense_id}/pay", json={})

    assert client.put(f"{_base(business)}/{expense_id}", json={"amount": 1}).status_code == 400
    assert client.delete(f"{_base(business)}/{expense_id}").status_code == 400
    assert client.post(f"{_base(business)}/{expense_id}/cancel").status_code == 400


def test_update_and_delete_pending_expense(api, admin, business, category_id):
    client = api(admin)
    expense_id = _create(client, business, category_id).json()["id"]

    r = client.put(f"{_base(business)}/{expense_id}", json={"amount": 400000, "notes": "<b>urgente</b>"})
    assert r.json()["amount"] == 400000
    assert r.json()["notes"] == "&lt;b&gt;urgente&lt;/b&gt;"

    assert client.delete(f"{_base(business)}/{expense_id}").status_code == 200
    assert client.get(f"{_base(business)}/{expense_id}").status_code == 404


def test_specialist_cannot_approve(api, admin, specialist, business, category_id):
    expense_id = _create(api(admin), business, category_id).json()["id"]
    assert api(specialist).post(f"{_base(business)}/{expense_id}/approve").status_code == 403


def test_list_filters_and_stats(api, admin, business, category_id):
    client = api(admin)
    categories = client.get(f"{_base(business)}/categories").json()
    rent_id = next(c["id"] for c in categories if c["name"] == "Arriendo")

    _create(client, business, category_id, amount=100000, expenseDate="2026-02-01")
    _create(client, business, category_id, amount=200000, expenseDate="2026-03-01")
    rent = _create(client, business, rent_id, amount=1500000, expenseDate="2026-03-05").json()
    client.post(f"{_base(business)}/{rent['id']}/cancel")

    r = client.get(_base(business), params={"startDate": "2026-03-01"})
    assert r.json()["total"] == 2

    r = client.get(_base(business), params={"status": "CANCELLED"})
    assert [e["id"] for e in r.json()["expenses"]] == [rent["id"]]

    assert client.get(_base(business), params={"status": "LOST"}).status_code == 400

    stats = client.get(f"{_base(business)}/stats").json()
    assert stats["general"]["totalExpenses"] == 3
    assert stats["general"]["totalAmount"] == 1800000
    by_category = {row["name"]: row["total"] for row in stats["byCategory"]}
    assert by_category == {"Insumos": 300000, "Arriendo": 1500000}
    by_status = {row["status"]: row["count"] for row in stats["byStatus"]}
    assert by_status == {"PENDING": 2, "CANCELLED": 1}
