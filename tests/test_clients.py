from datetime import datetime, timedelta

from app.domain.clients.states import AppointmentStatus, ClientStatus
from app.models import Appointment, Client, CustomerBookingBlock, Voucher


def _base(business):
    return f"/business/{business.id}/clients"


def _add_client(db, business, first_name, **extra):
    client = Client(business_id=business.id, first_name=first_name, **extra)
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def test_status_defaults(customer, appointment):
    assert customer.status == ClientStatus.ACTIVE
    assert appointment.status == AppointmentStatus.CONFIRMED


def test_create_client_normalizes_contact_data(api, receptionist, business):
    r = api(receptionist).post(
        _base(business),
        json={
            "firstName": "  Camila ",
            "lastName": "Rojas",
            "email": "Camila.Rojas@Example.COM",
            "phone": "(300) 555-1234",
            "notes": "<i>piel sensible</i>",
        },
    )
    assert r.status_code == 201
    body = r.json()
    assert body["first_name"] == "Camila"
    assert body["email"] == "camila.rojas@example.com"
    assert body["phone"] == "3005551234"
    assert body["notes"] == "&lt;i&gt;piel sensible&lt;/i&gt;"
    assert body["status"] == "ACTIVE"


def test_create_client_validation(api, admin, business, customer):
    client = api(admin)
    assert client.post(_base(business), json={"firstName": " "}).status_code == 422
    assert client.post(_base(business), json={"firstName": "A", "email": "not-an-email"}).status_code == 422
    assert client.post(_base(business), json={"firstName": "A", "phone": "12"}).status_code == 422
    assert client.post(_base(business), json={"firstName": "A" * 101}).status_code == 422

    r = client.post(_base(business), json={"firstName": "Otra", "email": "LAURA@example.com"})
    assert r.status_code == 409


def test_same_email_allowed_in_other_business(api, owner, other_business, customer):
    r = api(owner).post(_base(other_business), json={"firstName": "Laura", "email": customer.email})
    assert r.status_code == 201


def test_search_requires_two_characters(api, admin, business, customer, db):
    _add_client(db, business, "Lina", status="BLOCKED")
    client = api(admin)
    assert client.get(f"{_base(business)}/search", params={"q": "l"}).json() == []

    results = client.get(f"{_base(business)}/search", params={"q": "li"}).json()
    assert results == []

    results = client.get(f"{_base(business)}/search", params={"q": "gom"}).json()
    assert results == [
        {"id": customer.id, "name": "Laura Gomez", "phone": customer.phone, "email": customer.email}
    ]


def test_list_clients_with_aggregates(api, admin, business, customer, service, db):
    now = datetime.utcnow()
    for status in (AppointmentStatus.COMPLETED, AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED):
        db.add(
            Appointment(
                business_id=business.id,
                client_id=customer.id,
                service_id=service.id,
                start_time=now - timedelta(days=3),
                status=status.value,
                total_amount=120000,
            )
        )
    db.add(
        Voucher(
            code="VCH-AAA-BBB-CCC",
            business_id=business.id,
            customer_id=customer.id,
            amount=60000,
            expires_at=now + timedelta(days=10),
        )
    )
    db.add(
        Voucher(
            code="VCH-AAA-BBB-DDD",
            business_id=business.id,
            customer_id=customer.id,
            amount=90000,
            expires_at=now - timedelta(days=1),
        )
    )
    db.commit()
    _add_client(db, business, "Zoe")

    listed = api(admin).get(_base(business), params={"sortBy": "name_asc"}).json()
    assert [c["name"] for c in listed] == ["Laura Gomez", "Zoe"]
    laura = listed[0]
    assert laura["totalAppointments"] == 3
    assert laura["completedAppointments"] == 2
    assert laura["cancellationsCount"] == 1
    assert laura["activeVouchersCount"] == 1
    assert laura["voucherBalance"] == 60000
    assert laura["isBlocked"] is False
    assert listed[1]["totalAppointments"] == 0


def test_list_clients_filters(api, admin, business, customer, db):
    _add_client(db, business, "Marta", status="BLOCKED")
    client = api(admin)

    assert [c["name"] for c in client.get(_base(business), params={"status": "blocked"}).json()] == ["Marta"]
    assert len(client.get(_base(business), params={"search": "laura"}).json()) == 1
    assert client.get(_base(business), params={"status": "gone"}).status_code == 400
    assert client.get(_base(business), params={"sortBy": "random"}).status_code == 400


def test_update_client(api, admin, business, customer, db):
    other = _add_client(db, business, "Pia", email="pia@example.com")
    client = api(admin)

    r = client.put(f"{_base(business)}/{customer.id}", json={"lastName": "Gómez", "phone": "+57 300 111 2222"})
    assert r.status_code == 200
    assert r.json()["last_name"] == "Gómez"
    assert r.json()["phone"] == "+573001112222"
    assert r.json()["first_name"] == "Laura"

    r = client.put(f"{_base(business)}/{customer.id}", json={"email": other.email})
    assert r.status_code == 409

    assert client.put(f"{_base(business)}/missing", json={"lastName": "X"}).status_code == 404


def test_client_details(api, admin, business, customer):
    r = api(admin).get(f"{_base(business)}/{customer.id}")
    assert r.status_code == 200
    body = r.json()
    assert body["client"]["id"] == customer.id
    assert body["stats"]["totalAppointments"] == 0
    assert body["stats"]["isBlocked"] is False


def test_block_and_unblock_client(api, admin, business, customer, db):
    client = api(admin)
    url = f"{_base(business)}/{customer.id}/status"

    r = client.patch(url, json={"status": "BLOCKED", "reason": "No se presentó"})
    assert r.status_code == 200
    assert r.json()["status"] == "BLOCKED"
    block = db.query(CustomerBookingBlock).filter_by(customer_id=customer.id).one()
    assert block.status == "ACTIVE"
    assert block.reason == "MANUAL"
    assert (block.expires_at - block.blocked_at).days == 30

    details = client.get(f"{_base(business)}/{customer.id}").json()
    assert details["stats"]["isBlocked"] is True

    r = client.patch(url, json={"status": "ACTIVE"})
    assert r.json()["status"] == "ACTIVE"
    db.refresh(block)
    assert block.status == "LIFTED"
    assert block.lifted_by == admin.id


def test_status_change_requires_admin(api, receptionist, business, customer):
    r = api(receptionist).patch(f"{_base(business)}/{customer.id}/status", json={"status": "BLOCKED"})
    assert r.status_code == 403


def test_status_must_be_known(api, admin, business, customer):
    r = api(admin).patch(f"{_base(business)}/{customer.id}/status", json={"status": "DELETED"})
    assert r.status_code == 422


def test_client_history(api, admin, business, customer, appointment):
    body = api(admin).get(f"{_base(business)}/{customer.id}/history").json()
    assert body["client"]["name"] == "Laura Gomez"
    assert [a["id"] for a in body["appointments"]] == [appointment.id]
    assert body["appointments"][0]["service"]["name"] == "Keratina"
    assert body["appointments"][0]["specialist"]["name"] == "Sofia Test"
    assert body["vouchers"] == []
    assert body["blocks"] == []
    assert body["consentSignatures"] == []


def test_clients_of_other_business_are_hidden(api, admin, other_business, db):
    stranger = _add_client(db, other_business, "Eva")
    assert api(admin).get(f"/business/{other_business.id}/clients/{stranger.id}").status_code == 403
