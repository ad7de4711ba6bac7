import re
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.domain.vouchers.service import VoucherService, generate_voucher_code
from app.models import CustomerBookingBlock, Voucher


def _base(business):
    return f"/business/{business.id}/vouchers"


def _cancel(client, business, customer, hours_ahead=48, amount=120000, booking_id="bk-1", **extra):
    body = {
        "bookingId": booking_id,
        "customerId": customer.id,
        "amount": amount,
        "appointmentStart": (datetime.utcnow() + timedelta(hours=hours_ahead)).isoformat(),
    }
    body.update(extra)
    r = client.post(f"{_base(business)}/cancellations", json=body)
    assert r.status_code == 200
    return r.json()


def _voucher(db, business, customer, code="VCH-ABC-DEF-GHJ", days=30, **extra):
    voucher = Voucher(
        code=code,
        business_id=business.id,
        customer_id=customer.id,
        amount=50000,
        expires_at=datetime.utcnow() + timedelta(days=days),
        **extra,
    )
    db.add(voucher)
    db.commit()
    db.refresh(voucher)
    return voucher


def test_voucher_code_format():
    code = generate_voucher_code()
    assert re.fullmatch(r"VCH-[A-HJ-NP-Z2-9]{3}-[A-HJ-NP-Z2-9]{3}-[A-HJ-NP-Z2-9]{3}", code)


# ============================================================================
# Cancellations
# ============================================================================


def test_early_customer_cancellation_issues_voucher(api, receptionist, business, customer):
    result = _cancel(api(receptionist), business, customer, reason="Viaje")
    assert result["voucherIssued"] is True
    assert result["blocked"] is False
    assert result["hoursBefore"] > 47
    voucher = result["voucher"]
    assert voucher["amount"] == 120000
    assert voucher["currency"] == "COP"
    assert voucher["original_booking_id"] == "bk-1"
    expires = datetime.fromisoformat(voucher["expires_at"])
    issued = datetime.fromisoformat(voucher["issued_at"])
    assert (expires - issued).days == 30


def test_cancellation_hours_use_the_sent_offset(api, admin, business, customer):
    bogota = timezone(timedelta(hours=-5))
    start = (datetime.now(timezone.utc) + timedelta(hours=27)).astimezone(bogota)
    body = {"bookingId": "bk-tz", "customerId": customer.id, "amount": 80000, "appointmentStart": start.isoformat()}

    result = api(admin).post(f"{_base(business)}/cancellations", json=body).json()
    assert 26.9 < result["hoursBefore"] <= 27
    assert result["voucherIssued"] is True


def test_late_or_business_cancellation_issues_nothing(api, admin, business, customer):
    client = api(admin)
    assert _cancel(client, business, customer, hours_ahead=2)["voucherIssued"] is False
    assert _cancel(client, business, customer, cancelledBy="BUSINESS")["voucherIssued"] is False
    assert _cancel(client, business, customer, amount=0)["voucherIssued"] is False

    history = client.get(f"{_base(business)}/customers/{customer.id}/cancellations").json()
    assert len(history) == 3


def test_policy_overrides_from_business_settings(api, admin, business, customer, db):
    business.settings = {"voucherPolicy": {"percentage": 50, "validityDays": 10, "unknown": 1}}
    db.commit()

    policy = VoucherService(db).get_policy(business.id)
    assert policy["percentage"] == 50
    assert policy["hoursForVoucher"] == 24
    assert "unknown" not in policy

    voucher = _cancel(api(admin), business, customer)["voucher"]
    assert voucher["amount"] == 60000


def test_disabled_policy_still_counts_cancellations(api, admin, business, customer, db):
    business.settings = {"voucherPolicy": {"enabled": False, "maxCancellations": 2}}
    db.commit()
    client = api(admin)

    first = _cancel(client, business, customer, booking_id="bk-1")
    assert first["voucherIssued"] is False
    second = _cancel(client, business, customer, booking_id="bk-2")
    assert second["blocked"] is True


def test_repeated_cancellations_block_customer(api, admin, business, customer, db):
    client = api(admin)
    results = [_cancel(client, business, customer, booking_id=f"bk-{i}") for i in range(4)]
    assert [r["blocked"] for r in results] == [False, False, True, False]

    blocks = db.query(CustomerBookingBlock).filter_by(customer_id=customer.id).all()
    assert len(blocks) == 1
    assert blocks[0].reason == "EXCESSIVE_CANCELLATIONS"
    assert blocks[0].cancellation_count == 3
    assert (blocks[0].expires_at - blocks[0].blocked_at).days == 15

    status = client.get(f"{_base(business)}/customers/{customer.id}/block-status").json()
    assert status["isBlocked"] is True
    assert status["block"]["id"] == blocks[0].id


def test_cancellation_for_unknown_customer(api, admin, business):
    r = api(admin).post(
        f"{_base(business)}/cancellations",
        json={"bookingId": "b", "customerId": "nope", "appointmentStart": datetime.utcnow().isoformat()},
    )
    assert r.status_code == 404


# ============================================================================
# Vouchers
# ============================================================================


def test_validate_voucher(api, admin, business, customer, db):
    voucher = _voucher(db, business, customer)
    client = api(admin)
    url = f"{_base(business)}/validate"

    r = client.get(f"{url}/{voucher.code.lower()}").json()
    assert r["valid"] is True
    assert r["voucher"]["id"] == voucher.id

    r = client.get(f"{url}/{voucher.code}", params={"customerId": "someone-else"}).json()
    assert r == {"valid": False, "reason": "This voucher belongs to another customer"}

    assert client.get(f"{url}/VCH-XXX-XXX-XXX").json()["valid"] is False

    expired = _voucher(db, business, customer, code="VCH-EXP-EXP-EXP", days=-1)
    r = client.get(f"{url}/{expired.code}").json()
    assert r["valid"] is False
    assert r["reason"] == "Voucher has expired"


def test_apply_voucher_once(api, receptionist, business, customer, db):
    voucher = _voucher(db, business, customer)
    client = api(receptionist)

    r = client.post(
        f"{_base(business)}/apply",
        json={"code": voucher.code, "bookingId": "bk-9", "customerId": customer.id},
    )
    assert r.status_code == 200
    assert r.json()["status"] == "USED"
    assert r.json()["used_in_booking_id"] == "bk-9"

    r = client.post(f"{_base(business)}/apply", json={"code": voucher.code, "bookingId": "bk-10"})
    assert r.status_code == 400

    r = client.post(
        f"{_base(business)}/apply", json={"code": voucher.code, "bookingId": "bk-10", "customerId": "x"}
    )
    assert r.status_code == 404


def test_applying_expired_voucher_marks_it_expired(api, admin, business, customer, db):
    voucher = _voucher(db, business, customer, days=-2)
    r = api(admin).post(f"{_base(business)}/apply", json={"code": voucher.code, "bookingId": "bk-1"})
    assert r.status_code == 400
    db.refresh(voucher)
    assert voucher.status == "EXPIRED"


def test_customer_vouchers_hide_inactive_by_default(api, admin, business, customer, db):
    active = _voucher(db, business, customer)
    _voucher(db, business, customer, code="VCH-OLD-OLD-OLD", days=-5)
    client = api(admin)

    listed = client.get(f"{_base(business)}/customers/{customer.id}").json()
    assert [v["id"] for v in listed] == [active.id]

    listed = client.get(f"{_base(business)}/customers/{customer.id}", params={"includeExpired": True}).json()
    assert len(listed) == 2


def test_manual_voucher_and_cancel(api, admin, receptionist, business, customer):
    body = {"customerId": customer.id, "amount": 30000, "validityDays": 60, "notes": "Cortesía"}
    assert api(receptionist).post(f"{_base(business)}/manual", json=body).status_code == 403

    client = api(admin)
    assert client.post(f"{_base(business)}/manual", json=dict(body, validityDays=400)).status_code == 422

    r = client.post(f"{_base(business)}/manual", json=body)
    assert r.status_code == 201
    voucher = r.json()
    assert voucher["code"].startswith("VCH-")
    assert voucher["notes"] == "Cortesía"

    url = f"{_base(business)}/{voucher['id']}/cancel"
    assert client.post(url, json={"reason": " "}).status_code == 422
    r = client.post(url, json={"reason": "Error de digitación"})
    assert r.json()["status"] == "CANCELLED"
    assert client.post(url, json={"reason": "otra vez"}).status_code == 400


def test_expire_old_vouchers(db, business, customer):
    _voucher(db, business, customer)
    stale = _voucher(db, business, customer, code="VCH-OLD-OLD-OLD", days=-1)

    assert VoucherService(db).expire_old_vouchers() == 1
    db.refresh(stale)
    assert stale.status == "EXPIRED"
    assert VoucherService(db).expire_old_vouchers() == 0


# ============================================================================
# Blocks
# ============================================================================


def test_manual_block_and_lift(api, admin, business, customer):
    client = api(admin)
    r = client.post(
        f"{_base(business)}/blocks", json={"customerId": customer.id, "durationDays": 7, "notes": "No-show"}
    )
    assert r.status_code == 201
    block = r.json()
    assert block["reason"] == "MANUAL"

    listed = client.get(f"{_base(business)}/blocks").json()
    assert listed[0]["customer"]["name"] == "Laura Gomez"

    url = f"{_base(business)}/blocks/{block['id']}/lift"
    r = client.post(url, json={"notes": "Pagó la multa"})
    assert r.json()["status"] == "LIFTED"
    assert r.json()["lifted_by"] == admin.id
    assert client.post(url, json={}).status_code == 400

    status = client.get(f"{_base(business)}/customers/{customer.id}/block-status").json()
    assert status == {"isBlocked": False, "block": None}


def test_block_duration_validation(api, admin, business, customer):
    r = api(admin).post(f"{_base(business)}/blocks", json={"customerId": customer.id, "durationDays": 0})
    assert r.status_code == 422


def test_cleanup_expired_blocks(db, business, customer):
    service = VoucherService(db)
    block = service.block_customer(business.id, customer.id, duration_days=1)
    block.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    assert service.is_customer_blocked(business.id, customer.id) is False
    assert service.cleanup_expired_blocks() == 1
    db.refresh(block)
    assert block.status == "EXPIRED"


def test_block_unknown_customer(db, business):
    with pytest.raises(HTTPException) as exc:
        VoucherService(db).block_customer(business.id, "missing")
    assert exc.value.status_code == 404
