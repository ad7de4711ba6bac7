import base64
from datetime import date, datetime

import pytest

from conftest import FakeStorage, make_image_bytes

from app.domain.consents.pdf_service import ConsentPdfService, SignatureNotFound
from app.domain.consents.placeholders import find_placeholders, render_consent_content, unknown_placeholders
from app.domain.consents.service import bump_patch_version
from app.models import ConsentSignature
from app.services.consent_pdf_generator import (
    ConsentPDFGenerator,
    calculate_age,
    decode_signature_image,
)
from app.services.media_gateway import MediaGateway
from app.services.media_storage import MediaUploadError

SIGNATURE_DATA = "data:image/png;base64," + base64.b64encode(make_image_bytes((300, 100))).decode()

TEMPLATE = {
    "name": "Consentimiento keratina",
    "code": "keratina",
    "content": "<p>Yo, {{cliente_nombre}}, autorizo a {{negocio_nombre}} el servicio {{servicio_nombre}}.</p>",
    "category": "Cabello",
    "editableFields": [
        {"name": "alergias", "label": "Alergias", "type": "text", "required": True},
        {"name": "agreedToTerms", "label": "Acepto", "type": "checkbox", "required": True},
    ],
}


@pytest.fixture
def template_id(api, admin, business):
    r = api(admin).post(f"/business/{business.id}/consent/templates", json=TEMPLATE)
    assert r.status_code == 201
    return r.json()["id"]


def _sign(client, business, template_id, customer, **overrides):
    body = {
        "templateId": template_id,
        "customerId": customer.id,
        "signatureData": SIGNATURE_DATA,
        "signedBy": "Laura Gomez",
        "editableFieldsData": {"alergias": "Ninguna", "agreedToTerms": True},
    }
    body.update(overrides)
    return client.post(f"/business/{business.id}/consent/sign", json=body)


# ============================================================================
# Placeholders
# ============================================================================


def test_render_placeholders_escapes_values(business, customer, service):
    customer.first_name = "<b>Laura</b>"
    content = "{{ cliente_nombre }} - {{servicio_nombre}} - {{desconocido}}"
    rendered = render_consent_content(content, business, customer, service)
    assert rendered == "&lt;b&gt;Laura&lt;/b&gt; Gomez - Keratina - {{desconocido}}"


def test_render_missing_data_becomes_empty(business):
    rendered = render_consent_content("[{{cliente_email}}][{{fecha_cita}}]", business, None)
    assert rendered == "[][]"


def test_find_placeholders_in_order():
    assert find_placeholders("{{a}} {{b}} {{a}}") == ["a", "b"]
    assert unknown_placeholders("{{cliente_nombre}} {{mascota}} {{ fecha_cita }}") == ["mascota"]


def test_bump_patch_version():
    assert bump_patch_version("1.0.0") == "1.0.1"
    assert bump_patch_version("2.3.9") == "2.3.10"
    assert bump_patch_version("v2") == "v2.1"


# ============================================================================
# Templates
# ============================================================================


def test_template_code_is_unique_per_business(api, admin, business, template_id):
    r = api(admin).post(f"/business/{business.id}/consent/templates", json=TEMPLATE)
    assert r.status_code == 409


def test_template_content_is_sanitized(api, admin, business):
    body = dict(TEMPLATE, code="x", content="<p>Hola</p><script>alert(1)</script>")
    r = api(admin).post(f"/business/{business.id}/consent/templates", json=body)
    assert "<script>" not in r.json()["content"]
    assert r.json()["code"] == "X"


def test_content_change_bumps_version(api, admin, business, template_id):
    client = api(admin)
    url = f"/business/{business.id}/consent/templates/{template_id}"
    r = client.put(url, json={"name": "Nuevo nombre"})
    assert r.json()["version"] == "1.0.0"

    r = client.put(url, json={"content": "<p>Texto nuevo {{cliente_nombre}}</p>"})
    assert r.json()["version"] == "1.0.1"


def test_unknown_placeholders_are_logged_on_save(api, admin, business, template_id, caplog):
    url = f"/business/{business.id}/consent/templates/{template_id}"
    with caplog.at_level("WARNING", logger="app.domain.consents.service"):
        r = api(admin).put(url, json={"content": "<p>{{cliente_nombre}} trae {{mascota}}</p>"})
    assert r.status_code == 200
    assert "unknown placeholders: mascota" in caplog.text


def test_template_field_lengths_are_limited(api, admin, business):
    body = dict(TEMPLATE, code="largo", name="x" * 300)
    r = api(admin).post(f"/business/{business.id}/consent/templates", json=body)
    assert r.status_code == 422


def test_specialist_cannot_create_templates(api, specialist, business):
    r = api(specialist).post(f"/business/{business.id}/consent/templates", json=TEMPLATE)
    assert r.status_code == 403


def test_other_business_is_forbidden(api, admin, other_business):
    assert api(admin).get(f"/business/{other_business.id}/consent/templates").status_code == 403


def test_hard_delete_refused_when_signed(api, admin, business, customer, template_id):
    client = api(admin)
    _sign(client, business, template_id, customer)
    r = client.delete(
        f"/business/{business.id}/consent/templates/{template_id}", params={"hardDelete": True}
    )
    assert r.status_code == 400

    r = client.delete(f"/business/{business.id}/consent/templates/{template_id}")
    assert r.status_code == 200
    listed = client.get(f"/business/{business.id}/consent/templates").json()
    assert listed == []


# ============================================================================
# Signing
# ============================================================================


def test_sign_snapshots_content_and_queues_pdf(api, admin, business, customer, service, template_id, task_queue):
    r = _sign(api(admin), business, template_id, customer, serviceId=service.id)
    assert r.status_code == 201
    body = r.json()
    assert body["template_content"] == (
        "<p>Yo, Laura Gomez, autorizo a Bella Spa el servicio Keratina.</p>"
    )
    assert body["pdf_status"] == "QUEUED"
    assert body["pdf_job_id"] == "job-1"
    assert task_queue.jobs == [("job-1", "generate_consent_pdf_task", (body["id"],))]


def test_sign_requires_required_fields(api, admin, business, customer, template_id):
    r = _sign(api(admin), business, template_id, customer, editableFieldsData={"alergias": ""})
    assert r.status_code == 400
    assert r.json()["detail"] == "Missing required fields: agreedToTerms, alergias"


def test_sign_keeps_signature_when_queue_is_down(api, admin, business, customer, template_id, task_queue):
    task_queue.fail = True
    r = _sign(api(admin), business, template_id, customer)
    assert r.status_code == 201
    assert r.json()["pdf_status"] == "FAILED"
    assert r.json()["pdf_error"]


def test_pdf_endpoint_reports_progress(api, admin, business, customer, template_id, db):
    client = api(admin)
    signature_id = _sign(client, business, template_id, customer).json()["id"]
    url = f"/business/{business.id}/consent/signatures/{signature_id}/pdf"

    r = client.get(url)
    assert r.status_code == 202
    assert r.json()["pdfStatus"] == "QUEUED"
    assert r.json()["pdfUrl"] is None

    signature = db.get(ConsentSignature, signature_id)
    signature.pdf_status = "READY"
    signature.pdf_url = "https://media.test/consent.pdf"
    db.commit()
    r = client.get(url)
    assert r.status_code == 200
    assert r.json()["pdfUrl"] == "https://media.test/consent.pdf"


def test_failed_pdf_is_requeued_on_request(api, admin, business, customer, template_id, task_queue):
    client = api(admin)
    task_queue.fail = True
    signature_id = _sign(client, business, template_id, customer).json()["id"]
    url = f"/business/{business.id}/consent/signatures/{signature_id}/pdf"

    assert client.get(url).status_code == 503
    task_queue.fail = False
    r = client.get(url)
    assert r.status_code == 202
    assert r.json()["jobId"] == "job-1"


def test_lost_pdf_job_is_requeued(api, admin, business, customer, template_id, task_queue, db):
    client = api(admin)
    signature_id = _sign(client, business, template_id, customer).json()["id"]
    signature = db.get(ConsentSignature, signature_id)
    signature.pdf_status = "GENERATING"
    signature.pdf_job_id = "job-dead"
    db.commit()
    url = f"/business/{business.id}/consent/signatures/{signature_id}/pdf"

    r = client.get(url)
    assert r.status_code == 202
    assert r.json()["pdfStatus"] == "QUEUED"
    assert r.json()["jobId"] == "job-2"

    task_queue.statuses["job-2"]["status"] = "failed"
    assert client.get(url).json()["jobId"] == "job-3"
    assert len(task_queue.jobs) == 3


def test_live_pdf_job_is_left_alone(api, admin, business, customer, template_id, task_queue):
    client = api(admin)
    signature_id = _sign(client, business, template_id, customer).json()["id"]
    url = f"/business/{business.id}/consent/signatures/{signature_id}/pdf"

    task_queue.statuses["job-1"]["status"] = "in_progress"
    assert client.get(url).json()["jobId"] == "job-1"

    task_queue.fail = True
    r = client.get(url)
    assert r.status_code == 202
    assert r.json()["jobId"] == "job-1"
    assert len(task_queue.jobs) == 1


def test_revoke_signature(api, admin, business, customer, template_id):
    client = api(admin)
    signature_id = _sign(client, business, template_id, customer).json()["id"]
    url = f"/business/{business.id}/consent/signatures/{signature_id}/revoke"

    r = client.post(url, json={"reason": "Solicitud del cliente"})
    assert r.json()["status"] == "REVOKED"
    assert client.post(url, json={"reason": "otra vez"}).status_code == 400

    active = client.get(
        f"/business/{business.id}/consent/customers/{customer.id}/signatures", params={"status": "ACTIVE"}
    )
    assert active.json() == []


# ============================================================================
# PDF generation
# ============================================================================


def test_calculate_age():
    assert calculate_age(date(1990, 6, 15), today=date(2026, 6, 14)) == 35
    assert calculate_age(date(1990, 6, 15), today=date(2026, 6, 15)) == 36
    assert calculate_age(None) is None


def test_decode_signature_image():
    assert decode_signature_image(SIGNATURE_DATA)
    assert decode_signature_image("data:image/png;base64,bm90LWFuLWltYWdl") is None
    assert decode_signature_image("plain text") is None


def _signature(db, business, customer, template_id, **overrides):
    values = dict(
        business_id=business.id,
        template_id=template_id,
        customer_id=customer.id,
        template_version="1.0.0",
        template_content="<p>Autorizo el tratamiento</p>",
        signature_data=SIGNATURE_DATA,
        signed_by="Laura Gomez",
        signed_at=datetime(2026, 3, 14, 10, 30),
        editable_fields_data={"alergias": "Ninguna", "agreedToTerms": True},
    )
    values.update(overrides)
    signature = ConsentSignature(**values)
    db.add(signature)
    db.commit()
    return signature


def test_generator_produces_pdf(db, business, customer, template_id):
    customer.birth_date = date(1995, 1, 20)
    signature = _signature(db, business, customer, template_id)
    pdf = ConsentPDFGenerator(signature).generate()
    assert pdf.startswith(b"%PDF")


def test_generator_tolerates_bad_signature_image(db, business, customer, template_id):
    signature = _signature(db, business, customer, template_id, signature_data="garbage")
    assert ConsentPDFGenerator(signature).generate().startswith(b"%PDF")


def test_pdf_service_uploads_and_marks_ready(db, business, customer, template_id, tmp_path):
    storage = FakeStorage()
    signature = _signature(db, business, customer, template_id)

    result = ConsentPdfService(db, MediaGateway(storage, temp_dir=str(tmp_path))).generate(signature.id, 1, 3)

    assert result.pdf_status == "READY"
    assert result.pdf_key == f"beauty-control/businesses/{business.id}/consents/{signature.id}.pdf"
    assert result.pdf_attempts == 1
    assert storage.objects[result.pdf_key][0].startswith(b"%PDF")


def test_pdf_service_failure_marks_queued_until_last_attempt(db, business, customer, template_id, tmp_path):
    gateway = MediaGateway(FakeStorage(fail_on_put=True), temp_dir=str(tmp_path))
    signature = _signature(db, business, customer, template_id)

    with pytest.raises(MediaUploadError):
        ConsentPdfService(db, gateway).generate(signature.id, 1, 3)
    db.refresh(signature)
    assert signature.pdf_status == "QUEUED"

    with pytest.raises(MediaUploadError):
        ConsentPdfService(db, gateway).generate(signature.id, 3, 3)
    db.refresh(signature)
    assert signature.pdf_status == "FAILED"
    assert signature.pdf_error


def test_pdf_service_missing_signature(db, tmp_path):
    with pytest.raises(SignatureNotFound):
        ConsentPdfService(db, MediaGateway(FakeStorage(), temp_dir=str(tmp_path))).generate("missing")
