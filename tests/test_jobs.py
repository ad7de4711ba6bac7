import asyncio
from datetime import datetime, timedelta

import pytest
from arq import Retry

from conftest import FakeStorage

from app import worker
from app.models import ConsentSignature, ConsentTemplate, CustomerBookingBlock, Voucher
from app.services.media_storage import MediaUploadError
from migrations.requeue_legacy_consent_pdfs import requeue_legacy_pdfs


@pytest.fixture
def signature(db, business, customer):
    template = ConsentTemplate(business_id=business.id, name="General", code="GEN", content="<p>Acepto</p>")
    db.add(template)
    db.commit()
    signature = ConsentSignature(
        business_id=business.id,
        template_id=template.id,
        customer_id=customer.id,
        template_version="1.0.0",
        template_content="<p>Acepto</p>",
        signature_data="data:image/png;base64,",
        signed_by="Laura Gomez",
    )
    db.add(signature)
    db.commit()
    db.refresh(signature)
    return signature


# ============================================================================
# Job status endpoint
# ============================================================================


def test_job_status_reports_queue_state(api, admin, task_queue):
    task_queue.statuses["job-7"] = {
        "jobId": "job-7",
        "status": "complete",
        "result": {"signature_id": "sig-1", "pdf_url": "https://media.test/x.pdf"},
        "error": None,
    }
    r = api(admin).get("/jobs/status/job-7")
    assert r.status_code == 200
    assert r.json()["status"] == "complete"
    assert r.json()["result"]["signature_id"] == "sig-1"


def test_unknown_job_is_not_found(api, admin):
    r = api(admin).get("/jobs/status/nope")
    assert r.status_code == 404
    assert r.json()["status"] == "not_found"


# ============================================================================
# Worker tasks
# ============================================================================


def test_pdf_task_uploads_document(db, signature):
    storage = FakeStorage()
    result = asyncio.run(worker.generate_consent_pdf_task({"media_storage": storage, "job_try": 1}, signature.id))

    assert result["signature_id"] == signature.id
    assert result["pdf_key"] in storage.objects
    db.refresh(signature)
    assert signature.pdf_status == "READY"


def test_pdf_task_retries_then_gives_up(db, signature):
    ctx = {"media_storage": FakeStorage(fail_on_put=True), "job_try": 1}
    with pytest.raises(Retry):
        asyncio.run(worker.generate_consent_pdf_task(ctx, signature.id))

    ctx["job_try"] = worker.MAX_TRIES
    with pytest.raises(MediaUploadError):
        asyncio.run(worker.generate_consent_pdf_task(ctx, signature.id))
    db.refresh(signature)
    assert signature.pdf_status == "FAILED"


def test_pdf_task_for_deleted_signature(db):
    result = asyncio.run(worker.generate_consent_pdf_task({"media_storage": FakeStorage()}, "gone"))
    assert result["signature_id"] == "gone"
    assert "error" in result


def test_maintenance_crons(db, business, customer):
    past = datetime.utcnow() - timedelta(days=1)
    db.add(Voucher(code="VCH-AAA-AAA-AAA", business_id=business.id, customer_id=customer.id, amount=1, expires_at=past))
    db.add(
        CustomerBookingBlock(
            business_id=business.id,
            customer_id=customer.id,
            reason="MANUAL",
            blocked_at=past - timedelta(days=5),
            expires_at=past,
        )
    )
    db.commit()

    assert asyncio.run(worker.expire_vouchers_task({})) == {"expired": 1}
    assert asyncio.run(worker.cleanup_expired_blocks_task({})) == {"expired": 1}


def test_worker_settings_register_jobs():
    assert worker.generate_consent_pdf_task in worker.WorkerSettings.functions
    assert len(worker.WorkerSettings.cron_jobs) == 3
    assert worker.WorkerSettings.max_tries == worker.MAX_TRIES


# ============================================================================
# Legacy PDF re-queue script
# ============================================================================


def test_requeue_legacy_pdfs(db, signature, task_queue):
    signature.pdf_url = "/uploads/consents/old.pdf"
    signature.pdf_status = "READY"
    db.commit()

    result = asyncio.run(requeue_legacy_pdfs(db, task_queue, dry_run=True))
    assert result == {"found": 1, "queued": 0, "failed": 0}
    assert task_queue.jobs == []

    result = asyncio.run(requeue_legacy_pdfs(db, task_queue))
    assert result == {"found": 1, "queued": 1, "failed": 0}
    db.refresh(signature)
    assert signature.pdf_status == "QUEUED"
    assert signature.pdf_url is None
    assert signature.pdf_job_id == "job-1"
    assert task_queue.jobs == [("job-1", "generate_consent_pdf_task", (signature.id,))]


def test_requeue_marks_failures(db, signature, task_queue):
    signature.pdf_url = "/uploads/consents/old.pdf"
    db.commit()
    task_queue.fail = True

    result = asyncio.run(requeue_legacy_pdfs(db, task_queue))
    assert result["failed"] == 1
    db.refresh(signature)
    assert signature.pdf_status == "FAILED"
