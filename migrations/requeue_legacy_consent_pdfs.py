"""
Re-queue consent PDFs that still point at the old local /uploads/ folder.
Each signature is reset and handed to the worker, which uploads a fresh PDF
to the media host.
Run once with: python -m migrations.requeue_legacy_consent_pdfs [--dry-run]
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from app import models  # noqa: E402, F401
from app.database import SessionLocal  # noqa: E402
from app.domain.consents.repository import ConsentRepository  # noqa: E402
from app.domain.consents.states import PdfStatus  # noqa: E402
from app.domain.consents.service import PDF_TASK_NAME  # noqa: E402
from app.services.task_queue import TaskQueue, TaskQueueError  # noqa: E402

LEGACY_PREFIX = "/uploads/"


async def requeue_legacy_pdfs(db, queue: TaskQueue, dry_run: bool = False) -> dict:
    """Reset legacy signatures and queue a regeneration job for each"""
    print("🚀 Looking for consent PDFs stored under /uploads/ ...")
    signatures = ConsentRepository.get_legacy_pdf_signatures(db, LEGACY_PREFIX)
    print(f"📋 Found {len(signatures)} legacy PDF(s)")

    queued = 0
    failed = 0
    for signature in signatures:
        if dry_run:
            print(f"   would re-queue {signature.id} ({signature.pdf_url})")
            continue

        signature.pdf_url = None
        signature.pdf_key = None
        signature.pdf_status = PdfStatus.NOT_REQUESTED.value
        signature.pdf_error = None
        db.commit()

        try:
            job_id = await queue.enqueue(PDF_TASK_NAME, signature.id)
        except TaskQueueError as e:
            signature.pdf_status = PdfStatus.FAILED.value
            signature.pdf_error = str(e)
            db.commit()
            failed += 1
            print(f"❌ {signature.id}: {e}")
            continue

        signature.pdf_status = PdfStatus.QUEUED.value
        signature.pdf_job_id = job_id
        db.commit()
        queued += 1
        print(f"✅ {signature.id} -> job {job_id}")

    print(f"🏁 Done: {queued} queued, {failed} failed")
    return {"found": len(signatures), "queued": queued, "failed": failed}


async def main(dry_run: bool):
    db = SessionLocal()
    try:
        await requeue_legacy_pdfs(db, TaskQueue(), dry_run=dry_run)
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Re-queue legacy consent PDFs")
    parser.add_argument("--dry-run", action="store_true", help="Only list the affected signatures")
    args = parser.parse_args()

    asyncio.run(main(args.dry_run))
