"""
ARQ Background Worker for Async Jobs
Handles consent PDF generation and the daily maintenance crons
"""

import logging
import os

from arq import Retry
from arq.cron import cron

from .database import SessionLocal
from .domain.consents.pdf_service import ConsentPdfService, SignatureNotFound
from .domain.vouchers.service import VoucherService
from .services.media_gateway import MediaGateway
from .services.media_storage import MediaStorage
from .services.task_queue import get_redis_settings

logger = logging.getLogger(__name__)

MAX_TRIES = int(os.getenv("ARQ_MAX_TRIES", "3"))
RETRY_BASE_DELAY_SECONDS = 10


async def startup(ctx):
    ctx["media_storage"] = MediaStorage.from_settings()
    logger.info("🔧 Worker started, media storage ready")


async def shutdown(ctx):
    logger.info("👋 Worker shutting down")


async def generate_consent_pdf_task(ctx, signature_id: str):
    """
    Background task to render a consent signature to PDF and upload it

    Args:
        ctx: ARQ context
        signature_id: ConsentSignature ID

    Returns:
        dict with signature_id, pdf_url and pdf_key
    """
    job_try = ctx.get("job_try", 1)
    logger.info(f"📄 Generating consent PDF for {signature_id} (attempt {job_try}/{MAX_TRIES})")

    db = SessionLocal()
    try:
        gateway = MediaGateway(ctx["media_storage"])
        signature = ConsentPdfService(db, gateway).generate(signature_id, job_try, MAX_TRIES)
        return {"signature_id": signature.id, "pdf_url": signature.pdf_url, "pdf_key": signature.pdf_key}
    except SignatureNotFound as e:
        # Nothing to retry; the signature was deleted after the job was queued
        logger.warning(f"⚠️ {e}")
        return {"signature_id": signature_id, "error": str(e)}
    except Exception as e:
        if job_try < MAX_TRIES:
            raise Retry(defer=job_try * RETRY_BASE_DELAY_SECONDS) from e
        logger.error(f"❌ Consent PDF generation gave up for {signature_id}: {str(e)}")
        raise
    finally:
        db.close()


async def cleanup_temp_uploads_task(ctx):
    """Hourly cron: remove staged upload files left behind by interrupted requests"""
    gateway = MediaGateway(ctx["media_storage"])
    removed = gateway.cleanup_temp_files()
    return {"removed": removed}


async def expire_vouchers_task(ctx):
    """Daily cron job to mark vouchers past their expiry date as EXPIRED"""
    logger.info("Starting daily voucher expiry")

    db = SessionLocal()
    try:
        expired = VoucherService(db).expire_old_vouchers()
        logger.info(f"Voucher expiry complete: {expired} expired")
        return {"expired": expired}
    except Exception as e:
        logger.error(f"❌ Voucher expiry failed: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


async def cleanup_expired_blocks_task(ctx):
    """Daily cron job to close booking blocks whose period has ended"""
    logger.info("Starting daily booking block cleanup")

    db = SessionLocal()
    try:
        expired = VoucherService(db).cleanup_expired_blocks()
        logger.info(f"Booking block cleanup complete: {expired} expired")
        return {"expired": expired}
    except Exception as e:
        logger.error(f"❌ Booking block cleanup failed: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [generate_consent_pdf_task]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))  # Keep job results for 1 hour

    health_check_interval = 60

    max_tries = MAX_TRIES

    cron_jobs = [
        cron(cleanup_temp_uploads_task, minute=15),  # Every hour at :15
        cron(expire_vouchers_task, hour=0, minute=5),  # 12:05 AM UTC
        cron(cleanup_expired_blocks_task, hour=0, minute=10),  # 12:10 AM UTC
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
