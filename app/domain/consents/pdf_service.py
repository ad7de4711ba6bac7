"""Consent PDF service - renders a signature to PDF and stores it on the media host"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ...models import ConsentSignature
from ...services.consent_pdf_generator import ConsentPDFGenerator
from ...services.media_gateway import MediaGateway
from .repository import ConsentRepository
from .states import PdfStatus

logger = logging.getLogger(__name__)


class SignatureNotFound(LookupError):
    pass


class ConsentPdfService:
    """Runs inside the worker; every step is written back to the signature row"""

    def __init__(self, db: Session, gateway: MediaGateway):
        self.db = db
        self.gateway = gateway
        self.repo = ConsentRepository()

    def generate(self, signature_id: str, attempt: int = 1, max_attempts: int = 1) -> ConsentSignature:
        signature = self.repo.get_signature_for_rendering(self.db, signature_id)
        if not signature:
            raise SignatureNotFound(f"Consent signature not found: {signature_id}")

        signature.pdf_status = PdfStatus.GENERATING.value
        signature.pdf_attempts = attempt
        self.db.commit()

        try:
            pdf_bytes = ConsentPDFGenerator(signature).generate()
            media = self.gateway.upload_consent_document(signature.business_id, signature.id, pdf_bytes)
        except Exception as e:
            self.db.rollback()
            final = attempt >= max_attempts
            signature.pdf_status = PdfStatus.FAILED.value if final else PdfStatus.QUEUED.value
            signature.pdf_error = str(e)[:1000]
            self.db.commit()
            logger.error(
                f"❌ Consent PDF attempt {attempt}/{max_attempts} failed for {signature_id}: {e}"
            )
            raise

        signature.pdf_url = media.url
        signature.pdf_key = media.key
        signature.pdf_status = PdfStatus.READY.value
        signature.pdf_error = None
        signature.pdf_generated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(signature)
        logger.info(f"✅ Consent PDF ready for signature {signature_id}: {media.key}")
        return signature
