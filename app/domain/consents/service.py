"""Consent service - Templates, signing and signed-document lifecycle"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Appointment, Business, Client, ConsentSignature, ConsentTemplate, Service, User
from ...security_utils import sanitize_html
from ...services.task_queue import TaskQueue, TaskQueueError
from ...utils.sanitization import clean_text, sanitize_string
from .placeholders import render_consent_content, unknown_placeholders
from .repository import ConsentRepository
from .schemas import ConsentTemplateCreate, ConsentTemplateUpdate, SignConsentRequest
from .states import PDF_IN_PROGRESS, PdfStatus, SignatureStatus

logger = logging.getLogger(__name__)

PDF_TASK_NAME = "generate_consent_pdf_task"
# Job states that will never finish an in-progress PDF
DEAD_JOB_STATUSES = ("not_found", "failed")


def bump_patch_version(version: Optional[str]) -> str:
    """1.0.0 -> 1.0.1"""
    parts = (version or "1.0.0").split(".")
    if len(parts) == 3 and all(p.isdigit() for p in parts):
        major, minor, patch = (int(p) for p in parts)
        return f"{major}.{minor}.{patch + 1}"
    return f"{version}.1"


def missing_required_fields(template: ConsentTemplate, data: dict) -> list[str]:
    """Names of required editable fields without a usable value"""
    missing = []
    fields = [f for f in (template.editable_fields or []) if isinstance(f, dict)]
    required = {f.get("name") for f in fields if f.get("required")}
    required.update(template.required_fields or [])
    types = {f.get("name"): f.get("type") for f in fields}

    for name in sorted(n for n in required if n):
        value = data.get(name)
        if types.get(name) == "checkbox":
            if value is not True:
                missing.append(name)
        elif value is None or value == "" or value == []:
            missing.append(name)
    return missing


class ConsentService:
    """Service layer for consent business logic"""

    def __init__(self, db: Session, task_queue: Optional[TaskQueue] = None):
        self.db = db
        self.repo = ConsentRepository()
        self.task_queue = task_queue

    # ========================================================================
    # Templates
    # ========================================================================

    def list_templates(
        self,
        business_id: str,
        category: Optional[str] = None,
        active_only: bool = True,
        search: Optional[str] = None,
    ) -> list[ConsentTemplate]:
        return self.repo.get_templates(self.db, business_id, category, active_only, search)

    def get_template(self, business_id: str, template_id: str) -> ConsentTemplate:
        template = self.repo.get_template(self.db, business_id, template_id)
        if not template:
            raise HTTPException(status_code=404, detail="Consent template not found")
        return template

    def create_template(self, business_id: str, data: ConsentTemplateCreate) -> ConsentTemplate:
        if self.repo.get_template_by_code(self.db, business_id, data.code):
            raise HTTPException(
                status_code=409, detail=f"A template with code {data.code} already exists"
            )

        template = self.repo.create_template(
            self.db,
            {
                "business_id": business_id,
                "name": clean_text(data.name, 255),
                "code": data.code,
                "content": sanitize_html(data.content),
                "version": data.version or "1.0.0",
                "category": clean_text(data.category, 100),
                "editable_fields": [f.model_dump() for f in data.editableFields],
                "required_fields": data.requiredFields,
                "template_metadata": data.metadata,
                "is_active": True,
            },
        )
        logger.info(f"✅ Consent template created: {template.code} v{template.version}")
        self._warn_unknown_placeholders(template)
        return template

    def update_template(
        self, business_id: str, template_id: str, data: ConsentTemplateUpdate
    ) -> ConsentTemplate:
        template = self.get_template(business_id, template_id)

        if data.code and data.code != template.code:
            if self.repo.get_template_by_code(self.db, business_id, data.code, exclude_id=template.id):
                raise HTTPException(
                    status_code=409, detail=f"A template with code {data.code} already exists"
                )

        updates = {}
        if data.name is not None:
            updates["name"] = clean_text(data.name, 255)
        if data.code is not None:
            updates["code"] = data.code
        if data.category is not None:
            updates["category"] = clean_text(data.category, 100)
        if data.editableFields is not None:
            updates["editable_fields"] = [f.model_dump() for f in data.editableFields]
        if data.requiredFields is not None:
            updates["required_fields"] = data.requiredFields
        if data.metadata is not None:
            updates["template_metadata"] = data.metadata
        if data.isActive is not None:
            updates["is_active"] = data.isActive
        if data.content is not None:
            content = sanitize_html(data.content)
            if content != template.content:
                # Signatures keep their own snapshot; the template moves forward
                updates["content"] = content
                updates["version"] = bump_patch_version(template.version)
                logger.info(f"🔄 Template {template.code} content changed -> v{updates['version']}")

        template = self.repo.update_template(self.db, template, updates)
        if "content" in updates:
            self._warn_unknown_placeholders(template)
        return template

    def _warn_unknown_placeholders(self, template: ConsentTemplate) -> None:
        unknown = unknown_placeholders(template.content)
        if unknown:
            logger.warning(
                f"⚠️ Template {template.code} uses unknown placeholders: {', '.join(unknown)}"
            )

    def delete_template(self, business_id: str, template_id: str, hard_delete: bool = False) -> dict:
        template = self.get_template(business_id, template_id)

        if not hard_delete:
            self.repo.update_template(self.db, template, {"is_active": False})
            return {"message": "Consent template deactivated"}

        signature_count = self.repo.count_template_signatures(self.db, template.id)
        if signature_count:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot delete a template with {signature_count} signature(s); deactivate it instead",
            )
        self.repo.delete_template(self.db, template)
        return {"message": "Consent template deleted"}

    # ========================================================================
    # Signing
    # ========================================================================

    async def sign_consent(
        self,
        business_id: str,
        data: SignConsentRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ConsentSignature:
        template = self.get_template(business_id, data.templateId)
        if not template.is_active:
            raise HTTPException(status_code=400, detail="Consent template is not active")

        customer = (
            self.db.query(Client)
            .filter(Client.id == data.customerId, Client.business_id == business_id)
            .first()
        )
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")

        missing = missing_required_fields(template, data.editableFieldsData)
        if missing:
            raise HTTPException(
                status_code=400, detail=f"Missing required fields: {', '.join(missing)}"
            )

        appointment = None
        if data.appointmentId:
            appointment = (
                self.db.query(Appointment)
                .filter(Appointment.id == data.appointmentId, Appointment.business_id == business_id)
                .first()
            )
            if not appointment:
                raise HTTPException(status_code=404, detail="Appointment not found")

        service = None
        service_id = data.serviceId or (appointment.service_id if appointment else None)
        if service_id:
            service = (
                self.db.query(Service)
                .filter(Service.id == service_id, Service.business_id == business_id)
                .first()
            )
            if not service:
                raise HTTPException(status_code=404, detail="Service not found")

        business = self.db.query(Business).filter(Business.id == business_id).first()
        signed_at = datetime.utcnow()
        signature = self.repo.create_signature(
            self.db,
            {
                "business_id": business_id,
                "template_id": template.id,
                "customer_id": customer.id,
                "appointment_id": appointment.id if appointment else None,
                "service_id": service.id if service else None,
                "template_version": template.version,
                "template_content": render_consent_content(
                    template.content, business, customer, service, appointment, signed_at
                ),
                "signature_data": data.signatureData,
                "signature_type": data.signatureType,
                "signed_by": clean_text(data.signedBy, 255),
                "signed_at": signed_at,
                "editable_fields_data": data.editableFieldsData,
                "ip_address": ip_address,
                "user_agent": (user_agent or "")[:500] or None,
                "location": data.location,
                "device": data.device,
                "status": SignatureStatus.ACTIVE.value,
            },
        )
        logger.info(
            f"✍️ Consent {template.code} v{template.version} signed by customer {customer.id} (signature {signature.id})"
        )

        return await self.queue_pdf(signature)

    async def queue_pdf(self, signature: ConsentSignature) -> ConsentSignature:
        """Hand PDF generation to the worker; the signature stays valid if queuing fails"""
        if self.task_queue is None:
            raise HTTPException(status_code=503, detail="Background jobs are not available")

        try:
            job_id = await self.task_queue.enqueue(PDF_TASK_NAME, signature.id)
        except TaskQueueError as e:
            logger.error(f"❌ Could not queue PDF for signature {signature.id}: {e}")
            signature.pdf_status = PdfStatus.FAILED.value
            signature.pdf_error = str(e)
            return self.repo.save(self.db, signature)

        signature.pdf_status = PdfStatus.QUEUED.value
        signature.pdf_job_id = job_id
        signature.pdf_error = None
        return self.repo.save(self.db, signature)

    # ========================================================================
    # Signatures
    # ========================================================================

    def get_signature(self, business_id: str, signature_id: str) -> ConsentSignature:
        signature = self.repo.get_signature(self.db, business_id, signature_id)
        if not signature:
            raise HTTPException(status_code=404, detail="Consent signature not found")
        return signature

    def get_customer_signatures(
        self, business_id: str, customer_id: str, status: Optional[str] = None
    ) -> list[ConsentSignature]:
        if status:
            try:
                status = SignatureStatus(status).value
            except ValueError as e:
                raise HTTPException(status_code=400, detail=f"Invalid status: {status}") from e
        return self.repo.get_customer_signatures(self.db, business_id, customer_id, status)

    def revoke_signature(
        self, business_id: str, signature_id: str, reason: str, user: User
    ) -> ConsentSignature:
        signature = self.get_signature(business_id, signature_id)
        if signature.status == SignatureStatus.REVOKED.value:
            raise HTTPException(status_code=400, detail="Consent signature is already revoked")

        signature.status = SignatureStatus.REVOKED.value
        signature.revoked_at = datetime.utcnow()
        signature.revoked_reason = sanitize_string(reason)
        signature.revoked_by = user.id
        logger.info(f"🚫 Consent signature {signature.id} revoked by user {user.id}")
        return self.repo.save(self.db, signature)

    async def get_signature_pdf(self, business_id: str, signature_id: str) -> ConsentSignature:
        """Return the signature, queuing generation when no PDF exists yet"""
        signature = self.get_signature(business_id, signature_id)

        if signature.pdf_status == PdfStatus.READY.value and signature.pdf_url:
            return signature
        if signature.pdf_status in {s.value for s in PDF_IN_PROGRESS} and await self._pdf_job_alive(signature):
            return signature
        return await self.queue_pdf(signature)

    async def _pdf_job_alive(self, signature: ConsentSignature) -> bool:
        """False when the job behind an in-progress PDF is gone or gave up"""
        if not signature.pdf_job_id or self.task_queue is None:
            return False
        try:
            job = await self.task_queue.job_status(signature.pdf_job_id)
        except TaskQueueError as e:
            logger.warning(f"⚠️ Could not check PDF job {signature.pdf_job_id}: {e}")
            return True

        if job["status"] in DEAD_JOB_STATUSES:
            logger.warning(
                f"🔄 PDF job {signature.pdf_job_id} for signature {signature.id} is {job['status']}, re-queuing"
            )
            return False
        return True

