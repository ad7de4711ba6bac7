"""Consent router - FastAPI endpoints for consent templates and signatures"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_business_access, require_business_admin
from ...database import get_db
from ...models import User
from ...services.task_queue import TaskQueue, get_task_queue
from .schemas import (
    ConsentSignatureResponse,
    ConsentTemplateCreate,
    ConsentTemplateResponse,
    ConsentTemplateUpdate,
    RevokeSignatureRequest,
    SignaturePdfResponse,
    SignConsentRequest,
)
from .service import ConsentService
from .states import PdfStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business/{business_id}/consent", tags=["Consent"])


def get_consent_service(
    db: Session = Depends(get_db), task_queue: TaskQueue = Depends(get_task_queue)
) -> ConsentService:
    """Dependency injection for ConsentService"""
    return ConsentService(db, task_queue)


# ============================================================================
# TEMPLATES
# ============================================================================


@router.get("/templates", response_model=list[ConsentTemplateResponse])
async def list_templates(
    business_id: str,
    category: Optional[str] = Query(None),
    activeOnly: bool = Query(True),
    search: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_access(business_id, current_user)
    return service.list_templates(business_id, category, activeOnly, search)


@router.get("/templates/{template_id}", response_model=ConsentTemplateResponse)
async def get_template(
    business_id: str,
    template_id: str,
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_access(business_id, current_user)
    return service.get_template(business_id, template_id)


@router.post("/templates", response_model=ConsentTemplateResponse, status_code=201)
async def create_template(
    business_id: str,
    data: ConsentTemplateCreate,
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_admin(business_id, current_user)
    return service.create_template(business_id, data)


@router.put("/templates/{template_id}", response_model=ConsentTemplateResponse)
async def update_template(
    business_id: str,
    template_id: str,
    data: ConsentTemplateUpdate,
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_admin(business_id, current_user)
    return service.update_template(business_id, template_id, data)


@router.delete("/templates/{template_id}")
async def delete_template(
    business_id: str,
    template_id: str,
    hardDelete: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_admin(business_id, current_user)
    return service.delete_template(business_id, template_id, hardDelete)


# ============================================================================
# SIGNATURES
# ============================================================================


@router.post("/sign", response_model=ConsentSignatureResponse, status_code=201)
async def sign_consent(
    business_id: str,
    data: SignConsentRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    """Record a customer's signature; the PDF copy is generated in the background"""
    require_business_access(business_id, current_user)
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return await service.sign_consent(
        business_id, data, ip_address=ip_address, user_agent=request.headers.get("user-agent")
    )


@router.get("/customers/{customer_id}/signatures", response_model=list[ConsentSignatureResponse])
async def get_customer_signatures(
    business_id: str,
    customer_id: str,
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_access(business_id, current_user)
    return service.get_customer_signatures(business_id, customer_id, status)


@router.get("/signatures/{signature_id}", response_model=ConsentSignatureResponse)
async def get_signature(
    business_id: str,
    signature_id: str,
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_access(business_id, current_user)
    return service.get_signature(business_id, signature_id)


@router.post("/signatures/{signature_id}/revoke", response_model=ConsentSignatureResponse)
async def revoke_signature(
    business_id: str,
    signature_id: str,
    data: RevokeSignatureRequest,
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    require_business_admin(business_id, current_user)
    return service.revoke_signature(business_id, signature_id, data.reason, current_user)


@router.get("/signatures/{signature_id}/pdf", response_model=SignaturePdfResponse)
async def get_signature_pdf(
    business_id: str,
    signature_id: str,
    current_user: User = Depends(get_current_user),
    service: ConsentService = Depends(get_consent_service),
):
    """PDF URL when ready, otherwise 202 with the job tracking generation"""
    require_business_access(business_id, current_user)
    signature = await service.get_signature_pdf(business_id, signature_id)
    body = SignaturePdfResponse(
        signatureId=signature.id,
        pdfStatus=signature.pdf_status,
        pdfUrl=signature.pdf_url if signature.pdf_status == PdfStatus.READY.value else None,
        jobId=signature.pdf_job_id,
    )
    if signature.pdf_status == PdfStatus.READY.value:
        return body
    status_code = 503 if signature.pdf_status == PdfStatus.FAILED.value else 202
    return JSONResponse(status_code=status_code, content=body.model_dump())
