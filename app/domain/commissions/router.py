"""Commission router - FastAPI endpoints for commission configuration and payout requests"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_business_access, require_business_admin
from ...database import get_db
from ...models import User, UserRole
from ...services.media_gateway import MediaGateway, get_media_gateway
from .schemas import (
    ApproveRequest,
    CalculateCommissionRequest,
    CommissionConfigResponse,
    CommissionConfigUpdate,
    CommissionEntryResponse,
    CommissionRequestCreate,
    CommissionRequestList,
    CommissionRequestResponse,
    RecordCommissionRequest,
    RejectRequest,
    ServiceCommissionResponse,
    ServiceCommissionUpsert,
)
from .service import CommissionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business/{business_id}/commissions", tags=["Commissions"])


def get_commission_service(db: Session = Depends(get_db)) -> CommissionService:
    """Dependency injection for CommissionService"""
    return CommissionService(db)


def _own_specialist_id(user: User, specialist_id: Optional[str]) -> Optional[str]:
    """Specialists only ever see their own records"""
    if user.role == UserRole.SPECIALIST:
        return user.id
    return specialist_id


# ============================================================================
# CONFIGURATION
# ============================================================================


@router.get("/config", response_model=CommissionConfigResponse)
async def get_config(
    business_id: str,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.get_business_config(business_id)


@router.put("/config", response_model=CommissionConfigResponse)
async def update_config(
    business_id: str,
    data: CommissionConfigUpdate,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_admin(business_id, current_user)
    return service.update_business_config(business_id, data)


@router.get("/services/{service_id}", response_model=Optional[ServiceCommissionResponse])
async def get_service_commission(
    business_id: str,
    service_id: str,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.get_service_commission(business_id, service_id)


@router.put("/services/{service_id}", response_model=ServiceCommissionResponse)
async def upsert_service_commission(
    business_id: str,
    service_id: str,
    data: ServiceCommissionUpsert,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_admin(business_id, current_user)
    return service.upsert_service_commission(business_id, service_id, data)


@router.delete("/services/{service_id}")
async def delete_service_commission(
    business_id: str,
    service_id: str,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_admin(business_id, current_user)
    return service.delete_service_commission(business_id, service_id)


@router.get("/services/{service_id}/effective")
async def get_effective_commission(
    business_id: str,
    service_id: str,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.get_effective_commission(business_id, service_id)


@router.post("/services/{service_id}/calculate")
async def calculate_commission(
    business_id: str,
    service_id: str,
    data: CalculateCommissionRequest,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.calculate_commission(business_id, service_id, data.amount)


# ============================================================================
# ACCRUAL
# ============================================================================


@router.post("/entries", response_model=CommissionEntryResponse, status_code=201)
async def record_commission(
    business_id: str,
    data: RecordCommissionRequest,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_admin(business_id, current_user)
    return service.record_commission(business_id, data)


@router.get("/entries", response_model=list[CommissionEntryResponse])
async def list_entries(
    business_id: str,
    specialistId: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.list_entries(business_id, _own_specialist_id(current_user, specialistId))


@router.get("/specialists/{specialist_id}/summary")
async def get_specialist_summary(
    business_id: str,
    specialist_id: str,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.get_specialist_summary(business_id, _own_specialist_id(current_user, specialist_id))


# ============================================================================
# PAYMENT REQUESTS
# ============================================================================


@router.post("/requests", response_model=CommissionRequestResponse, status_code=201)
async def create_request(
    business_id: str,
    data: CommissionRequestCreate,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.create_request(business_id, data, current_user)


@router.get("/requests", response_model=CommissionRequestList)
async def list_requests(
    business_id: str,
    status: Optional[str] = Query(None),
    specialistId: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.list_requests(
        business_id, status, _own_specialist_id(current_user, specialistId), page, limit
    )


@router.get("/requests/{request_id}", response_model=CommissionRequestResponse)
async def get_request(
    business_id: str,
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_access(business_id, current_user)
    return service.get_request(business_id, request_id, current_user)


@router.post("/requests/{request_id}/approve", response_model=CommissionRequestResponse)
async def approve_request(
    business_id: str,
    request_id: str,
    data: ApproveRequest,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_admin(business_id, current_user)
    return service.approve_request(business_id, request_id, current_user, data.businessNotes)


@router.post("/requests/{request_id}/reject", response_model=CommissionRequestResponse)
async def reject_request(
    business_id: str,
    request_id: str,
    data: RejectRequest,
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
):
    require_business_admin(business_id, current_user)
    return service.reject_request(business_id, request_id, current_user, data.rejectionReason)


@router.post("/requests/{request_id}/pay", response_model=CommissionRequestResponse)
async def mark_request_paid(
    business_id: str,
    request_id: str,
    paymentMethod: Optional[str] = Form(None, max_length=30),
    paymentReference: Optional[str] = Form(None, max_length=255),
    amount: Optional[float] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    service: CommissionService = Depends(get_commission_service),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Mark an approved request as paid, optionally attaching a payout receipt"""
    require_business_admin(business_id, current_user)
    staged = await gateway.stage_upload(receipt, "receipt") if receipt is not None else None
    try:
        return service.mark_paid(
            business_id,
            request_id,
            current_user,
            payment_method=paymentMethod,
            payment_reference=paymentReference,
            amount=amount,
            staged=staged,
            gateway=gateway,
        )
    finally:
        gateway.discard(staged)
