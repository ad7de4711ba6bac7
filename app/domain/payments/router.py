"""Subscription payments router - owner endpoints"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_owner
from ...database import get_db
from ...models import User
from ...services.media_gateway import MediaGateway, get_media_gateway
from .schemas import PaymentCreate, PaymentListResponse, PaymentResponse, PaymentUpdate
from .service import PaymentService
from .states import PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/owner/payments", tags=["Owner Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    status: Optional[PaymentStatus] = Query(None),
    paymentMethod: Optional[PaymentMethod] = Query(None),
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    businessId: Optional[str] = Query(None),
    hasReceipt: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_owner),
    service: PaymentService = Depends(get_payment_service),
):
    return service.list_payments(
        status=status.value if status else None,
        payment_method=paymentMethod.value if paymentMethod else None,
        start_date=startDate,
        end_date=endDate,
        business_id=businessId,
        has_receipt=hasReceipt,
        page=page,
        limit=limit,
    )


@router.get("/stats")
async def get_payment_stats(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_owner),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_payment_stats(startDate, endDate)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    current_user: User = Depends(get_current_owner),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_payment(payment_id)


@router.post("", response_model=PaymentResponse, status_code=201)
async def create_payment(
    data: PaymentCreate,
    current_user: User = Depends(get_current_owner),
    service: PaymentService = Depends(get_payment_service),
):
    return service.create_payment(data)


@router.put("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: str,
    data: PaymentUpdate,
    current_user: User = Depends(get_current_owner),
    service: PaymentService = Depends(get_payment_service),
):
    return service.update_payment(payment_id, data)


@router.post("/{payment_id}/receipt", response_model=PaymentResponse)
async def upload_receipt(
    payment_id: str,
    receipt: UploadFile = File(...),
    current_user: User = Depends(get_current_owner),
    service: PaymentService = Depends(get_payment_service),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Attach a receipt image or document; replaces any previous receipt"""
    payment = service.get_payment(payment_id)
    staged = await gateway.stage_upload(receipt, "receipt")
    try:
        return service.upload_receipt(payment, staged, current_user, gateway)
    finally:
        gateway.discard(staged)


@router.delete("/{payment_id}/receipt", response_model=PaymentResponse)
async def delete_receipt(
    payment_id: str,
    current_user: User = Depends(get_current_owner),
    service: PaymentService = Depends(get_payment_service),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    return service.delete_receipt(payment_id, gateway)
