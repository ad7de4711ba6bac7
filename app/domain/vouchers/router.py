"""Voucher router - FastAPI endpoints for vouchers and booking blocks"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_business_access, require_business_admin
from ...database import get_db
from ...models import User
from .schemas import (
    ApplyVoucherRequest,
    BlockCustomerRequest,
    BlockResponse,
    CancellationRequest,
    CancelVoucherRequest,
    LiftBlockRequest,
    ManualVoucherCreate,
    VoucherResponse,
)
from .service import VoucherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business/{business_id}/vouchers", tags=["Vouchers"])


def get_voucher_service(db: Session = Depends(get_db)) -> VoucherService:
    """Dependency injection for VoucherService"""
    return VoucherService(db)


def _voucher(voucher):
    return VoucherResponse.model_validate(voucher).model_dump() if voucher is not None else None


def _block(block):
    return BlockResponse.model_validate(block).model_dump() if block is not None else None


# ============================================================================
# CANCELLATIONS
# ============================================================================


@router.post("/cancellations")
async def process_cancellation(
    business_id: str,
    data: CancellationRequest,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    """Record a booking cancellation; may issue a voucher and block the customer"""
    require_business_access(business_id, current_user)
    result = service.process_cancellation(business_id, data)
    result["voucher"] = _voucher(result["voucher"])
    return result


@router.get("/customers/{customer_id}/cancellations")
async def get_cancellation_history(
    business_id: str,
    customer_id: str,
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_access(business_id, current_user)
    return [
        {
            "id": r.id,
            "bookingId": r.booking_id,
            "cancelledAt": r.cancelled_at,
            "cancelledBy": r.cancelled_by,
            "hoursBefore": r.hours_before,
            "voucherIssued": r.voucher_issued,
            "voucherId": r.voucher_id,
            "reason": r.reason,
        }
        for r in service.get_cancellation_history(business_id, customer_id, days)
    ]


# ============================================================================
# VOUCHERS
# ============================================================================


@router.get("/validate/{code}")
async def validate_voucher(
    business_id: str,
    code: str,
    customerId: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_access(business_id, current_user)
    result = service.validate_voucher(business_id, code, customerId)
    if "voucher" in result:
        result["voucher"] = _voucher(result["voucher"])
    return result


@router.post("/apply", response_model=VoucherResponse)
async def apply_voucher(
    business_id: str,
    data: ApplyVoucherRequest,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_access(business_id, current_user)
    return service.apply_voucher(business_id, data.code, data.bookingId, data.customerId)


@router.get("/customers/{customer_id}", response_model=list[VoucherResponse])
async def get_customer_vouchers(
    business_id: str,
    customer_id: str,
    includeExpired: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_access(business_id, current_user)
    return service.get_customer_vouchers(business_id, customer_id, includeExpired)


@router.post("/manual", response_model=VoucherResponse, status_code=201)
async def create_manual_voucher(
    business_id: str,
    data: ManualVoucherCreate,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_admin(business_id, current_user)
    return service.create_manual_voucher(business_id, data, current_user)


@router.post("/{voucher_id}/cancel", response_model=VoucherResponse)
async def cancel_voucher(
    business_id: str,
    voucher_id: str,
    data: CancelVoucherRequest,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_admin(business_id, current_user)
    return service.cancel_voucher(business_id, voucher_id, data.reason)


# ============================================================================
# BLOCKS
# ============================================================================


@router.get("/blocks")
async def list_blocked_customers(
    business_id: str,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_access(business_id, current_user)
    return [
        {"block": _block(item["block"]), "customer": item["customer"]}
        for item in service.list_blocked_customers(business_id)
    ]


@router.post("/blocks", response_model=BlockResponse, status_code=201)
async def block_customer(
    business_id: str,
    data: BlockCustomerRequest,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_admin(business_id, current_user)
    return service.block_customer(business_id, data.customerId, data.durationDays, data.notes)


@router.post("/blocks/{block_id}/lift", response_model=BlockResponse)
async def lift_block(
    business_id: str,
    block_id: str,
    data: LiftBlockRequest,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_admin(business_id, current_user)
    return service.lift_block(business_id, block_id, current_user, data.notes)


@router.get("/customers/{customer_id}/block-status")
async def get_customer_block_status(
    business_id: str,
    customer_id: str,
    current_user: User = Depends(get_current_user),
    service: VoucherService = Depends(get_voucher_service),
):
    require_business_access(business_id, current_user)
    status = service.get_customer_block_status(business_id, customer_id)
    return {"isBlocked": status["isBlocked"], "block": _block(status["block"])}
