"""Commission service - Business logic for specialist commissions and payout requests"""

import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import (
    BusinessCommissionConfig,
    CommissionEntry,
    CommissionPaymentRequest,
    ServiceCommission,
    User,
    UserRole,
)
from ...services.media_gateway import MediaGateway, StagedFile
from ...shared.state_machine import InvalidTransition
from ...utils.sanitization import clean_text, sanitize_string
from .repository import CommissionRepository
from .schemas import (
    CommissionConfigUpdate,
    CommissionRequestCreate,
    RecordCommissionRequest,
    ServiceCommissionUpsert,
)
from .states import (
    COMMISSION_REQUEST_WORKFLOW,
    OPEN_REQUEST_STATUSES,
    CalculationType,
    CommissionRequestStatus,
    CommissionSource,
    ServiceCommissionType,
)

logger = logging.getLogger(__name__)

DEFAULT_GENERAL_PERCENTAGE = 50.0
DEFAULT_PAYOUT_METHOD = "CASH"


def split_amount(amount: float, effective: dict) -> dict:
    """Split an amount between specialist and business for an effective commission"""
    if amount <= 0:
        raise ValueError("amount must be greater than 0")

    if effective.get("type") == ServiceCommissionType.FIXED.value:
        specialist_amount = min(effective.get("fixedAmount") or 0, amount)
        specialist_percentage = specialist_amount / amount * 100
    else:
        specialist_percentage = effective.get("specialistPercentage") or 0
        specialist_amount = amount * specialist_percentage / 100

    return {
        "amount": round(amount, 2),
        "source": effective["source"],
        "specialistAmount": round(specialist_amount, 2),
        "businessAmount": round(amount - specialist_amount, 2),
        "specialistPercentage": round(specialist_percentage, 2),
        "businessPercentage": round(100 - specialist_percentage, 2),
    }


class CommissionService:
    """Service layer for commission configuration, accrual and payouts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CommissionRepository()

    # ========================================================================
    # Business configuration
    # ========================================================================

    def get_business_config(self, business_id: str) -> BusinessCommissionConfig:
        config = self.repo.get_config(self.db, business_id)
        if config:
            return config

        config = BusinessCommissionConfig(
            business_id=business_id,
            commissions_enabled=True,
            calculation_type=CalculationType.GENERAL.value,
            general_percentage=DEFAULT_GENERAL_PERCENTAGE,
        )
        logger.info(f"✅ Created default commission config for business {business_id}")
        return self.repo.add(self.db, config)

    def update_business_config(self, business_id: str, data: CommissionConfigUpdate) -> BusinessCommissionConfig:
        if data.commissionsEnabled and data.calculationType is None:
            raise HTTPException(
                status_code=400,
                detail="A calculation type is required when commissions are enabled",
            )
        if data.calculationType == CalculationType.GENERAL and data.generalPercentage is None:
            raise HTTPException(
                status_code=400,
                detail="The GENERAL calculation type requires a general percentage",
            )

        config = self.get_business_config(business_id)
        config.commissions_enabled = data.commissionsEnabled
        if data.calculationType is not None:
            config.calculation_type = data.calculationType.value
        if data.generalPercentage is not None:
            config.general_percentage = data.generalPercentage
        config.notes = sanitize_string(data.notes)

        logger.info(
            f"🔄 Commission config for business {business_id}: enabled={config.commissions_enabled}, "
            f"type={config.calculation_type}, general={config.general_percentage}"
        )
        return self.repo.save(self.db, config)

    # ========================================================================
    # Service commissions
    # ========================================================================

    def _get_service(self, business_id: str, service_id: str):
        service = self.repo.get_service(self.db, business_id, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        return service

    def get_service_commission(self, business_id: str, service_id: str) -> Optional[ServiceCommission]:
        self._get_service(business_id, service_id)
        return self.repo.get_service_commission(self.db, service_id)

    def upsert_service_commission(
        self, business_id: str, service_id: str, data: ServiceCommissionUpsert
    ) -> ServiceCommission:
        self._get_service(business_id, service_id)

        config = self.repo.get_config(self.db, business_id)
        if not config or not config.commissions_enabled:
            raise HTTPException(status_code=400, detail="Commissions are disabled for this business")
        if config.calculation_type == CalculationType.GENERAL.value:
            raise HTTPException(
                status_code=400,
                detail="This business uses a general commission percentage; per-service commissions are not allowed",
            )

        if data.type == ServiceCommissionType.PERCENTAGE and data.specialistPercentage is None:
            raise HTTPException(status_code=400, detail="specialistPercentage is required")
        if data.type == ServiceCommissionType.FIXED and data.fixedAmount is None:
            raise HTTPException(status_code=400, detail="fixedAmount is required")

        commission = self.repo.get_service_commission(self.db, service_id)
        created = commission is None
        if created:
            commission = ServiceCommission(service_id=service_id)
            self.db.add(commission)

        commission.type = data.type.value
        commission.notes = sanitize_string(data.notes)
        if data.type == ServiceCommissionType.PERCENTAGE:
            commission.specialist_percentage = data.specialistPercentage
            commission.business_percentage = round(100 - data.specialistPercentage, 2)
            commission.fixed_amount = None
        else:
            commission.fixed_amount = data.fixedAmount
            commission.specialist_percentage = None
            commission.business_percentage = None

        logger.info(f"✅ Service commission {'created' if created else 'updated'} for service {service_id}")
        return self.repo.save(self.db, commission)

    def delete_service_commission(self, business_id: str, service_id: str) -> dict:
        self._get_service(business_id, service_id)
        commission = self.repo.get_service_commission(self.db, service_id)
        if not commission:
            raise HTTPException(status_code=404, detail="This service has no specific commission")

        self.repo.delete(self.db, commission)
        return {"message": "Service commission removed; the business configuration applies again"}

    # ========================================================================
    # Calculation
    # ========================================================================

    def get_effective_commission(self, business_id: str, service_id: str) -> dict:
        """Which rule decides the split for a service, in precedence order"""
        self._get_service(business_id, service_id)
        config = self.get_business_config(business_id)

        if config.commissions_enabled:
            calculation_type = config.calculation_type
            if calculation_type in (CalculationType.POR_SERVICIO.value, CalculationType.MIXTO.value):
                commission = self.repo.get_service_commission(self.db, service_id)
                if commission:
                    return {
                        "source": CommissionSource.SERVICE.value,
                        "type": commission.type,
                        "specialistPercentage": commission.specialist_percentage,
                        "businessPercentage": commission.business_percentage,
                        "fixedAmount": commission.fixed_amount,
                    }

            if (
                calculation_type in (CalculationType.GENERAL.value, CalculationType.MIXTO.value)
                and config.general_percentage is not None
            ):
                return {
                    "source": CommissionSource.BUSINESS_GENERAL.value,
                    "type": ServiceCommissionType.PERCENTAGE.value,
                    "specialistPercentage": config.general_percentage,
                    "businessPercentage": round(100 - config.general_percentage, 2),
                    "fixedAmount": None,
                }

        return {
            "source": CommissionSource.NONE.value,
            "type": ServiceCommissionType.PERCENTAGE.value,
            "specialistPercentage": 0,
            "businessPercentage": 100,
            "fixedAmount": None,
        }

    def calculate_commission(self, business_id: str, service_id: str, amount: float) -> dict:
        effective = self.get_effective_commission(business_id, service_id)
        try:
            return split_amount(amount, effective)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    def record_commission(self, business_id: str, data: RecordCommissionRequest) -> CommissionEntry:
        if not self.repo.get_specialist(self.db, business_id, data.specialistId):
            raise HTTPException(status_code=404, detail="Specialist not found")

        split = self.calculate_commission(business_id, data.serviceId, data.amount)
        entry = CommissionEntry(
            business_id=business_id,
            specialist_id=data.specialistId,
            service_id=data.serviceId,
            appointment_id=data.appointmentId,
            base_amount=split["amount"],
            specialist_amount=split["specialistAmount"],
            business_amount=split["businessAmount"],
            percentage=split["specialistPercentage"],
            source=split["source"],
        )
        entry = self.repo.add(self.db, entry)
        logger.info(
            f"💰 Commission accrued for specialist {data.specialistId}: "
            f"{entry.specialist_amount} of {entry.base_amount} ({entry.source})"
        )
        return entry

    def list_entries(self, business_id: str, specialist_id: Optional[str] = None) -> list[CommissionEntry]:
        return self.repo.get_entries(self.db, business_id, specialist_id)

    def get_specialist_summary(self, business_id: str, specialist_id: str) -> dict:
        earned = self.repo.total_earned(self.db, business_id, specialist_id)
        requested = self.repo.total_requested(
            self.db, business_id, specialist_id, [s.value for s in OPEN_REQUEST_STATUSES]
        )
        paid = self.repo.total_paid(self.db, business_id, specialist_id)
        return {
            "specialistId": specialist_id,
            "earned": round(earned, 2),
            "requested": round(requested, 2),
            "paid": round(paid, 2),
            "available": round(max(earned - requested - paid, 0), 2),
        }

    # ========================================================================
    # Payment requests
    # ========================================================================

    def _next_request_number(self, business_id: str) -> str:
        sequence = self.repo.count_requests(self.db, business_id) + 1
        prefix = datetime.utcnow().strftime("%Y%m")
        while True:
            number = f"SOL-{prefix}-{sequence:04d}"
            if not self.repo.request_number_exists(self.db, number):
                return number
            sequence += 1

    def create_request(self, business_id: str, data: CommissionRequestCreate, user: User) -> CommissionPaymentRequest:
        if user.role == UserRole.SPECIALIST:
            specialist_id = user.id
        elif data.specialistId:
            specialist_id = data.specialistId
        else:
            raise HTTPException(status_code=400, detail="specialistId is required")

        if not self.repo.get_specialist(self.db, business_id, specialist_id):
            raise HTTPException(status_code=404, detail="Specialist not found")
        if data.periodFrom and data.periodTo and data.periodFrom > data.periodTo:
            raise HTTPException(status_code=400, detail="periodFrom must be before periodTo")

        available = self.get_specialist_summary(business_id, specialist_id)["available"]
        if data.amount > available:
            raise HTTPException(
                status_code=400,
                detail=f"Requested amount exceeds the available balance ({available})",
            )

        request = CommissionPaymentRequest(
            request_number=self._next_request_number(business_id),
            business_id=business_id,
            specialist_id=specialist_id,
            amount=data.amount,
            period_from=data.periodFrom,
            period_to=data.periodTo,
            status=CommissionRequestStatus.SUBMITTED.value,
            specialist_notes=sanitize_string(data.notes),
        )
        request = self.repo.add(self.db, request)
        logger.info(f"📝 Commission request {request.request_number} submitted by {specialist_id}: {request.amount}")
        return request

    def list_requests(
        self,
        business_id: str,
        status: Optional[str] = None,
        specialist_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        if status:
            try:
                status = COMMISSION_REQUEST_WORKFLOW.coerce(status).value
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e

        requests, total = self.repo.list_requests(self.db, business_id, status, specialist_id, page, limit)
        return {
            "requests": requests,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    def get_request(self, business_id: str, request_id: str, user: Optional[User] = None) -> CommissionPaymentRequest:
        request = self.repo.get_request(self.db, business_id, request_id)
        if not request:
            raise HTTPException(status_code=404, detail="Commission request not found")
        if user is not None and user.role == UserRole.SPECIALIST and request.specialist_id != user.id:
            raise HTTPException(status_code=403, detail="You can only view your own requests")
        return request

    def _transition(self, request: CommissionPaymentRequest, target: CommissionRequestStatus) -> None:
        try:
            COMMISSION_REQUEST_WORKFLOW.validate(request.status, target)
        except InvalidTransition as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        logger.info(f"🔄 Commission request {request.request_number}: {request.status} -> {target.value}")
        request.status = target.value

    def approve_request(
        self, business_id: str, request_id: str, user: User, business_notes: Optional[str] = None
    ) -> CommissionPaymentRequest:
        request = self.get_request(business_id, request_id)
        self._transition(request, CommissionRequestStatus.APPROVED)
        request.business_notes = sanitize_string(business_notes)
        request.reviewed_by = user.id
        request.reviewed_at = datetime.utcnow()
        return self.repo.save(self.db, request)

    def reject_request(
        self, business_id: str, request_id: str, user: User, rejection_reason: str
    ) -> CommissionPaymentRequest:
        if not rejection_reason or not rejection_reason.strip():
            raise HTTPException(status_code=400, detail="A rejection reason is required")

        request = self.get_request(business_id, request_id)
        self._transition(request, CommissionRequestStatus.REJECTED)
        request.rejection_reason = sanitize_string(rejection_reason)
        request.reviewed_by = user.id
        request.reviewed_at = datetime.utcnow()
        return self.repo.save(self.db, request)

    def mark_paid(
        self,
        business_id: str,
        request_id: str,
        user: User,
        payment_method: Optional[str] = None,
        payment_reference: Optional[str] = None,
        amount: Optional[float] = None,
        staged: Optional[StagedFile] = None,
        gateway: Optional[MediaGateway] = None,
    ) -> CommissionPaymentRequest:
        request = self.get_request(business_id, request_id)
        if amount is not None and (amount <= 0 or amount > request.amount):
            raise HTTPException(
                status_code=400,
                detail=f"Paid amount must be greater than 0 and at most {request.amount}",
            )
        self._transition(request, CommissionRequestStatus.PAID)

        if staged is not None and gateway is not None:
            media = gateway.upload_commission_receipt(business_id, request.id, staged)
            request.receipt_url = media.url
            request.receipt_key = media.key

        request.payment_method = clean_text(payment_method, 30) or DEFAULT_PAYOUT_METHOD
        request.payment_reference = clean_text(payment_reference, 255)
        request.paid_amount = round(amount if amount is not None else request.amount, 2)
        request.paid_at = datetime.utcnow()
        request.paid_by = user.id

        request = self.repo.save(self.db, request)
        logger.info(
            f"✅ Commission request {request.request_number} paid: {request.paid_amount} via {request.payment_method}"
        )
        return request
