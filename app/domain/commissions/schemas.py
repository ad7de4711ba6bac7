"""Commission schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_percentage
from .states import CalculationType, ServiceCommissionType


class CommissionConfigUpdate(BaseModel):
    commissionsEnabled: bool = True
    calculationType: Optional[CalculationType] = None
    generalPercentage: Optional[float] = None
    notes: Optional[str] = None

    @field_validator("generalPercentage")
    @classmethod
    def check_percentage(cls, v: Optional[float]) -> Optional[float]:
        return validate_percentage(v, "generalPercentage")


class CommissionConfigResponse(BaseModel):
    business_id: str
    commissions_enabled: bool
    calculation_type: Optional[str] = None
    general_percentage: Optional[float] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceCommissionUpsert(BaseModel):
    type: ServiceCommissionType
    specialistPercentage: Optional[float] = None
    fixedAmount: Optional[float] = None
    notes: Optional[str] = None

    @field_validator("specialistPercentage")
    @classmethod
    def check_percentage(cls, v: Optional[float]) -> Optional[float]:
        return validate_percentage(v, "specialistPercentage")

    @field_validator("fixedAmount")
    @classmethod
    def check_fixed_amount(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("fixedAmount cannot be negative")
        return v


class ServiceCommissionResponse(BaseModel):
    id: str
    service_id: str
    type: str
    specialist_percentage: Optional[float] = None
    business_percentage: Optional[float] = None
    fixed_amount: Optional[float] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class CalculateCommissionRequest(BaseModel):
    amount: float

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("amount must be greater than 0")
        return v


class RecordCommissionRequest(BaseModel):
    specialistId: str
    serviceId: str
    amount: float
    appointmentId: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("amount must be greater than 0")
        return v


class CommissionEntryResponse(BaseModel):
    id: str
    specialist_id: str
    service_id: Optional[str] = None
    appointment_id: Optional[str] = None
    base_amount: float
    specialist_amount: float
    business_amount: float
    percentage: float
    source: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommissionRequestCreate(BaseModel):
    """A specialist's claim against their available balance"""

    amount: float
    specialistId: Optional[str] = None
    periodFrom: Optional[date] = None
    periodTo: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("amount must be greater than 0")
        return round(v, 2)


class ApproveRequest(BaseModel):
    businessNotes: Optional[str] = None


class RejectRequest(BaseModel):
    rejectionReason: str

    @field_validator("rejectionReason")
    @classmethod
    def check_reason(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("rejectionReason is required")
        return v


class CommissionRequestResponse(BaseModel):
    id: str
    request_number: str
    business_id: str
    specialist_id: str
    amount: float
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    status: str
    specialist_notes: Optional[str] = None
    business_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    paid_amount: Optional[float] = None
    receipt_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    paid_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommissionRequestList(BaseModel):
    requests: list[CommissionRequestResponse]
    total: int
    page: int
    limit: int
    pages: int
