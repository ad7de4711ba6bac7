"""Voucher schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from .states import CancelledBy


class CancellationRequest(BaseModel):
    """A booking cancellation to run through the voucher policy"""

    bookingId: str
    customerId: str
    amount: float = 0
    appointmentStart: datetime
    cancelledBy: CancelledBy = CancelledBy.CUSTOMER
    reason: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: float) -> float:
        if v < 0:
            raise ValueError("amount cannot be negative")
        return v


class ApplyVoucherRequest(BaseModel):
    code: str
    bookingId: str
    customerId: Optional[str] = None


class CancelVoucherRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def check_reason(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("reason is required")
        return v


class ManualVoucherCreate(BaseModel):
    customerId: str
    amount: float
    validityDays: int = 30
    notes: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("amount must be greater than 0")
        return round(v, 2)

    @field_validator("validityDays")
    @classmethod
    def check_validity(cls, v: int) -> int:
        if v < 1 or v > 365:
            raise ValueError("validityDays must be between 1 and 365")
        return v


class BlockCustomerRequest(BaseModel):
    customerId: str
    durationDays: int = 30
    notes: Optional[str] = None

    @field_validator("durationDays")
    @classmethod
    def check_duration(cls, v: int) -> int:
        if v < 1 or v > 365:
            raise ValueError("durationDays must be between 1 and 365")
        return v


class LiftBlockRequest(BaseModel):
    notes: Optional[str] = None


class VoucherResponse(BaseModel):
    id: str
    code: str
    business_id: str
    customer_id: str
    original_booking_id: Optional[str] = None
    amount: float
    currency: str
    status: str
    issued_at: datetime
    expires_at: datetime
    used_at: Optional[datetime] = None
    used_in_booking_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class BlockResponse(BaseModel):
    id: str
    business_id: str
    customer_id: str
    status: str
    reason: str
    blocked_at: datetime
    expires_at: datetime
    cancellation_count: int
    lifted_at: Optional[datetime] = None
    lifted_by: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True
