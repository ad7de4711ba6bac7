"""Subscription payment schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .states import PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    """Schema for recording a subscription payment"""

    businessId: str
    amount: float
    paymentMethod: PaymentMethod
    currency: Optional[str] = None
    dueDate: Optional[datetime] = None
    transactionId: Optional[str] = Field(None, max_length=255)
    externalReference: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[dict] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("amount must be greater than 0")
        return round(v, 2)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if len(v) != 3 or not v.isalpha():
            raise ValueError("currency must be a 3-letter ISO code")
        return v.upper()


class PaymentUpdate(BaseModel):
    """Schema for updating a payment; status changes follow the payment workflow"""

    status: Optional[PaymentStatus] = None
    transactionId: Optional[str] = Field(None, max_length=255)
    externalReference: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    notes: Optional[str] = None
    failureReason: Optional[str] = None
    refundReason: Optional[str] = None
    refundedAmount: Optional[float] = None

    @field_validator("refundedAmount")
    @classmethod
    def validate_refunded_amount(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("refundedAmount must be greater than 0")
        return v


class PaymentResponse(BaseModel):
    id: str
    business_id: str
    amount: float
    currency: str
    status: str
    payment_method: str
    transaction_id: Optional[str] = None
    external_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    receipt_url: Optional[str] = None
    receipt_metadata: Optional[dict] = None
    receipt_uploaded_at: Optional[datetime] = None
    commission_fee: float
    net_amount: Optional[float] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    failure_reason: Optional[str] = None
    refund_reason: Optional[str] = None
    refunded_amount: Optional[float] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentSummary(BaseModel):
    total: int
    completed: int
    pending: int
    failed: int
    totalRevenue: float
    netRevenue: float


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaymentListResponse(BaseModel):
    payments: list[PaymentResponse]
    pagination: Pagination
    stats: PaymentSummary
