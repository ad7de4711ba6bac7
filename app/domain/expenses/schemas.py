"""Expense schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _positive_amount(v: Optional[float]) -> Optional[float]:
    if v is not None and v <= 0:
        raise ValueError("amount must be greater than 0")
    return round(v, 2) if v is not None else v


def _hex_color(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if len(v) != 7 or not v.startswith("#"):
        raise ValueError("color must be a hex value like #6366f1")
    int(v[1:], 16)
    return v.lower()


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("color")
    @classmethod
    def check_color(cls, v: Optional[str]) -> Optional[str]:
        return _hex_color(v)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)
    isActive: Optional[bool] = None

    @field_validator("color")
    @classmethod
    def check_color(cls, v: Optional[str]) -> Optional[str]:
        return _hex_color(v)


class CategoryResponse(BaseModel):
    id: str
    business_id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool
    is_default: bool

    class Config:
        from_attributes = True


class ExpenseCreate(BaseModel):
    categoryId: str
    description: str
    amount: float
    expenseDate: Optional[date] = None
    dueDate: Optional[date] = None
    vendor: Optional[str] = Field(None, max_length=255)
    invoiceNumber: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    receiptUrl: Optional[str] = None
    paymentMethod: Optional[str] = Field(None, max_length=30)

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: float) -> float:
        return _positive_amount(v)


class ExpenseUpdate(BaseModel):
    categoryId: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    expenseDate: Optional[date] = None
    dueDate: Optional[date] = None
    vendor: Optional[str] = Field(None, max_length=255)
    invoiceNumber: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    receiptUrl: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: Optional[float]) -> Optional[float]:
        return _positive_amount(v)


class MarkPaidRequest(BaseModel):
    paymentMethod: Optional[str] = Field(None, max_length=30)
    paidAt: Optional[datetime] = None


class ExpenseResponse(BaseModel):
    id: str
    business_id: str
    category_id: str
    category: Optional[CategoryResponse] = None
    description: str
    amount: float
    expense_date: date
    due_date: Optional[date] = None
    vendor: Optional[str] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    status: str
    receipt_url: Optional[str] = None
    payment_method: Optional[str] = None
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseListResponse(BaseModel):
    expenses: list[ExpenseResponse]
    total: int
    page: int
    limit: int
    pages: int
