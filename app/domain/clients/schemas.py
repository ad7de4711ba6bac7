"""Client domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_phone
from .states import ClientStatus


class ClientCreate(BaseModel):
    """Schema for creating a new client"""

    firstName: str = Field(..., max_length=100)
    lastName: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    documentNumber: Optional[str] = Field(None, max_length=50)
    birthDate: Optional[date] = None
    avatar: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("firstName")
    @classmethod
    def check_first_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("firstName is required")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class ClientUpdate(BaseModel):
    """Schema for updating an existing client"""

    firstName: Optional[str] = Field(None, max_length=100)
    lastName: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    documentNumber: Optional[str] = Field(None, max_length=50)
    birthDate: Optional[date] = None
    avatar: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class ClientStatusUpdate(BaseModel):
    status: ClientStatus
    reason: Optional[str] = None


class ClientResponse(BaseModel):
    """Schema for client response"""

    id: str
    business_id: str
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    document_number: Optional[str] = None
    birth_date: Optional[date] = None
    avatar: Optional[str] = None
    status: str
    notes: Optional[str] = None
    last_appointment: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientSearchResult(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class ClientListItem(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    status: str
    totalAppointments: int = 0
    completedAppointments: int = 0
    cancellationsCount: int = 0
    activeVouchersCount: int = 0
    voucherBalance: float = 0
    isBlocked: bool = False
    lastAppointment: Optional[datetime] = None
    createdAt: Optional[datetime] = None
