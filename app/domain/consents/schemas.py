"""Consent domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class EditableField(BaseModel):
    name: str
    label: Optional[str] = None
    type: str = "text"  # text, textarea, checkbox, select, date
    required: bool = False
    options: Optional[list[str]] = None


class ConsentTemplateCreate(BaseModel):
    """Schema for creating a consent template"""

    name: str = Field(..., max_length=255)
    code: str
    content: str
    version: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    editableFields: list[EditableField] = []
    requiredFields: list[str] = []
    metadata: Optional[dict] = None

    @field_validator("name", "code", "content")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name, code and content are required")
        return v.strip()

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.upper()


class ConsentTemplateUpdate(BaseModel):
    """Schema for updating a consent template"""

    name: Optional[str] = Field(None, max_length=255)
    code: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    editableFields: Optional[list[EditableField]] = None
    requiredFields: Optional[list[str]] = None
    metadata: Optional[dict] = None
    isActive: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("code cannot be empty")
        return v.strip().upper()


class ConsentTemplateResponse(BaseModel):
    id: str
    business_id: str
    name: str
    code: str
    content: str
    version: str
    category: Optional[str] = None
    editable_fields: Optional[list[Any]] = None
    required_fields: Optional[list[Any]] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SignConsentRequest(BaseModel):
    """Schema for signing a consent template"""

    templateId: str
    customerId: str
    signatureData: str
    signedBy: str = Field(..., max_length=255)
    appointmentId: Optional[str] = None
    serviceId: Optional[str] = None
    signatureType: str = "DIGITAL"
    editableFieldsData: dict = {}
    location: Optional[dict] = None
    device: Optional[dict] = None

    @field_validator("templateId", "customerId", "signatureData", "signedBy")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("templateId, customerId, signatureData and signedBy are required")
        return v.strip()

    @field_validator("signatureType")
    @classmethod
    def validate_signature_type(cls, v: str) -> str:
        allowed = {"DIGITAL", "HANDWRITTEN", "CLICK"}
        if v not in allowed:
            raise ValueError(f"signatureType must be one of {', '.join(sorted(allowed))}")
        return v


class RevokeSignatureRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("A revocation reason is required")
        return v.strip()


class ConsentSignatureResponse(BaseModel):
    id: str
    business_id: str
    template_id: str
    customer_id: str
    appointment_id: Optional[str] = None
    service_id: Optional[str] = None
    template_version: str
    template_content: str
    signature_type: str
    signed_by: str
    signed_at: datetime
    editable_fields_data: Optional[dict] = None
    ip_address: Optional[str] = None
    status: str
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None
    pdf_url: Optional[str] = None
    pdf_status: str
    pdf_job_id: Optional[str] = None
    pdf_error: Optional[str] = None
    pdf_generated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SignaturePdfResponse(BaseModel):
    signatureId: str
    pdfStatus: str
    pdfUrl: Optional[str] = None
    jobId: Optional[str] = None
