import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .domain.clients.states import AppointmentStatus, ClientStatus
from .domain.commissions.states import CalculationType, CommissionRequestStatus, ServiceCommissionType
from .domain.consents.states import PdfStatus, SignatureStatus, SignatureType
from .domain.expenses.states import ExpenseStatus, MovementStatus
from .domain.payments.states import PaymentStatus
from .domain.vouchers.states import BlockStatus, VoucherStatus


def generate_uuid():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class UserRole:
    OWNER = "OWNER"  # Platform owner
    BUSINESS = "BUSINESS"  # Business administrator
    SPECIALIST = "SPECIALIST"
    RECEPTIONIST = "RECEPTIONIST"


class Business(Base):
    __tablename__ = "businesses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    status = Column(String(20), default="ACTIVE", nullable=False)  # ACTIVE, TRIAL, SUSPENDED, INACTIVE
    logo_url = Column(String(1000), nullable=True)
    logo_key = Column(String(500), nullable=True)  # Media host key for the logo
    settings = Column(JSON, default=dict, nullable=True)  # voucherPolicy and other per-business rules
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="business")
    clients = relationship("Client", back_populates="business", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="business", cascade="all, delete-orphan")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(20), default=UserRole.BUSINESS, nullable=False)
    status = Column(String(20), default="ACTIVE", nullable=False)
    avatar_url = Column(String(1000), nullable=True)
    avatar_key = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    business = relationship("Business", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Client(Base):
    """A business's customer"""

    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    document_number = Column(String(50), nullable=True)
    birth_date = Column(Date, nullable=True)
    avatar = Column(String(1000), nullable=True)
    status = Column(String(20), default=ClientStatus.ACTIVE.value, nullable=False)
    notes = Column(String(2000), nullable=True)
    last_appointment = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = relationship("Business", back_populates="clients")
    appointments = relationship("Appointment", back_populates="client")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Float, default=0, nullable=False)
    duration = Column(Integer, default=60, nullable=False)  # minutes
    is_active = Column(Boolean, default=True, nullable=False)
    image_url = Column(String(1000), nullable=True)
    image_key = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    business = relationship("Business", back_populates="services")
    commission = relationship(
        "ServiceCommission", back_populates="service", uselist=False, cascade="all, delete-orphan"
    )


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    specialist_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    status = Column(String(20), default=AppointmentStatus.CONFIRMED.value, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    notes = Column(String(2000), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="appointments")
    service = relationship("Service")
    specialist = relationship("User")


# ============================================================================
# Subscription payments (platform owner)
# ============================================================================


class SubscriptionPayment(Base):
    __tablename__ = "subscription_payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="COP", nullable=False)
    status = Column(String(30), default=PaymentStatus.PENDING.value, nullable=False, index=True)
    payment_method = Column(String(30), nullable=False)
    transaction_id = Column(String(255), nullable=True)
    external_reference = Column(String(255), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)

    # Receipt stored on the media host
    receipt_url = Column(String(1000), nullable=True)
    receipt_key = Column(String(500), nullable=True)
    receipt_metadata = Column(JSON, nullable=True)  # originalName, size, format, width, height
    receipt_uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    receipt_uploaded_at = Column(DateTime, nullable=True)

    commission_fee = Column(Float, default=0, nullable=False)
    net_amount = Column(Float, nullable=True)
    description = Column(String(1000), nullable=True)
    notes = Column(String(2000), nullable=True)
    failure_reason = Column(String(1000), nullable=True)
    refund_reason = Column(String(1000), nullable=True)
    refunded_amount = Column(Float, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    payment_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = relationship("Business")


# ============================================================================
# Consent
# ============================================================================


class ConsentTemplate(Base):
    __tablename__ = "consent_templates"
    __table_args__ = (UniqueConstraint("business_id", "code", name="uq_consent_template_code"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False)
    content = Column(Text, nullable=False)  # HTML with {{placeholders}}
    version = Column(String(20), default="1.0.0", nullable=False)
    category = Column(String(100), nullable=True)
    editable_fields = Column(JSON, default=list)  # [{name, label, type, required}]
    required_fields = Column(JSON, default=list)
    template_metadata = Column("metadata", JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    signatures = relationship("ConsentSignature", back_populates="template")


class ConsentSignature(Base):
    __tablename__ = "consent_signatures"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    template_id = Column(String(36), ForeignKey("consent_templates.id"), nullable=False)
    customer_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)

    # Snapshot at signing time
    template_version = Column(String(20), nullable=False)
    template_content = Column(Text, nullable=False)

    signature_data = Column(Text, nullable=False)  # base64 data URL
    signature_type = Column(String(20), default=SignatureType.DIGITAL.value, nullable=False)
    signed_by = Column(String(255), nullable=False)
    signed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    editable_fields_data = Column(JSON, default=dict)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    location = Column(JSON, nullable=True)
    device = Column(JSON, nullable=True)

    status = Column(String(20), default=SignatureStatus.ACTIVE.value, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    revoked_reason = Column(String(1000), nullable=True)
    revoked_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    # PDF generation is asynchronous; these columns make its progress observable
    pdf_url = Column(String(1000), nullable=True)
    pdf_key = Column(String(500), nullable=True)
    pdf_status = Column(String(20), default=PdfStatus.NOT_REQUESTED.value, nullable=False)
    pdf_job_id = Column(String(100), nullable=True)
    pdf_attempts = Column(Integer, default=0, nullable=False)
    pdf_error = Column(String(1000), nullable=True)
    pdf_generated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    template = relationship("ConsentTemplate", back_populates="signatures")
    customer = relationship("Client")
    service = relationship("Service")
    appointment = relationship("Appointment")
    business = relationship("Business")


# ============================================================================
# Commissions
# ============================================================================


class BusinessCommissionConfig(Base):
    __tablename__ = "business_commission_configs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), unique=True, nullable=False)
    commissions_enabled = Column(Boolean, default=True, nullable=False)
    calculation_type = Column(String(20), default=CalculationType.GENERAL.value, nullable=True)
    general_percentage = Column(Float, default=50, nullable=True)
    notes = Column(String(1000), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ServiceCommission(Base):
    __tablename__ = "service_commissions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    service_id = Column(String(36), ForeignKey("services.id"), unique=True, nullable=False)
    type = Column(String(20), default=ServiceCommissionType.PERCENTAGE.value, nullable=False)
    specialist_percentage = Column(Float, nullable=True)
    business_percentage = Column(Float, nullable=True)
    fixed_amount = Column(Float, nullable=True)
    notes = Column(String(1000), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    service = relationship("Service", back_populates="commission")


class CommissionEntry(Base):
    """Commission accrued by a specialist for a completed service"""

    __tablename__ = "commission_entries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    specialist_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=True)
    base_amount = Column(Float, nullable=False)
    specialist_amount = Column(Float, nullable=False)
    business_amount = Column(Float, nullable=False)
    percentage = Column(Float, nullable=False)
    source = Column(String(30), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class CommissionPaymentRequest(Base):
    __tablename__ = "commission_payment_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    request_number = Column(String(30), unique=True, nullable=False)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    specialist_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    period_from = Column(Date, nullable=True)
    period_to = Column(Date, nullable=True)
    status = Column(
        String(20), default=CommissionRequestStatus.SUBMITTED.value, nullable=False, index=True
    )
    specialist_notes = Column(String(2000), nullable=True)
    business_notes = Column(String(2000), nullable=True)
    rejection_reason = Column(String(2000), nullable=True)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    payment_method = Column(String(30), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    paid_amount = Column(Float, nullable=True)
    receipt_url = Column(String(1000), nullable=True)
    receipt_key = Column(String(500), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    paid_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    specialist = relationship("User", foreign_keys=[specialist_id])


# ============================================================================
# Expenses
# ============================================================================


class ExpenseCategory(Base):
    __tablename__ = "expense_categories"
    __table_args__ = (UniqueConstraint("business_id", "name", name="uq_expense_category_name"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    color = Column(String(7), nullable=True)
    icon = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class BusinessExpense(Base):
    __tablename__ = "business_expenses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("expense_categories.id"), nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Float, nullable=False)
    expense_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    vendor = Column(String(255), nullable=True)
    invoice_number = Column(String(100), nullable=True)
    notes = Column(String(2000), nullable=True)
    status = Column(String(20), default=ExpenseStatus.PENDING.value, nullable=False, index=True)
    receipt_url = Column(String(1000), nullable=True)
    payment_method = Column(String(30), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    approved_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("ExpenseCategory")


class FinancialMovement(Base):
    __tablename__ = "financial_movements"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # INCOME, EXPENSE
    category = Column(String(100), nullable=True)
    amount = Column(Float, nullable=False)
    description = Column(String(500), nullable=True)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(String(36), nullable=True)
    status = Column(String(20), default=MovementStatus.COMPLETED.value, nullable=False)
    payment_method = Column(String(30), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ============================================================================
# Vouchers and cancellation policy
# ============================================================================


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(20), unique=True, nullable=False, index=True)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    original_booking_id = Column(String(36), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="COP", nullable=False)
    status = Column(String(20), default=VoucherStatus.ACTIVE.value, nullable=False, index=True)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    used_in_booking_id = Column(String(36), nullable=True)
    cancellation_reason = Column(String(1000), nullable=True)
    notes = Column(String(2000), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)


class CustomerBookingBlock(Base):
    __tablename__ = "customer_booking_blocks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    status = Column(String(20), default=BlockStatus.ACTIVE.value, nullable=False, index=True)
    reason = Column(String(40), nullable=False)
    blocked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    cancellation_count = Column(Integer, default=0, nullable=False)
    lifted_at = Column(DateTime, nullable=True)
    lifted_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    notes = Column(String(2000), nullable=True)


class CancellationRecord(Base):
    __tablename__ = "cancellation_records"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    booking_id = Column(String(36), nullable=False)
    cancelled_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    cancelled_by = Column(String(20), nullable=False)  # CUSTOMER, BUSINESS, SYSTEM
    hours_before = Column(Float, nullable=True)
    voucher_issued = Column(Boolean, default=False, nullable=False)
    voucher_id = Column(String(36), ForeignKey("vouchers.id"), nullable=True)
    reason = Column(String(1000), nullable=True)
