"""Subscription payment service - Business logic for owner payment management"""

import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import DEFAULT_CURRENCY
from ...models import SubscriptionPayment, User
from ...services.media_gateway import MediaGateway, StagedFile
from ...shared.state_machine import InvalidTransition
from ...utils.sanitization import clean_text, sanitize_string
from .repository import PaymentRepository
from .schemas import PaymentCreate, PaymentUpdate
from .states import PAYMENT_WORKFLOW, PaymentStatus, initial_status_for

logger = logging.getLogger(__name__)


class PaymentService:
    """Service layer for subscription payments"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()

    def list_payments(
        self,
        status: Optional[str] = None,
        payment_method: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        business_id: Optional[str] = None,
        has_receipt: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        query = self.repo.filtered_query(
            self.db, status, payment_method, start_date, end_date, business_id, has_receipt
        )
        payments, total = self.repo.paginate(query, page, limit)
        return {
            "payments": payments,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
            },
            "stats": self.repo.summary(query),
        }

    def get_payment(self, payment_id: str) -> SubscriptionPayment:
        payment = self.repo.get_payment(self.db, payment_id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment

    def create_payment(self, data: PaymentCreate) -> SubscriptionPayment:
        if not self.repo.get_business(self.db, data.businessId):
            raise HTTPException(status_code=404, detail="Business not found")

        status = initial_status_for(data.paymentMethod)
        payment = self.repo.create_payment(
            self.db,
            {
                "business_id": data.businessId,
                "amount": data.amount,
                "currency": data.currency or DEFAULT_CURRENCY,
                "status": status.value,
                "payment_method": data.paymentMethod.value,
                "transaction_id": clean_text(data.transactionId, 255),
                "external_reference": clean_text(data.externalReference, 255),
                "due_date": data.dueDate or datetime.utcnow(),
                "commission_fee": 0,
                "net_amount": data.amount,
                "description": sanitize_string(data.description),
                "notes": sanitize_string(data.notes),
                "payment_metadata": data.metadata,
            },
        )
        logger.info(
            f"💳 Payment {payment.id} recorded for business {data.businessId}: "
            f"{payment.amount} {payment.currency} ({status.value})"
        )
        return payment

    def update_payment(self, payment_id: str, data: PaymentUpdate) -> SubscriptionPayment:
        payment = self.get_payment(payment_id)

        if data.status is not None and data.status.value != payment.status:
            try:
                target = PAYMENT_WORKFLOW.validate(payment.status, data.status)
            except InvalidTransition as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
            self._apply_status(payment, target, data)

        if data.transactionId is not None:
            payment.transaction_id = clean_text(data.transactionId, 255)
        if data.externalReference is not None:
            payment.external_reference = clean_text(data.externalReference, 255)
        if data.description is not None:
            payment.description = sanitize_string(data.description)
        if data.notes is not None:
            payment.notes = sanitize_string(data.notes)

        return self.repo.save(self.db, payment)

    def _apply_status(self, payment: SubscriptionPayment, target: PaymentStatus, data: PaymentUpdate) -> None:
        now = datetime.utcnow()

        if target == PaymentStatus.COMPLETED:
            if not payment.paid_at:
                payment.paid_at = now
        elif target == PaymentStatus.FAILED:
            payment.failure_reason = sanitize_string(data.failureReason)
        elif target == PaymentStatus.PARTIALLY_REFUNDED:
            if data.refundedAmount is None or data.refundedAmount >= payment.amount:
                raise HTTPException(
                    status_code=400,
                    detail="A partial refund needs a refundedAmount lower than the payment amount",
                )
            payment.refunded_amount = round(data.refundedAmount, 2)
            payment.refunded_at = now
            payment.refund_reason = sanitize_string(data.refundReason)
        elif target == PaymentStatus.REFUNDED:
            if data.refundedAmount is not None and data.refundedAmount > payment.amount:
                raise HTTPException(
                    status_code=400, detail="refundedAmount cannot exceed the payment amount"
                )
            payment.refunded_amount = round(data.refundedAmount or payment.amount, 2)
            payment.refunded_at = now
            if data.refundReason is not None:
                payment.refund_reason = sanitize_string(data.refundReason)

        logger.info(f"🔄 Payment {payment.id}: {payment.status} -> {target.value}")
        payment.status = target.value

    # ========================================================================
    # Receipts
    # ========================================================================

    def upload_receipt(
        self, payment: SubscriptionPayment, staged: StagedFile, user: User, gateway: MediaGateway
    ) -> SubscriptionPayment:
        previous_key = payment.receipt_key

        media = gateway.upload_payment_receipt(payment.id, staged)

        payment.receipt_url = media.url
        payment.receipt_key = media.key
        payment.receipt_metadata = {
            "originalName": media.original_name,
            "size": media.size,
            "format": media.format,
            "width": media.width,
            "height": media.height,
        }
        payment.receipt_uploaded_by = user.id
        payment.receipt_uploaded_at = datetime.utcnow()
        payment = self.repo.save(self.db, payment)

        if previous_key and previous_key != media.key:
            gateway.delete_document(previous_key)
        logger.info(f"🧾 Receipt uploaded for payment {payment.id}: {media.key}")
        return payment

    def delete_receipt(self, payment_id: str, gateway: MediaGateway) -> SubscriptionPayment:
        payment = self.get_payment(payment_id)
        if not payment.receipt_url:
            raise HTTPException(status_code=400, detail="This payment has no receipt")

        if payment.receipt_key:
            gateway.delete_document(payment.receipt_key)

        payment.receipt_url = None
        payment.receipt_key = None
        payment.receipt_metadata = None
        payment.receipt_uploaded_by = None
        payment.receipt_uploaded_at = None
        return self.repo.save(self.db, payment)

    # ========================================================================
    # Statistics
    # ========================================================================

    def get_payment_stats(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> dict:
        by_method = self.repo.grouped_stats(self.db, SubscriptionPayment.payment_method, start_date, end_date)
        by_status = self.repo.grouped_stats(self.db, SubscriptionPayment.status, start_date, end_date)
        return {
            "general": self.repo.general_stats(self.db, start_date, end_date),
            "byPaymentMethod": [
                {"paymentMethod": method, "count": count, "totalAmount": round(float(total or 0), 2)}
                for method, count, total in by_method
            ],
            "byStatus": [
                {"status": status, "count": count, "totalAmount": round(float(total or 0), 2)}
                for status, count, total in by_status
            ],
        }
