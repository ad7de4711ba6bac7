"""Commission repository - Data access layer"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import (
    BusinessCommissionConfig,
    CommissionEntry,
    CommissionPaymentRequest,
    Service,
    ServiceCommission,
    User,
)


class CommissionRepository:
    """Repository for commission data access"""

    @staticmethod
    def get_config(db: Session, business_id: str) -> Optional[BusinessCommissionConfig]:
        return (
            db.query(BusinessCommissionConfig)
            .filter(BusinessCommissionConfig.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_service(db: Session, business_id: str, service_id: str) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_service_commission(db: Session, service_id: str) -> Optional[ServiceCommission]:
        return db.query(ServiceCommission).filter(ServiceCommission.service_id == service_id).first()

    @staticmethod
    def get_specialist(db: Session, business_id: str, specialist_id: str) -> Optional[User]:
        return (
            db.query(User)
            .filter(User.id == specialist_id, User.business_id == business_id)
            .first()
        )

    @staticmethod
    def add(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def save(db: Session, obj):
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def delete(db: Session, obj) -> None:
        db.delete(obj)
        db.commit()

    # ========================================================================
    # Entries and balances
    # ========================================================================

    @staticmethod
    def get_entries(
        db: Session, business_id: str, specialist_id: Optional[str] = None, limit: int = 100
    ) -> list[CommissionEntry]:
        query = db.query(CommissionEntry).filter(CommissionEntry.business_id == business_id)
        if specialist_id:
            query = query.filter(CommissionEntry.specialist_id == specialist_id)
        return query.order_by(CommissionEntry.created_at.desc()).limit(limit).all()

    @staticmethod
    def total_earned(db: Session, business_id: str, specialist_id: str) -> float:
        total = (
            db.query(func.sum(CommissionEntry.specialist_amount))
            .filter(
                CommissionEntry.business_id == business_id,
                CommissionEntry.specialist_id == specialist_id,
            )
            .scalar()
        )
        return float(total or 0)

    @staticmethod
    def total_requested(db: Session, business_id: str, specialist_id: str, statuses: list[str]) -> float:
        total = (
            db.query(func.sum(CommissionPaymentRequest.amount))
            .filter(
                CommissionPaymentRequest.business_id == business_id,
                CommissionPaymentRequest.specialist_id == specialist_id,
                CommissionPaymentRequest.status.in_(statuses),
            )
            .scalar()
        )
        return float(total or 0)

    @staticmethod
    def total_paid(db: Session, business_id: str, specialist_id: str) -> float:
        """Payouts count the amount actually paid, which may be lower than requested"""
        total = (
            db.query(
                func.sum(
                    func.coalesce(CommissionPaymentRequest.paid_amount, CommissionPaymentRequest.amount)
                )
            )
            .filter(
                CommissionPaymentRequest.business_id == business_id,
                CommissionPaymentRequest.specialist_id == specialist_id,
                CommissionPaymentRequest.status == "PAID",
            )
            .scalar()
        )
        return float(total or 0)

    # ========================================================================
    # Payment requests
    # ========================================================================

    @staticmethod
    def get_request(db: Session, business_id: str, request_id: str) -> Optional[CommissionPaymentRequest]:
        return (
            db.query(CommissionPaymentRequest)
            .filter(
                CommissionPaymentRequest.id == request_id,
                CommissionPaymentRequest.business_id == business_id,
            )
            .first()
        )

    @staticmethod
    def list_requests(
        db: Session,
        business_id: str,
        status: Optional[str] = None,
        specialist_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[CommissionPaymentRequest], int]:
        query = db.query(CommissionPaymentRequest).filter(
            CommissionPaymentRequest.business_id == business_id
        )
        if status:
            query = query.filter(CommissionPaymentRequest.status == status)
        if specialist_id:
            query = query.filter(CommissionPaymentRequest.specialist_id == specialist_id)

        total = query.count()
        requests = (
            query.order_by(CommissionPaymentRequest.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return requests, total

    @staticmethod
    def count_requests(db: Session, business_id: str) -> int:
        return (
            db.query(func.count(CommissionPaymentRequest.id))
            .filter(CommissionPaymentRequest.business_id == business_id)
            .scalar()
        )

    @staticmethod
    def request_number_exists(db: Session, request_number: str) -> bool:
        return (
            db.query(CommissionPaymentRequest.id)
            .filter(CommissionPaymentRequest.request_number == request_number)
            .first()
            is not None
        )
