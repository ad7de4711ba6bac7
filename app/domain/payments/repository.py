"""Subscription payment repository - Data access layer"""

from datetime import datetime
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from ...models import Business, SubscriptionPayment
from .states import PaymentStatus


class PaymentRepository:
    """Repository for subscription payment data access"""

    @staticmethod
    def filtered_query(
        db: Session,
        status: Optional[str] = None,
        payment_method: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        business_id: Optional[str] = None,
        has_receipt: Optional[bool] = None,
    ) -> Query:
        query = db.query(SubscriptionPayment)
        if status:
            query = query.filter(SubscriptionPayment.status == status)
        if payment_method:
            query = query.filter(SubscriptionPayment.payment_method == payment_method)
        if start_date:
            query = query.filter(SubscriptionPayment.paid_at >= start_date)
        if end_date:
            query = query.filter(SubscriptionPayment.paid_at <= end_date)
        if business_id:
            query = query.filter(SubscriptionPayment.business_id == business_id)
        if has_receipt is True:
            query = query.filter(SubscriptionPayment.receipt_url.isnot(None))
        elif has_receipt is False:
            query = query.filter(SubscriptionPayment.receipt_url.is_(None))
        return query

    @staticmethod
    def paginate(query: Query, page: int, limit: int) -> tuple[list[SubscriptionPayment], int]:
        total = query.order_by(None).count()
        items = (
            query.order_by(SubscriptionPayment.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def summary(query: Query) -> dict:
        """Counts and revenue over an already-filtered query"""
        completed = SubscriptionPayment.status == PaymentStatus.COMPLETED.value
        row = query.with_entities(
            func.count(SubscriptionPayment.id),
            func.sum(case((completed, 1), else_=0)),
            func.sum(case((SubscriptionPayment.status == PaymentStatus.PENDING.value, 1), else_=0)),
            func.sum(case((SubscriptionPayment.status == PaymentStatus.FAILED.value, 1), else_=0)),
            func.sum(case((completed, SubscriptionPayment.amount), else_=0)),
            func.sum(case((completed, SubscriptionPayment.net_amount), else_=0)),
        ).one()
        return {
            "total": row[0] or 0,
            "completed": int(row[1] or 0),
            "pending": int(row[2] or 0),
            "failed": int(row[3] or 0),
            "totalRevenue": round(float(row[4] or 0), 2),
            "netRevenue": round(float(row[5] or 0), 2),
        }

    @staticmethod
    def get_payment(db: Session, payment_id: str) -> Optional[SubscriptionPayment]:
        return db.query(SubscriptionPayment).filter(SubscriptionPayment.id == payment_id).first()

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[Business]:
        return db.query(Business).filter(Business.id == business_id).first()

    @staticmethod
    def create_payment(db: Session, payment_data: dict) -> SubscriptionPayment:
        payment = SubscriptionPayment(**payment_data)
        db.add(payment)
        db.commit()
        db.refresh(payment)
        return payment

    @staticmethod
    def save(db: Session, payment: SubscriptionPayment) -> SubscriptionPayment:
        db.commit()
        db.refresh(payment)
        return payment

    @staticmethod
    def general_stats(db: Session, start_date: Optional[datetime], end_date: Optional[datetime]) -> dict:
        completed = SubscriptionPayment.status == PaymentStatus.COMPLETED.value
        query = PaymentRepository._date_range(db.query(SubscriptionPayment), start_date, end_date)
        row = query.with_entities(
            func.count(SubscriptionPayment.id),
            func.sum(case((completed, SubscriptionPayment.amount), else_=0)),
            func.sum(case((completed, SubscriptionPayment.commission_fee), else_=0)),
            func.sum(case((completed, SubscriptionPayment.net_amount), else_=0)),
            func.avg(case((completed, SubscriptionPayment.amount), else_=None)),
        ).one()
        return {
            "totalPayments": row[0] or 0,
            "totalRevenue": round(float(row[1] or 0), 2),
            "totalCommissions": round(float(row[2] or 0), 2),
            "netRevenue": round(float(row[3] or 0), 2),
            "avgPaymentAmount": round(float(row[4] or 0), 2),
        }

    @staticmethod
    def grouped_stats(
        db: Session, column, start_date: Optional[datetime], end_date: Optional[datetime]
    ) -> list[tuple]:
        query = PaymentRepository._date_range(db.query(SubscriptionPayment), start_date, end_date)
        return (
            query.with_entities(column, func.count(SubscriptionPayment.id), func.sum(SubscriptionPayment.amount))
            .group_by(column)
            .order_by(column)
            .all()
        )

    @staticmethod
    def _date_range(query: Query, start_date: Optional[datetime], end_date: Optional[datetime]) -> Query:
        if start_date:
            query = query.filter(SubscriptionPayment.created_at >= start_date)
        if end_date:
            query = query.filter(SubscriptionPayment.created_at <= end_date)
        return query
