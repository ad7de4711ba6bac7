"""Voucher repository - Data access layer"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Business, CancellationRecord, Client, CustomerBookingBlock, Voucher
from .states import BlockStatus, CancelledBy, VoucherStatus


class VoucherRepository:
    """Repository for vouchers, booking blocks and cancellation records"""

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[Business]:
        return db.query(Business).filter(Business.id == business_id).first()

    @staticmethod
    def get_customer(db: Session, business_id: str, customer_id: str) -> Optional[Client]:
        return (
            db.query(Client)
            .filter(Client.id == customer_id, Client.business_id == business_id)
            .first()
        )

    # ========================================================================
    # Vouchers
    # ========================================================================

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        return db.query(Voucher.id).filter(Voucher.code == code).first() is not None

    @staticmethod
    def get_voucher(db: Session, business_id: str, voucher_id: str) -> Optional[Voucher]:
        return (
            db.query(Voucher)
            .filter(Voucher.id == voucher_id, Voucher.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_voucher_by_code(db: Session, business_id: str, code: str) -> Optional[Voucher]:
        return (
            db.query(Voucher)
            .filter(Voucher.code == code, Voucher.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_customer_vouchers(
        db: Session, business_id: str, customer_id: str, include_expired: bool, now: datetime
    ) -> list[Voucher]:
        query = db.query(Voucher).filter(
            Voucher.business_id == business_id, Voucher.customer_id == customer_id
        )
        if not include_expired:
            query = query.filter(Voucher.status == VoucherStatus.ACTIVE.value, Voucher.expires_at > now)
        return query.order_by(Voucher.expires_at.asc()).all()

    @staticmethod
    def expire_vouchers(db: Session, now: datetime) -> int:
        count = (
            db.query(Voucher)
            .filter(Voucher.status == VoucherStatus.ACTIVE.value, Voucher.expires_at < now)
            .update({Voucher.status: VoucherStatus.EXPIRED.value}, synchronize_session=False)
        )
        db.commit()
        return count

    # ========================================================================
    # Blocks
    # ========================================================================

    @staticmethod
    def get_block(db: Session, business_id: str, block_id: str) -> Optional[CustomerBookingBlock]:
        return (
            db.query(CustomerBookingBlock)
            .filter(CustomerBookingBlock.id == block_id, CustomerBookingBlock.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_active_block(
        db: Session, business_id: str, customer_id: str, now: datetime
    ) -> Optional[CustomerBookingBlock]:
        return (
            db.query(CustomerBookingBlock)
            .filter(
                CustomerBookingBlock.business_id == business_id,
                CustomerBookingBlock.customer_id == customer_id,
                CustomerBookingBlock.status == BlockStatus.ACTIVE.value,
                CustomerBookingBlock.expires_at > now,
            )
            .order_by(CustomerBookingBlock.expires_at.desc())
            .first()
        )

    @staticmethod
    def get_active_blocks_for_customer(
        db: Session, business_id: str, customer_id: str
    ) -> list[CustomerBookingBlock]:
        return (
            db.query(CustomerBookingBlock)
            .filter(
                CustomerBookingBlock.business_id == business_id,
                CustomerBookingBlock.customer_id == customer_id,
                CustomerBookingBlock.status == BlockStatus.ACTIVE.value,
            )
            .all()
        )

    @staticmethod
    def list_active_blocks(db: Session, business_id: str, now: datetime) -> list[tuple]:
        return (
            db.query(CustomerBookingBlock, Client)
            .join(Client, CustomerBookingBlock.customer_id == Client.id)
            .filter(
                CustomerBookingBlock.business_id == business_id,
                CustomerBookingBlock.status == BlockStatus.ACTIVE.value,
                CustomerBookingBlock.expires_at > now,
            )
            .order_by(CustomerBookingBlock.blocked_at.desc())
            .all()
        )

    @staticmethod
    def expire_blocks(db: Session, now: datetime) -> int:
        count = (
            db.query(CustomerBookingBlock)
            .filter(
                CustomerBookingBlock.status == BlockStatus.ACTIVE.value,
                CustomerBookingBlock.expires_at < now,
            )
            .update({CustomerBookingBlock.status: BlockStatus.EXPIRED.value}, synchronize_session=False)
        )
        db.commit()
        return count

    # ========================================================================
    # Cancellations
    # ========================================================================

    @staticmethod
    def count_customer_cancellations(db: Session, business_id: str, customer_id: str, since: datetime) -> int:
        return (
            db.query(func.count(CancellationRecord.id))
            .filter(
                CancellationRecord.business_id == business_id,
                CancellationRecord.customer_id == customer_id,
                CancellationRecord.cancelled_by == CancelledBy.CUSTOMER.value,
                CancellationRecord.cancelled_at >= since,
            )
            .scalar()
        )

    @staticmethod
    def get_cancellations(db: Session, business_id: str, customer_id: str, since: datetime) -> list[CancellationRecord]:
        return (
            db.query(CancellationRecord)
            .filter(
                CancellationRecord.business_id == business_id,
                CancellationRecord.customer_id == customer_id,
                CancellationRecord.cancelled_at >= since,
            )
            .order_by(CancellationRecord.cancelled_at.desc())
            .all()
        )
