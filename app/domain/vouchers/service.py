"""Voucher service - cancellation policy, store-credit vouchers and booking blocks"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import DEFAULT_CURRENCY
from ...models import CancellationRecord, CustomerBookingBlock, User, Voucher
from ...shared.state_machine import InvalidTransition
from ...utils.sanitization import sanitize_string
from .repository import VoucherRepository
from .schemas import CancellationRequest, ManualVoucherCreate
from .states import (
    BLOCK_WORKFLOW,
    CODE_CHARSET,
    CODE_PREFIX,
    DEFAULT_VOUCHER_POLICY,
    VOUCHER_WORKFLOW,
    BlockReason,
    BlockStatus,
    CancelledBy,
    VoucherStatus,
)

logger = logging.getLogger(__name__)


def generate_voucher_code() -> str:
    """VCH-XXX-XXX-XXX without ambiguous characters (0/O, 1/I)"""
    groups = ["".join(secrets.choice(CODE_CHARSET) for _ in range(3)) for _ in range(3)]
    return "-".join([CODE_PREFIX, *groups])


class VoucherService:
    """Service layer for vouchers and cancellation penalties"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = VoucherRepository()

    def get_policy(self, business_id: str) -> dict:
        business = self.repo.get_business(self.db, business_id)
        if not business:
            raise HTTPException(status_code=404, detail="Business not found")

        stored = (business.settings or {}).get("voucherPolicy") or {}
        policy = dict(DEFAULT_VOUCHER_POLICY)
        policy.update({k: v for k, v in stored.items() if k in DEFAULT_VOUCHER_POLICY and v is not None})
        return policy

    def _unique_code(self) -> str:
        code = generate_voucher_code()
        while self.repo.code_exists(self.db, code):
            code = generate_voucher_code()
        return code

    def _get_customer(self, business_id: str, customer_id: str):
        customer = self.repo.get_customer(self.db, business_id, customer_id)
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    # ========================================================================
    # Cancellations
    # ========================================================================

    def process_cancellation(self, business_id: str, data: CancellationRequest) -> dict:
        """
        Run a booking cancellation through the business voucher policy.

        A voucher is issued only when the customer cancels at least
        hoursForVoucher ahead of a paid booking. Every cancellation is
        recorded, and customers who cancel too often get a booking block.
        """
        policy = self.get_policy(business_id)
        self._get_customer(business_id, data.customerId)

        now = datetime.utcnow()
        start = data.appointmentStart
        if start.tzinfo:
            start = start.astimezone(timezone.utc).replace(tzinfo=None)
        hours_before = (start - now).total_seconds() / 3600

        voucher = None
        if (
            policy["enabled"]
            and data.cancelledBy == CancelledBy.CUSTOMER
            and hours_before >= policy["hoursForVoucher"]
            and data.amount > 0
        ):
            voucher = Voucher(
                code=self._unique_code(),
                business_id=business_id,
                customer_id=data.customerId,
                original_booking_id=data.bookingId,
                amount=round(data.amount * policy["percentage"] / 100, 2),
                currency=DEFAULT_CURRENCY,
                status=VoucherStatus.ACTIVE.value,
                issued_at=now,
                expires_at=now + timedelta(days=policy["validityDays"]),
                cancellation_reason=sanitize_string(data.reason),
            )
            self.db.add(voucher)
            self.db.flush()

        record = CancellationRecord(
            business_id=business_id,
            customer_id=data.customerId,
            booking_id=data.bookingId,
            cancelled_at=now,
            cancelled_by=data.cancelledBy.value,
            hours_before=round(hours_before, 2),
            voucher_issued=voucher is not None,
            voucher_id=voucher.id if voucher else None,
            reason=sanitize_string(data.reason),
        )
        self.db.add(record)
        self.db.flush()

        block = self._apply_penalty(business_id, data.customerId, policy, now)
        self.db.commit()

        if voucher:
            self.db.refresh(voucher)
            logger.info(f"🎟️ Voucher {voucher.code} issued to customer {data.customerId} for {voucher.amount}")
        if block:
            logger.warning(f"⚠️ Customer {data.customerId} blocked after {block.cancellation_count} cancellations")

        return {
            "voucher": voucher,
            "voucherIssued": voucher is not None,
            "cancellationId": record.id,
            "blocked": block is not None,
            "hoursBefore": round(hours_before, 2),
        }

    def _apply_penalty(
        self, business_id: str, customer_id: str, policy: dict, now: datetime
    ) -> Optional[CustomerBookingBlock]:
        since = now - timedelta(days=policy["resetPeriodDays"])
        recent = self.repo.count_customer_cancellations(self.db, business_id, customer_id, since)
        if recent < policy["maxCancellations"]:
            return None
        if self.repo.get_active_block(self.db, business_id, customer_id, now):
            return None

        block = CustomerBookingBlock(
            business_id=business_id,
            customer_id=customer_id,
            status=BlockStatus.ACTIVE.value,
            reason=BlockReason.EXCESSIVE_CANCELLATIONS.value,
            blocked_at=now,
            expires_at=now + timedelta(days=policy["blockDurationDays"]),
            cancellation_count=recent,
        )
        self.db.add(block)
        return block

    def get_cancellation_history(self, business_id: str, customer_id: str, days: int = 30) -> list[CancellationRecord]:
        since = datetime.utcnow() - timedelta(days=days)
        return self.repo.get_cancellations(self.db, business_id, customer_id, since)

    # ========================================================================
    # Vouchers
    # ========================================================================

    def validate_voucher(self, business_id: str, code: str, customer_id: Optional[str] = None) -> dict:
        voucher = self.repo.get_voucher_by_code(self.db, business_id, code.strip().upper())
        if not voucher:
            return {"valid": False, "reason": "Voucher not found"}
        if customer_id and voucher.customer_id != customer_id:
            return {"valid": False, "reason": "This voucher belongs to another customer"}
        if voucher.status != VoucherStatus.ACTIVE.value:
            return {"valid": False, "reason": f"Voucher is {voucher.status.lower()}", "voucher": voucher}
        if voucher.expires_at <= datetime.utcnow():
            return {"valid": False, "reason": "Voucher has expired", "voucher": voucher}
        return {"valid": True, "voucher": voucher}

    def apply_voucher(
        self, business_id: str, code: str, booking_id: str, customer_id: Optional[str] = None
    ) -> Voucher:
        voucher = self.repo.get_voucher_by_code(self.db, business_id, code.strip().upper())
        if not voucher or (customer_id and voucher.customer_id != customer_id):
            raise HTTPException(status_code=404, detail="Voucher not found or invalid")
        if voucher.status != VoucherStatus.ACTIVE.value:
            raise HTTPException(status_code=400, detail=f"Voucher is {voucher.status.lower()}")

        now = datetime.utcnow()
        if voucher.expires_at <= now:
            voucher.status = VOUCHER_WORKFLOW.validate(voucher.status, VoucherStatus.EXPIRED).value
            self.db.commit()
            raise HTTPException(status_code=400, detail="Voucher has expired")

        voucher.status = VOUCHER_WORKFLOW.validate(voucher.status, VoucherStatus.USED).value
        voucher.used_at = now
        voucher.used_in_booking_id = booking_id
        self.db.commit()
        self.db.refresh(voucher)
        logger.info(f"✅ Voucher {voucher.code} applied to booking {booking_id}")
        return voucher

    def get_customer_vouchers(
        self, business_id: str, customer_id: str, include_expired: bool = False
    ) -> list[Voucher]:
        return self.repo.get_customer_vouchers(
            self.db, business_id, customer_id, include_expired, datetime.utcnow()
        )

    def cancel_voucher(self, business_id: str, voucher_id: str, reason: str) -> Voucher:
        voucher = self.repo.get_voucher(self.db, business_id, voucher_id)
        if not voucher:
            raise HTTPException(status_code=404, detail="Voucher not found")
        try:
            voucher.status = VOUCHER_WORKFLOW.validate(voucher.status, VoucherStatus.CANCELLED).value
        except InvalidTransition as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        voucher.cancellation_reason = sanitize_string(reason)
        self.db.commit()
        self.db.refresh(voucher)
        logger.info(f"🚫 Voucher {voucher.code} cancelled")
        return voucher

    def create_manual_voucher(self, business_id: str, data: ManualVoucherCreate, user: User) -> Voucher:
        self._get_customer(business_id, data.customerId)

        now = datetime.utcnow()
        voucher = Voucher(
            code=self._unique_code(),
            business_id=business_id,
            customer_id=data.customerId,
            amount=data.amount,
            currency=DEFAULT_CURRENCY,
            status=VoucherStatus.ACTIVE.value,
            issued_at=now,
            expires_at=now + timedelta(days=data.validityDays),
            notes=sanitize_string(data.notes),
            created_by=user.id,
        )
        self.db.add(voucher)
        self.db.commit()
        self.db.refresh(voucher)
        logger.info(f"🎟️ Manual voucher {voucher.code} created for customer {data.customerId} by {user.id}")
        return voucher

    def expire_old_vouchers(self) -> int:
        count = self.repo.expire_vouchers(self.db, datetime.utcnow())
        if count:
            logger.info(f"⌛ Expired {count} voucher(s)")
        return count

    # ========================================================================
    # Blocks
    # ========================================================================

    def is_customer_blocked(self, business_id: str, customer_id: str) -> bool:
        return self.repo.get_active_block(self.db, business_id, customer_id, datetime.utcnow()) is not None

    def get_customer_block_status(self, business_id: str, customer_id: str) -> dict:
        block = self.repo.get_active_block(self.db, business_id, customer_id, datetime.utcnow())
        return {"isBlocked": block is not None, "block": block}

    def list_blocked_customers(self, business_id: str) -> list[dict]:
        return [
            {"block": block, "customer": {"id": client.id, "name": client.full_name, "email": client.email, "phone": client.phone}}
            for block, client in self.repo.list_active_blocks(self.db, business_id, datetime.utcnow())
        ]

    def block_customer(
        self,
        business_id: str,
        customer_id: str,
        duration_days: int = 30,
        notes: Optional[str] = None,
        commit: bool = True,
    ) -> CustomerBookingBlock:
        self._get_customer(business_id, customer_id)
        now = datetime.utcnow()
        block = CustomerBookingBlock(
            business_id=business_id,
            customer_id=customer_id,
            status=BlockStatus.ACTIVE.value,
            reason=BlockReason.MANUAL.value,
            blocked_at=now,
            expires_at=now + timedelta(days=duration_days),
            cancellation_count=0,
            notes=sanitize_string(notes),
        )
        self.db.add(block)
        if commit:
            self.db.commit()
            self.db.refresh(block)
        logger.info(f"⛔ Customer {customer_id} blocked for {duration_days} day(s)")
        return block

    def _lift(self, block: CustomerBookingBlock, user: User, notes: Optional[str]) -> None:
        try:
            block.status = BLOCK_WORKFLOW.validate(block.status, BlockStatus.LIFTED).value
        except InvalidTransition as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        block.lifted_at = datetime.utcnow()
        block.lifted_by = user.id
        if notes is not None:
            block.notes = sanitize_string(notes)

    def lift_block(self, business_id: str, block_id: str, user: User, notes: Optional[str] = None) -> CustomerBookingBlock:
        block = self.repo.get_block(self.db, business_id, block_id)
        if not block:
            raise HTTPException(status_code=404, detail="Block not found")
        self._lift(block, user, notes)
        self.db.commit()
        self.db.refresh(block)
        logger.info(f"✅ Block {block_id} lifted by {user.id}")
        return block

    def lift_customer_blocks(
        self, business_id: str, customer_id: str, user: User, notes: Optional[str] = None, commit: bool = True
    ) -> int:
        blocks = self.repo.get_active_blocks_for_customer(self.db, business_id, customer_id)
        for block in blocks:
            self._lift(block, user, notes)
        if commit:
            self.db.commit()
        return len(blocks)

    def cleanup_expired_blocks(self) -> int:
        count = self.repo.expire_blocks(self.db, datetime.utcnow())
        if count:
            logger.info(f"⌛ Expired {count} booking block(s)")
        return count
