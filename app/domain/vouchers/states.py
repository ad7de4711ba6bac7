"""Voucher and booking block enums"""

from enum import Enum

from ...shared.state_machine import StateMachine


class VoucherStatus(str, Enum):
    ACTIVE = "ACTIVE"
    USED = "USED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class BlockStatus(str, Enum):
    ACTIVE = "ACTIVE"
    LIFTED = "LIFTED"
    EXPIRED = "EXPIRED"


class BlockReason(str, Enum):
    EXCESSIVE_CANCELLATIONS = "EXCESSIVE_CANCELLATIONS"
    MANUAL = "MANUAL"


class CancelledBy(str, Enum):
    CUSTOMER = "CUSTOMER"
    BUSINESS = "BUSINESS"
    SYSTEM = "SYSTEM"


VOUCHER_WORKFLOW = StateMachine(
    "voucher",
    VoucherStatus,
    {
        VoucherStatus.ACTIVE: frozenset(
            {VoucherStatus.USED, VoucherStatus.EXPIRED, VoucherStatus.CANCELLED}
        ),
        VoucherStatus.USED: frozenset(),
        VoucherStatus.EXPIRED: frozenset(),
        VoucherStatus.CANCELLED: frozenset(),
    },
)

BLOCK_WORKFLOW = StateMachine(
    "booking block",
    BlockStatus,
    {
        BlockStatus.ACTIVE: frozenset({BlockStatus.LIFTED, BlockStatus.EXPIRED}),
        BlockStatus.LIFTED: frozenset(),
        BlockStatus.EXPIRED: frozenset(),
    },
)

CODE_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_PREFIX = "VCH"

DEFAULT_VOUCHER_POLICY = {
    "enabled": True,
    "hoursForVoucher": 24,
    "validityDays": 30,
    "percentage": 100,
    "maxCancellations": 3,
    "resetPeriodDays": 30,
    "blockDurationDays": 15,
}
