"""Subscription payment status and method enums"""

from enum import Enum

from ...shared.state_machine import StateMachine


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    PSE = "PSE"
    CASH = "CASH"
    CHECK = "CHECK"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    MANUAL = "MANUAL"
    WOMPI_CARD = "WOMPI_CARD"
    WOMPI_PSE = "WOMPI_PSE"
    WOMPI_NEQUI = "WOMPI_NEQUI"


PAYMENT_WORKFLOW = StateMachine(
    "payment",
    PaymentStatus,
    {
        PaymentStatus.PENDING: frozenset(
            {
                PaymentStatus.PROCESSING,
                PaymentStatus.COMPLETED,
                PaymentStatus.FAILED,
                PaymentStatus.CANCELLED,
            }
        ),
        PaymentStatus.PROCESSING: frozenset(
            {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
        ),
        # A failed charge can be retried
        PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING, PaymentStatus.PROCESSING}),
        PaymentStatus.COMPLETED: frozenset(
            {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}
        ),
        PaymentStatus.PARTIALLY_REFUNDED: frozenset({PaymentStatus.REFUNDED}),
        PaymentStatus.CANCELLED: frozenset(),
        PaymentStatus.REFUNDED: frozenset(),
    },
)


def initial_status_for(method: PaymentMethod) -> PaymentStatus:
    """Manual payments wait for confirmation; gateway methods start processing"""
    if method == PaymentMethod.MANUAL:
        return PaymentStatus.PENDING
    return PaymentStatus.PROCESSING
