"""Commission configuration enums and the payment request workflow"""

from enum import Enum

from ...shared.state_machine import StateMachine


class CalculationType(str, Enum):
    GENERAL = "GENERAL"
    POR_SERVICIO = "POR_SERVICIO"
    MIXTO = "MIXTO"


class ServiceCommissionType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class CommissionSource(str, Enum):
    SERVICE = "service"
    BUSINESS_GENERAL = "business_general"
    NONE = "none"


class CommissionRequestStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"


COMMISSION_REQUEST_WORKFLOW = StateMachine(
    "commission request",
    CommissionRequestStatus,
    {
        CommissionRequestStatus.SUBMITTED: frozenset(
            {CommissionRequestStatus.APPROVED, CommissionRequestStatus.REJECTED}
        ),
        CommissionRequestStatus.APPROVED: frozenset({CommissionRequestStatus.PAID}),
        CommissionRequestStatus.REJECTED: frozenset(),
        CommissionRequestStatus.PAID: frozenset(),
    },
)

# Requests that still hold part of a specialist's balance
OPEN_REQUEST_STATUSES = (CommissionRequestStatus.SUBMITTED, CommissionRequestStatus.APPROVED)
