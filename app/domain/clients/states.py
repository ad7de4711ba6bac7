"""Client and appointment status enums"""

from enum import Enum


class ClientStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


# Query values accepted by the client list filter
STATUS_FILTERS = {"all": None, "active": ClientStatus.ACTIVE, "blocked": ClientStatus.BLOCKED}
