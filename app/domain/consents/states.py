"""Consent signature enums"""

from enum import Enum


class SignatureStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"


class SignatureType(str, Enum):
    DIGITAL = "DIGITAL"
    HANDWRITTEN = "HANDWRITTEN"
    CLICK = "CLICK"


class PdfStatus(str, Enum):
    NOT_REQUESTED = "NOT_REQUESTED"
    QUEUED = "QUEUED"
    GENERATING = "GENERATING"
    READY = "READY"
    FAILED = "FAILED"


# A job is already in flight for these
PDF_IN_PROGRESS = (PdfStatus.QUEUED, PdfStatus.GENERATING)
