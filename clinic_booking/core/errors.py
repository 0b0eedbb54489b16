"""
Error taxonomy for the booking engine plus severity-tagged error logging.

Services raise ClinicError subclasses; the exception handlers in main.py turn
them into JSON at the request boundary. Anything else is unexpected and goes
through log_error before a 500.
"""
import hashlib
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from fastapi import HTTPException

logger = structlog.get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for logging."""
    LOW = "low"           # validation errors, expected failures
    MEDIUM = "medium"     # 500s, timeouts, recoverable errors
    HIGH = "high"         # database unavailable, data corruption
    CRITICAL = "critical" # partial writes, data loss


class RejectionReason(str, Enum):
    INVALID_INPUT = "invalid_input"
    OUTSIDE_BOOKING_WINDOW = "outside_booking_window"
    DAY_CLOSED = "day_closed"
    OFF_GRID = "off_grid"
    OUTSIDE_HOURS = "outside_hours"
    CAPACITY_FULL = "capacity_full"
    SLOT_JUST_FILLED = "slot_just_filled"
    NO_LINKED_PATIENT = "no_linked_patient"
    HMO_REQUIRED = "hmo_required"
    HMO_NOT_OWNED = "hmo_not_owned"
    HMO_NOT_EFFECTIVE = "hmo_not_effective"
    HMO_EXPIRED = "hmo_expired"
    OUTSIDE_EDIT_WINDOW = "outside_edit_window"
    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    REFERENCE_CONFLICT = "reference_conflict"


class ClinicError(Exception):
    """Base for every failure that is answered at the request boundary."""
    status_code = 422
    default_reason = RejectionReason.INVALID_INPUT

    def __init__(self, message: str, *, reason: Optional[RejectionReason] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason
        self.extra = extra

    def to_payload(self) -> Dict[str, Any]:
        payload = {"message": self.message, "reason": self.reason.value}
        payload.update({k: v for k, v in self.extra.items() if v is not None})
        return payload


class ValidationFailed(ClinicError):
    """Malformed date, time or id. No side effects happened."""


class PolicyRejection(ClinicError):
    """Well-formed request that a clinic rule refuses."""


class CapacityFull(PolicyRejection):
    default_reason = RejectionReason.CAPACITY_FULL

    def __init__(self, message: str, *, full_at: Optional[str] = None, **extra: Any):
        super().__init__(message, full_at=full_at, **extra)
        self.full_at = full_at


class SlotJustFilled(CapacityFull):
    """Capacity was taken by a concurrent writer between the pre-check and the insert."""
    status_code = 409
    default_reason = RejectionReason.SLOT_JUST_FILLED


class ReferenceConflict(ClinicError):
    status_code = 409
    default_reason = RejectionReason.REFERENCE_CONFLICT


class IdentityGap(ClinicError):
    default_reason = RejectionReason.NO_LINKED_PATIENT


class NotFound(ClinicError):
    status_code = 404
    default_reason = RejectionReason.NOT_FOUND


class StateConflict(ClinicError):
    default_reason = RejectionReason.ALREADY_PROCESSED


def _determine_severity(error: Exception) -> ErrorSeverity:
    if isinstance(error, ClinicError):
        return ErrorSeverity.LOW
    if isinstance(error, HTTPException):
        if error.status_code < 500:
            return ErrorSeverity.LOW
        return ErrorSeverity.MEDIUM if error.status_code < 503 else ErrorSeverity.HIGH
    name = type(error).__name__
    if name in ("OperationalError", "InterfaceError", "DBAPIError", "ConnectionError"):
        return ErrorSeverity.HIGH
    if "timeout" in str(error).lower():
        return ErrorSeverity.MEDIUM
    return ErrorSeverity.MEDIUM


def error_fingerprint(error: Exception, endpoint: str = "") -> str:
    content = f"{type(error).__name__}:{str(error)[:100]}:{endpoint}"
    return hashlib.md5(content.encode(), usedforsecurity=False).hexdigest()[:8]


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None,
              severity: Optional[ErrorSeverity] = None) -> str:
    """Log an unexpected error with a short fingerprint for correlation."""
    context = context or {}
    severity = severity or _determine_severity(error)
    fingerprint = error_fingerprint(error, context.get("endpoint", ""))
    logger.error(
        "unexpected_error",
        error_hash=fingerprint,
        error_type=type(error).__name__,
        error=str(error)[:200],
        severity=severity.value,
        **context,
    )
    return fingerprint
