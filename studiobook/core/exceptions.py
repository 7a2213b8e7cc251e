# studiobook/core/exceptions.py
"""
Domain-specific exceptions for the studio booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InvalidRangeException(ValidationException):
    """Raised when a time range is empty or inverted."""

    def __init__(self, start_time: Any, end_time: Any):
        super().__init__(
            message="Start time must be before end time",
            code="INVALID_TIME_RANGE",
            details={"start_time": str(start_time), "end_time": str(end_time)},
        )


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        conflicts: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        merged["conflicts"] = list(conflicts or [])
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=merged,
        )

    @property
    def conflicts(self) -> List[Dict[str, Any]]:
        return self.details["conflicts"]


class EquipmentShortageException(ConflictException):
    """Raised when requested equipment exceeds what is free in the window."""

    def __init__(self, shortages: List[Dict[str, Any]]):
        ids = ", ".join(str(s["equipment_id"]) for s in shortages)
        super().__init__(
            message=f"Insufficient equipment available: {ids}",
            code="EQUIPMENT_SHORTAGE",
            details={"shortages": list(shortages)},
        )

    @property
    def shortages(self) -> List[Dict[str, Any]]:
        return self.details["shortages"]


class ResourceBusyException(ConflictException):
    """Raised when a booking resource lock could not be acquired in time."""

    retryable = True

    def __init__(self, resource_key: str, waited_seconds: float):
        super().__init__(
            message="Another change to this resource is in progress, please retry",
            code="RESOURCE_BUSY",
            details={"resource": resource_key, "waited_seconds": waited_seconds},
        )


class EmailAlreadyRegisteredException(ConflictException):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str):
        super().__init__(
            message="An account with this email already exists",
            code="EMAIL_ALREADY_REGISTERED",
            details={"email": email},
        )


class InvalidTransitionException(BusinessRuleException):
    """Raised when a booking status change is not allowed."""

    def __init__(self, current_status: str, target_status: str, reason: Optional[str] = None):
        message = f"Cannot change booking from {current_status} to {target_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="INVALID_STATUS_TRANSITION",
            details={"from": current_status, "to": target_status},
        )


class OverRefundException(BusinessRuleException):
    """Raised when a refund exceeds the net amount paid."""

    def __init__(self, requested: Any, refundable: Any):
        super().__init__(
            message=f"Refund of {requested} exceeds refundable balance of {refundable}",
            code="OVER_REFUND",
            details={"requested": str(requested), "refundable": str(refundable)},
        )


class StoreTransactionAbortedException(ServiceException):
    """Raised when the store aborted a transaction (deadlock, serialization failure)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "The booking store aborted the transaction, please retry",
            code="STORE_TRANSACTION_ABORTED",
            details=details,
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


_ABORT_SNIPPETS = (
    "deadlock detected",
    "could not serialize access",
    "database is locked",
    "lock timeout",
)


def is_transaction_abort(exc: BaseException) -> bool:
    """Return True when a store error indicates a retryable transaction abort."""
    error_str = str(exc).lower()
    return any(snippet in error_str for snippet in _ABORT_SNIPPETS)
