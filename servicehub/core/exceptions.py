# servicehub/core/exceptions.py
"""
Domain-specific exceptions for the servicehub orchestration layer.

These exceptions carry the failure taxonomy used by the interceptors and the
facades (validation, transient infrastructure, business decline, fatal
configuration) and can be converted to HTTP errors at the API layer.
"""

from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

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
        return HTTPException(
            status_code=self.http_status,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when caller input is structurally invalid. Never retried."""

    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message, code=code or "VALIDATION_ERROR", details=details)
        self.errors: List[Dict[str, Any]] = errors or []
        if self.errors and "errors" not in self.details:
            self.details["errors"] = self.errors


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.http_status,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class TransientServiceException(ServiceException):
    """Network timeout or 5xx from a collaborator; safe to retry per policy."""

    http_status = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "TRANSIENT_ERROR", details=details)
        self.status_code = status_code


class GatewayTimeoutException(TransientServiceException):
    """Raised when a gateway call exceeds its deadline."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        super().__init__(
            f"{operation} timed out after {timeout_seconds:g}s",
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            code="GATEWAY_TIMEOUT",
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    http_status = HTTP_422_UNPROCESSABLE


class PaymentDeclinedException(BusinessRuleException):
    """Business decline from a gateway (card declined, instrument refused)."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="PAYMENT_DECLINED", details=details)


class UnsupportedCurrencyException(PaymentDeclinedException):
    """Raised by a processor precondition when the currency is not supported."""

    def __init__(self, currency: str, processor: str) -> None:
        super().__init__(
            f"Currency {currency} is not supported by {processor}",
            details={"currency": currency, "processor": processor},
        )
        self.code = "UNSUPPORTED_CURRENCY"


class ConfigurationException(DomainException):
    """Fatal misconfiguration (e.g. no payment processor available). Never retried."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


class CacheUnavailableException(Exception):
    """Primary cache backend is unreachable (connection error or open circuit)."""


# Retry predicates

_NETWORK_ERROR_CODES = {"ECONNREFUSED", "ETIMEDOUT", "ENOTFOUND", "ECONNRESET"}
_NETWORK_MESSAGE_MARKERS = ("network", "timeout", "timed out", "connection reset")


def is_network_error(exc: BaseException) -> bool:
    """True for connection-level failures (refused, reset, DNS, timeouts)."""
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    if isinstance(exc, DomainException):
        # Domain errors carry their category in their type, not their message
        return isinstance(exc, GatewayTimeoutException)
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code.upper() in _NETWORK_ERROR_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _NETWORK_MESSAGE_MARKERS) or any(
        code.lower() in message for code in _NETWORK_ERROR_CODES
    )


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "http_status", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_server_error(exc: BaseException) -> bool:
    """True when the failure carries a 5xx status."""
    if isinstance(exc, DomainException) and not isinstance(exc, TransientServiceException):
        return False
    status_code = _status_of(exc)
    return status_code is not None and 500 <= status_code < 600


def is_transient_error(exc: BaseException) -> bool:
    """Network or server-class failure that is worth retrying.

    Validation errors, business declines and configuration errors are never
    transient whatever their message says.
    """
    if isinstance(exc, (ValidationException, BusinessRuleException, ConfigurationException)):
        return False
    if isinstance(exc, TransientServiceException):
        return True
    return is_network_error(exc) or is_server_error(exc)


def never_retry_on(*error_names: str) -> Callable[[BaseException], bool]:
    """Build a predicate refusing retries for the named error types/codes/messages."""

    def should_retry(exc: BaseException) -> bool:
        code = getattr(exc, "code", None)
        for name in error_names:
            if type(exc).__name__ == name or code == name or name in str(exc):
                return False
        return True

    return should_retry
