"""
Service exception types.

Every error raised by the services carries a machine-readable code and the
HTTP status the API layer should answer with. The exception handler in
``delivery_api.main`` renders them as ``{"success": false, "message": ...}``.
"""
from typing import Any, Optional


class ServiceError(Exception):
    """
    Base exception for all service errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable slug.
        http_status: Suggested HTTP status for API responses.
        details: Optional dict for extra context.
    """

    default_code: str = "ERROR"
    default_http_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.http_status = http_status if http_status is not None else self.default_http_status
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, code={self.code!r}, "
            f"http_status={self.http_status})"
        )

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            out["details"] = self.details
        return out


class ValidationError(ServiceError):
    """Request data failed a business rule."""

    default_code = "VALIDATION_ERROR"
    default_http_status = 400


class UnauthorizedError(ServiceError):
    """Authentication required or failed."""

    default_code = "UNAUTHORIZED"
    default_http_status = 401


class ForbiddenError(ServiceError):
    """Authenticated user lacks the required role."""

    default_code = "FORBIDDEN"
    default_http_status = 403


class NotFoundError(ServiceError):
    default_code = "NOT_FOUND"
    default_http_status = 404


class ConflictError(ServiceError):
    """Resource state conflict (duplicate, referenced entity, lost update)."""

    default_code = "CONFLICT"
    default_http_status = 409


class InvalidTransitionError(ConflictError):
    """Requested status change is not allowed from the current status."""

    default_code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, event: str) -> None:
        super().__init__(
            f"Cannot move order from {current} to {target} ({event})",
            details={"current": current, "target": target, "event": event},
        )
        self.current = current
        self.target = target
        self.event = event


class PaymentGatewayError(ServiceError):
    """The payment provider call failed (network, timeout, 4xx/5xx)."""

    default_code = "PAYMENT_GATEWAY_ERROR"
    default_http_status = 502


class GatewayUnconfiguredError(ServiceError):
    """No payment credentials are configured."""

    default_code = "PAYMENT_NOT_CONFIGURED"
    default_http_status = 503
