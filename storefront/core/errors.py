"""
Application errors and their HTTP rendering.

Services raise subclasses of ``AppError``; the handlers registered by
``register_exception_handlers`` turn them into structured JSON responses:

    {"error": {"code": "COUPON_EXPIRED", "message": "...", ...details}}
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error with a machine-readable code."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
        retry_after: Optional[int] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        self.retry_after = retry_after
        super().__init__(self.message)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401


class PermissionDeniedError(AppError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409


class GoneError(AppError):
    code = "GONE"
    status_code = 410


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, message: str = "Order not found", **kwargs):
        super().__init__(message, **kwargs)


class OrderAlreadyProcessedError(AppError):
    """The order left ``created`` for a state that cannot become ``paid``."""

    code = "ORDER_ALREADY_PROCESSED"
    status_code = 400

    def __init__(self, order_id: str, status: str):
        super().__init__(
            "Order has already been processed",
            details={"order_id": order_id, "status": status},
        )
        self.order_id = order_id
        self.status = status


class CouponRejectedError(AppError):
    """Raised at checkout when a supplied coupon does not apply.

    ``code`` is one of COUPON_INVALID, COUPON_EXPIRED, COUPON_LIMIT_REACHED
    or COUPON_INVALID_EMAIL.
    """

    status_code = 400

    def __init__(self, reason: str, message: str):
        super().__init__(message, code=reason)
        self.reason = reason


class VelocityLimitExceededError(AppError):
    code = "VELOCITY_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(self, limit: int, window_minutes: int):
        super().__init__(
            f"Too many pending orders. You can create at most {limit} orders "
            f"every {window_minutes} minutes. Please complete or wait for "
            "existing orders before trying again.",
            retry_after=window_minutes * 60,
        )


class PaymentsDisabledError(AppError):
    code = "PAYMENTS_DISABLED"
    status_code = 503

    def __init__(self, message: str = "Payments are temporarily disabled"):
        super().__init__(message)


class PaymentNotConfiguredError(AppError):
    code = "PAYMENT_NOT_CONFIGURED"
    status_code = 500

    def __init__(self, message: str = "Payment system is not configured"):
        super().__init__(message)


class GatewayError(AppError):
    code = "GATEWAY_ERROR"
    status_code = 500

    def __init__(self, message: str = "Failed to create payment session"):
        super().__init__(message)


class InvalidPaymentError(AppError):
    """Client-supplied payment proof failed verification."""

    code = "INVALID_SIGNATURE"
    status_code = 400


class PaymentNotConfirmedError(AppError):
    """The gateway did not report a definitive success; the order stays ``created``."""

    code = "PAYMENT_NOT_CONFIRMED"
    status_code = 400

    def __init__(self, message: str = "Payment has not been completed"):
        super().__init__(message)


def _error_body(code: str, message: str, details: Optional[dict] = None) -> dict:
    return {"error": {"code": code, "message": message, **(details or {})}}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    headers = {}
    if exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.details),
        headers=headers,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for err in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in err["loc"]),
                "message": err["msg"],
            }
        )

    logger.warning(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=400,
        content=_error_body(
            "VALIDATION_ERROR", "Request validation failed", {"errors": errors}
        ),
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content=_error_body(
            "RATE_LIMIT_EXCEEDED", "Too many requests. Please try again later."
        ),
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unexpected error on {request.method} {request.url.path}: "
        f"{type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
