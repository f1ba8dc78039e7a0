# storefront/domain/errors.py
"""
Error kinds shared by the cart, checkout and reconciliation use cases.

They are carried inside kungfu ``Error`` results instead of being raised across
use-case boundaries; routers translate them into HTTP responses. Only
infrastructure failures (database, redis) escape as real exceptions.
"""


class StorefrontError(Exception):
    code = "storefront_error"
    http_status = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.details}


class NotFoundError(StorefrontError):
    code = "not_found"
    http_status = 404


class InvalidSelectionError(StorefrontError):
    code = "invalid_selection"
    http_status = 422


class InsufficientStockError(StorefrontError):
    code = "insufficient_stock"
    http_status = 409

    def __init__(self, requested: int, available: int, message: str | None = None, **details):
        super().__init__(
            message or f"Only {available} units left",
            requested=requested,
            available=available,
            **details,
        )
        self.requested = requested
        self.available = available


class UnauthorizedError(StorefrontError):
    code = "unauthorized"
    http_status = 403


class ValidationError(StorefrontError):
    code = "validation_error"
    http_status = 422


class ReconciliationConflictError(StorefrontError):
    code = "reconciliation_conflict"
    http_status = 409


class ConcurrencyConflictError(StorefrontError):
    code = "concurrency_conflict"
    http_status = 409


class PaymentProviderError(StorefrontError):
    """Provider call failed. The message is safe to show, the cause is only logged."""

    code = "payment_provider_error"
    http_status = 502

    def __init__(self, message: str = "Payment could not be started, please try again", **details):
        super().__init__(message, **details)
