"""Service-level exceptions.

Every rule violation in the stock and report services is raised as a
subclass of StockServiceError. The HTTP layer maps them to status codes
through ``status_code`` so routers never build error responses by hand.
"""

from fastapi import status


class StockServiceError(Exception):
    """Base class for all service errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StockServiceError):
    """Malformed input: missing required fields, wrong types, unknown model."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(StockServiceError):
    """A referenced entity (stock record, movement, report) does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStockError(StockServiceError):
    """The operation would drive a variant's quantity below zero."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, variant: str, available: int, requested_delta: int):
        super().__init__(
            f"Insufficient stock for {variant}: available {available}, change {requested_delta}"
        )
        self.variant = variant
        self.available = available
        self.requested_delta = requested_delta


class DuplicateReportError(StockServiceError):
    """A report for the given date already exists."""

    status_code = status.HTTP_409_CONFLICT


class StoreError(StockServiceError):
    """The underlying store is unavailable, timed out, or kept losing update races."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
