"""Domain exceptions raised by the service layer.

Each exception carries the HTTP status it maps to; the application-wide
handler in ``app.main`` renders ``{"detail": message}`` with that status.
Per-record import failures are not exceptions, see ``app.schemas.imports``.
"""
from fastapi import status


class OrdersApiError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidParameter(OrdersApiError):
    """Malformed or disallowed pagination, sort or filter input."""


class InvalidInput(OrdersApiError):
    """Import file rejected before parsing (empty, wrong extension, oversized)."""


class MalformedInput(OrdersApiError):
    """Import content is not a well-formed JSON array."""


class UnsupportedFormat(OrdersApiError):
    """Report file type is not one of the supported formats."""


class ReportGenerationFailed(OrdersApiError):
    """Streaming report write failed; any produced output must be discarded."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotFound(OrdersApiError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: object):
        super().__init__(f"{entity} with id '{entity_id}' not found")


class AlreadyExists(OrdersApiError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, field: str, value: object):
        super().__init__(f"{entity} with {field} '{value}' already exists")
