"""
Error hierarchy

Every failure a request can end in maps to one of three kinds:
ValidationError (400), NotFoundError (404) and StoreError (500). The
client only ever sees `{"error": message}`; store internals stay in the logs.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Faltan campos requeridos"


class ErrorSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"


class MarketplaceError(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.http_status = http_status

    def to_response(self) -> dict:
        return {"error": self.message}


class ValidationError(MarketplaceError):
    """A required field is absent, null or empty."""

    def __init__(self, message: str = MISSING_FIELDS_MESSAGE):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, 400,
        )


class NotFoundError(MarketplaceError):
    """The record (or the whole collection) does not exist."""

    def __init__(self, message: str):
        super().__init__(
            message, "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, 404,
        )


class StoreError(MarketplaceError):
    """The document store failed or is not configured."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message, "STORE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, 500,
        )
        self.operation = operation


@contextmanager
def store_failure(message: str) -> Iterator[None]:
    """Replace any StoreError raised inside the block with the endpoint's fixed message."""
    try:
        yield
    except StoreError as exc:
        logger.error(
            f"{message}: {exc.message}",
            exc_info=True,
            extra={"error_code": exc.code, "operation": exc.operation},
        )
        raise StoreError(message, operation=exc.operation) from exc
