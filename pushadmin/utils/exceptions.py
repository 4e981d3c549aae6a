"""Custom exception classes and error handling utilities."""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional
from fastapi import HTTPException, status
from loguru import logger


class PushAdminException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(PushAdminException):
    """Input rejected at the boundary before any write."""
    pass


class InvalidSubscriptionError(ValidationError):
    """Push subscription payload is missing, malformed or unparseable."""
    pass


class NotFoundError(PushAdminException):
    """Referenced record does not exist."""
    pass


class AuthenticationError(PushAdminException):
    """Authentication and authorization errors."""
    pass


class DeliveryError(PushAdminException):
    """A single push delivery attempt failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)

    @property
    def permanent(self) -> bool:
        """Push service reported the subscription as gone."""

        return self.status_code in (404, 410)


class SequenceCreationError(PushAdminException):
    """Step sequence could not be stored together with its steps."""
    pass


def handle_validation_error(error: ValidationError) -> HTTPException:
    """Handle validation errors."""
    logger.warning("Validation error", message=error.message)
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": error.message,
            "details": error.details
        }
    )


def handle_not_found_error(error: NotFoundError) -> HTTPException:
    """Handle lookups of missing records."""
    logger.info("Not found", message=error.message)
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)


def handle_authentication_error(error: AuthenticationError) -> HTTPException:
    """Handle authentication errors."""
    logger.warning("Authentication error", message=error.message)
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error.message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def handle_sequence_creation_error(error: SequenceCreationError) -> HTTPException:
    """Handle failed sequence creation after compensation ran."""
    logger.error("Sequence creation error", message=error.message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Step sequence could not be created. Please try again later."
    )


@contextmanager
def best_effort(action: str, **context: Any) -> Iterator[None]:
    """Run a side effect whose failure must never reach the caller.

    The failure is logged with ``context`` and swallowed.
    """
    try:
        yield
    except Exception as exc:
        logger.error("Best-effort side effect failed", action=action, error=str(exc), **context)


def to_http_exception(error: PushAdminException) -> HTTPException:
    """Pick the HTTP mapping for an application exception."""
    if isinstance(error, ValidationError):
        return handle_validation_error(error)
    if isinstance(error, NotFoundError):
        return handle_not_found_error(error)
    if isinstance(error, AuthenticationError):
        return handle_authentication_error(error)
    if isinstance(error, SequenceCreationError):
        return handle_sequence_creation_error(error)
    logger.error("Unhandled application error", message=error.message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error"
    )
