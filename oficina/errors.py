import functools
import inspect
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError


class OficinaError(Exception):
    """Base class for errors the HTTP layer maps onto a status code."""

    status_code: int = 500

    def __init__(self, detail: str, **context: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context


class ValidationError(OficinaError):
    status_code = 400


class NotFoundError(OficinaError):
    status_code = 404


class ExpiredError(OficinaError):
    status_code = 410


class ConflictError(OficinaError):
    status_code = 409


class PartialFailureError(OficinaError):
    """The account exists but part of its setup did not complete.

    Callers must report success for the account itself and surface
    ``detail`` as a secondary warning.
    """

    status_code = 200


class StoreError(OficinaError):
    status_code = 500


def log_exception_with_context(
    message: str,
    *,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
    logger_name: str = "oficina",
) -> None:
    """Log the exception being handled with the operation and its inputs.

    Example:
        try:
            db.flush()
        except SQLAlchemyError:
            log_exception_with_context(
                "Invitation insert failed",
                operation="issue",
                extra={"email": email},
            )
            raise
    """
    payload: dict[str, Any] = {"operation": operation}
    if extra:
        payload["context"] = extra
    logging.getLogger(logger_name).exception(message, extra=payload)


def store_operation(operation: str, *identifiers: str, logger_name: str = "oficina"):
    """Translate store failures raised by the wrapped service function.

    Any ``SQLAlchemyError`` that escapes is logged with ``operation`` and the
    named arguments, then re-raised as ``StoreError``. Domain errors pass
    through untouched.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SQLAlchemyError as exc:
                arguments = signature.bind_partial(*args, **kwargs).arguments
                log_exception_with_context(
                    "Store operation failed",
                    operation=operation,
                    extra={name: arguments.get(name) for name in identifiers},
                    logger_name=logger_name,
                )
                raise StoreError(
                    "Error interno del servidor, intente nuevamente",
                    operation=operation,
                ) from exc

        return wrapper

    return decorator
