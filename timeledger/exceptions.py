import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    """A field is missing, out of range or malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class NotFoundError(AppError):
    """A tenant-scoped lookup found nothing."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class InvariantViolation(AppError):
    """A structural rule would be broken by the write (cycle, depth, duplicate, negative budget)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class StateTransitionError(AppError):
    """An edge that is not part of the status graph was requested."""

    def __init__(self, entity: str, from_status: str, to_status: str, reason: str | None = None) -> None:
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        msg = f"Invalid {entity} status transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, status_code=status.HTTP_409_CONFLICT)


class ImmutabilityError(AppError):
    """Time entries of an approved or locked timesheet cannot change; only draft timesheets can be deleted."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class AccessDenied(AppError):
    """The employee or activity code is not allowed on the project."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class StaleWriteError(AppError):
    """The document changed since the caller read it."""

    def __init__(self, entity: str, entity_id: object, expected: int | None, actual: int | None) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stale write on {entity} {entity_id}: expected version {expected}, found {actual}",
            status_code=status.HTTP_409_CONFLICT,
        )


def _error_response(error: str, detail: str | None, status_code: int) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, status_code=status_code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.info("%s %s failed with %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return _error_response(type(exc).__name__, exc.message, exc.status_code)


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return _error_response("ValidationError", detail, status.HTTP_422_UNPROCESSABLE_ENTITY)


def setup_exception_handlers(app: FastAPI) -> None:
    """Domain errors and request validation failures share the ErrorResponse body."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
