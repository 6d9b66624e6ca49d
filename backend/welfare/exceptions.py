from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code
        super().__init__(self.message)


class SubmissionValidationError(AppError):
    """A submission precondition failed; the caller can fix the input and retry."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class BudgetExceededError(AppError):
    """The requested amount is larger than the remaining entitlement."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class IdentityLookupError(AppError):
    """The requester's identity or department could not be resolved."""

    default_status_code = status.HTTP_424_FAILED_DEPENDENCY


class StaleStateError(AppError):
    """The request is no longer in the state the caller acted on."""

    default_status_code = status.HTTP_409_CONFLICT


class TerminalStateError(StaleStateError):
    """The request is completed or rejected and can no longer change."""


class PersistenceError(AppError):
    """The storage write failed; local copies must be discarded."""

    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvalidDecisionError(AppError):
    """The decision is not allowed for this role at this stage."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    default_status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(AppError):
    default_status_code = status.HTTP_403_FORBIDDEN


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
