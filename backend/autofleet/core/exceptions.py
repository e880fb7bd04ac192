"""
Domain error taxonomy for the booking core.

Every error carries a stable machine-readable ``kind`` plus a human-readable
message. They subclass HTTPException so FastAPI maps them to the right status
code; ``register_exception_handlers`` adds the ``kind`` to the response body.
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from autofleet.core.logging import get_logger

logger = get_logger(__name__)


class BookingError(HTTPException):
    kind = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message


class ValidationError(BookingError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(BookingError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(BookingError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(BookingError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidState(BookingError):
    kind = "invalid_state"
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyPaid(BookingError):
    kind = "already_paid"
    status_code = status.HTTP_400_BAD_REQUEST


class PaymentVerificationFailed(BookingError):
    kind = "payment_verification_failed"
    status_code = status.HTTP_400_BAD_REQUEST


class PersistenceError(BookingError):
    kind = "persistence_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Never leak SQL text to the caller
    logger.error("database_error", error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": PersistenceError.kind, "detail": "A database error occurred"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
