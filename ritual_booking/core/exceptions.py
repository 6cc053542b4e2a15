from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ritual_booking.core.request_context import request_id_ctx_var

SLOT_ALREADY_BOOKED_DETAIL = "Slot already booked"
BOOKING_NOT_FOUND_DETAIL = "Booking not found"
STORE_UNAVAILABLE_DETAIL = "Booking store is temporarily unavailable. Retry the request."


class BookingError(HTTPException):
    """Base for errors the booking core reports to its caller.

    Each subclass fixes the HTTP status and a stable machine ``code`` so the
    API layer can render them without knowing about individual error kinds.
    """

    code = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: Any = None, headers: dict[str, str] | None = None) -> None:
        super().__init__(status_code=type(self).status_code, detail=detail, headers=headers)


class BookingValidationError(BookingError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, field: str, message: str) -> None:
        super().__init__(
            detail=[{"loc": ["body", field], "msg": message, "type": "value_error"}],
        )


class ConflictError(BookingError):
    code = "slot_unavailable"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = SLOT_ALREADY_BOOKED_DETAIL) -> None:
        super().__init__(detail=detail)


class InvalidTransitionError(BookingError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(BookingError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(BookingError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Not enough permissions") -> None:
        super().__init__(detail=detail)


class BookingUnavailableError(BookingError):
    code = "booking_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class TransientStoreError(BookingError):
    code = "store_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, detail: str = STORE_UNAVAILABLE_DETAIL) -> None:
        super().__init__(detail=detail, headers={"Retry-After": "1"})


def _error_payload(code: str, message: str, detail):
    return {
        "error": {
            "code": code,
            "message": message,
            "detail": detail,
        },
        "detail": detail,
        "request_id": request_id_ctx_var.get(),
    }


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    code = getattr(exc, "code", None) or f"http_{exc.status_code}"
    message = exc.detail if isinstance(exc.detail, str) else "Request could not be processed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code=code, message=message, detail=exc.detail),
        headers=exc.headers,
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_payload(
            code="validation_error",
            message="Request validation failed",
            detail=jsonable_encoder(exc.errors()),
        ),
    )


async def store_exception_handler(request: Request, _: OperationalError | PoolTimeoutError) -> JSONResponse:
    return await http_exception_handler(request, TransientStoreError())
