from fastapi import HTTPException, status

from ..domain.errors import (
    AlreadyCancelledError,
    DomainError,
    DuplicateBookingError,
    NotFoundError,
    OutsideWorkingHoursError,
    PastDateTimeError,
    SlotFullError,
    UnauthorizedError,
    ValidationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    # Cancelling twice is a no-op and reads like a missing reservation.
    (AlreadyCancelledError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (OutsideWorkingHoursError, 422),
    (PastDateTimeError, 422),
    (DuplicateBookingError, status.HTTP_409_CONFLICT),
    (SlotFullError, status.HTTP_409_CONFLICT),
)


def http_error(exc: DomainError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.detail())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail())
