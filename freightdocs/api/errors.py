"""Translation of domain errors into HTTP responses."""
from fastapi import HTTPException, status

from freightdocs.core.exceptions import (
    CarrierInUseError,
    CarrierNotFoundError,
    DuplicateExpiryError,
    FreightDocsError,
    IneligibleRouteError,
    InvalidRequestError,
    InvalidStateTransitionError,
    LicenseValidationError,
    MissingParentCrtError,
    PersistenceError,
    RouteMismatchError,
    SequenceConflictError,
)

ERROR_STATUS = {
    CarrierNotFoundError: status.HTTP_404_NOT_FOUND,
    CarrierInUseError: status.HTTP_409_CONFLICT,
    DuplicateExpiryError: status.HTTP_409_CONFLICT,
    LicenseValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    IneligibleRouteError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidRequestError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RouteMismatchError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SequenceConflictError: status.HTTP_409_CONFLICT,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    InvalidStateTransitionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: FreightDocsError) -> int:
    if isinstance(error, MissingParentCrtError):
        # Named but unknown CRT vs. no CRT at all
        if error.details.get("crt_id"):
            return status.HTTP_404_NOT_FOUND
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    for error_type, code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def http_error(error: FreightDocsError) -> HTTPException:
    """Use as ``raise http_error(e) from e`` inside endpoint handlers."""
    return HTTPException(status_code=status_for(error), detail=error.to_dict())
