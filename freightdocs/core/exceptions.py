"""Domain errors raised by the licensing and numbering services.

Every error carries a human-readable message, a stable error code and the
offending identifiers in ``details`` so the API layer can surface them as-is.
"""
from typing import Any, Dict, Optional


class FreightDocsError(Exception):
    """Base exception for document issuance errors."""
    error_code = "FREIGHTDOCS_ERROR"

    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "error_code": self.error_code, "details": self.details}


class CarrierNotFoundError(FreightDocsError):
    """Raised when a carrier id does not resolve."""
    error_code = "CARRIER_NOT_FOUND"

    def __init__(self, carrier_id):
        super().__init__(
            f"Carrier {carrier_id} not found",
            details={"carrier_id": str(carrier_id)},
        )


class CarrierInUseError(FreightDocsError):
    """Raised when deleting a carrier that documents still reference."""
    error_code = "CARRIER_IN_USE"

    def __init__(self, carrier_id, crt_count: int, mic_dta_count: int):
        super().__init__(
            f"Carrier {carrier_id} has {crt_count} CRT(s) and {mic_dta_count} MIC/DTA(s) and cannot be deleted",
            details={
                "carrier_id": str(carrier_id),
                "crt_count": crt_count,
                "mic_dta_count": mic_dta_count,
            },
        )


class DuplicateExpiryError(FreightDocsError):
    """Two licenses of one carrier share an expiry date."""
    error_code = "DUPLICATE_LICENSE_EXPIRY"

    def __init__(self, expiry_date, destinations, carrier_id=None):
        super().__init__(
            f"License expiry date {expiry_date.isoformat()} is repeated for destinations "
            f"{', '.join(destinations)}; each license must expire on a distinct date",
            details={
                "carrier_id": str(carrier_id) if carrier_id else None,
                "expiry_date": expiry_date.isoformat(),
                "destinations": list(destinations),
            },
        )


class LicenseValidationError(FreightDocsError):
    """A license entry violates a registration rule."""
    error_code = "INVALID_LICENSE"


class IneligibleRouteError(FreightDocsError):
    """No license connects the requested route to the carrier's home country."""
    error_code = "INELIGIBLE_ROUTE"

    def __init__(self, carrier_id, origin: str, destination: str, document_type: Optional[str] = None):
        self.carrier_id = carrier_id
        self.origin = origin
        self.destination = destination
        self.document_type = document_type
        super().__init__(
            f"No license links {origin} and {destination} for carrier {carrier_id}; "
            f"the document cannot be issued",
            details={
                "carrier_id": str(carrier_id),
                "origin": origin,
                "destination": destination,
                "document_type": document_type,
            },
        )


class MissingParentCrtError(FreightDocsError):
    """A NORMAL MIC/DTA was requested without a resolvable CRT."""
    error_code = "MISSING_PARENT_CRT"

    def __init__(self, crt_id=None):
        if crt_id is None:
            message = "A NORMAL MIC/DTA requires a parent CRT"
        else:
            message = f"CRT {crt_id} not found"
        super().__init__(
            message,
            details={"crt_id": str(crt_id) if crt_id else None, "document_type": "MIC_DTA"},
        )


class InvalidRequestError(FreightDocsError):
    """Malformed issuance request (batch size, missing route fields)."""
    error_code = "INVALID_REQUEST"


class RouteMismatchError(FreightDocsError):
    """A NORMAL MIC/DTA request contradicts its parent CRT."""
    error_code = "ROUTE_MISMATCH"


class SequenceConflictError(FreightDocsError):
    """Transient contention on a bucket counter."""
    error_code = "SEQUENCE_CONFLICT"


class PersistenceError(FreightDocsError):
    """The store failed after numbering; the reservation was rolled back."""
    error_code = "PERSISTENCE_ERROR"


class InvalidStateTransitionError(FreightDocsError):
    """An issuance request attempted an illegal state change."""
    error_code = "INVALID_STATE_TRANSITION"
