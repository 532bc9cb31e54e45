"""
Issuance Request State Machine

Every CRT or MIC/DTA issuance request walks through these states. Nothing
is stored for a request; the tracker only enforces the order of steps and
logs each transition.

    RECEIVED -> VALIDATED -> NUMBERED -> PERSISTED

    Any state before PERSISTED may move to REJECTED.
"""

import logging
from typing import Dict, List, Optional

from freightdocs.core.exceptions import InvalidStateTransitionError

logger = logging.getLogger(__name__)


# =============================================================================
# STATUS DEFINITIONS
# =============================================================================

class IssuanceStatus:
    """Issuance request states - use these instead of strings."""
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    NUMBERED = "NUMBERED"
    PERSISTED = "PERSISTED"
    REJECTED = "REJECTED"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.RECEIVED, cls.VALIDATED, cls.NUMBERED, cls.PERSISTED, cls.REJECTED]


# =============================================================================
# TRANSITION RULES
# =============================================================================

ISSUANCE_TRANSITIONS: Dict[str, List[str]] = {
    IssuanceStatus.RECEIVED: [
        IssuanceStatus.VALIDATED,   # Carrier resolved, route eligible
        IssuanceStatus.REJECTED,    # Unknown carrier, ineligible route, bad request
    ],
    IssuanceStatus.VALIDATED: [
        IssuanceStatus.NUMBERED,    # Block reserved
        IssuanceStatus.REJECTED,    # Contention exhausted, store failure
    ],
    IssuanceStatus.NUMBERED: [
        IssuanceStatus.PERSISTED,   # Committed
        IssuanceStatus.REJECTED,    # Rolled back, reservation released
    ],
    IssuanceStatus.PERSISTED: [],   # Terminal
    IssuanceStatus.REJECTED: [],    # Terminal
}


def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return new_status in ISSUANCE_TRANSITIONS.get(current_status, [])


def is_terminal(status: str) -> bool:
    return status in [IssuanceStatus.PERSISTED, IssuanceStatus.REJECTED]


class IssuanceTracker:
    """Follows one issuance request through its states."""

    def __init__(self, document_type: str, carrier_id=None):
        self.document_type = document_type
        self.carrier_id = carrier_id
        self.status = IssuanceStatus.RECEIVED
        self.history: List[str] = [IssuanceStatus.RECEIVED]
        self.reason: Optional[str] = None

    def advance(self, new_status: str, reason: Optional[str] = None) -> None:
        if not can_transition(self.status, new_status):
            raise InvalidStateTransitionError(
                f"Cannot move {self.document_type} request from '{self.status}' to '{new_status}'",
                details={
                    "document_type": self.document_type,
                    "carrier_id": str(self.carrier_id) if self.carrier_id else None,
                    "current_status": self.status,
                    "requested_status": new_status,
                },
            )
        logger.info(
            "%s request for carrier %s: %s -> %s%s",
            self.document_type, self.carrier_id, self.status, new_status,
            f" ({reason})" if reason else ""
        )
        self.status = new_status
        self.history.append(new_status)
        if reason:
            self.reason = reason

    def reject(self, reason: str) -> None:
        """Mark the request rejected unless it already finished."""
        if is_terminal(self.status):
            return
        self.advance(IssuanceStatus.REJECTED, reason)
