"""Route eligibility for document issuance."""
import logging
from typing import Optional

from freightdocs.config import settings
from freightdocs.core.clock import Clock, system_clock
from freightdocs.core.countries import normalize_country
from freightdocs.core.exceptions import IneligibleRouteError
from freightdocs.models.carrier import Carrier, CarrierLicense
from freightdocs.services.license_registry import LicenseRegistry

logger = logging.getLogger(__name__)


class EligibilityEngine:
    """
    Decides whether a carrier may issue a document between two countries.

    A license connects the carrier's home country with one destination. A
    route is eligible when it is exactly that connection, in either
    direction. There is no transitive licensing: two foreign countries are
    never eligible, whatever licenses the carrier holds.

    Expired licenses still match unless ``enforce_validity`` is set.
    """

    def __init__(self, clock: Clock = system_clock, enforce_validity: Optional[bool] = None):
        self.clock = clock
        self.enforce_validity = (
            settings.ENFORCE_LICENSE_VALIDITY if enforce_validity is None else enforce_validity
        )

    def matching_license(self, carrier: Carrier, origin: str, destination: str) -> Optional[CarrierLicense]:
        as_of = self.clock.today() if self.enforce_validity else None
        return LicenseRegistry.license_for_route(carrier, origin, destination, as_of=as_of)

    def can_issue(self, carrier: Carrier, origin: str, destination: str) -> bool:
        return self.matching_license(carrier, origin, destination) is not None

    def ensure_can_issue(
        self,
        carrier: Carrier,
        origin: str,
        destination: str,
        document_type: Optional[str] = None,
    ) -> CarrierLicense:
        """
        Return the authorizing license or raise IneligibleRouteError.
        """
        license = self.matching_license(carrier, origin, destination)
        if license is None:
            logger.info(
                "Ineligible route %s->%s for carrier %s (%s)",
                origin, destination, carrier.id, document_type
            )
            raise IneligibleRouteError(
                carrier.id,
                normalize_country(origin),
                normalize_country(destination),
                document_type,
            )
        return license
