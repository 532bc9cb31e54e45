"""Read-only view over the licenses a carrier owns.

Answers three questions: which licenses a carrier holds (in registration
order), what state each license is in on a given date, and which countries
the carrier may use as route endpoints.
"""
import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freightdocs.config import settings
from freightdocs.core.clock import Clock, system_clock
from freightdocs.core.countries import normalize_country
from freightdocs.core.exceptions import DuplicateExpiryError, LicenseValidationError
from freightdocs.models.carrier import Carrier, CarrierLicense, LicenseStatus

logger = logging.getLogger(__name__)


def days_to_expiry(expiry_date: date, as_of: date) -> int:
    return (expiry_date - as_of).days


def license_status(
    expiry_date: date,
    as_of: date,
    expiring_soon_days: Optional[int] = None,
) -> LicenseStatus:
    """
    Classify a license expiry date against a reference date.

    EXPIRED when the date has passed, EXPIRING_SOON within the operational
    window (inclusive on both ends), VALID otherwise.
    """
    window = settings.LICENSE_EXPIRING_SOON_DAYS if expiring_soon_days is None else expiring_soon_days
    days = days_to_expiry(expiry_date, as_of)
    if days < 0:
        return LicenseStatus.EXPIRED
    if days <= window:
        return LicenseStatus.EXPIRING_SOON
    return LicenseStatus.VALID


class LicenseRegistry:
    """Per-carrier license lookups and status queries."""

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock

    async def licenses_for(self, carrier_id: uuid.UUID) -> List[CarrierLicense]:
        """All licenses of a carrier, insertion order preserved."""
        result = await self.db.execute(
            select(CarrierLicense)
            .where(CarrierLicense.carrier_id == carrier_id)
            .order_by(CarrierLicense.position.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    def status_of(license: CarrierLicense, as_of: date) -> LicenseStatus:
        return license_status(license.expiry_date, as_of)

    @staticmethod
    def allowed_countries(carrier: Carrier) -> Set[str]:
        """Home country plus every licensed destination."""
        allowed = {carrier.home_country}
        allowed.update(lic.destination_country for lic in carrier.licenses)
        return allowed

    @staticmethod
    def license_for_route(
        carrier: Carrier,
        origin: str,
        destination: str,
        as_of: Optional[date] = None,
    ) -> Optional[CarrierLicense]:
        """
        The license connecting the carrier's home country to the foreign end
        of the route, or None.

        When several licenses cover the same destination (a renewal registered
        before the old one lapsed) the one expiring last wins. With ``as_of``
        given, expired licenses are ignored.
        """
        origin = normalize_country(origin)
        destination = normalize_country(destination)
        route = {origin, destination}

        matches = [
            lic for lic in carrier.licenses
            if route == {carrier.home_country, lic.destination_country}
        ]
        if as_of is not None:
            matches = [lic for lic in matches if lic.expiry_date >= as_of]
        if not matches:
            return None
        return max(matches, key=lambda lic: lic.expiry_date)

    def describe(self, license: CarrierLicense, as_of: Optional[date] = None) -> Dict[str, Any]:
        """License fields plus derived status, for API responses."""
        as_of = as_of or self.clock.today()
        days = days_to_expiry(license.expiry_date, as_of)
        return {
            "id": license.id,
            "destination_country": license.destination_country,
            "license_code": license.license_code,
            "idoneidade_number": license.idoneidade_number,
            "expiry_date": license.expiry_date,
            "status": self.status_of(license, as_of),
            "days_to_expiry": days,
            "within_advisory_window": 0 <= days <= settings.LICENSE_ADVISORY_DAYS,
        }

    @staticmethod
    def validate_license_set(
        home_country: str,
        licenses: Iterable[Any],
        carrier_id: Optional[uuid.UUID] = None,
    ) -> None:
        """
        Enforce the registration rules on a complete license set.

        Raises:
            DuplicateExpiryError: two licenses share an expiry date
            LicenseValidationError: destination equals home country, or a
                foreign carrier's license lacks an idoneidade number
        """
        home_country = normalize_country(home_country)
        foreign_carrier = home_country != settings.REGULATING_COUNTRY

        by_expiry: Dict[date, List[str]] = defaultdict(list)
        for lic in licenses:
            destination = normalize_country(lic.destination_country)
            if destination == home_country:
                raise LicenseValidationError(
                    f"License destination {destination} is the carrier's home country",
                    details={
                        "carrier_id": str(carrier_id) if carrier_id else None,
                        "destination_country": destination,
                        "license_code": lic.license_code,
                    },
                )
            if foreign_carrier and not (lic.idoneidade_number or "").strip():
                raise LicenseValidationError(
                    f"Carriers registered outside {settings.REGULATING_COUNTRY} must provide "
                    f"an idoneidade number for license {lic.license_code}",
                    details={
                        "carrier_id": str(carrier_id) if carrier_id else None,
                        "home_country": home_country,
                        "destination_country": destination,
                        "license_code": lic.license_code,
                    },
                )
            by_expiry[lic.expiry_date].append(destination)

        for expiry, destinations in by_expiry.items():
            if len(destinations) > 1:
                logger.info(
                    "Rejected license set with repeated expiry %s (carrier %s)",
                    expiry, carrier_id
                )
                raise DuplicateExpiryError(expiry, destinations, carrier_id)

    async def expiry_report(self, as_of: Optional[date] = None, limit: Optional[int] = None) -> Dict[str, list]:
        """Expired and expiring-soon licenses across all carriers."""
        as_of = as_of or self.clock.today()
        result = await self.db.execute(
            select(CarrierLicense, Carrier.name)
            .join(Carrier, Carrier.id == CarrierLicense.carrier_id)
            .order_by(CarrierLicense.expiry_date.asc())
        )

        expired: List[dict] = []
        expiring_soon: List[dict] = []
        for lic, carrier_name in result.all():
            status = self.status_of(lic, as_of)
            if status == LicenseStatus.VALID:
                continue
            entry = {
                "carrier_id": lic.carrier_id,
                "carrier_name": carrier_name,
                "destination_country": lic.destination_country,
                "license_code": lic.license_code,
                "expiry_date": lic.expiry_date,
                "days_to_expiry": days_to_expiry(lic.expiry_date, as_of),
            }
            if status == LicenseStatus.EXPIRED:
                expired.append(entry)
            else:
                expiring_soon.append(entry)

        if limit is not None:
            expired = expired[:limit]
            expiring_soon = expiring_soon[:limit]
        return {"expired": expired, "expiring_soon": expiring_soon}
