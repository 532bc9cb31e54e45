"""Service for registering carriers and maintaining their license sets."""
import logging
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from freightdocs.core.exceptions import (
    CarrierInUseError,
    CarrierNotFoundError,
    LicenseValidationError,
)
from freightdocs.database import begin_write
from freightdocs.models.carrier import Carrier, CarrierLicense
from freightdocs.models.document import Crt, MicDta
from freightdocs.schemas.carrier import CarrierCreate, CarrierUpdate, LicenseCreate
from freightdocs.services.cache_service import CacheService, get_cache
from freightdocs.services.license_registry import LicenseRegistry

logger = logging.getLogger(__name__)


class CarrierService:
    """Carrier CRUD. License sets are validated as a whole on every write."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or get_cache()

    # ==================== READS ====================

    async def get_carrier(self, carrier_id: uuid.UUID) -> Optional[Carrier]:
        """Get carrier by ID (licenses are loaded with it)."""
        result = await self.db.execute(select(Carrier).where(Carrier.id == carrier_id))
        return result.scalar_one_or_none()

    async def require_carrier(self, carrier_id: uuid.UUID) -> Carrier:
        carrier = await self.get_carrier(carrier_id)
        if not carrier:
            raise CarrierNotFoundError(carrier_id)
        return carrier

    async def get_carrier_by_registration(self, registration_number: str) -> Optional[Carrier]:
        result = await self.db.execute(
            select(Carrier).where(Carrier.registration_number == registration_number)
        )
        return result.scalar_one_or_none()

    async def list_carriers(
        self,
        search: Optional[str] = None,
        home_country: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Carrier], int]:
        """Get paginated carriers with filters."""
        filters = []
        if search:
            pattern = f"%{search}%"
            filters.append(or_(
                Carrier.name.ilike(pattern),
                Carrier.registration_number.ilike(pattern),
            ))
        if home_country:
            filters.append(Carrier.home_country == home_country.upper())

        count_stmt = select(func.count(Carrier.id))
        stmt = select(Carrier).order_by(Carrier.name)
        if filters:
            count_stmt = count_stmt.where(*filters)
            stmt = stmt.where(*filters)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    # ==================== WRITES ====================

    @staticmethod
    def _build_licenses(licenses: List[LicenseCreate]) -> List[CarrierLicense]:
        return [
            CarrierLicense(
                destination_country=lic.destination_country,
                license_code=lic.license_code,
                expiry_date=lic.expiry_date,
                idoneidade_number=lic.idoneidade_number or None,
                position=position,
            )
            for position, lic in enumerate(licenses)
        ]

    async def _ensure_unique_registration(
        self,
        registration_number: str,
        carrier_id: Optional[uuid.UUID] = None,
    ) -> None:
        existing = await self.get_carrier_by_registration(registration_number)
        if existing and existing.id != carrier_id:
            raise LicenseValidationError(
                f"Carrier with registration number {registration_number} already exists",
                error_code="DUPLICATE_REGISTRATION",
                details={"registration_number": registration_number, "carrier_id": str(existing.id)},
            )

    async def _commit(self, carrier: Carrier) -> Carrier:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            # Lost a race on registration number or license expiry uniqueness
            raise LicenseValidationError(
                "Carrier violates a uniqueness rule",
                error_code="DUPLICATE_CARRIER_DATA",
                details={"error": str(e.orig)},
            ) from e
        await self.db.refresh(carrier)
        await self.cache.invalidate_dashboard()
        return carrier

    async def create_carrier(self, data: CarrierCreate) -> Carrier:
        """Register a carrier with its initial license set."""
        LicenseRegistry.validate_license_set(data.home_country, data.licenses)
        await begin_write(self.db)
        await self._ensure_unique_registration(data.registration_number)

        carrier = Carrier(
            name=data.name,
            home_country=data.home_country,
            registration_number=data.registration_number,
            initial_crt_number=data.initial_crt_number,
            initial_mic_dta_number=data.initial_mic_dta_number,
            licenses=self._build_licenses(data.licenses),
        )
        self.db.add(carrier)
        carrier = await self._commit(carrier)
        logger.info(
            "Registered carrier %s (%s, %d license(s))",
            carrier.id, carrier.home_country, len(carrier.licenses)
        )
        return carrier

    async def update_carrier(self, carrier_id: uuid.UUID, data: CarrierUpdate) -> Carrier:
        """
        Update carrier fields; a given license list replaces the current one.

        The resulting license set is validated against the resulting home
        country, so changing only the home country can also be rejected.
        """
        await begin_write(self.db)
        carrier = await self.require_carrier(carrier_id)
        update_data = data.model_dump(exclude_unset=True, exclude={"licenses"})

        home_country = update_data.get("home_country") or carrier.home_country
        licenses = data.licenses if data.licenses is not None else carrier.licenses
        LicenseRegistry.validate_license_set(home_country, licenses, carrier_id=carrier.id)

        if "registration_number" in update_data:
            await self._ensure_unique_registration(update_data["registration_number"], carrier.id)

        for key, value in update_data.items():
            if value is not None:
                setattr(carrier, key, value)

        if data.licenses is not None:
            # Old rows must be gone before new ones can reuse their expiry dates
            carrier.licenses.clear()
            await self.db.flush()
            carrier.licenses.extend(self._build_licenses(data.licenses))

        carrier = await self._commit(carrier)
        logger.info("Updated carrier %s", carrier.id)
        return carrier

    async def delete_carrier(self, carrier_id: uuid.UUID) -> bool:
        """Delete a carrier and its licenses. Carriers with documents are kept."""
        await begin_write(self.db)
        carrier = await self.require_carrier(carrier_id)

        crt_count = (await self.db.execute(
            select(func.count(Crt.id)).where(Crt.carrier_id == carrier_id)
        )).scalar() or 0
        mic_dta_count = (await self.db.execute(
            select(func.count(MicDta.id)).where(MicDta.carrier_id == carrier_id)
        )).scalar() or 0
        if crt_count or mic_dta_count:
            raise CarrierInUseError(carrier_id, crt_count, mic_dta_count)

        await self.db.delete(carrier)
        await self.db.commit()
        await self.cache.invalidate_dashboard()
        logger.info("Deleted carrier %s", carrier_id)
        return True
