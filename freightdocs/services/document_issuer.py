"""
Document Issuance Service

Orchestrates CRT and MIC/DTA creation:
    validate request -> resolve carrier -> check eligibility -> reserve block
    -> format numbers -> persist batch -> commit -> notify

A batch is all-or-nothing. Reservation and inserts share one transaction, so
a failed batch leaves neither documents nor a consumed block behind.
"""

import inspect
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from freightdocs.config import settings
from freightdocs.core.clock import Clock, system_clock
from freightdocs.core.countries import normalize_country
from freightdocs.core.exceptions import (
    CarrierNotFoundError,
    FreightDocsError,
    InvalidRequestError,
    MissingParentCrtError,
    RouteMismatchError,
)
from freightdocs.database import begin_write
from freightdocs.models.carrier import Carrier
from freightdocs.models.document import Crt, MicDta, DocumentType, MicDtaType
from freightdocs.services.document_sequence_service import (
    CarrierIdentity,
    SequenceAllocator,
    SequenceScope,
)
from freightdocs.services.eligibility import EligibilityEngine
from freightdocs.services.issuance_state import IssuanceStatus, IssuanceTracker
from freightdocs.services.license_registry import LicenseRegistry
from freightdocs.services.number_formatter import DocumentNumberFormatter

logger = logging.getLogger(__name__)

IssuedHook = Callable[[DocumentType, List[Any]], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class CrtMetadata:
    """Shipment fields copied onto every CRT of a batch."""
    commercial_invoice: str
    exporter: str
    importer: str


@dataclass(frozen=True)
class MicDtaRequest:
    """
    NORMAL requests name a parent CRT; carrier and route are inherited.
    LASTRE requests name carrier, origin and destination and no CRT.
    """
    mic_dta_type: MicDtaType
    count: int = 1
    crt_id: Optional[uuid.UUID] = None
    carrier_id: Optional[uuid.UUID] = None
    origin: Optional[str] = None
    destination: Optional[str] = None


class DocumentIssuer:
    """Issues numbered CRT and MIC/DTA batches for registered carriers."""

    def __init__(
        self,
        db: AsyncSession,
        eligibility: Optional[EligibilityEngine] = None,
        allocator: Optional[SequenceAllocator] = None,
        formatter: Optional[DocumentNumberFormatter] = None,
        clock: Optional[Clock] = None,
        on_issued: Optional[IssuedHook] = None,
    ):
        self.db = db
        self.clock = clock or system_clock
        self.eligibility = eligibility or EligibilityEngine(clock=self.clock)
        self.allocator = allocator or SequenceAllocator(db)
        self.formatter = formatter or DocumentNumberFormatter()
        self.on_issued = on_issued

    # ==================== Helpers ====================

    @staticmethod
    def _check_count(count: int) -> None:
        if count < 1 or count > settings.MAX_BATCH_SIZE:
            raise InvalidRequestError(
                f"count must be between 1 and {settings.MAX_BATCH_SIZE}",
                details={"count": count, "max_batch_size": settings.MAX_BATCH_SIZE},
            )

    async def _load_carrier(self, carrier_id: uuid.UUID) -> Carrier:
        result = await self.db.execute(select(Carrier).where(Carrier.id == carrier_id))
        carrier = result.scalar_one_or_none()
        if not carrier:
            raise CarrierNotFoundError(carrier_id)
        return carrier

    async def _notify(self, document_type: DocumentType, documents: List[Any]) -> None:
        """Run the post-commit hook. The batch is already durable; hook errors are logged only."""
        if not self.on_issued:
            return
        try:
            outcome = self.on_issued(document_type, documents)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception(
                "on_issued hook failed for %d %s document(s)",
                len(documents), document_type.value
            )

    @staticmethod
    def _mark_numbered(tracker: IssuanceTracker, numbers: List[int]) -> None:
        # A retried attempt is already NUMBERED
        if tracker.status == IssuanceStatus.VALIDATED:
            tracker.advance(IssuanceStatus.NUMBERED, f"{numbers[0]}..{numbers[-1]}")

    # ==================== CRT ====================

    async def issue_crt(
        self,
        carrier_id: uuid.UUID,
        origin: str,
        destination: str,
        count: int,
        metadata: CrtMetadata,
    ) -> List[Crt]:
        """
        Issue ``count`` CRTs for one carrier and route.

        Raises:
            InvalidRequestError: count out of range
            CarrierNotFoundError: unknown carrier
            IneligibleRouteError: no license links the route to the home country
            SequenceConflictError: contention did not clear within the retry budget
            PersistenceError: store failure; nothing was issued
        """
        tracker = IssuanceTracker(DocumentType.CRT.value, carrier_id)
        try:
            self._check_count(count)
            await begin_write(self.db)
            carrier = await self._load_carrier(carrier_id)
            license = self.eligibility.ensure_can_issue(
                carrier, origin, destination, DocumentType.CRT.value
            )
            identity = CarrierIdentity.from_carrier(carrier, license)
            scope = SequenceScope.for_crt(origin, destination)
            tracker.advance(IssuanceStatus.VALIDATED)

            async def persist(numbers: List[int]) -> List[Crt]:
                self._mark_numbered(tracker, numbers)
                crts = [
                    Crt(
                        number=self.formatter.format(identity, scope, n),
                        sequence_number=n,
                        carrier_id=identity.carrier_id,
                        origin_country=scope.origin,
                        destination_country=scope.destination,
                        license_code=identity.license_code,
                        commercial_invoice=metadata.commercial_invoice,
                        exporter=metadata.exporter,
                        importer=metadata.importer,
                    )
                    for n in numbers
                ]
                self.db.add_all(crts)
                return crts

            crts = await self.allocator.allocate(identity, scope, count, persist)
            tracker.advance(IssuanceStatus.PERSISTED, f"{len(crts)} CRT(s)")
        except FreightDocsError as e:
            tracker.reject(e.error_code)
            raise

        await self._notify(DocumentType.CRT, crts)
        return crts

    # ==================== MIC/DTA ====================

    async def issue_mic_dta(self, request: MicDtaRequest) -> List[MicDta]:
        """
        Issue a batch of MIC/DTAs.

        NORMAL documents inherit carrier and route from their CRT and skip the
        eligibility check (the CRT was already authorized). LASTRE documents
        are checked like a CRT.

        Raises:
            MissingParentCrtError: NORMAL without a resolvable CRT
            RouteMismatchError: NORMAL request contradicts its CRT
            InvalidRequestError: LASTRE without carrier/route, or with a CRT
            CarrierNotFoundError, IneligibleRouteError, SequenceConflictError,
            PersistenceError: as for CRTs
        """
        mic_dta_type = MicDtaType(request.mic_dta_type)
        tracker = IssuanceTracker(DocumentType.MIC_DTA.value, request.carrier_id)
        try:
            self._check_count(request.count)
            await begin_write(self.db)
            if mic_dta_type == MicDtaType.NORMAL:
                identity, scope, crt_id = await self._resolve_normal(request)
            else:
                identity, scope = await self._resolve_lastre(request)
                crt_id = None
            tracker.carrier_id = identity.carrier_id
            tracker.advance(IssuanceStatus.VALIDATED, mic_dta_type.value)

            async def persist(numbers: List[int]) -> List[MicDta]:
                self._mark_numbered(tracker, numbers)
                mic_dtas = [
                    MicDta(
                        number=self.formatter.format(identity, scope, n),
                        sequence_number=n,
                        mic_dta_type=mic_dta_type.value,
                        carrier_id=identity.carrier_id,
                        crt_id=crt_id,
                        origin_country=scope.origin,
                        destination_country=scope.destination,
                        license_code=identity.license_code,
                    )
                    for n in numbers
                ]
                self.db.add_all(mic_dtas)
                return mic_dtas

            mic_dtas = await self.allocator.allocate(identity, scope, request.count, persist)
            tracker.advance(IssuanceStatus.PERSISTED, f"{len(mic_dtas)} MIC/DTA(s)")
        except FreightDocsError as e:
            tracker.reject(e.error_code)
            raise

        await self._notify(DocumentType.MIC_DTA, mic_dtas)
        return mic_dtas

    async def _resolve_normal(
        self,
        request: MicDtaRequest,
    ) -> Tuple[CarrierIdentity, SequenceScope, uuid.UUID]:
        if request.crt_id is None:
            raise MissingParentCrtError()
        crt = await self.db.get(Crt, request.crt_id)
        if crt is None:
            raise MissingParentCrtError(request.crt_id)

        mismatches = {}
        if request.carrier_id is not None and request.carrier_id != crt.carrier_id:
            mismatches["carrier_id"] = str(request.carrier_id)
        if request.origin is not None and normalize_country(request.origin) != crt.origin_country:
            mismatches["origin"] = normalize_country(request.origin)
        if request.destination is not None and normalize_country(request.destination) != crt.destination_country:
            mismatches["destination"] = normalize_country(request.destination)
        if mismatches:
            raise RouteMismatchError(
                f"NORMAL MIC/DTA must match CRT {crt.number}",
                details={
                    "crt_id": str(crt.id),
                    "crt_carrier_id": str(crt.carrier_id),
                    "crt_origin": crt.origin_country,
                    "crt_destination": crt.destination_country,
                    "requested": mismatches,
                    "document_type": DocumentType.MIC_DTA.value,
                },
            )

        carrier = await self._load_carrier(crt.carrier_id)
        # Informational only: the license may have been replaced since the CRT
        license = LicenseRegistry.license_for_route(carrier, crt.origin_country, crt.destination_country)
        identity = CarrierIdentity.from_carrier(carrier, license, fallback_license_code=crt.license_code)
        scope = SequenceScope.for_mic_dta(MicDtaType.NORMAL, crt.origin_country, crt.destination_country)
        return identity, scope, crt.id

    async def _resolve_lastre(self, request: MicDtaRequest) -> Tuple[CarrierIdentity, SequenceScope]:
        missing = [
            name for name, value in (
                ("carrier_id", request.carrier_id),
                ("origin", request.origin),
                ("destination", request.destination),
            )
            if not value
        ]
        if missing:
            raise InvalidRequestError(
                f"LASTRE MIC/DTA requires {', '.join(missing)}",
                details={"missing": missing, "document_type": DocumentType.MIC_DTA.value},
            )
        if request.crt_id is not None:
            raise InvalidRequestError(
                "LASTRE MIC/DTA cannot reference a CRT",
                details={"crt_id": str(request.crt_id), "document_type": DocumentType.MIC_DTA.value},
            )

        carrier = await self._load_carrier(request.carrier_id)
        license = self.eligibility.ensure_can_issue(
            carrier, request.origin, request.destination, DocumentType.MIC_DTA.value
        )
        identity = CarrierIdentity.from_carrier(carrier, license)
        scope = SequenceScope.for_mic_dta(MicDtaType.LASTRE, request.origin, request.destination)
        return identity, scope

    # ==================== Reads ====================

    async def list_crts(self, page: int = 1, size: int = 50) -> Tuple[List[Crt], int]:
        total = (await self.db.execute(select(func.count(Crt.id)))).scalar() or 0
        result = await self.db.execute(
            select(Crt)
            .order_by(Crt.created_at.desc(), Crt.sequence_number.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def get_crt(self, crt_id: uuid.UUID) -> Optional[Crt]:
        return await self.db.get(Crt, crt_id)

    async def list_crts_by_carrier(self, carrier_id: uuid.UUID) -> List[Crt]:
        result = await self.db.execute(
            select(Crt)
            .where(Crt.carrier_id == carrier_id)
            .order_by(Crt.sequence_number.asc())
        )
        return list(result.scalars().all())

    async def list_mic_dtas(self, page: int = 1, size: int = 50) -> Tuple[List[MicDta], int]:
        total = (await self.db.execute(select(func.count(MicDta.id)))).scalar() or 0
        result = await self.db.execute(
            select(MicDta)
            .order_by(MicDta.created_at.desc(), MicDta.sequence_number.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def list_mic_dtas_by_type(self, mic_dta_type: MicDtaType) -> List[MicDta]:
        result = await self.db.execute(
            select(MicDta)
            .where(MicDta.mic_dta_type == MicDtaType(mic_dta_type).value)
            .order_by(MicDta.created_at.desc(), MicDta.sequence_number.desc())
        )
        return list(result.scalars().all())

    async def list_mic_dtas_by_carrier(self, carrier_id: uuid.UUID) -> List[MicDta]:
        result = await self.db.execute(
            select(MicDta)
            .where(MicDta.carrier_id == carrier_id)
            .order_by(MicDta.created_at.desc(), MicDta.sequence_number.desc())
        )
        return list(result.scalars().all())

    async def list_mic_dtas_by_crt(self, crt_id: uuid.UUID) -> List[MicDta]:
        result = await self.db.execute(
            select(MicDta)
            .where(MicDta.crt_id == crt_id)
            .order_by(MicDta.sequence_number.asc())
        )
        return list(result.scalars().all())
