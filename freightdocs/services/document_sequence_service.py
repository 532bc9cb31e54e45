"""
Document Sequence Service for Atomic Number Reservation

NUMBERING RULES:
- One counter per bucket: (carrier, document type, scope key)
- CRT numbers are scoped to the carrier alone
- MIC/DTA numbers are scoped to carrier + variant + ordered country pair
- The first number of a bucket is the carrier's configured initial number
- Blocks are contiguous; a batch of N gets N consecutive numbers

CONCURRENCY:
- SELECT FOR UPDATE on the bucket row (PostgreSQL)
- Compare-and-swap on `version` for every write (all backends)
- Reservation, document inserts and commit share one transaction
- Lost races surface as SequenceConflictError and are retried by allocate()

USAGE:
    from freightdocs.services.document_sequence_service import SequenceAllocator

    async def issue(db: AsyncSession):
        allocator = SequenceAllocator(db)
        crts = await allocator.allocate(identity, scope, 3, persist=build_and_add)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from freightdocs.config import settings
from freightdocs.core.countries import normalize_country
from freightdocs.core.exceptions import PersistenceError, SequenceConflictError
from freightdocs.database import begin_write
from freightdocs.models.carrier import Carrier, CarrierLicense
from freightdocs.models.document import Crt, MicDta, DocumentType, MicDtaType
from freightdocs.models.document_sequence import DocumentSequence, DocumentSequenceAudit

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Driver messages that mean "someone else holds the bucket, try again"
TRANSIENT_ERROR_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock detected",
    "could not serialize access",
    "lock not available",
)


@dataclass(frozen=True)
class SequenceScope:
    """
    What is being numbered: the document family, its variant and the route.

    The route is always carried (the display number embeds it) but only
    MIC/DTA buckets are partitioned by it.
    """
    document_type: DocumentType
    origin: str
    destination: str
    mic_dta_type: Optional[MicDtaType] = None

    @classmethod
    def for_crt(cls, origin: str, destination: str) -> "SequenceScope":
        return cls(DocumentType.CRT, normalize_country(origin), normalize_country(destination))

    @classmethod
    def for_mic_dta(cls, mic_dta_type: MicDtaType, origin: str, destination: str) -> "SequenceScope":
        return cls(
            DocumentType.MIC_DTA,
            normalize_country(origin),
            normalize_country(destination),
            MicDtaType(mic_dta_type),
        )

    @property
    def country_pair(self) -> str:
        return f"{self.origin}-{self.destination}"

    @property
    def scope_key(self) -> str:
        if self.document_type == DocumentType.CRT:
            return ""
        return f"{self.mic_dta_type.value}:{self.country_pair}"


@dataclass(frozen=True)
class CarrierIdentity:
    """
    Plain snapshot of the carrier fields numbering depends on.

    Taken before the reserving transaction starts so that a rollback (which
    expires ORM instances) never forces a reload in the middle of a retry.
    """
    carrier_id: uuid.UUID
    home_country: str
    registration_number: str
    initial_crt_number: int
    initial_mic_dta_number: int
    idoneidade: Optional[str] = None
    license_code: Optional[str] = None

    @classmethod
    def from_carrier(
        cls,
        carrier: Carrier,
        license: Optional[CarrierLicense] = None,
        fallback_license_code: Optional[str] = None,
    ) -> "CarrierIdentity":
        license_code = license.license_code if license else fallback_license_code
        idoneidade = None
        if license is not None:
            # Domestic carriers number with the license code itself
            idoneidade = license.idoneidade_number or license.license_code
        elif fallback_license_code:
            idoneidade = fallback_license_code
        return cls(
            carrier_id=carrier.id,
            home_country=carrier.home_country,
            registration_number=carrier.registration_number,
            initial_crt_number=carrier.initial_crt_number,
            initial_mic_dta_number=carrier.initial_mic_dta_number,
            idoneidade=idoneidade,
            license_code=license_code,
        )

    def initial_number_for(self, document_type: DocumentType) -> int:
        if document_type == DocumentType.CRT:
            return self.initial_crt_number
        return self.initial_mic_dta_number


def _is_transient(exc: BaseException) -> bool:
    text = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in text for marker in TRANSIENT_ERROR_MARKERS)


class SequenceAllocator:
    """
    Reserves contiguous blocks of sequence numbers per bucket.

    Features:
    - Atomic reservation with row locking and version compare-and-swap
    - Audit logging for every reserved block
    - Bounded retries on contention, with rollback between attempts
    """

    def __init__(
        self,
        db: AsyncSession,
        max_retries: Optional[int] = None,
        backoff_ms: Optional[int] = None,
    ):
        self.db = db
        self.max_retries = settings.SEQUENCE_MAX_RETRIES if max_retries is None else max_retries
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.backoff_ms = settings.SEQUENCE_RETRY_BACKOFF_MS if backoff_ms is None else backoff_ms

    async def _log_audit(
        self,
        carrier_id: uuid.UUID,
        scope: SequenceScope,
        operation: str,
        old_number: Optional[int] = None,
        new_number: Optional[int] = None,
        first_number: Optional[int] = None,
        block_size: Optional[int] = None,
    ):
        """Log an audit record for sequence operations."""
        audit = DocumentSequenceAudit(
            carrier_id=carrier_id,
            document_type=scope.document_type.value,
            scope_key=scope.scope_key,
            operation=operation,
            old_number=old_number,
            new_number=new_number,
            first_number=first_number,
            block_size=block_size,
        )
        self.db.add(audit)

    async def max_issued_number(self, carrier_id: uuid.UUID, scope: SequenceScope) -> Optional[int]:
        """Highest sequence number already stored for the bucket's documents."""
        if scope.document_type == DocumentType.CRT:
            stmt = select(func.max(Crt.sequence_number)).where(Crt.carrier_id == carrier_id)
        else:
            stmt = select(func.max(MicDta.sequence_number)).where(
                MicDta.carrier_id == carrier_id,
                MicDta.mic_dta_type == scope.mic_dta_type.value,
                MicDta.origin_country == scope.origin,
                MicDta.destination_country == scope.destination,
            )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _seed_value(self, carrier: CarrierIdentity, scope: SequenceScope) -> int:
        """Counter value for a brand-new bucket (the number before the first one)."""
        seed = carrier.initial_number_for(scope.document_type) - 1
        issued = await self.max_issued_number(carrier.carrier_id, scope)
        if issued is not None and issued > seed:
            seed = issued
        return seed

    async def _find_sequence(
        self,
        carrier_id: uuid.UUID,
        scope: SequenceScope,
        lock: bool = False,
    ) -> Optional[DocumentSequence]:
        stmt = (
            select(DocumentSequence)
            .where(
                DocumentSequence.carrier_id == carrier_id,
                DocumentSequence.document_type == scope.document_type.value,
                DocumentSequence.scope_key == scope.scope_key,
            )
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_create_sequence(
        self,
        carrier: CarrierIdentity,
        scope: SequenceScope,
    ) -> DocumentSequence:
        """
        Get the bucket row with a row lock, or create it.

        A concurrent creator makes the insert fail on the unique constraint;
        that is reported as a conflict so the caller retries and finds the
        row the other transaction committed.
        """
        sequence = await self._find_sequence(carrier.carrier_id, scope, lock=True)
        if sequence:
            return sequence

        sequence = DocumentSequence(
            carrier_id=carrier.carrier_id,
            document_type=scope.document_type.value,
            scope_key=scope.scope_key,
            current_number=await self._seed_value(carrier, scope),
            version=0,
        )
        self.db.add(sequence)
        try:
            await self.db.flush()
        except (IntegrityError, OperationalError) as e:
            raise SequenceConflictError(
                f"Bucket {scope.document_type.value}/{scope.scope_key or '-'} was created concurrently",
                details=self._conflict_details(carrier.carrier_id, scope),
            ) from e

        # Re-fetch with lock to ensure atomicity
        return await self._find_sequence(carrier.carrier_id, scope, lock=True)

    @staticmethod
    def _conflict_details(carrier_id: uuid.UUID, scope: SequenceScope) -> dict:
        return {
            "carrier_id": str(carrier_id),
            "document_type": scope.document_type.value,
            "scope_key": scope.scope_key,
        }

    async def reserve(self, carrier: CarrierIdentity, scope: SequenceScope, count: int) -> List[int]:
        """
        Reserve ``count`` consecutive numbers in the bucket.

        Does NOT commit. The block becomes visible to other transactions only
        when the caller commits, and disappears entirely on rollback.

        Raises:
            ValueError: count is not positive
            SequenceConflictError: another transaction advanced the bucket
        """
        if count < 1:
            raise ValueError("count must be at least 1")

        sequence = await self._get_or_create_sequence(carrier, scope)
        old_number = sequence.current_number
        old_version = sequence.version
        new_number = old_number + count

        try:
            result = await self.db.execute(
                update(DocumentSequence)
                .where(
                    DocumentSequence.id == sequence.id,
                    DocumentSequence.version == old_version,
                )
                .values(
                    current_number=new_number,
                    version=old_version + 1,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
        except OperationalError as e:
            if not _is_transient(e):
                raise
            raise SequenceConflictError(
                "Bucket is locked by another reservation",
                details=self._conflict_details(carrier.carrier_id, scope),
            ) from e

        if result.rowcount != 1:
            raise SequenceConflictError(
                "Bucket advanced by a concurrent reservation",
                details=self._conflict_details(carrier.carrier_id, scope),
            )

        await self._log_audit(
            carrier_id=carrier.carrier_id,
            scope=scope,
            operation="RESERVE",
            old_number=old_number,
            new_number=new_number,
            first_number=old_number + 1,
            block_size=count,
        )
        return list(range(old_number + 1, new_number + 1))

    async def allocate(
        self,
        carrier: CarrierIdentity,
        scope: SequenceScope,
        count: int,
        persist: Callable[[List[int]], Awaitable[T]],
    ) -> T:
        """
        Reserve a block, hand it to ``persist`` and commit, as one transaction.

        ``persist`` receives the reserved numbers and must only stage
        records on the session. It is called again on every retry, so it must
        not rely on ORM instances loaded before the first attempt.

        Raises:
            SequenceConflictError: retries exhausted
            PersistenceError: any other store failure (rolled back)
        """
        last_conflict: Optional[SequenceConflictError] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                await begin_write(self.db)
                numbers = await self.reserve(carrier, scope, count)
                result = await persist(numbers)
                await self.db.flush()
                await self.db.commit()
                logger.info(
                    "Reserved %s/%s numbers %d..%d for carrier %s",
                    scope.document_type.value, scope.scope_key or "-",
                    numbers[0], numbers[-1], carrier.carrier_id
                )
                return result
            except SequenceConflictError as e:
                await self.db.rollback()
                last_conflict = e
            except OperationalError as e:
                await self.db.rollback()
                if not _is_transient(e):
                    raise PersistenceError(
                        f"Store failure while issuing {scope.document_type.value}: {e.orig or e}",
                        details=self._conflict_details(carrier.carrier_id, scope),
                    ) from e
                last_conflict = SequenceConflictError(
                    "Bucket is locked by another reservation",
                    details=self._conflict_details(carrier.carrier_id, scope),
                )
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(
                    "Persistence failed for %s/%s (carrier %s), reservation rolled back: %s",
                    scope.document_type.value, scope.scope_key or "-", carrier.carrier_id, e
                )
                raise PersistenceError(
                    f"Store failure while issuing {scope.document_type.value}: {getattr(e, 'orig', None) or e}",
                    details=self._conflict_details(carrier.carrier_id, scope),
                ) from e
            except Exception:
                await self.db.rollback()
                raise

            logger.warning(
                "Sequence conflict on %s/%s for carrier %s (attempt %d/%d)",
                scope.document_type.value, scope.scope_key or "-",
                carrier.carrier_id, attempt, self.max_retries
            )
            if attempt < self.max_retries:
                await asyncio.sleep(self.backoff_ms * attempt / 1000)

        raise SequenceConflictError(
            f"Could not reserve {count} number(s) after {self.max_retries} attempts",
            details={
                **self._conflict_details(carrier.carrier_id, scope),
                "attempts": self.max_retries,
            },
        ) from last_conflict

    async def preview_next_number(self, carrier: CarrierIdentity, scope: SequenceScope) -> int:
        """
        What the next number would be, without reserving it.

        Advisory only: another request may take the number before the caller
        issues anything.
        """
        sequence = await self._find_sequence(carrier.carrier_id, scope)
        if sequence:
            return sequence.current_number + 1
        return await self._seed_value(carrier, scope) + 1

    async def get_current_number(self, carrier_id: uuid.UUID, scope: SequenceScope) -> int:
        """
        Last issued number of the bucket (0 if the bucket does not exist yet).
        """
        result = await self.db.execute(
            select(DocumentSequence.current_number)
            .where(
                DocumentSequence.carrier_id == carrier_id,
                DocumentSequence.document_type == scope.document_type.value,
                DocumentSequence.scope_key == scope.scope_key,
            )
        )
        current = result.scalar_one_or_none()
        return current or 0

    async def sync_sequence_from_max(self, carrier: CarrierIdentity, scope: SequenceScope) -> DocumentSequence:
        """
        Raise a bucket counter to the highest number present in the documents.

        Use this to repair buckets that are out of sync after data imports.
        Never lowers a counter. Does NOT commit.
        """
        max_in_docs = await self.max_issued_number(carrier.carrier_id, scope) or 0
        sequence = await self._find_sequence(carrier.carrier_id, scope, lock=True)

        if sequence is None:
            sequence = DocumentSequence(
                carrier_id=carrier.carrier_id,
                document_type=scope.document_type.value,
                scope_key=scope.scope_key,
                current_number=await self._seed_value(carrier, scope),
                version=0,
            )
            self.db.add(sequence)
            old_number = None
        else:
            old_number = sequence.current_number
            if max_in_docs > sequence.current_number:
                sequence.current_number = max_in_docs
                sequence.version += 1

        await self._log_audit(
            carrier_id=carrier.carrier_id,
            scope=scope,
            operation="MANUAL_SYNC",
            old_number=old_number,
            new_number=sequence.current_number,
        )
        await self.db.flush()
        return sequence
