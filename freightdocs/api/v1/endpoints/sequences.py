"""Sequence inspection and repair endpoints."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query

from freightdocs.api.deps import DB, ClockDep
from freightdocs.api.errors import http_error
from freightdocs.core.exceptions import FreightDocsError, InvalidRequestError
from freightdocs.database import begin_write
from freightdocs.models.document import DocumentType, MicDtaType
from freightdocs.schemas.sequence import SequencePreviewResponse, SequenceSyncResponse
from freightdocs.services.carrier_service import CarrierService
from freightdocs.services.document_sequence_service import (
    CarrierIdentity,
    SequenceAllocator,
    SequenceScope,
)
from freightdocs.services.eligibility import EligibilityEngine
from freightdocs.services.license_registry import LicenseRegistry
from freightdocs.services.number_formatter import DocumentNumberFormatter


router = APIRouter()


async def _resolve(
    db,
    clock,
    carrier_id: uuid.UUID,
    document_type: DocumentType,
    origin: str,
    destination: str,
    mic_dta_type: Optional[MicDtaType],
):
    carrier = await CarrierService(db).require_carrier(carrier_id)

    if document_type == DocumentType.CRT:
        scope = SequenceScope.for_crt(origin, destination)
    else:
        if mic_dta_type is None:
            raise InvalidRequestError(
                "mic_dta_type is required for MIC/DTA sequences",
                details={"document_type": document_type.value},
            )
        scope = SequenceScope.for_mic_dta(mic_dta_type, origin, destination)

    if scope.mic_dta_type == MicDtaType.NORMAL:
        # NORMAL routes were authorized when their CRT was issued
        license = LicenseRegistry.license_for_route(carrier, scope.origin, scope.destination)
    else:
        license = EligibilityEngine(clock=clock).ensure_can_issue(
            carrier, scope.origin, scope.destination, document_type.value
        )
    return CarrierIdentity.from_carrier(carrier, license), scope


@router.get("/preview", response_model=SequencePreviewResponse)
async def preview_next_number(
    db: DB,
    clock: ClockDep,
    carrier_id: uuid.UUID = Query(...),
    document_type: DocumentType = Query(...),
    origin: str = Query(..., min_length=2, max_length=2),
    destination: str = Query(..., min_length=2, max_length=2),
    mic_dta_type: Optional[MicDtaType] = Query(None),
):
    """
    Next number of a bucket, for display only.

    Nothing is reserved: a concurrent request may issue this number first.
    """
    try:
        identity, scope = await _resolve(
            db, clock, carrier_id, document_type, origin, destination, mic_dta_type
        )
    except FreightDocsError as e:
        raise http_error(e) from e

    allocator = SequenceAllocator(db)
    next_number = await allocator.preview_next_number(identity, scope)
    return SequencePreviewResponse(
        carrier_id=identity.carrier_id,
        document_type=scope.document_type,
        mic_dta_type=scope.mic_dta_type,
        origin_country=scope.origin,
        destination_country=scope.destination,
        scope_key=scope.scope_key,
        current_number=await allocator.get_current_number(identity.carrier_id, scope),
        next_number=next_number,
        next_display_number=DocumentNumberFormatter().format(identity, scope, next_number),
    )


@router.post("/sync", response_model=SequenceSyncResponse)
async def sync_sequence(
    db: DB,
    clock: ClockDep,
    carrier_id: uuid.UUID = Query(...),
    document_type: DocumentType = Query(...),
    origin: str = Query(..., min_length=2, max_length=2),
    destination: str = Query(..., min_length=2, max_length=2),
    mic_dta_type: Optional[MicDtaType] = Query(None),
):
    """Raise a bucket counter to the highest number found in the documents."""
    try:
        await begin_write(db)
        identity, scope = await _resolve(
            db, clock, carrier_id, document_type, origin, destination, mic_dta_type
        )
    except FreightDocsError as e:
        raise http_error(e) from e

    sequence = await SequenceAllocator(db).sync_sequence_from_max(identity, scope)
    await db.commit()
    return SequenceSyncResponse(
        carrier_id=identity.carrier_id,
        document_type=scope.document_type,
        scope_key=scope.scope_key,
        current_number=sequence.current_number,
    )
