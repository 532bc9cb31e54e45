"""CRT issuance and lookup API endpoints."""
from typing import List
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, Query, status

from freightdocs.api.deps import DB, Cache, ClockDep
from freightdocs.api.errors import http_error
from freightdocs.core.exceptions import FreightDocsError
from freightdocs.schemas.crt import CrtBatchResponse, CrtCreate, CrtListResponse, CrtResponse
from freightdocs.services.document_issuer import CrtMetadata, DocumentIssuer


router = APIRouter()


@router.get("", response_model=CrtListResponse)
async def list_crts(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
):
    """Get paginated list of CRTs, newest first."""
    crts, total = await DocumentIssuer(db).list_crts(page=page, size=size)
    return CrtListResponse(
        items=[CrtResponse.model_validate(c) for c in crts],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post("", response_model=CrtBatchResponse, status_code=status.HTTP_201_CREATED)
async def create_crts(data: CrtCreate, db: DB, cache: Cache, clock: ClockDep):
    """
    Issue a batch of CRTs.

    All CRTs of the batch are numbered from one contiguous block and share
    the shipment data. Either every CRT is created or none is.
    """
    issuer = DocumentIssuer(db, clock=clock, on_issued=cache.on_documents_issued)
    try:
        crts = await issuer.issue_crt(
            carrier_id=data.carrier_id,
            origin=data.origin_country,
            destination=data.destination_country,
            count=data.count,
            metadata=CrtMetadata(
                commercial_invoice=data.commercial_invoice,
                exporter=data.exporter,
                importer=data.importer,
            ),
        )
    except FreightDocsError as e:
        raise http_error(e) from e
    return CrtBatchResponse(items=[CrtResponse.model_validate(c) for c in crts], count=len(crts))


@router.get("/carrier/{carrier_id}", response_model=List[CrtResponse])
async def list_crts_by_carrier(carrier_id: uuid.UUID, db: DB):
    """All CRTs of a carrier in sequence order."""
    crts = await DocumentIssuer(db).list_crts_by_carrier(carrier_id)
    return [CrtResponse.model_validate(c) for c in crts]


@router.get("/{crt_id}", response_model=CrtResponse)
async def get_crt(crt_id: uuid.UUID, db: DB):
    """Get CRT by ID."""
    crt = await DocumentIssuer(db).get_crt(crt_id)
    if not crt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="CRT not found")
    return CrtResponse.model_validate(crt)
