"""MIC/DTA issuance and lookup API endpoints."""
from typing import List
import uuid
from math import ceil

from fastapi import APIRouter, Query, status

from freightdocs.api.deps import DB, Cache, ClockDep
from freightdocs.api.errors import http_error
from freightdocs.core.exceptions import FreightDocsError
from freightdocs.models.document import MicDtaType
from freightdocs.schemas.mic_dta import (
    MicDtaBatchResponse,
    MicDtaCreate,
    MicDtaListResponse,
    MicDtaResponse,
)
from freightdocs.services.document_issuer import DocumentIssuer, MicDtaRequest


router = APIRouter()


@router.get("", response_model=MicDtaListResponse)
async def list_mic_dtas(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
):
    """Get paginated list of MIC/DTAs, newest first."""
    mic_dtas, total = await DocumentIssuer(db).list_mic_dtas(page=page, size=size)
    return MicDtaListResponse(
        items=[MicDtaResponse.model_validate(m) for m in mic_dtas],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post("", response_model=MicDtaBatchResponse, status_code=status.HTTP_201_CREATED)
async def create_mic_dtas(data: MicDtaCreate, db: DB, cache: Cache, clock: ClockDep):
    """
    Issue a batch of MIC/DTAs.

    NORMAL documents take carrier and route from their CRT. LASTRE documents
    are checked against the carrier's licenses like a CRT.
    """
    issuer = DocumentIssuer(db, clock=clock, on_issued=cache.on_documents_issued)
    try:
        mic_dtas = await issuer.issue_mic_dta(MicDtaRequest(
            mic_dta_type=data.mic_dta_type,
            count=data.count,
            crt_id=data.crt_id,
            carrier_id=data.carrier_id,
            origin=data.origin_country,
            destination=data.destination_country,
        ))
    except FreightDocsError as e:
        raise http_error(e) from e
    return MicDtaBatchResponse(
        items=[MicDtaResponse.model_validate(m) for m in mic_dtas],
        count=len(mic_dtas),
    )


@router.get("/type/{mic_dta_type}", response_model=List[MicDtaResponse])
async def list_mic_dtas_by_type(mic_dta_type: MicDtaType, db: DB):
    mic_dtas = await DocumentIssuer(db).list_mic_dtas_by_type(mic_dta_type)
    return [MicDtaResponse.model_validate(m) for m in mic_dtas]


@router.get("/carrier/{carrier_id}", response_model=List[MicDtaResponse])
async def list_mic_dtas_by_carrier(carrier_id: uuid.UUID, db: DB):
    mic_dtas = await DocumentIssuer(db).list_mic_dtas_by_carrier(carrier_id)
    return [MicDtaResponse.model_validate(m) for m in mic_dtas]


@router.get("/crt/{crt_id}", response_model=List[MicDtaResponse])
async def list_mic_dtas_by_crt(crt_id: uuid.UUID, db: DB):
    """MIC/DTAs issued against one CRT."""
    mic_dtas = await DocumentIssuer(db).list_mic_dtas_by_crt(crt_id)
    return [MicDtaResponse.model_validate(m) for m in mic_dtas]
