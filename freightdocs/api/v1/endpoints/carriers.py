"""Carrier registration and license API endpoints."""
from typing import List, Optional
import uuid
from math import ceil

from fastapi import APIRouter, Query, status

from freightdocs.api.deps import DB, Cache, ClockDep
from freightdocs.api.errors import http_error
from freightdocs.core.clock import Clock
from freightdocs.core.countries import normalize_country
from freightdocs.core.exceptions import FreightDocsError
from freightdocs.models.carrier import Carrier
from freightdocs.schemas.carrier import (
    AllowedCountriesResponse,
    CarrierBrief,
    CarrierCreate,
    CarrierListResponse,
    CarrierResponse,
    CarrierUpdate,
    EligibilityResponse,
    LicenseResponse,
)
from freightdocs.services.carrier_service import CarrierService
from freightdocs.services.eligibility import EligibilityEngine
from freightdocs.services.license_registry import LicenseRegistry


router = APIRouter()


def _license_responses(db, clock: Clock, carrier: Carrier) -> List[LicenseResponse]:
    registry = LicenseRegistry(db, clock)
    return [LicenseResponse(**registry.describe(lic)) for lic in carrier.licenses]


def _carrier_response(db, clock: Clock, carrier: Carrier) -> CarrierResponse:
    return CarrierResponse(
        id=carrier.id,
        name=carrier.name,
        home_country=carrier.home_country,
        registration_number=carrier.registration_number,
        initial_crt_number=carrier.initial_crt_number,
        initial_mic_dta_number=carrier.initial_mic_dta_number,
        licenses=_license_responses(db, clock, carrier),
        created_at=carrier.created_at,
        updated_at=carrier.updated_at,
    )


# ==================== CARRIER CRUD ====================

@router.get("", response_model=CarrierListResponse)
async def list_carriers(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None),
    home_country: Optional[str] = Query(None, min_length=2, max_length=2),
):
    """Get paginated list of carriers."""
    carriers, total = await CarrierService(db).list_carriers(
        search=search,
        home_country=home_country,
        skip=(page - 1) * size,
        limit=size,
    )
    return CarrierListResponse(
        items=[CarrierBrief.model_validate(c) for c in carriers],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post("", response_model=CarrierResponse, status_code=status.HTTP_201_CREATED)
async def create_carrier(data: CarrierCreate, db: DB, cache: Cache, clock: ClockDep):
    """
    Register a carrier with its licenses.

    Rejected when two licenses share an expiry date, when a license points at
    the home country, or when a foreign carrier omits an idoneidade number.
    """
    try:
        carrier = await CarrierService(db, cache=cache).create_carrier(data)
    except FreightDocsError as e:
        raise http_error(e) from e
    return _carrier_response(db, clock, carrier)


@router.get("/{carrier_id}", response_model=CarrierResponse)
async def get_carrier(carrier_id: uuid.UUID, db: DB, clock: ClockDep):
    """Get carrier by ID."""
    try:
        carrier = await CarrierService(db).require_carrier(carrier_id)
    except FreightDocsError as e:
        raise http_error(e) from e
    return _carrier_response(db, clock, carrier)


@router.put("/{carrier_id}", response_model=CarrierResponse)
async def update_carrier(carrier_id: uuid.UUID, data: CarrierUpdate, db: DB, cache: Cache, clock: ClockDep):
    """Update a carrier. A license list in the body replaces all current licenses."""
    try:
        carrier = await CarrierService(db, cache=cache).update_carrier(carrier_id, data)
    except FreightDocsError as e:
        raise http_error(e) from e
    return _carrier_response(db, clock, carrier)


@router.delete("/{carrier_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_carrier(carrier_id: uuid.UUID, db: DB, cache: Cache):
    """Delete a carrier that has not issued any document."""
    try:
        await CarrierService(db, cache=cache).delete_carrier(carrier_id)
    except FreightDocsError as e:
        raise http_error(e) from e


# ==================== LICENSES & ELIGIBILITY ====================

@router.get("/{carrier_id}/licenses", response_model=List[LicenseResponse])
async def list_licenses(carrier_id: uuid.UUID, db: DB, clock: ClockDep):
    """Licenses in registration order, with status on today's date."""
    try:
        carrier = await CarrierService(db).require_carrier(carrier_id)
    except FreightDocsError as e:
        raise http_error(e) from e
    return _license_responses(db, clock, carrier)


@router.get("/{carrier_id}/allowed-countries", response_model=AllowedCountriesResponse)
async def allowed_countries(carrier_id: uuid.UUID, db: DB):
    """Countries the carrier may use as a route endpoint."""
    try:
        carrier = await CarrierService(db).require_carrier(carrier_id)
    except FreightDocsError as e:
        raise http_error(e) from e
    return AllowedCountriesResponse(
        carrier_id=carrier.id,
        home_country=carrier.home_country,
        countries=sorted(LicenseRegistry.allowed_countries(carrier)),
    )


@router.get("/{carrier_id}/eligibility", response_model=EligibilityResponse)
async def check_eligibility(
    carrier_id: uuid.UUID,
    db: DB,
    clock: ClockDep,
    origin: str = Query(..., min_length=2, max_length=2),
    destination: str = Query(..., min_length=2, max_length=2),
):
    """Whether a document may be issued on the route (either direction)."""
    try:
        carrier = await CarrierService(db).require_carrier(carrier_id)
    except FreightDocsError as e:
        raise http_error(e) from e

    engine = EligibilityEngine(clock=clock)
    license = engine.matching_license(carrier, origin, destination)
    return EligibilityResponse(
        carrier_id=carrier.id,
        origin=normalize_country(origin),
        destination=normalize_country(destination),
        eligible=license is not None,
        license_code=license.license_code if license else None,
        license_status=LicenseRegistry.status_of(license, clock.today()) if license else None,
    )
