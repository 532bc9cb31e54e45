"""Tests for carrier registration, updates, deletion and the dashboard aggregate."""
from datetime import date, timedelta

import pytest

from freightdocs.core.exceptions import (
    CarrierInUseError,
    CarrierNotFoundError,
    DuplicateExpiryError,
    LicenseValidationError,
)
from freightdocs.schemas.carrier import CarrierCreate, CarrierUpdate, LicenseCreate
from freightdocs.services.carrier_service import CarrierService
from freightdocs.services.dashboard_service import DashboardService
from freightdocs.services.document_issuer import CrtMetadata, DocumentIssuer, MicDtaRequest
from freightdocs.models.document import MicDtaType

from tests.conftest import TODAY

META = CrtMetadata(commercial_invoice="FAT-1", exporter="Exporter", importer="Importer")


def registration(**overrides):
    data = dict(
        name="Rápido Pampa SRL",
        home_country="BR",
        registration_number="BR-5500",
        licenses=[
            LicenseCreate(destination_country="AR", license_code="L-AR", expiry_date=date(2029, 4, 1)),
            LicenseCreate(destination_country="UY", license_code="L-UY", expiry_date=date(2029, 8, 1)),
        ],
    )
    data.update(overrides)
    return CarrierCreate(**data)


class TestCreateCarrier:

    @pytest.mark.asyncio
    async def test_create_keeps_license_order(self, db, cache):
        carrier = await CarrierService(db, cache=cache).create_carrier(registration())

        assert carrier.id is not None
        assert [lic.destination_country for lic in carrier.licenses] == ["AR", "UY"]
        assert [lic.position for lic in carrier.licenses] == [0, 1]

    @pytest.mark.asyncio
    async def test_duplicate_expiry_rejected(self, db, cache):
        data = registration(licenses=[
            LicenseCreate(destination_country="AR", license_code="L-AR", expiry_date=date(2029, 4, 1)),
            LicenseCreate(destination_country="PY", license_code="L-PY", expiry_date=date(2029, 4, 1)),
        ])
        with pytest.raises(DuplicateExpiryError):
            await CarrierService(db, cache=cache).create_carrier(data)

    @pytest.mark.asyncio
    async def test_foreign_carrier_requires_idoneidade(self, db, cache):
        data = registration(
            home_country="AR",
            licenses=[LicenseCreate(destination_country="BR", license_code="L-BR", expiry_date=date(2029, 4, 1))],
        )
        with pytest.raises(LicenseValidationError) as exc_info:
            await CarrierService(db, cache=cache).create_carrier(data)
        assert exc_info.value.error_code == "INVALID_LICENSE"

    @pytest.mark.asyncio
    async def test_duplicate_registration_number(self, db, cache, carrier_id):
        with pytest.raises(LicenseValidationError) as exc_info:
            await CarrierService(db, cache=cache).create_carrier(registration(registration_number="BR-0001"))
        assert exc_info.value.error_code == "DUPLICATE_REGISTRATION"
        assert exc_info.value.details["carrier_id"] == str(carrier_id)

    @pytest.mark.asyncio
    async def test_unsupported_country_rejected_by_schema(self):
        with pytest.raises(ValueError):
            registration(home_country="XX")


class TestUpdateCarrier:

    @pytest.mark.asyncio
    async def test_license_set_is_replaced(self, db, cache, carrier_id):
        # The new AR license reuses the expiry date of the PY license it replaces
        update = CarrierUpdate(licenses=[
            LicenseCreate(destination_country="AR", license_code="L-AR-2", expiry_date=date(2030, 1, 1)),
            LicenseCreate(destination_country="CL", license_code="L-CL", expiry_date=date(2031, 1, 1)),
        ])
        carrier = await CarrierService(db, cache=cache).update_carrier(carrier_id, update)

        assert [lic.license_code for lic in carrier.licenses] == ["L-AR-2", "L-CL"]

    @pytest.mark.asyncio
    async def test_plain_fields_leave_licenses_alone(self, db, cache, carrier_id):
        carrier = await CarrierService(db, cache=cache).update_carrier(
            carrier_id, CarrierUpdate(name="Fronteira Cargas", initial_crt_number=900)
        )
        assert carrier.name == "Fronteira Cargas"
        assert carrier.initial_crt_number == 900
        assert [lic.license_code for lic in carrier.licenses] == ["LIC-PY-01"]

    @pytest.mark.asyncio
    async def test_home_country_change_revalidates_licenses(self, db, cache, carrier_id):
        with pytest.raises(LicenseValidationError):
            await CarrierService(db, cache=cache).update_carrier(carrier_id, CarrierUpdate(home_country="PY"))

    @pytest.mark.asyncio
    async def test_unknown_carrier(self, db, cache):
        import uuid

        with pytest.raises(CarrierNotFoundError):
            await CarrierService(db, cache=cache).update_carrier(uuid.uuid4(), CarrierUpdate(name="Nobody"))


class TestDeleteCarrier:

    @pytest.mark.asyncio
    async def test_delete_without_documents(self, db, cache, carrier_id):
        service = CarrierService(db, cache=cache)
        assert await service.delete_carrier(carrier_id) is True
        assert await service.get_carrier(carrier_id) is None

    @pytest.mark.asyncio
    async def test_delete_blocked_by_documents(self, db, cache, clock, carrier_id):
        await DocumentIssuer(db, clock=clock).issue_crt(carrier_id, "BR", "PY", 2, META)

        with pytest.raises(CarrierInUseError) as exc_info:
            await CarrierService(db, cache=cache).delete_carrier(carrier_id)
        assert exc_info.value.details["crt_count"] == 2
        assert exc_info.value.details["mic_dta_count"] == 0


class TestListCarriers:

    @pytest.mark.asyncio
    async def test_search_and_country_filter(self, db, cache, create_carrier):
        await create_carrier()
        await create_carrier(
            name="Transportes Chaco SA",
            home_country="PY",
            registration_number="PY-77",
            licenses=[LicenseCreate(
                destination_country="BR", license_code="L-BR", expiry_date=date(2031, 3, 1),
                idoneidade_number="PY-IDO-15",
            )],
        )
        service = CarrierService(db, cache=cache)

        items, total = await service.list_carriers(search="chaco")
        assert total == 1 and items[0].registration_number == "PY-77"

        items, total = await service.list_carriers(home_country="br")
        assert [c.registration_number for c in items] == ["BR-0001"]

        items, total = await service.list_carriers(limit=1)
        assert total == 2 and len(items) == 1


class TestDashboard:

    @pytest.mark.asyncio
    async def test_counts_recent_and_alerts(self, db, cache, clock, create_carrier):
        carrier_id = await create_carrier(licenses=[
            LicenseCreate(destination_country="PY", license_code="L-PY", expiry_date=TODAY + timedelta(days=12)),
            LicenseCreate(destination_country="AR", license_code="L-AR", expiry_date=TODAY - timedelta(days=2)),
        ])
        issuer = DocumentIssuer(db, clock=clock)
        crt = (await issuer.issue_crt(carrier_id, "BR", "PY", 2, META))[0]
        await issuer.issue_mic_dta(MicDtaRequest(MicDtaType.NORMAL, crt_id=crt.id))
        await issuer.issue_mic_dta(MicDtaRequest(
            MicDtaType.LASTRE, carrier_id=carrier_id, origin="BR", destination="AR",
        ))

        dashboard = await DashboardService(db, cache=cache, clock=clock).build()

        assert dashboard.counts.carriers == 1
        assert dashboard.counts.crts == 2
        assert (dashboard.counts.mic_dtas_normal, dashboard.counts.mic_dtas_lastre) == (1, 1)
        assert dashboard.counts.mic_dtas == 2
        assert len(dashboard.recent_crts) == 2
        assert [a.license_code for a in dashboard.expired_licenses] == ["L-AR"]
        assert [a.license_code for a in dashboard.expiring_licenses] == ["L-PY"]

    @pytest.mark.asyncio
    async def test_cached_until_invalidated(self, db, cache, clock, carrier_id):
        service = DashboardService(db, cache=cache, clock=clock)
        first = await service.get_dashboard()
        assert first.counts.crts == 0

        await DocumentIssuer(db, clock=clock).issue_crt(carrier_id, "BR", "PY", 1, META)
        assert (await service.get_dashboard()).counts.crts == 0

        await cache.invalidate_dashboard()
        assert (await service.get_dashboard()).counts.crts == 1

    @pytest.mark.asyncio
    async def test_issuer_hook_invalidates(self, db, cache, clock, carrier_id):
        service = DashboardService(db, cache=cache, clock=clock)
        await service.get_dashboard()

        issuer = DocumentIssuer(db, clock=clock, on_issued=cache.on_documents_issued)
        await issuer.issue_crt(carrier_id, "BR", "PY", 3, META)

        assert (await service.get_dashboard()).counts.crts == 3
