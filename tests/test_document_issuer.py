"""End-to-end issuance tests for CRT and MIC/DTA batches."""
import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from freightdocs.core.exceptions import (
    CarrierNotFoundError,
    IneligibleRouteError,
    InvalidRequestError,
    MissingParentCrtError,
    PersistenceError,
    RouteMismatchError,
)
from freightdocs.models.document import Crt, DocumentType, MicDtaType
from freightdocs.schemas.carrier import LicenseCreate
from freightdocs.services.document_issuer import CrtMetadata, DocumentIssuer, MicDtaRequest
from freightdocs.services.document_sequence_service import SequenceAllocator, SequenceScope
from freightdocs.services.eligibility import EligibilityEngine

META = CrtMetadata(commercial_invoice="FAT-2026-001", exporter="Exportadora Sul", importer="Importadora Asunción")


class SpyEligibilityEngine(EligibilityEngine):
    """Counts every eligibility decision."""

    def __init__(self, clock):
        super().__init__(clock=clock, enforce_validity=False)
        self.calls = []

    def ensure_can_issue(self, carrier, origin, destination, document_type=None):
        self.calls.append((origin, destination, document_type))
        return super().ensure_can_issue(carrier, origin, destination, document_type)


@pytest.fixture
def spy(clock):
    return SpyEligibilityEngine(clock)


@pytest.fixture
def issuer(db, clock, spy):
    return DocumentIssuer(db, eligibility=spy, clock=clock)


async def crt_count(db) -> int:
    return (await db.execute(select(func.count(Crt.id)))).scalar()


class TestCrtIssuance:

    @pytest.mark.asyncio
    async def test_batch_numbered_from_initial_number(self, issuer, create_carrier):
        carrier_id = await create_carrier(initial_crt_number=1200)

        crts = await issuer.issue_crt(carrier_id, "BR", "PY", 3, META)

        assert [c.sequence_number for c in crts] == [1200, 1201, 1202]
        assert [c.number for c in crts] == ["BR.4521.01200", "BR.4521.01201", "BR.4521.01202"]
        assert all((c.origin_country, c.destination_country) == ("BR", "PY") for c in crts)
        assert all(c.license_code == "LIC-PY-01" for c in crts)
        assert all(c.commercial_invoice == "FAT-2026-001" for c in crts)

    @pytest.mark.asyncio
    async def test_route_not_touching_home_is_ineligible(self, issuer, db, carrier_id):
        with pytest.raises(IneligibleRouteError) as exc_info:
            await issuer.issue_crt(carrier_id, "PY", "AR", 1, META)

        assert exc_info.value.details["carrier_id"] == str(carrier_id)
        assert exc_info.value.details["document_type"] == "CRT"
        assert await crt_count(db) == 0

    @pytest.mark.asyncio
    async def test_reverse_direction_is_eligible(self, issuer, carrier_id):
        crts = await issuer.issue_crt(carrier_id, "PY", "BR", 1, META)
        assert crts[0].number == "PY.4521.00001"

    @pytest.mark.asyncio
    async def test_next_batch_continues_sequence(self, issuer, carrier_id):
        await issuer.issue_crt(carrier_id, "BR", "PY", 2, META)
        crts = await issuer.issue_crt(carrier_id, "PY", "BR", 2, META)
        assert [c.sequence_number for c in crts] == [3, 4]

    @pytest.mark.asyncio
    async def test_unknown_carrier(self, issuer):
        with pytest.raises(CarrierNotFoundError):
            await issuer.issue_crt(uuid.uuid4(), "BR", "PY", 1, META)

    @pytest.mark.asyncio
    async def test_count_bounds(self, issuer, carrier_id):
        with pytest.raises(InvalidRequestError):
            await issuer.issue_crt(carrier_id, "BR", "PY", 0, META)
        with pytest.raises(InvalidRequestError):
            await issuer.issue_crt(carrier_id, "BR", "PY", 10_000, META)

    @pytest.mark.asyncio
    async def test_batch_is_all_or_nothing(self, db, clock, carrier_id):
        bad_meta = CrtMetadata(commercial_invoice=None, exporter="E", importer="I")
        issuer = DocumentIssuer(db, clock=clock)

        with pytest.raises(PersistenceError):
            await issuer.issue_crt(carrier_id, "BR", "PY", 3, bad_meta)

        assert await crt_count(db) == 0
        assert await SequenceAllocator(db).get_current_number(carrier_id, SequenceScope.for_crt("BR", "PY")) == 0

        crts = await issuer.issue_crt(carrier_id, "BR", "PY", 1, META)
        assert crts[0].sequence_number == 1

    @pytest.mark.asyncio
    async def test_foreign_carrier_numbers_with_idoneidade(self, issuer, create_carrier):
        carrier_id = await create_carrier(
            name="Transportes Chaco SA",
            home_country="PY",
            registration_number="PY-77",
            licenses=[LicenseCreate(
                destination_country="BR",
                license_code="LIC-BR-9",
                expiry_date=date(2031, 3, 1),
                idoneidade_number="PY-IDO-15",
            )],
        )
        crts = await issuer.issue_crt(carrier_id, "PY", "BR", 1, META)
        assert crts[0].number == "PY.PY-IDO-15.00001"


class TestMicDtaIssuance:

    @pytest.mark.asyncio
    async def test_normal_inherits_crt_without_eligibility_check(self, issuer, spy, carrier_id):
        crt = (await issuer.issue_crt(carrier_id, "BR", "PY", 1, META))[0]
        spy.calls.clear()

        mic_dtas = await issuer.issue_mic_dta(MicDtaRequest(MicDtaType.NORMAL, count=2, crt_id=crt.id))

        assert spy.calls == []
        assert [m.sequence_number for m in mic_dtas] == [1, 2]
        for mic_dta in mic_dtas:
            assert mic_dta.crt_id == crt.id
            assert mic_dta.carrier_id == carrier_id
            assert (mic_dta.origin_country, mic_dta.destination_country) == ("BR", "PY")
            assert mic_dta.mic_dta_type == "NORMAL"
        assert mic_dtas[0].number == "BR-PY.4521.N00001"

    @pytest.mark.asyncio
    async def test_lastre_numbers_independently_of_normal(self, issuer, spy, create_carrier):
        carrier_id = await create_carrier(initial_mic_dta_number=300)
        crt = (await issuer.issue_crt(carrier_id, "BR", "PY", 1, META))[0]
        await issuer.issue_mic_dta(MicDtaRequest(MicDtaType.NORMAL, count=5, crt_id=crt.id))
        spy.calls.clear()

        lastre = await issuer.issue_mic_dta(MicDtaRequest(
            MicDtaType.LASTRE, carrier_id=carrier_id, origin="BR", destination="PY",
        ))

        assert spy.calls == [("BR", "PY", "MIC_DTA")]
        assert lastre[0].sequence_number == 300
        assert lastre[0].crt_id is None
        assert lastre[0].number == "BR-PY.4521.L00300"

    @pytest.mark.asyncio
    async def test_lastre_ineligible_route(self, issuer, carrier_id):
        with pytest.raises(IneligibleRouteError):
            await issuer.issue_mic_dta(MicDtaRequest(
                MicDtaType.LASTRE, carrier_id=carrier_id, origin="BR", destination="UY",
            ))

    @pytest.mark.asyncio
    async def test_lastre_requires_route(self, issuer, carrier_id):
        with pytest.raises(InvalidRequestError) as exc_info:
            await issuer.issue_mic_dta(MicDtaRequest(MicDtaType.LASTRE, carrier_id=carrier_id, origin="BR"))
        assert exc_info.value.details["missing"] == ["destination"]

    @pytest.mark.asyncio
    async def test_normal_without_crt(self, issuer):
        with pytest.raises(MissingParentCrtError) as exc_info:
            await issuer.issue_mic_dta(MicDtaRequest(MicDtaType.NORMAL))
        assert exc_info.value.details["crt_id"] is None

    @pytest.mark.asyncio
    async def test_normal_with_unknown_crt(self, issuer):
        missing = uuid.uuid4()
        with pytest.raises(MissingParentCrtError) as exc_info:
            await issuer.issue_mic_dta(MicDtaRequest(MicDtaType.NORMAL, crt_id=missing))
        assert exc_info.value.details["crt_id"] == str(missing)

    @pytest.mark.asyncio
    async def test_normal_route_must_match_crt(self, issuer, carrier_id):
        crt = (await issuer.issue_crt(carrier_id, "BR", "PY", 1, META))[0]
        with pytest.raises(RouteMismatchError) as exc_info:
            await issuer.issue_mic_dta(MicDtaRequest(
                MicDtaType.NORMAL, crt_id=crt.id, origin="BR", destination="AR",
            ))
        assert exc_info.value.details["requested"] == {"destination": "AR"}

    @pytest.mark.asyncio
    async def test_normal_matching_fields_accepted(self, issuer, carrier_id):
        crt = (await issuer.issue_crt(carrier_id, "BR", "PY", 1, META))[0]
        mic_dtas = await issuer.issue_mic_dta(MicDtaRequest(
            MicDtaType.NORMAL, crt_id=crt.id, carrier_id=carrier_id, origin="br", destination="py",
        ))
        assert len(mic_dtas) == 1


class TestNotificationHook:

    @pytest.mark.asyncio
    async def test_hook_receives_committed_batch(self, db, clock, carrier_id):
        received = []

        async def on_issued(document_type, documents):
            received.append((document_type, [d.sequence_number for d in documents]))

        issuer = DocumentIssuer(db, clock=clock, on_issued=on_issued)
        await issuer.issue_crt(carrier_id, "BR", "PY", 2, META)

        assert received == [(DocumentType.CRT, [1, 2])]

    @pytest.mark.asyncio
    async def test_hook_failure_does_not_undo_issuance(self, db, clock, carrier_id):
        def on_issued(document_type, documents):
            raise RuntimeError("downstream unavailable")

        issuer = DocumentIssuer(db, clock=clock, on_issued=on_issued)
        crts = await issuer.issue_crt(carrier_id, "BR", "PY", 1, META)

        assert len(crts) == 1
        assert await crt_count(db) == 1

    @pytest.mark.asyncio
    async def test_hook_not_called_on_rejection(self, db, clock, carrier_id):
        received = []
        issuer = DocumentIssuer(db, clock=clock, on_issued=lambda t, docs: received.append(docs))

        with pytest.raises(IneligibleRouteError):
            await issuer.issue_crt(carrier_id, "PY", "AR", 1, META)
        assert received == []


class TestReads:

    @pytest.mark.asyncio
    async def test_list_pass_throughs(self, issuer, carrier_id):
        crt = (await issuer.issue_crt(carrier_id, "BR", "PY", 2, META))[0]
        await issuer.issue_mic_dta(MicDtaRequest(MicDtaType.NORMAL, count=2, crt_id=crt.id))
        await issuer.issue_mic_dta(MicDtaRequest(
            MicDtaType.LASTRE, carrier_id=carrier_id, origin="PY", destination="BR",
        ))

        crts, total = await issuer.list_crts(page=1, size=10)
        assert total == 2 and len(crts) == 2
        assert [c.sequence_number for c in await issuer.list_crts_by_carrier(carrier_id)] == [1, 2]
        assert (await issuer.get_crt(crt.id)).number == crt.number

        mic_dtas, total = await issuer.list_mic_dtas()
        assert total == 3
        assert len(await issuer.list_mic_dtas_by_type(MicDtaType.LASTRE)) == 1
        assert len(await issuer.list_mic_dtas_by_carrier(carrier_id)) == 3
        assert [m.sequence_number for m in await issuer.list_mic_dtas_by_crt(crt.id)] == [1, 2]
