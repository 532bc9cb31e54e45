"""Tests for license status bands, route lookup and license-set validation."""
from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from freightdocs.core.exceptions import DuplicateExpiryError, LicenseValidationError
from freightdocs.models.carrier import Carrier, CarrierLicense, LicenseStatus
from freightdocs.services.license_registry import LicenseRegistry, license_status

from tests.conftest import TODAY


def make_carrier(home="BR", licenses=()):
    carrier = Carrier(
        name="Test Carrier",
        home_country=home,
        registration_number="REG-1",
        initial_crt_number=1,
        initial_mic_dta_number=1,
    )
    carrier.licenses = [
        CarrierLicense(
            destination_country=dest,
            license_code=code,
            expiry_date=expiry,
            idoneidade_number=None,
            position=i,
        )
        for i, (dest, code, expiry) in enumerate(licenses)
    ]
    return carrier


def entry(destination, expiry, idoneidade=None, code="LIC"):
    return SimpleNamespace(
        destination_country=destination,
        license_code=code,
        expiry_date=expiry,
        idoneidade_number=idoneidade,
    )


class TestLicenseStatus:
    """Status bands relative to the reference date."""

    def test_ten_days_left_is_expiring_soon(self):
        assert license_status(TODAY + timedelta(days=10), TODAY) == LicenseStatus.EXPIRING_SOON

    def test_yesterday_is_expired(self):
        assert license_status(TODAY - timedelta(days=1), TODAY) == LicenseStatus.EXPIRED

    def test_two_years_is_valid(self):
        assert license_status(TODAY + timedelta(days=730), TODAY) == LicenseStatus.VALID

    def test_band_edges(self):
        assert license_status(TODAY, TODAY) == LicenseStatus.EXPIRING_SOON
        assert license_status(TODAY + timedelta(days=30), TODAY) == LicenseStatus.EXPIRING_SOON
        assert license_status(TODAY + timedelta(days=31), TODAY) == LicenseStatus.VALID

    def test_custom_window(self):
        assert license_status(TODAY + timedelta(days=10), TODAY, expiring_soon_days=5) == LicenseStatus.VALID


class TestRouteLookup:
    """Which license, if any, covers a route."""

    def test_allowed_countries_include_home(self):
        carrier = make_carrier(licenses=[("PY", "L1", date(2030, 1, 1)), ("AR", "L2", date(2030, 2, 1))])
        assert LicenseRegistry.allowed_countries(carrier) == {"BR", "PY", "AR"}

    def test_license_matches_both_directions(self):
        carrier = make_carrier(licenses=[("PY", "L1", date(2030, 1, 1))])
        outbound = LicenseRegistry.license_for_route(carrier, "BR", "PY")
        inbound = LicenseRegistry.license_for_route(carrier, "py", "br")
        assert outbound is not None
        assert outbound is inbound

    def test_no_transitive_route(self):
        carrier = make_carrier(licenses=[("PY", "L1", date(2030, 1, 1)), ("AR", "L2", date(2030, 2, 1))])
        assert LicenseRegistry.license_for_route(carrier, "PY", "AR") is None

    def test_latest_expiry_wins_for_renewals(self):
        carrier = make_carrier(licenses=[
            ("PY", "OLD", date(2027, 1, 1)),
            ("PY", "NEW", date(2031, 1, 1)),
        ])
        assert LicenseRegistry.license_for_route(carrier, "BR", "PY").license_code == "NEW"

    def test_as_of_ignores_expired(self):
        carrier = make_carrier(licenses=[("PY", "L1", TODAY - timedelta(days=1))])
        assert LicenseRegistry.license_for_route(carrier, "BR", "PY") is not None
        assert LicenseRegistry.license_for_route(carrier, "BR", "PY", as_of=TODAY) is None


class TestValidateLicenseSet:
    """Registration rules applied to a whole license list."""

    def test_duplicate_expiry_rejected(self):
        with pytest.raises(DuplicateExpiryError) as exc_info:
            LicenseRegistry.validate_license_set("BR", [
                entry("PY", date(2030, 1, 1)),
                entry("AR", date(2030, 1, 1)),
            ])
        assert exc_info.value.details["expiry_date"] == "2030-01-01"
        assert exc_info.value.details["destinations"] == ["PY", "AR"]

    def test_distinct_expiries_accepted(self):
        LicenseRegistry.validate_license_set("BR", [
            entry("PY", date(2030, 1, 1)),
            entry("AR", date(2030, 1, 2)),
        ])

    def test_home_country_destination_rejected(self):
        with pytest.raises(LicenseValidationError):
            LicenseRegistry.validate_license_set("BR", [entry("BR", date(2030, 1, 1))])

    def test_foreign_carrier_needs_idoneidade(self):
        with pytest.raises(LicenseValidationError) as exc_info:
            LicenseRegistry.validate_license_set("PY", [entry("BR", date(2030, 1, 1))])
        assert exc_info.value.details["home_country"] == "PY"

    def test_foreign_carrier_with_idoneidade_accepted(self):
        LicenseRegistry.validate_license_set("PY", [entry("BR", date(2030, 1, 1), idoneidade="PY-778")])

    def test_domestic_carrier_may_omit_idoneidade(self):
        LicenseRegistry.validate_license_set("BR", [entry("PY", date(2030, 1, 1))])


class TestRegistryQueries:
    """Store-backed lookups."""

    @pytest.mark.asyncio
    async def test_licenses_keep_registration_order(self, db, create_carrier, clock):
        from freightdocs.schemas.carrier import LicenseCreate

        carrier_id = await create_carrier(licenses=[
            LicenseCreate(destination_country="UY", license_code="L-UY", expiry_date=date(2029, 5, 1)),
            LicenseCreate(destination_country="AR", license_code="L-AR", expiry_date=date(2028, 5, 1)),
            LicenseCreate(destination_country="PY", license_code="L-PY", expiry_date=date(2030, 5, 1)),
        ])
        licenses = await LicenseRegistry(db, clock).licenses_for(carrier_id)
        assert [lic.destination_country for lic in licenses] == ["UY", "AR", "PY"]

    @pytest.mark.asyncio
    async def test_expiry_report(self, db, create_carrier, clock):
        from freightdocs.schemas.carrier import LicenseCreate

        await create_carrier(licenses=[
            LicenseCreate(destination_country="PY", license_code="L-PY", expiry_date=TODAY - timedelta(days=3)),
            LicenseCreate(destination_country="AR", license_code="L-AR", expiry_date=TODAY + timedelta(days=10)),
            LicenseCreate(destination_country="UY", license_code="L-UY", expiry_date=TODAY + timedelta(days=400)),
        ])
        report = await LicenseRegistry(db, clock).expiry_report()
        assert [e["license_code"] for e in report["expired"]] == ["L-PY"]
        assert [e["license_code"] for e in report["expiring_soon"]] == ["L-AR"]
        assert report["expiring_soon"][0]["days_to_expiry"] == 10

    def test_describe_flags_advisory_window(self, clock):
        carrier = make_carrier(licenses=[("PY", "L1", TODAY + timedelta(days=100))])
        described = LicenseRegistry(None, clock).describe(carrier.licenses[0])
        assert described["status"] == LicenseStatus.VALID
        assert described["days_to_expiry"] == 100
        assert described["within_advisory_window"] is True
