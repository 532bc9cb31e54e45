# Services module
from freightdocs.services.license_registry import LicenseRegistry
from freightdocs.services.eligibility import EligibilityEngine
from freightdocs.services.document_sequence_service import SequenceAllocator, SequenceScope, CarrierIdentity
from freightdocs.services.number_formatter import DocumentNumberFormatter
from freightdocs.services.document_issuer import DocumentIssuer, CrtMetadata, MicDtaRequest
from freightdocs.services.carrier_service import CarrierService
from freightdocs.services.dashboard_service import DashboardService
from freightdocs.services.cache_service import CacheService, get_cache

__all__ = [
    "LicenseRegistry",
    "EligibilityEngine",
    "SequenceAllocator",
    "SequenceScope",
    "CarrierIdentity",
    "DocumentNumberFormatter",
    "DocumentIssuer",
    "CrtMetadata",
    "MicDtaRequest",
    "CarrierService",
    "DashboardService",
    "CacheService",
    "get_cache",
]
