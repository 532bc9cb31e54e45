from freightdocs.schemas.carrier import (
    LicenseCreate,
    LicenseResponse,
    CarrierCreate,
    CarrierUpdate,
    CarrierResponse,
    CarrierBrief,
    CarrierListResponse,
    AllowedCountriesResponse,
    EligibilityResponse,
)
from freightdocs.schemas.crt import CrtCreate, CrtResponse, CrtListResponse, CrtBatchResponse
from freightdocs.schemas.mic_dta import MicDtaCreate, MicDtaResponse, MicDtaListResponse, MicDtaBatchResponse
from freightdocs.schemas.dashboard import DashboardResponse
from freightdocs.schemas.sequence import SequencePreviewResponse, SequenceSyncResponse

__all__ = [
    "LicenseCreate",
    "LicenseResponse",
    "CarrierCreate",
    "CarrierUpdate",
    "CarrierResponse",
    "CarrierBrief",
    "CarrierListResponse",
    "AllowedCountriesResponse",
    "EligibilityResponse",
    "CrtCreate",
    "CrtResponse",
    "CrtListResponse",
    "CrtBatchResponse",
    "MicDtaCreate",
    "MicDtaResponse",
    "MicDtaListResponse",
    "MicDtaBatchResponse",
    "DashboardResponse",
    "SequencePreviewResponse",
    "SequenceSyncResponse",
]
