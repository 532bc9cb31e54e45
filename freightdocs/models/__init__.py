from freightdocs.models.carrier import Carrier, CarrierLicense, LicenseStatus
from freightdocs.models.document import Crt, MicDta, DocumentType, MicDtaType
from freightdocs.models.document_sequence import DocumentSequence, DocumentSequenceAudit

__all__ = [
    "Carrier",
    "CarrierLicense",
    "LicenseStatus",
    "Crt",
    "MicDta",
    "DocumentType",
    "MicDtaType",
    "DocumentSequence",
    "DocumentSequenceAudit",
]
