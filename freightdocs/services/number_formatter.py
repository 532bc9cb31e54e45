"""
Document Number Formatting

Turns a reserved sequence number into the display number printed on the
document. Formats are configurable per document family.

Supported tokens:
    {ORIGIN}        - Origin country code (e.g., BR)
    {DESTINATION}   - Destination country code (e.g., PY)
    {IDONEIDADE}    - Idoneidade number of the authorizing license
                      (falls back to the carrier registration number)
    {REGISTRATION}  - Carrier registration number
    {TYPE}          - MIC/DTA variant initial (N or L); empty for CRT
    {NUMBER}        - Sequence number
    {NUMBER:05}     - Sequence number zero-padded to 5 digits
"""

import re
from typing import Optional

from freightdocs.config import settings
from freightdocs.models.document import DocumentType
from freightdocs.services.document_sequence_service import CarrierIdentity, SequenceScope

NUMBER_PATTERN = r'\{NUMBER(?::(\d+))?\}'

VALID_TOKENS = [
    r'\{ORIGIN\}',
    r'\{DESTINATION\}',
    r'\{IDONEIDADE\}',
    r'\{REGISTRATION\}',
    r'\{TYPE\}',
    r'\{NUMBER(?::\d+)?\}',
]


class DocumentNumberFormatter:
    """Renders display numbers from format templates."""

    def __init__(self, crt_format: Optional[str] = None, mic_dta_format: Optional[str] = None):
        self.crt_format = crt_format or settings.CRT_NUMBER_FORMAT
        self.mic_dta_format = mic_dta_format or settings.MIC_DTA_NUMBER_FORMAT

        for template in (self.crt_format, self.mic_dta_format):
            is_valid, error = self.validate_format(template)
            if not is_valid:
                raise ValueError(f"Invalid number format {template!r}: {error}")

    def template_for(self, document_type: DocumentType) -> str:
        if document_type == DocumentType.CRT:
            return self.crt_format
        return self.mic_dta_format

    @staticmethod
    def render(
        format_template: str,
        sequence_number: int,
        origin: str,
        destination: str,
        idoneidade: str,
        registration: str,
        type_initial: str = "",
    ) -> str:
        """
        Substitute every token of ``format_template``.

        Returns:
            Formatted number string (e.g., "BR.4521.00042")
        """
        result = format_template
        result = result.replace("{ORIGIN}", origin)
        result = result.replace("{DESTINATION}", destination)
        result = result.replace("{IDONEIDADE}", idoneidade)
        result = result.replace("{REGISTRATION}", registration)
        result = result.replace("{TYPE}", type_initial)

        def replace_number(match):
            padding = int(match.group(1)) if match.group(1) else 0
            if padding > 0:
                return f"{sequence_number:0{padding}d}"
            return str(sequence_number)

        return re.sub(NUMBER_PATTERN, replace_number, result)

    def format(self, carrier: CarrierIdentity, scope: SequenceScope, sequence_number: int) -> str:
        """Display number for one reserved sequence number."""
        type_initial = scope.mic_dta_type.value[0] if scope.mic_dta_type else ""
        return self.render(
            self.template_for(scope.document_type),
            sequence_number,
            origin=scope.origin,
            destination=scope.destination,
            idoneidade=carrier.idoneidade or carrier.registration_number,
            registration=carrier.registration_number,
            type_initial=type_initial,
        )

    @staticmethod
    def validate_format(format_template: str) -> tuple[bool, Optional[str]]:
        """
        Validate a format template.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not format_template or not isinstance(format_template, str):
            return False, "Format template cannot be empty"

        if len(format_template) > 100:
            return False, "Format template is too long (max 100 characters)"

        if "{NUMBER" not in format_template:
            return False, "Format must contain {NUMBER} token"

        if format_template.count("{") != format_template.count("}"):
            return False, "Unbalanced braces in format template"

        for token in re.findall(r'\{[^}]+\}', format_template):
            if not any(re.fullmatch(pattern, token) for pattern in VALID_TOKENS):
                return False, f"Invalid token: {token}"

        return True, None
