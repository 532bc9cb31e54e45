"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from freightdocs.core.countries import COUNTRIES, normalize_country


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class CrtResponse(BaseResponseSchema):
            id: UUID
            number: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Accepts string UUIDs from the frontend and converts them to UUID objects.
    """
    model_config = ConfigDict(
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
        str_strip_whitespace=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


def validate_country_code(value: Optional[str]) -> Optional[str]:
    """Field validator body shared by every schema carrying a country code."""
    if value is None:
        return None
    code = normalize_country(value)
    if code not in COUNTRIES:
        raise ValueError(f"Unsupported country code '{value}'. Use one of: {', '.join(COUNTRIES)}")
    return code
