"""Supported countries."""
from typing import Dict, List

from fastapi import APIRouter

from freightdocs.core.countries import list_countries


router = APIRouter()


@router.get("", response_model=List[Dict[str, str]])
async def get_countries():
    """Countries that can appear as carrier home or route endpoint."""
    return list_countries()
