from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from freightdocs.core.clock import Clock, system_clock
from freightdocs.database import get_db
from freightdocs.services.cache_service import CacheService, get_cache


def get_clock() -> Clock:
    """Reference date provider; overridden in tests."""
    return system_clock


DB = Annotated[AsyncSession, Depends(get_db)]
Cache = Annotated[CacheService, Depends(get_cache)]
ClockDep = Annotated[Clock, Depends(get_clock)]
