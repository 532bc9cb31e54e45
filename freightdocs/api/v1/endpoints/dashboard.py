"""Dashboard API endpoint."""
from fastapi import APIRouter, Query

from freightdocs.api.deps import DB, Cache, ClockDep
from freightdocs.schemas.dashboard import DashboardResponse
from freightdocs.services.dashboard_service import DashboardService


router = APIRouter()


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    db: DB,
    cache: Cache,
    clock: ClockDep,
    refresh: bool = Query(False, description="Bypass the cache"),
):
    """Document counts, latest documents and license alerts."""
    return await DashboardService(db, cache=cache, clock=clock).get_dashboard(refresh=refresh)
