from fastapi import APIRouter

from freightdocs.api.v1.endpoints import (
    carriers,
    countries,
    crts,
    dashboard,
    mic_dtas,
    sequences,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Reference Data ====================
api_router.include_router(
    countries.router,
    prefix="/countries",
    tags=["Countries"]
)

# ==================== Carriers & Licenses ====================
api_router.include_router(
    carriers.router,
    prefix="/carriers",
    tags=["Carriers"]
)

# ==================== Documents ====================
api_router.include_router(
    crts.router,
    prefix="/crt",
    tags=["CRT"]
)
api_router.include_router(
    mic_dtas.router,
    prefix="/mic-dta",
    tags=["MIC/DTA"]
)
api_router.include_router(
    sequences.router,
    prefix="/sequences",
    tags=["Sequences"]
)

# ==================== Dashboard ====================
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)
