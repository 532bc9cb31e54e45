"""Dashboard aggregate: document counts, recent activity, license alerts."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from freightdocs.core.clock import Clock, system_clock
from freightdocs.models.carrier import Carrier
from freightdocs.models.document import Crt, MicDta, DocumentType, MicDtaType
from freightdocs.schemas.dashboard import DashboardResponse, DocumentCounts, RecentDocument
from freightdocs.services.cache_service import CacheService, get_cache
from freightdocs.services.license_registry import LicenseRegistry

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5
ALERT_LIMIT = 20


class DashboardService:
    """Builds the dashboard view and keeps it in the cache."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheService] = None, clock: Clock = system_clock):
        self.db = db
        self.cache = cache or get_cache()
        self.clock = clock

    async def _count(self, stmt) -> int:
        return (await self.db.execute(stmt)).scalar() or 0

    async def counts(self) -> DocumentCounts:
        mic_by_type = dict(
            (await self.db.execute(
                select(MicDta.mic_dta_type, func.count(MicDta.id)).group_by(MicDta.mic_dta_type)
            )).all()
        )
        normal = mic_by_type.get(MicDtaType.NORMAL.value, 0)
        lastre = mic_by_type.get(MicDtaType.LASTRE.value, 0)
        return DocumentCounts(
            carriers=await self._count(select(func.count(Carrier.id))),
            crts=await self._count(select(func.count(Crt.id))),
            mic_dtas=normal + lastre,
            mic_dtas_normal=normal,
            mic_dtas_lastre=lastre,
        )

    async def build(self) -> DashboardResponse:
        crts = (await self.db.execute(
            select(Crt).order_by(Crt.created_at.desc()).limit(RECENT_LIMIT)
        )).scalars().all()
        mic_dtas = (await self.db.execute(
            select(MicDta).order_by(MicDta.created_at.desc()).limit(RECENT_LIMIT)
        )).scalars().all()
        report = await LicenseRegistry(self.db, self.clock).expiry_report(limit=ALERT_LIMIT)

        return DashboardResponse(
            counts=await self.counts(),
            recent_crts=[
                RecentDocument(document_type=DocumentType.CRT.value, **self._recent_fields(doc))
                for doc in crts
            ],
            recent_mic_dtas=[
                RecentDocument(document_type=DocumentType.MIC_DTA.value, **self._recent_fields(doc))
                for doc in mic_dtas
            ],
            expired_licenses=report["expired"],
            expiring_licenses=report["expiring_soon"],
            generated_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _recent_fields(doc) -> dict:
        return {
            "id": doc.id,
            "number": doc.number,
            "carrier_id": doc.carrier_id,
            "origin_country": doc.origin_country,
            "destination_country": doc.destination_country,
            "created_at": doc.created_at,
        }

    async def get_dashboard(self, refresh: bool = False) -> DashboardResponse:
        """Cached dashboard; ``refresh`` bypasses and repopulates the cache."""
        if not refresh:
            cached = await self.cache.get_dashboard()
            if cached:
                return DashboardResponse.model_validate(cached)

        dashboard = await self.build()
        await self.cache.set_dashboard(dashboard.model_dump(mode="json"))
        logger.debug("Dashboard rebuilt with %d CRT(s)", dashboard.counts.crts)
        return dashboard
