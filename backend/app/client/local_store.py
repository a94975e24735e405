import asyncio
import json
import logging
import os
import uuid
from pathlib import Path

from app.agent.artifacts import ChartData
from app.core.config import settings
from app.core.errors import ChartNotFoundError, InvalidRequestError, QuotaExceededError
from app.models import ChartPublic, ChartSaveResponse, QuotaState, get_datetime_utc
from app.services.charts import authorize_owner
from app.services.quota import QuotaLimits, resolve_quota
from app.services.sharing import build_share_url, generate_share_id

logger = logging.getLogger(__name__)


def get_or_create_anonymous_id(path: str | Path) -> str:
    """Stable anonymous identity for this installation, created on first use."""
    id_path = Path(path)
    if id_path.exists():
        stored = id_path.read_text(encoding="utf-8").strip()
        if stored:
            return stored
    anonymous_id = str(uuid.uuid4())
    id_path.parent.mkdir(parents=True, exist_ok=True)
    id_path.write_text(anonymous_id, encoding="utf-8")
    return anonymous_id


def _owned_by(chart: ChartPublic, *, user_id: str | None, anonymous_id: str | None) -> bool:
    if user_id:
        return chart.user_id == user_id
    if anonymous_id:
        return chart.anonymous_id == anonymous_id and not chart.user_id
    return False


class LocalChartStore:
    """
    Chart store kept in a local JSON file, for use when no hosted store is
    configured. Method signatures and return shapes match ChartsApiClient.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        base_url: str | None = None,
        limits: QuotaLimits | None = None,
        allow_anonymous_delete_by_id: bool = True,
    ):
        self.path = Path(path)
        self.base_url = base_url or settings.share_base_url
        self.limits = limits or QuotaLimits()
        self.allow_anonymous_delete_by_id = allow_anonymous_delete_by_id

    def _load(self) -> list[ChartPublic]:
        if not self.path.exists():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        return [ChartPublic.model_validate(item) for item in raw]

    def _store(self, charts: list[ChartPublic]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(
            json.dumps([chart.to_wire() for chart in charts], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp_path, self.path)

    def _find(self, charts: list[ChartPublic], chart_id: str) -> ChartPublic | None:
        return next((chart for chart in charts if str(chart.id) == str(chart_id)), None)

    async def check_limit(
        self,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> QuotaState:
        charts = await asyncio.to_thread(self._load)
        current = sum(1 for chart in charts if _owned_by(chart, user_id=user_id, anonymous_id=anonymous_id))
        return resolve_quota(
            current=current,
            user_id=user_id,
            anonymous_id=anonymous_id,
            is_pro=False,
            limits=self.limits,
        )

    async def save_chart(
        self,
        chart_data: ChartData,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> ChartSaveResponse:
        quota = await self.check_limit(user_id=user_id, anonymous_id=anonymous_id)
        if not quota.allowed:
            raise QuotaExceededError(current=quota.current, limit=quota.limit)

        charts = await asyncio.to_thread(self._load)
        taken = {chart.share_id for chart in charts}
        share_id = generate_share_id()
        while share_id in taken:
            share_id = generate_share_id()

        now = get_datetime_utc()
        chart = ChartPublic(
            id=uuid.uuid4(),
            user_id=user_id or None,
            anonymous_id=None if user_id else anonymous_id,
            is_public=False,
            share_id=share_id,
            created_at=now,
            updated_at=now,
            **chart_data.model_dump(),
        )
        charts.insert(0, chart)
        await asyncio.to_thread(self._store, charts)
        logger.info("Saved chart %s locally with share id %s", chart.id, share_id)
        return ChartSaveResponse(chart=chart, share_url=build_share_url(self.base_url, share_id))

    async def list_charts(
        self,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> list[ChartPublic]:
        if not user_id and not anonymous_id:
            raise InvalidRequestError("userId or anonymousId required")
        charts = await asyncio.to_thread(self._load)
        owned = [
            chart for chart in charts
            if _owned_by(chart, user_id=user_id, anonymous_id=anonymous_id)
        ]
        return sorted(owned, key=lambda chart: chart.created_at.isoformat() if chart.created_at else "", reverse=True)

    async def get_chart(self, *, chart_id: str | None = None, share_id: str | None = None) -> ChartPublic:
        if not chart_id and not share_id:
            raise InvalidRequestError("chartId or shareId required")
        charts = await asyncio.to_thread(self._load)
        if share_id:
            found = next((chart for chart in charts if chart.share_id == share_id), None)
        else:
            found = self._find(charts, chart_id)
        if found is None:
            raise ChartNotFoundError()
        return found

    async def delete_chart(
        self,
        chart_id: str,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> None:
        if not chart_id:
            raise InvalidRequestError("chartId required")
        charts = await asyncio.to_thread(self._load)
        chart = self._find(charts, chart_id)
        if chart is None:
            return
        authorize_owner(
            owner_user_id=chart.user_id,
            owner_anonymous_id=chart.anonymous_id,
            user_id=user_id,
            anonymous_id=anonymous_id,
            allow_anonymous_by_id=self.allow_anonymous_delete_by_id,
        )
        await asyncio.to_thread(self._store, [item for item in charts if item.id != chart.id])

    async def migrate_anonymous_charts(self, *, user_id: str, anonymous_id: str) -> int:
        if not user_id or not anonymous_id:
            raise InvalidRequestError("userId and anonymousId required")
        charts = await asyncio.to_thread(self._load)
        now = get_datetime_utc()
        migrated = 0
        for chart in charts:
            if chart.anonymous_id == anonymous_id and not chart.user_id:
                chart.user_id = user_id
                chart.anonymous_id = None
                chart.updated_at = now
                migrated += 1
        if migrated:
            await asyncio.to_thread(self._store, charts)
        return migrated

    async def set_chart_public(
        self,
        chart_id: str,
        is_public: bool,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> ChartPublic:
        charts = await asyncio.to_thread(self._load)
        chart = self._find(charts, chart_id)
        if chart is None:
            raise ChartNotFoundError()
        authorize_owner(
            owner_user_id=chart.user_id,
            owner_anonymous_id=chart.anonymous_id,
            user_id=user_id,
            anonymous_id=anonymous_id,
            allow_anonymous_by_id=self.allow_anonymous_delete_by_id,
        )
        chart.is_public = is_public
        chart.updated_at = get_datetime_utc()
        await asyncio.to_thread(self._store, charts)
        return chart
