import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app import crud
from app.agent.artifacts import ChartData
from app.core.config import Settings
from app.core.errors import (
    ChartNotFoundError,
    InvalidRequestError,
    NotAuthorizedError,
    QuotaExceededError,
    UpstreamError,
)
from app.models import Chart, ChartPublic, ChartSaveResponse, QuotaState
from app.services.quota import QuotaLimits, check_chart_quota
from app.services.sharing import build_share_url, generate_share_id

logger = logging.getLogger(__name__)


def _parse_chart_id(chart_id: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(chart_id, uuid.UUID):
        return chart_id
    try:
        return uuid.UUID(str(chart_id))
    except ValueError:
        return None


def _is_share_id_collision(error: IntegrityError) -> bool:
    return "share_id" in str(error.orig)


def authorize_owner(
    *,
    owner_user_id: str | None,
    owner_anonymous_id: str | None,
    user_id: str | None,
    anonymous_id: str | None,
    allow_anonymous_by_id: bool,
) -> None:
    """
    Raise NotAuthorizedError unless the caller may modify the chart.

    Authenticated rows require the owning user id. Anonymous rows reject a
    mismatching anonymous id, and with `allow_anonymous_by_id` off they also
    require the matching one.
    """
    if owner_user_id:
        if owner_user_id != user_id:
            raise NotAuthorizedError()
        return

    if anonymous_id and owner_anonymous_id and anonymous_id != owner_anonymous_id:
        raise NotAuthorizedError()
    if not allow_anonymous_by_id and (not anonymous_id or anonymous_id != owner_anonymous_id):
        raise NotAuthorizedError()


class ChartService:
    """Chart persistence operations for one request-scoped session."""

    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.limits = QuotaLimits.from_settings(settings)

    def check_limit(self, *, user_id: str | None = None, anonymous_id: str | None = None) -> QuotaState:
        return check_chart_quota(
            session=self.session,
            user_id=user_id,
            anonymous_id=anonymous_id,
            limits=self.limits,
        )

    def save(
        self,
        chart_data: ChartData,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> ChartSaveResponse:
        quota = self.check_limit(user_id=user_id, anonymous_id=anonymous_id)
        if not quota.allowed:
            logger.info(
                "Chart limit reached for user=%s anonymous=%s (%s/%s)",
                user_id,
                anonymous_id,
                quota.current,
                quota.limit,
            )
            raise QuotaExceededError(current=quota.current, limit=quota.limit)

        max_attempts = max(1, self.settings.SHARE_ID_MAX_ATTEMPTS)
        for attempt_idx in range(1, max_attempts + 1):
            share_id = generate_share_id()
            try:
                db_chart = crud.create_chart(
                    session=self.session,
                    chart_data=chart_data,
                    share_id=share_id,
                    user_id=user_id,
                    anonymous_id=anonymous_id,
                )
            except IntegrityError as e:
                self.session.rollback()
                if not _is_share_id_collision(e):
                    raise
                logger.warning(
                    "Share id collision on %s (attempt %s/%s). Retrying...",
                    share_id,
                    attempt_idx,
                    max_attempts,
                )
                continue

            logger.info("Saved chart %s with share id %s", db_chart.id, db_chart.share_id)
            return ChartSaveResponse(
                chart=ChartPublic.from_record(db_chart),
                share_url=build_share_url(self.settings.share_base_url, db_chart.share_id),
            )

        raise UpstreamError(
            "Could not allocate a unique share id",
            code="SHARE_ID_EXHAUSTED",
        )

    def list_charts(self, *, user_id: str | None = None, anonymous_id: str | None = None) -> list[ChartPublic]:
        if not user_id and not anonymous_id:
            raise InvalidRequestError("userId or anonymousId required")
        charts = crud.list_charts(session=self.session, user_id=user_id, anonymous_id=anonymous_id)
        return [ChartPublic.from_record(chart) for chart in charts]

    def get(self, *, chart_id: str | None = None, share_id: str | None = None) -> ChartPublic:
        if not chart_id and not share_id:
            raise InvalidRequestError("chartId or shareId required")

        db_chart: Chart | None
        if share_id:
            db_chart = crud.get_chart_by_share_id(session=self.session, share_id=share_id)
        else:
            parsed_id = _parse_chart_id(chart_id)
            db_chart = crud.get_chart(session=self.session, chart_id=parsed_id) if parsed_id else None

        if db_chart is None:
            raise ChartNotFoundError()
        return ChartPublic.from_record(db_chart)

    def _authorize_owner(
        self,
        db_chart: Chart,
        *,
        user_id: str | None,
        anonymous_id: str | None,
    ) -> None:
        authorize_owner(
            owner_user_id=db_chart.user_id,
            owner_anonymous_id=db_chart.anonymous_id,
            user_id=user_id,
            anonymous_id=anonymous_id,
            allow_anonymous_by_id=self.settings.ALLOW_ANONYMOUS_DELETE_BY_ID,
        )

    def delete(
        self,
        chart_id: str | None,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> None:
        if not chart_id:
            raise InvalidRequestError("chartId required")
        parsed_id = _parse_chart_id(chart_id)
        if parsed_id is None:
            raise InvalidRequestError("Invalid chartId")

        db_chart = crud.get_chart(session=self.session, chart_id=parsed_id)
        if db_chart is None:
            logger.info("Delete requested for unknown chart %s; nothing to do", chart_id)
            return

        self._authorize_owner(db_chart, user_id=user_id, anonymous_id=anonymous_id)
        crud.delete_chart(session=self.session, db_chart=db_chart)
        logger.info("Deleted chart %s", chart_id)

    def set_public(
        self,
        chart_id: str | None,
        is_public: bool,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> ChartPublic:
        if not chart_id:
            raise InvalidRequestError("chartId required")
        parsed_id = _parse_chart_id(chart_id)
        db_chart = crud.get_chart(session=self.session, chart_id=parsed_id) if parsed_id else None
        if db_chart is None:
            raise ChartNotFoundError()

        self._authorize_owner(db_chart, user_id=user_id, anonymous_id=anonymous_id)
        db_chart = crud.set_chart_public(session=self.session, db_chart=db_chart, is_public=is_public)
        return ChartPublic.from_record(db_chart)

    def migrate(self, *, user_id: str | None, anonymous_id: str | None) -> int:
        if not user_id or not anonymous_id:
            raise InvalidRequestError("userId and anonymousId required")
        migrated = crud.migrate_anonymous_charts(
            session=self.session,
            user_id=user_id,
            anonymous_id=anonymous_id,
        )
        logger.info("Migrated %s anonymous chart(s) from %s to %s", migrated, anonymous_id, user_id)
        return migrated
