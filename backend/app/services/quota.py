"""
Chart quotas per identity tier.

The check and the insert that follows it are two separate statements, so
concurrent saves from one identity can both pass the check. The limit is a
soft limit: it bounds normal use, it is not a transactional guarantee.
"""
import logging
from dataclasses import dataclass

from sqlmodel import Session

from app import crud
from app.core.config import Settings
from app.models import QuotaState

logger = logging.getLogger(__name__)

ANONYMOUS_CHART_LIMIT = 3
FREE_CHART_LIMIT = 8


@dataclass(frozen=True)
class QuotaLimits:
    anonymous: int = ANONYMOUS_CHART_LIMIT
    free: int = FREE_CHART_LIMIT

    @classmethod
    def from_settings(cls, settings: Settings) -> "QuotaLimits":
        return cls(anonymous=settings.ANONYMOUS_CHART_LIMIT, free=settings.FREE_CHART_LIMIT)


def resolve_quota(
    *,
    current: int,
    user_id: str | None,
    anonymous_id: str | None,
    is_pro: bool,
    limits: QuotaLimits,
) -> QuotaState:
    if user_id:
        limit = None if is_pro else limits.free
    elif anonymous_id:
        limit = limits.anonymous
        is_pro = False
    else:
        # Without any identity nothing may be created.
        return QuotaState(allowed=False, current=0, limit=0, is_pro=False)

    allowed = limit is None or current < limit
    return QuotaState(allowed=allowed, current=current, limit=limit, is_pro=is_pro)


def check_chart_quota(
    *,
    session: Session,
    user_id: str | None,
    anonymous_id: str | None,
    limits: QuotaLimits,
) -> QuotaState:
    is_pro = bool(user_id) and crud.is_pro_user(session=session, user_id=user_id)
    current = crud.count_charts(session=session, user_id=user_id, anonymous_id=anonymous_id)
    state = resolve_quota(
        current=current,
        user_id=user_id,
        anonymous_id=anonymous_id,
        is_pro=is_pro,
        limits=limits,
    )
    logger.debug(
        "Quota for user=%s anonymous=%s: %s/%s (allowed=%s)",
        user_id,
        anonymous_id,
        state.current,
        state.limit,
        state.allowed,
    )
    return state
