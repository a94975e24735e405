import uuid

from sqlmodel import Session, and_, col, func, select

from app.agent.artifacts import ChartData
from app.models import Chart, UserProfile, get_datetime_utc


def _owner_clause(*, user_id: str | None, anonymous_id: str | None):
    if user_id:
        return Chart.user_id == user_id
    if anonymous_id:
        return and_(Chart.anonymous_id == anonymous_id, col(Chart.user_id).is_(None))
    return None


def get_user_profile(*, session: Session, user_id: str) -> UserProfile | None:
    return session.get(UserProfile, user_id)


def upsert_user_profile(*, session: Session, user_id: str, is_pro: bool) -> UserProfile:
    profile = session.get(UserProfile, user_id)
    if profile is None:
        profile = UserProfile(id=user_id, is_pro=is_pro)
    else:
        profile.is_pro = is_pro
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def is_pro_user(*, session: Session, user_id: str) -> bool:
    profile = get_user_profile(session=session, user_id=user_id)
    return bool(profile and profile.is_pro)


def count_charts(*, session: Session, user_id: str | None, anonymous_id: str | None) -> int:
    clause = _owner_clause(user_id=user_id, anonymous_id=anonymous_id)
    if clause is None:
        return 0
    statement = select(func.count()).select_from(Chart).where(clause)
    return session.exec(statement).one()


def create_chart(
    *,
    session: Session,
    chart_data: ChartData,
    share_id: str,
    user_id: str | None,
    anonymous_id: str | None,
) -> Chart:
    """Insert a chart row. Raises IntegrityError if `share_id` is taken."""
    db_chart = Chart(
        user_id=user_id or None,
        anonymous_id=None if user_id else anonymous_id,
        title=chart_data.title,
        chart_type=chart_data.chart_type,
        labels=list(chart_data.labels),
        values=list(chart_data.values),
        data=list(chart_data.values),
        unit=chart_data.unit,
        description=chart_data.description,
        sources=chart_data.sources,
        insights=chart_data.insights,
        trend=chart_data.trend,
        highlight_index=chart_data.highlight_index,
        is_public=False,
        share_id=share_id,
    )
    session.add(db_chart)
    session.commit()
    session.refresh(db_chart)
    return db_chart


def list_charts(*, session: Session, user_id: str | None, anonymous_id: str | None) -> list[Chart]:
    clause = _owner_clause(user_id=user_id, anonymous_id=anonymous_id)
    if clause is None:
        return []
    statement = select(Chart).where(clause).order_by(col(Chart.created_at).desc())
    return list(session.exec(statement).all())


def get_chart(*, session: Session, chart_id: uuid.UUID) -> Chart | None:
    return session.get(Chart, chart_id)


def get_chart_by_share_id(*, session: Session, share_id: str) -> Chart | None:
    statement = select(Chart).where(Chart.share_id == share_id)
    return session.exec(statement).first()


def delete_chart(*, session: Session, db_chart: Chart) -> None:
    session.delete(db_chart)
    session.commit()


def set_chart_public(*, session: Session, db_chart: Chart, is_public: bool) -> Chart:
    db_chart.is_public = is_public
    session.add(db_chart)
    session.commit()
    session.refresh(db_chart)
    return db_chart


def migrate_anonymous_charts(*, session: Session, user_id: str, anonymous_id: str) -> int:
    """Move every still-anonymous chart of `anonymous_id` to `user_id`. Returns the number moved."""
    statement = select(Chart).where(
        Chart.anonymous_id == anonymous_id,
        col(Chart.user_id).is_(None),
    )
    charts = session.exec(statement).all()
    now = get_datetime_utc()
    for db_chart in charts:
        db_chart.user_id = user_id
        db_chart.anonymous_id = None
        db_chart.updated_at = now
        session.add(db_chart)
    session.commit()
    return len(charts)
