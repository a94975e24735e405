import asyncio
import uuid
from unittest.mock import patch

import pytest

from app.client.local_store import LocalChartStore, get_or_create_anonymous_id
from app.core.errors import ChartNotFoundError, InvalidRequestError, NotAuthorizedError, QuotaExceededError
from app.services.quota import QuotaLimits

BASE_URL = "https://charts.example.com"


@pytest.fixture
def store(tmp_path) -> LocalChartStore:
    return LocalChartStore(tmp_path / "charts.json", base_url=BASE_URL, limits=QuotaLimits(anonymous=2, free=3))


def test_anonymous_id_is_stable(tmp_path):
    path = tmp_path / "state" / "anonymous_id"

    first = get_or_create_anonymous_id(path)
    second = get_or_create_anonymous_id(path)

    assert first == second
    uuid.UUID(first)


@pytest.mark.asyncio
async def test_save_persists_across_instances(store, tmp_path, population_chart):
    saved = await store.save_chart(population_chart, anonymous_id="anon-1")

    assert saved.share_url == f"{BASE_URL}/chart/{saved.chart.share_id}"

    reopened = LocalChartStore(tmp_path / "charts.json", base_url=BASE_URL)
    fetched = await reopened.get_chart(share_id=saved.chart.share_id)
    assert fetched.id == saved.chart.id
    assert fetched.values == population_chart.values


@pytest.mark.asyncio
async def test_quota_is_enforced(store, population_chart):
    await store.save_chart(population_chart, anonymous_id="anon-1")
    await store.save_chart(population_chart, anonymous_id="anon-1")

    with pytest.raises(QuotaExceededError) as exc_info:
        await store.save_chart(population_chart, anonymous_id="anon-1")

    assert exc_info.value.current == 2
    assert exc_info.value.limit == 2


@pytest.mark.asyncio
async def test_list_requires_identity_and_is_newest_first(store, population_chart):
    with pytest.raises(InvalidRequestError):
        await store.list_charts()

    first = await store.save_chart(population_chart, user_id="user-1")
    second = await store.save_chart(population_chart, user_id="user-1")

    charts = await store.list_charts(user_id="user-1")
    assert {chart.id for chart in charts} == {first.chart.id, second.chart.id}
    assert charts[0].created_at >= charts[1].created_at


@pytest.mark.asyncio
async def test_delete_checks_ownership(store, population_chart):
    saved = await store.save_chart(population_chart, user_id="user-1")

    with pytest.raises(NotAuthorizedError):
        await store.delete_chart(str(saved.chart.id), user_id="user-2")

    await store.delete_chart(str(saved.chart.id), user_id="user-1")
    with pytest.raises(ChartNotFoundError):
        await store.get_chart(chart_id=str(saved.chart.id))

    await store.delete_chart(str(saved.chart.id), user_id="user-1")


@pytest.mark.asyncio
async def test_migration_moves_anonymous_charts(store, population_chart):
    await store.save_chart(population_chart, anonymous_id="anon-1")
    await store.save_chart(population_chart, anonymous_id="anon-2")

    assert await store.migrate_anonymous_charts(user_id="user-1", anonymous_id="anon-1") == 1
    assert await store.migrate_anonymous_charts(user_id="user-1", anonymous_id="anon-1") == 0

    quota = await store.check_limit(anonymous_id="anon-1")
    assert quota.current == 0
    assert len(await store.list_charts(user_id="user-1")) == 1


@pytest.mark.asyncio
async def test_set_public(store, population_chart):
    saved = await store.save_chart(population_chart, anonymous_id="anon-1")

    chart = await store.set_chart_public(str(saved.chart.id), True, anonymous_id="anon-1")

    assert chart.is_public is True
    assert (await store.get_chart(share_id=saved.chart.share_id)).is_public is True


@pytest.mark.asyncio
async def test_file_access_runs_off_the_event_loop(store, population_chart):
    with patch("app.client.local_store.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
        saved = await store.save_chart(population_chart, anonymous_id="anon-1")
        await store.get_chart(share_id=saved.chart.share_id)

    called = [call.args[0].__name__ for call in to_thread.call_args_list]
    assert "_store" in called
    assert called.count("_load") >= 3
