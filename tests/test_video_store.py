import asyncio
import json
import math

import httpx
import pytest

from schemas import DeviceClass
from tests.conftest import make_video
from viewer.errors import DeletionNotAllowedError, SyncNotFoundError, SyncServerError
from viewer.sync_client import SyncClient
from viewer.video_store import VideoStore


class ScriptedApi:
    """MockTransport handler that holds every request until the test answers it."""

    def __init__(self) -> None:
        self.requests = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        entry = {
            "method": request.method,
            "path": request.url.path,
            "json": json.loads(request.content) if request.content else None,
            "gate": asyncio.Event(),
            "response": None,
        }
        self.requests.append(entry)
        await entry["gate"].wait()
        response = entry["response"]
        if isinstance(response, Exception):
            raise response
        return response

    async def wait_for(self, count: int) -> None:
        for _ in range(100):
            if len(self.requests) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} requests, saw {len(self.requests)}")

    def answer(self, index: int, response) -> None:
        self.requests[index]["response"] = response
        self.requests[index]["gate"].set()


@pytest.fixture
def api():
    return ScriptedApi()


@pytest.fixture
def store(api):
    http = httpx.AsyncClient(transport=httpx.MockTransport(api), base_url="http://viewer.test")
    return VideoStore(SyncClient(http, api_base=""))


def _ok(video) -> httpx.Response:
    return httpx.Response(200, json=video.to_wire())


@pytest.mark.asyncio
async def test_increment_view_is_visible_before_any_request(store, api):
    store.add(make_video(views=10, mobile=2))

    task = store.increment_view("v1", DeviceClass.MOBILE)

    local = store.get_by_id("v1")
    assert local.analytics.views == 11
    assert local.analytics.devices.mobile == 3
    assert api.requests == []

    await api.wait_for(1)
    assert api.requests[0]["path"] == "/api/videos/v1/view"
    assert api.requests[0]["json"] == {"device": "mobile"}
    api.answer(0, _ok(make_video(views=11, mobile=3)))
    await task


@pytest.mark.asyncio
async def test_first_response_overwrites_record_despite_second_local_increment(store, api):
    store.add(make_video(views=10, desktop=6))

    first = store.increment_view("v1", DeviceClass.DESKTOP)
    second = store.increment_view("v1", DeviceClass.DESKTOP)
    assert store.get_by_id("v1").analytics.views == 12
    assert store.get_by_id("v1").analytics.devices.desktop == 8

    await api.wait_for(2)
    server_first = make_video(views=11, desktop=7).model_copy(update={"title": "Renamed on server"})
    api.answer(0, _ok(server_first))
    await first

    # Full overwrite: the second optimistic increment is gone and server-only
    # fields came along.
    assert store.get_by_id("v1") == server_first
    assert store.get_by_id("v1").analytics.views == 11

    server_second = make_video(views=12, desktop=8)
    api.answer(1, _ok(server_second))
    await second
    assert store.get_by_id("v1") == server_second


@pytest.mark.asyncio
async def test_last_response_wins_regardless_of_request_order(store, api):
    store.add(make_video(views=10, desktop=6))
    first = store.increment_view("v1", DeviceClass.DESKTOP)
    second = store.increment_view("v1", DeviceClass.DESKTOP)
    await api.wait_for(2)

    api.answer(1, _ok(make_video(views=12, desktop=8)))
    await second
    api.answer(0, _ok(make_video(views=11, desktop=7)))
    await first

    assert store.get_by_id("v1").analytics.views == 11


@pytest.mark.asyncio
async def test_failed_view_keeps_optimistic_state(store, api):
    store.add(make_video(views=10, tablet=2))
    task = store.increment_view("v1", DeviceClass.TABLET)
    await api.wait_for(1)
    api.answer(0, httpx.Response(500, json={"message": "Failed to increment view"}))

    assert await task is None
    assert store.get_by_id("v1").analytics.views == 11
    assert store.get_by_id("v1").analytics.devices.tablet == 3


@pytest.mark.asyncio
async def test_network_failure_on_like_keeps_optimistic_state(store, api):
    store.add(make_video(likes=4))
    task = store.increment_like("v1")
    assert store.get_by_id("v1").likes == 5

    await api.wait_for(1)
    assert api.requests[0]["path"] == "/api/videos/v1/like"
    api.answer(0, httpx.ConnectError("offline"))
    assert await task is None
    assert store.get_by_id("v1").likes == 5


@pytest.mark.asyncio
async def test_like_reconciles_with_server_record(store, api):
    store.add(make_video(likes=4))
    task = store.increment_like("v1")
    await api.wait_for(1)
    api.answer(0, _ok(make_video(likes=9)))
    await task
    assert store.get_by_id("v1").likes == 9


@pytest.mark.asyncio
async def test_duration_within_threshold_updates_locally_without_request(store, api):
    store.add(make_video(duration=299))

    assert store.update_duration("v1", 300) is None
    await asyncio.sleep(0)

    assert api.requests == []
    assert store.get_by_id("v1").duration == 300


@pytest.mark.asyncio
async def test_duration_outside_threshold_persists_and_overwrites(store, api):
    store.add(make_video(duration=299))

    task = store.update_duration("v1", 305)
    assert task is not None
    await api.wait_for(1)
    assert api.requests[0]["path"] == "/api/videos/v1/duration"
    assert api.requests[0]["json"] == {"duration": 305}

    server_video = make_video(duration=305, views=40, desktop=30, tablet=5, mobile=5)
    api.answer(0, _ok(server_video))
    await task
    assert store.get_by_id("v1") == server_video


@pytest.mark.asyncio
async def test_duration_is_rounded_half_up_before_comparison(store, api):
    store.add(make_video(duration=299))

    assert store.update_duration("v1", 300.4) is None
    assert store.get_by_id("v1").duration == 300

    task = store.update_duration("v1", 301.5)
    await api.wait_for(1)
    assert api.requests[0]["json"] == {"duration": 302}
    api.answer(0, _ok(make_video(duration=302)))
    await task


@pytest.mark.asyncio
@pytest.mark.parametrize("measured", [0, -4, math.nan, math.inf, "abc", None])
async def test_invalid_duration_measurements_are_ignored(store, api, measured):
    store.add(make_video(duration=299))
    assert store.update_duration("v1", measured) is None
    assert store.get_by_id("v1").duration == 299
    assert api.requests == []


@pytest.mark.asyncio
async def test_load_replaces_collection_and_keeps_it_on_failure(store, api):
    store.add(make_video("local"))

    loading = asyncio.create_task(store.load())
    await api.wait_for(1)
    api.answer(0, httpx.Response(200, json=[make_video("b").to_wire(), make_video("a", age_hours=1).to_wire()]))
    await loading
    assert [video.id for video in store.videos] == ["b", "a"]

    failing = asyncio.create_task(store.load())
    await api.wait_for(2)
    api.answer(1, httpx.Response(500, json={"message": "Failed to fetch videos"}))
    with pytest.raises(SyncServerError):
        await failing
    assert [video.id for video in store.videos] == ["b", "a"]


@pytest.mark.asyncio
async def test_add_prepends_and_update_never_inserts(store):
    seen = []
    store.subscribe(lambda videos: seen.append([video.id for video in videos]))

    store.add(make_video("old"))
    store.add(make_video("new"))
    assert store.update(make_video("unknown")) is False
    assert store.get_by_id("unknown") is None

    assert [video.id for video in store.videos] == ["new", "old"]
    assert seen == [["old"], ["new", "old"]]


@pytest.mark.asyncio
async def test_response_for_removed_record_is_not_reinserted(store, api):
    store.add(make_video("v1", asset_id="streamflex/videos/v1.mp4"))
    task = store.increment_view("v1", DeviceClass.DESKTOP)

    removing = asyncio.create_task(store.remove("v1"))
    await api.wait_for(2)
    api.answer(1, httpx.Response(204))
    await removing
    api.answer(0, _ok(make_video("v1", views=11, desktop=7)))
    await task

    assert store.get_by_id("v1") is None


@pytest.mark.asyncio
async def test_untracked_video_cannot_be_deleted(store, api):
    store.add(make_video("v1", asset_id=None))

    assert store.can_delete("v1") is False
    with pytest.raises(DeletionNotAllowedError):
        await store.remove("v1")
    assert api.requests == []
    assert store.get_by_id("v1") is not None


@pytest.mark.asyncio
async def test_failed_delete_keeps_record_and_surfaces_error(store, api):
    store.add(make_video("v1", asset_id="streamflex/videos/v1.mp4"))

    removing = asyncio.create_task(store.remove("v1"))
    await api.wait_for(1)
    assert api.requests[0]["method"] == "DELETE"
    api.answer(0, httpx.Response(404, json={"message": "Video not found"}))

    with pytest.raises(SyncNotFoundError, match="Video not found"):
        await removing
    assert store.get_by_id("v1") is not None


@pytest.mark.asyncio
async def test_drain_waits_for_outstanding_mutations(store, api):
    store.add(make_video(likes=0))
    store.increment_like("v1")
    store.increment_like("v1")
    assert store.pending == 2

    await api.wait_for(2)
    api.answer(0, _ok(make_video(likes=2)))
    api.answer(1, _ok(make_video(likes=2)))
    await store.drain()

    assert store.pending == 0
    assert store.get_by_id("v1").likes == 2
