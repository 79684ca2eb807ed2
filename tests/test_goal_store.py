import asyncio
import json

import pytest

from goalquest import GoalStore, MemoryStorage, ImageDecodeError, StorageQuotaExceeded
from goalquest.goal_store import GOALS_KEY, encode_goals, decode_goals
from goalquest.goal_schema import Goal
from goalquest.errors import GoalDataCorrupted

from conftest import make_broken_png


class GatedPipeline:
    """Photo pipeline that waits for the test to release it."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def resize(self, file):
        self.started.set()
        await self.release.wait()
        return "data:image/jpeg;base64,AAAA"


def test_add_prepends_new_goal(store, storage):
    first = store.add("Read", "20 pages")
    second = store.add("Run")

    assert [g.title for g in store.goals] == ["Run", "Read"]
    assert first.streak == 0
    assert first.last_completed_date is None
    assert first.photos == []
    assert first.created_at == "2024-01-01T09:00:00"

    saved = json.loads(storage.get(GOALS_KEY))
    assert [g["id"] for g in saved] == [second.id, first.id]
    assert saved[1]["description"] == "20 pages"


def test_add_rejects_blank_title(store, storage):
    with pytest.raises(ValueError):
        store.add("   ")
    assert store.goals == ()
    assert storage.get(GOALS_KEY) is None


def test_remove(store):
    goal = store.add("Read")
    store.add("Run")

    assert store.remove(goal.id) is True
    assert [g.title for g in store.goals] == ["Run"]
    assert store.remove("missing") is False


def test_remove_missing_does_not_write(store, storage):
    store.add("Read")
    storage.data.clear()
    store.remove("missing")
    assert storage.get(GOALS_KEY) is None


def test_toggle_scenarios(store):
    goal = store.add("Read")
    store.toggle(goal.id, "2024-01-01", "2023-12-31")
    for day, yesterday in [("2024-01-02", "2024-01-01"), ("2024-01-03", "2024-01-02")]:
        updated = store.toggle(goal.id, day, yesterday)
    assert updated.streak == 3

    after_gap = store.toggle(goal.id, "2024-01-06", "2024-01-05")
    assert after_gap.streak == 1
    assert store.get_goal(goal.id).last_completed_date == "2024-01-06"

    assert store.toggle("missing", "2024-01-06", "2024-01-05") is None


def test_toggle_is_persisted(store, storage):
    goal = store.add("Read")
    store.toggle(goal.id, "2024-01-02", "2024-01-01")

    reloaded = GoalStore(storage)
    reloaded.load()
    assert reloaded.get_goal(goal.id).streak == 1
    assert reloaded.get_goal(goal.id).last_completed_date == "2024-01-02"


def test_active_streaks_count(store):
    a = store.add("Read")
    store.add("Run")
    store.toggle(a.id, "2024-01-02", "2024-01-01")
    assert store.active_streaks_count() == 1


def test_load_missing_key_gives_empty(storage):
    s = GoalStore(storage)
    assert s.load() == []
    assert s.load_error is None


@pytest.mark.parametrize("raw", [
    "{not json",
    '{"id": "x"}',
    '[{"title": "no id"}]',
    '[{"id": "a", "title": "A", "createdAt": "t"}, {"id": "a", "title": "B", "createdAt": "t"}]',
])
def test_load_corrupt_data_starts_empty(raw):
    storage = MemoryStorage({GOALS_KEY: raw})
    s = GoalStore(storage)

    assert s.load() == []
    assert isinstance(s.load_error, GoalDataCorrupted)
    # unreadable data stays where it was until the next write
    assert storage.get(GOALS_KEY) == raw


def test_load_clamps_negative_streak():
    raw = '[{"id": "a", "title": "A", "createdAt": "t", "streak": -3}]'
    s = GoalStore(MemoryStorage({GOALS_KEY: raw}))
    assert s.load()[0].streak == 0


def test_persist_of_load_is_byte_identical(store, storage, png_bytes):
    goal = store.add("Read", "Ünïcode ✓")
    store.add("Run")
    store.toggle(goal.id, "2024-01-02", "2024-01-01")
    asyncio.run(store.attach_photo(goal.id, png_bytes))
    before = storage.get(GOALS_KEY)

    other = GoalStore(storage)
    other.persist(other.load())
    assert storage.get(GOALS_KEY) == before


def test_encode_decode_preserves_order_and_photos():
    goals = [Goal(id="b", title="B", created_at="t"), Goal(id="a", title="A", created_at="t")]
    assert decode_goals(encode_goals(goals)) == goals


def test_quota_exceeded_keeps_memory_state(clock):
    storage = MemoryStorage(quota=400)
    s = GoalStore(storage, clock=clock)
    s.load()
    s.add("Read")
    persisted = storage.get(GOALS_KEY)

    with pytest.raises(StorageQuotaExceeded):
        s.add("x" * 500)

    assert [g.title for g in s.goals] == ["x" * 500, "Read"]
    assert s.unsaved is True
    assert storage.get(GOALS_KEY) == persisted

    # a later write that fits clears the flag
    s.remove(s.goals[0].id)
    assert s.unsaved is False
    assert json.loads(storage.get(GOALS_KEY))[0]["title"] == "Read"


def test_subscribers_see_every_change(store):
    seen = []
    unsubscribe = store.subscribe(lambda goals: seen.append([g.title for g in goals]))

    goal = store.add("Read")
    store.toggle(goal.id, "2024-01-02", "2024-01-01")
    unsubscribe()
    store.remove(goal.id)

    assert seen == [["Read"], ["Read"]]


def test_attach_photo_appends_in_order(store, clock, png_bytes):
    goal = store.add("Read")
    first = asyncio.run(store.attach_photo(goal.id, png_bytes))
    clock.tick(days=1)
    second = asyncio.run(store.attach_photo(goal.id, png_bytes))

    photos = store.get_goal(goal.id).photos
    assert [p.id for p in photos] == [first.id, second.id]
    assert photos[0].image.startswith("data:image/jpeg;base64,")
    assert photos[1].date == "2024-01-02T09:00:00"


def test_attach_photo_failure_leaves_goal_unchanged(store, storage):
    goal = store.add("Read")
    before = storage.get(GOALS_KEY)

    with pytest.raises(ImageDecodeError):
        asyncio.run(store.attach_photo(goal.id, b"definitely not an image"))

    assert store.get_goal(goal.id).photos == []
    assert storage.get(GOALS_KEY) == before


def test_attach_photo_merges_with_concurrent_edits(storage, clock):
    pipeline = GatedPipeline()
    s = GoalStore(storage, photo_pipeline=pipeline, clock=clock)
    s.load()
    target = s.add("Read")
    other = s.add("Run")

    async def scenario():
        task = asyncio.create_task(s.attach_photo(target.id, b"raw"))
        await pipeline.started.wait()
        s.toggle(target.id, "2024-01-02", "2024-01-01")
        s.remove(other.id)
        s.add("Swim")
        pipeline.release.set()
        return await task

    entry = asyncio.run(scenario())

    assert [g.title for g in s.goals] == ["Swim", "Read"]
    read = s.get_goal(target.id)
    assert read.streak == 1
    assert read.photos == [entry]
    assert json.loads(storage.get(GOALS_KEY))[1]["photos"][0]["id"] == entry.id


def test_attach_photo_to_goal_removed_meanwhile(storage):
    pipeline = GatedPipeline()
    s = GoalStore(storage, photo_pipeline=pipeline)
    s.load()
    goal = s.add("Read")

    async def scenario():
        task = asyncio.create_task(s.attach_photo(goal.id, b"raw"))
        await pipeline.started.wait()
        s.remove(goal.id)
        pipeline.release.set()
        return await task

    assert asyncio.run(scenario()) is None
    assert s.goals == ()


def test_attach_broken_png_leaves_goal_unchanged(store):
    goal = store.add("Read")
    with pytest.raises(ImageDecodeError):
        asyncio.run(store.attach_photo(goal.id, make_broken_png()))
    assert store.get_goal(goal.id).photos == []


def test_failing_subscriber_does_not_skip_the_write(store, storage):
    def broken_listener(goals):
        raise RuntimeError("render failed")

    store.subscribe(broken_listener)
    with pytest.raises(RuntimeError):
        store.add("Read")

    assert [g["title"] for g in json.loads(storage.get(GOALS_KEY))] == ["Read"]
    assert store.unsaved is False


def test_subscribers_still_notified_when_write_rejected(clock):
    s = GoalStore(MemoryStorage(quota=50), clock=clock)
    s.load()
    seen = []
    s.subscribe(lambda goals: seen.append(len(goals)))

    with pytest.raises(StorageQuotaExceeded):
        s.add("Read")
    assert seen == [1]
    assert s.unsaved is True


def test_load_browser_format_photos():
    raw = json.dumps([{
        "id": "g1",
        "title": "Read",
        "description": "",
        "createdAt": "2024-01-01T08:00:00.000Z",
        "streak": 5,
        "lastCompletedDate": "2024-01-01",
        "photos": [{"id": "p1", "date": "2024-01-01T08:05:00.000Z",
                    "dataUrl": "data:image/jpeg;base64,AAAA"}]
    }])
    storage = MemoryStorage({GOALS_KEY: raw})
    s = GoalStore(storage)

    goals = s.load()
    assert s.load_error is None
    assert goals[0].streak == 5
    assert goals[0].photos[0].image == "data:image/jpeg;base64,AAAA"

    # written back under the current key
    s.persist()
    assert json.loads(storage.get(GOALS_KEY))[0]["photos"][0]["image"] == "data:image/jpeg;base64,AAAA"
