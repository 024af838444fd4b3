from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytest

from habits.domain import (
    UNSET,
    CategoryRecord,
    CompletionRecord,
    HabitDraft,
    HabitNotFound,
    HabitRecord,
    HabitUpdate,
    InvalidHabitValue,
    SubtaskRecord,
)
from habits.providers import InMemoryStorageProvider
from habits.store import HabitStore

TODAY = date(2026, 3, 18)
CREATED = datetime(2026, 1, 1, 8, 0, tzinfo=dt_timezone.utc)


class FlakyProvider(InMemoryStorageProvider):
    """Reads work, every write blows up."""

    def _fail(self, *args, **kwargs):
        raise ConnectionError("storage unavailable")

    add_habit = update_habit = delete_habit = _fail
    toggle_completion = toggle_subtask = reorder_habits = add_category = _fail


def _habit(habit_id, **kwargs):
    return HabitRecord(id=habit_id, name=kwargs.pop("name", f"Habit {habit_id}"), created_at=CREATED, **kwargs)


@pytest.fixture
def provider():
    return InMemoryStorageProvider(
        habits=[
            _habit("a", priority="high", subtasks=(SubtaskRecord(id="s1", name="Warm up"),)),
            _habit("b", category_id="c1"),
            _habit("c", archived=True),
        ],
        completions=[
            CompletionRecord(habit_id="a", date=TODAY),
            CompletionRecord(habit_id="a", date=TODAY - timedelta(days=1)),
            CompletionRecord(habit_id="b", date=TODAY - timedelta(days=1)),
        ],
        categories=[CategoryRecord(id="c1", name="Health")],
    )


@pytest.fixture
def store(provider):
    return HabitStore(provider).load()


def test_habit_update__changes_only_contains_set_fields():
    update = HabitUpdate(name="Run", priority=None)

    assert update.changes() == {"name": "Run", "priority": None}
    assert HabitUpdate().changes() == {}
    assert not HabitUpdate()
    assert HabitUpdate().name is UNSET


def test_habit_update__apply_leaves_absent_fields_alone_and_clears_explicit_none():
    habit = _habit("a", priority="high", description="keep me", category_id="c1")

    updated = HabitUpdate(category_id=None).apply(habit)

    assert updated.category_id is None
    assert updated.priority == "high"
    assert updated.description == "keep me"
    assert updated.id == habit.id
    assert updated.created_at == habit.created_at


def test_load__pulls_collections_once(store):
    assert [h.id for h in store.habits] == ["a", "b", "c"]
    assert [h.id for h in store.active_habits()] == ["a", "b"]
    assert len(store.completions) == 3
    assert store.category_name("c1") == "Health"
    assert store.category_name("gone") == "Uncategorized"
    assert store.category_name(None) == "Uncategorized"


def test_stats__derived_from_snapshot(store):
    stats = store.stats("a", today=TODAY)

    assert stats.current_streak == 2
    assert stats.total_completions == 2
    assert store.stats("missing", today=TODAY).total_completions == 0


def test_stats__memoized_until_state_changes(store):
    first = store.stats("a", today=TODAY)
    assert store.stats("a", today=TODAY) is first

    store.toggle_completion("a", TODAY)

    assert store.stats("a", today=TODAY).current_streak == 0


def test_dashboard__skips_done_and_archived(store):
    assert [h.id for h in store.dashboard(today=TODAY)] == ["b"]


def test_toggle_completion__twice_returns_to_original(store, provider):
    original = store.is_completed("b", TODAY)

    first = store.toggle_completion("b", TODAY)
    second = store.toggle_completion("b", TODAY)

    assert first.completed is True
    assert second.completed is original is False
    assert [c.completed for c in provider.get_completions() if c.habit_id == "b" and c.date == TODAY] == [False]
    # flipped in place, never appended twice
    assert len([c for c in provider.get_completions() if c.habit_id == "b" and c.date == TODAY]) == 1


def test_add_habit__appends_provider_record(store):
    habit = store.add_habit(HabitDraft(name="  Stretch ", priority="low", subtasks=("Neck", "Back")))

    assert habit.name == "Stretch"
    assert habit.archived is False
    assert [s.name for s in habit.subtasks] == ["Neck", "Back"]
    assert store.get_habit(habit.id) == habit


def test_add_habit__invalid_values_rejected_before_touching_state(store):
    with pytest.raises(InvalidHabitValue):
        store.add_habit(HabitDraft(name="Bad", priority="urgent"))
    with pytest.raises(InvalidHabitValue):
        store.add_habit(HabitDraft(name="Bad", time_estimate="forever"))
    with pytest.raises(InvalidHabitValue):
        store.add_habit(HabitDraft(name="   "))

    assert len(store.habits) == 3


def test_update_habit__partial(store, provider):
    store.update_habit("b", HabitUpdate(priority="high", time_estimate="00:45"))

    habit = store.get_habit("b")
    assert habit.priority == "high"
    assert habit.time_estimate == "00:45"
    assert habit.category_id == "c1"
    assert provider.get_habits()[1].priority == "high"


def test_update_habit__new_subtasks_get_ids(store):
    habit = store.update_habit(
        "a",
        HabitUpdate(subtasks=(SubtaskRecord(id="s1", name="Warm up", completed=True), SubtaskRecord(id=None, name="Cool down"))),
    )

    assert [s.name for s in habit.subtasks] == ["Warm up", "Cool down"]
    assert all(s.id is not None for s in habit.subtasks)
    assert habit.subtasks[0].completed is True


def test_toggle_pin_and_archive(store):
    assert store.toggle_pin("b").pinned is True
    assert [h.id for h in store.habits][0] == "b"

    assert store.toggle_archive("b").archived is True
    assert "b" not in [h.id for h in store.active_habits()]


def test_toggle_subtask(store):
    habit = store.toggle_subtask("a", "s1")

    assert habit.subtasks[0].completed is True

    with pytest.raises(HabitNotFound):
        store.toggle_subtask("a", "nope")


def test_delete_habit__cascades_completions(store, provider):
    store.delete_habit("a")

    assert "a" not in [h.id for h in store.habits]
    assert all(c.habit_id != "a" for c in store.completions)
    assert all(c.habit_id != "a" for c in provider.get_completions())


def test_delete_habit__unknown_id(store):
    with pytest.raises(HabitNotFound):
        store.delete_habit("zzz")


def test_reorder_habits__sets_order_and_skips_unknown(store):
    store.reorder_habits(["b", "ghost", "a"])

    assert store.get_habit("b").order == 0
    assert store.get_habit("a").order == 1
    assert [h.id for h in store.active_habits()] == ["b", "a"]


def test_add_category__returns_existing_on_same_name(store):
    created = store.add_category("Focus")
    again = store.add_category("Focus")

    assert created == again
    assert [c.name for c in store.categories].count("Focus") == 1


def test_failed_commit__rolls_back_local_state():
    provider = FlakyProvider(
        habits=[_habit("a"), _habit("b")],
        completions=[CompletionRecord(habit_id="a", date=TODAY)],
        categories=[],
    )
    store = HabitStore(provider).load()
    before = (store.habits, store.completions)

    with pytest.raises(ConnectionError):
        store.toggle_completion("a", TODAY)
    with pytest.raises(ConnectionError):
        store.delete_habit("b")
    with pytest.raises(ConnectionError):
        store.toggle_pin("a")
    with pytest.raises(ConnectionError):
        store.reorder_habits(["b", "a"])

    assert (store.habits, store.completions) == before
    assert store.is_completed("a", TODAY) is True


def test_refresh__rereads_provider(store, provider):
    provider.toggle_completion("b", TODAY)

    assert store.is_completed("b", TODAY) is False
    store.refresh()
    assert store.is_completed("b", TODAY) is True


def test_in_memory_provider__seeds_default_categories():
    names = [c.name for c in InMemoryStorageProvider().get_categories()]

    assert names == ["Health", "Learning", "Personal", "Productivity"]


def test_completion_map__per_day_and_refreshed_after_toggle(store):
    assert store.completion_map(TODAY) == {"a": True}
    assert store.completion_map(TODAY - timedelta(days=1)) == {"a": True, "b": True}

    store.toggle_completion("a", TODAY)

    assert store.completion_map(TODAY) == {"a": False}
    assert store.is_completed("a", TODAY) is False


@pytest.mark.parametrize("field", ["subtasks", "pinned", "archived", "description"])
def test_update_habit__null_on_non_nullable_field_is_rejected(store, field):
    with pytest.raises(InvalidHabitValue):
        store.update_habit("a", HabitUpdate(**{field: None}))

    habit = store.get_habit("a")
    assert habit.pinned is False
    assert len(habit.subtasks) == 1
