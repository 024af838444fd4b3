from datetime import timedelta

import pytest
from django.utils import timezone

from habits.domain import HabitDraft, HabitNotFound, HabitUpdate, InvalidHabitValue, SubtaskRecord
from habits.models import Category, Completion, Habit, Subtask
from habits.providers import DjangoStorageProvider

pytestmark = pytest.mark.django_db


@pytest.fixture()
def user(django_user_model):
    return django_user_model.objects.create_user(
        username="u1",
        password="pass12345",
        email="u1@example.com",
    )


@pytest.fixture()
def other_user(django_user_model):
    return django_user_model.objects.create_user(
        username="u2",
        password="pass12345",
        email="u2@example.com",
    )


@pytest.fixture()
def provider(user):
    return DjangoStorageProvider(user)


def test_add_habit__creates_record_with_subtasks(provider, user):
    record = provider.add_habit(
        HabitDraft(name="Gym", priority="high", time_estimate="1hr", subtasks=("Warm up", "Lift"))
    )

    assert record.name == "Gym"
    assert record.priority == "high"
    assert record.time_estimate == "1hr"
    assert record.archived is False
    assert record.created_on == timezone.localdate()
    assert [s.name for s in record.subtasks] == ["Warm up", "Lift"]
    assert Habit.objects.get(pk=record.id).owner == user


def test_add_habit__rejects_invalid_frequency(provider):
    with pytest.raises(InvalidHabitValue):
        provider.add_habit(HabitDraft(name="Gym", frequency="hourly"))
    assert Habit.objects.count() == 0


def test_get_habits__scoped_to_owner(provider, other_user):
    provider.add_habit(HabitDraft(name="Mine"))
    DjangoStorageProvider(other_user).add_habit(HabitDraft(name="Theirs"))

    assert [h.name for h in provider.get_habits()] == ["Mine"]


def test_toggle_completion__creates_then_flips_in_place(provider):
    habit = provider.add_habit(HabitDraft(name="Read"))
    today = timezone.localdate()

    first = provider.toggle_completion(habit.id, today)
    second = provider.toggle_completion(habit.id, today)

    assert first.completed is True
    assert second.completed is False
    assert Completion.objects.filter(habit_id=habit.id, date=today).count() == 1
    assert [c.completed for c in provider.get_completions()] == [False]


def test_toggle_completion__other_users_habit_is_not_found(provider, other_user):
    theirs = DjangoStorageProvider(other_user).add_habit(HabitDraft(name="Theirs"))

    with pytest.raises(HabitNotFound):
        provider.toggle_completion(theirs.id, timezone.localdate())


def test_update_habit__only_touches_given_fields(provider):
    habit = provider.add_habit(HabitDraft(name="Walk", description="outside", priority="low"))

    provider.update_habit(habit.id, HabitUpdate(pinned=True, priority=None))

    obj = Habit.objects.get(pk=habit.id)
    assert obj.pinned is True
    assert obj.priority is None
    assert obj.description == "outside"
    assert obj.name == "Walk"


def test_update_habit__syncs_subtasks(provider):
    habit = provider.add_habit(HabitDraft(name="Cook", subtasks=("Shop", "Chop")))
    shop, _chop = habit.subtasks

    provider.update_habit(
        habit.id,
        HabitUpdate(subtasks=[
            SubtaskRecord(id=str(shop.id), name="Shop", completed=True),
            SubtaskRecord(id=None, name="Serve"),
        ]),
    )

    subtasks = list(Subtask.objects.filter(habit_id=habit.id))
    assert [s.name for s in subtasks] == ["Shop", "Serve"]
    assert subtasks[0].pk == shop.id
    assert subtasks[0].completed is True


def test_delete_habit__cascades_completions_and_subtasks(provider):
    habit = provider.add_habit(HabitDraft(name="Run", subtasks=("Shoes",)))
    today = timezone.localdate()
    provider.toggle_completion(habit.id, today)
    provider.toggle_completion(habit.id, today - timedelta(days=1))

    provider.delete_habit(habit.id)

    assert not Habit.objects.filter(pk=habit.id).exists()
    assert Completion.objects.count() == 0
    assert Subtask.objects.count() == 0


def test_deleted_category__habit_keeps_dangling_reference(provider):
    category = provider.add_category("Health")
    habit = provider.add_habit(HabitDraft(name="Swim", category_id=category.id))

    Category.objects.filter(pk=category.id).delete()

    record = next(h for h in provider.get_habits() if h.id == habit.id)
    assert record.category_id == category.id
    assert provider.get_categories() == []


def test_add_category__is_idempotent_by_name(provider):
    first = provider.add_category("Health", color="#10b981")
    second = provider.add_category("Health")

    assert first == second
    assert Category.objects.count() == 1


def test_reorder_habits__assigns_positions(provider):
    a = provider.add_habit(HabitDraft(name="A"))
    b = provider.add_habit(HabitDraft(name="B"))
    c = provider.add_habit(HabitDraft(name="C"))

    provider.reorder_habits([str(c.id), str(a.id), str(b.id)])

    assert [h.name for h in provider.get_habits()] == ["C", "A", "B"]


def test_toggle_subtask__flips_flag(provider):
    habit = provider.add_habit(HabitDraft(name="Clean", subtasks=("Dust",)))
    subtask_id = habit.subtasks[0].id

    provider.toggle_subtask(habit.id, subtask_id)
    assert Subtask.objects.get(pk=subtask_id).completed is True

    with pytest.raises(HabitNotFound):
        provider.toggle_subtask(habit.id, 999999)
