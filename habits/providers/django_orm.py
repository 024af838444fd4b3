import logging
from datetime import date
from typing import Any, List, Sequence

from django.db import transaction

from habits.domain import (
    UNSET,
    CategoryRecord,
    CompletionRecord,
    HabitDraft,
    HabitNotFound,
    HabitRecord,
    HabitUpdate,
    validate_draft,
    validate_update,
)
from habits.models import Category, Completion, Habit, Subtask

logger = logging.getLogger(__name__)


class DjangoStorageProvider:
    """Habits, completions and categories of a single owner, kept in the Django database."""

    def __init__(self, owner):
        self.owner = owner

    def _habits(self):
        return Habit.objects.filter(owner=self.owner)

    def _get_habit(self, habit_id: Any, *, for_update: bool = False) -> Habit:
        qs = self._habits()
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=habit_id)
        except (Habit.DoesNotExist, ValueError) as exc:
            raise HabitNotFound(f"Habit {habit_id} not found") from exc

    # ---- reads

    def get_habits(self) -> List[HabitRecord]:
        return [h.to_record() for h in self._habits().prefetch_related("subtasks")]

    def get_completions(self) -> List[CompletionRecord]:
        qs = Completion.objects.filter(habit__owner=self.owner).order_by("date", "habit_id")
        return [c.to_record() for c in qs]

    def get_categories(self) -> List[CategoryRecord]:
        return [c.to_record() for c in Category.objects.filter(owner=self.owner).order_by("name")]

    # ---- writes

    @transaction.atomic
    def add_habit(self, draft: HabitDraft) -> HabitRecord:
        validate_draft(draft)
        habit = Habit.objects.create(
            owner=self.owner,
            name=draft.name.strip(),
            description=draft.description or "",
            category_id=draft.category_id,
            frequency=draft.frequency,
            priority=draft.priority,
            time_estimate=draft.time_estimate or None,
            pinned=draft.pinned,
            order=draft.order,
        )
        Subtask.objects.bulk_create(
            [Subtask(habit=habit, name=name, position=i) for i, name in enumerate(draft.subtasks)]
        )
        logger.info("Created habit %s (%s) for owner %s", habit.pk, habit.name, self.owner.pk)
        return self._habits().prefetch_related("subtasks").get(pk=habit.pk).to_record()

    @transaction.atomic
    def update_habit(self, habit_id: Any, update: HabitUpdate) -> None:
        validate_update(update)
        changes = update.changes()
        habit = self._get_habit(habit_id, for_update=True)

        subtasks = changes.pop("subtasks", UNSET)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        if "description" in changes:
            changes["description"] = changes["description"] or ""

        for field, value in changes.items():
            setattr(habit, field, value)
        if changes:
            habit.save(update_fields=list(changes))
        if subtasks is not UNSET:
            self._sync_subtasks(habit, subtasks or ())

        logger.debug("Updated habit %s: %s", habit_id, sorted(update.changes()))

    def _sync_subtasks(self, habit: Habit, subtasks) -> None:
        existing = {str(s.pk): s for s in habit.subtasks.all()}
        keep = []
        for position, item in enumerate(subtasks):
            sub = existing.get(str(item.id)) if item.id is not None else None
            if sub is None:
                sub = Subtask(habit=habit)
            sub.name = item.name
            sub.completed = item.completed
            sub.position = position
            sub.save()
            keep.append(sub.pk)
        habit.subtasks.exclude(pk__in=keep).delete()

    @transaction.atomic
    def delete_habit(self, habit_id: Any) -> None:
        habit = self._get_habit(habit_id)
        # completions and subtasks go with it (on_delete=CASCADE)
        habit.delete()
        logger.info("Deleted habit %s for owner %s", habit_id, self.owner.pk)

    @transaction.atomic
    def toggle_completion(self, habit_id: Any, day: date) -> CompletionRecord:
        habit = self._get_habit(habit_id)
        completion, created = Completion.objects.select_for_update().get_or_create(
            habit=habit,
            date=day,
            defaults={"completed": True},
        )
        if not created:
            completion.completed = not completion.completed
            completion.save(update_fields=["completed"])
        return completion.to_record()

    @transaction.atomic
    def toggle_subtask(self, habit_id: Any, subtask_id: Any) -> None:
        habit = self._get_habit(habit_id)
        try:
            subtask = habit.subtasks.select_for_update().get(pk=subtask_id)
        except (Subtask.DoesNotExist, ValueError) as exc:
            raise HabitNotFound(f"Subtask {subtask_id} not found on habit {habit_id}") from exc
        subtask.completed = not subtask.completed
        subtask.save(update_fields=["completed"])

    @transaction.atomic
    def reorder_habits(self, habit_ids: Sequence[Any]) -> None:
        habits = {str(h.pk): h for h in self._habits().select_for_update()}
        changed = []
        for position, habit_id in enumerate(habit_ids):
            habit = habits.get(str(habit_id))
            # unknown ids are skipped, unchanged ones not rewritten
            if habit is None or habit.order == position:
                continue
            habit.order = position
            changed.append(habit)
        if changed:
            Habit.objects.bulk_update(changed, ["order"])

    def add_category(self, name: str, color: str = "") -> CategoryRecord:
        category, created = Category.objects.get_or_create(
            owner=self.owner,
            name=name.strip(),
            defaults={"color": color},
        )
        if created:
            logger.info("Created category %s (%s) for owner %s", category.pk, category.name, self.owner.pk)
        return category.to_record()
