from __future__ import annotations
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models

from habits.domain import (
    CategoryRecord,
    CompletionRecord,
    Frequency,
    HabitRecord,
    Priority,
    SubtaskRecord,
)


class Category(models.Model):
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="habit_categories",
    )
    name = models.CharField(max_length=80)
    color = models.CharField(max_length=9, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["owner", "name"], name="unique_category_name_per_user")
        ]
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def to_record(self) -> CategoryRecord:
        return CategoryRecord(id=self.pk, name=self.name, color=self.color)


class Habit(models.Model):
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="habits",
    )
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    # Weak reference: deleting a category leaves the id in place and the
    # habit shows up as uncategorized.
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="habits",
    )
    frequency = models.CharField(max_length=10, choices=Frequency.choices, default=Frequency.DAILY)
    priority = models.CharField(max_length=10, choices=Priority.choices, null=True, blank=True)
    time_estimate = models.CharField(max_length=10, null=True, blank=True)
    archived = models.BooleanField(default=False)
    pinned = models.BooleanField(default=False)
    order = models.IntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "created_at", "id"]

    if TYPE_CHECKING:
        # Django dynamically injects these via related_name
        completions = None
        subtasks = None

    def __str__(self) -> str:
        return self.name

    def to_record(self) -> HabitRecord:
        # all() so a prefetch_related("subtasks") is honoured
        subtasks = sorted(self.subtasks.all(), key=lambda s: (s.position, s.pk))
        return HabitRecord(
            id=self.pk,
            name=self.name,
            description=self.description,
            category_id=self.category_id,
            frequency=self.frequency,
            priority=self.priority or None,
            time_estimate=self.time_estimate or None,
            subtasks=tuple(s.to_record() for s in subtasks),
            created_at=self.created_at,
            archived=self.archived,
            pinned=self.pinned,
            order=self.order,
        )


class Subtask(models.Model):
    habit = models.ForeignKey(Habit, on_delete=models.CASCADE, related_name="subtasks")
    name = models.CharField(max_length=120)
    completed = models.BooleanField(default=False)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]

    def __str__(self) -> str:
        return self.name

    def to_record(self) -> SubtaskRecord:
        return SubtaskRecord(id=self.pk, name=self.name, completed=self.completed)


class Completion(models.Model):
    habit = models.ForeignKey(Habit, on_delete=models.CASCADE,
                              related_name="completions")
    date = models.DateField()
    completed = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["habit", "date"], name="unique_completion_per_habit_per_day")
        ]
        ordering = ["-date", "-created_at"]

    def __str__(self) -> str:
        return f"{self.habit.name} @ {self.date} ({'done' if self.completed else 'not done'})"

    def to_record(self) -> CompletionRecord:
        return CompletionRecord(habit_id=self.habit_id, date=self.date, completed=self.completed)
