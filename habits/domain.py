"""
Plain records the statistics core works on.

Storage providers translate whatever they persist into these frozen
dataclasses, so the services never touch the ORM and can be fed from any
backend (or straight from a test).
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from django.db import models
from django.utils import timezone

from habits.services.time_estimates import is_valid_time_estimate


class Frequency(models.TextChoices):
    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"


class Priority(models.TextChoices):
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    LOW = "low", "Low"


class HabitNotFound(LookupError):
    pass


class InvalidHabitValue(ValueError):
    pass


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marks a HabitUpdate field the caller did not touch.
UNSET: Any = _Unset()


def local_day(value: datetime) -> date:
    """Calendar day of an instant in the configured local time zone."""
    if timezone.is_aware(value):
        return timezone.localdate(value)
    return value.date()


@dataclass(frozen=True)
class SubtaskRecord:
    id: Any
    name: str
    completed: bool = False


@dataclass(frozen=True)
class CategoryRecord:
    id: Any
    name: str
    color: str = ""


@dataclass(frozen=True)
class CompletionRecord:
    habit_id: Any
    date: date
    completed: bool = True


@dataclass(frozen=True)
class HabitRecord:
    id: Any
    name: str
    created_at: datetime
    description: str = ""
    category_id: Optional[Any] = None
    frequency: str = Frequency.DAILY.value
    priority: Optional[str] = None
    time_estimate: Optional[str] = None
    subtasks: Tuple[SubtaskRecord, ...] = ()
    archived: bool = False
    pinned: bool = False
    order: Optional[int] = None

    @property
    def created_on(self) -> date:
        return local_day(self.created_at)


@dataclass(frozen=True)
class Stats:
    total_completions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    completion_rate: int = 0


@dataclass(frozen=True)
class HabitDraft:
    """Everything needed to create a habit; id, created_at and archived are assigned on add."""

    name: str
    description: str = ""
    category_id: Optional[Any] = None
    frequency: str = Frequency.DAILY.value
    priority: Optional[str] = None
    time_estimate: Optional[str] = None
    subtasks: Tuple[str, ...] = ()
    pinned: bool = False
    order: Optional[int] = None


@dataclass(frozen=True)
class HabitUpdate:
    """
    Partial update of a habit.

    Fields left as ``UNSET`` are not touched. ``None`` on a nullable field
    (category_id, priority, time_estimate, order) clears it; on any other
    field ``validate_update`` rejects it.
    """

    name: Any = UNSET
    description: Any = UNSET
    category_id: Any = UNSET
    frequency: Any = UNSET
    priority: Any = UNSET
    time_estimate: Any = UNSET
    subtasks: Any = UNSET
    pinned: Any = UNSET
    archived: Any = UNSET
    order: Any = UNSET

    def changes(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def apply(self, habit: HabitRecord) -> HabitRecord:
        changes = self.changes()
        if "subtasks" in changes:
            changes["subtasks"] = tuple(changes["subtasks"])
        return replace(habit, **changes)

    def __bool__(self) -> bool:
        return bool(self.changes())


def _check_name(name: Any) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidHabitValue("Habit name must not be empty")


def _check_choices(frequency: Any = UNSET, priority: Any = UNSET, time_estimate: Any = UNSET) -> None:
    if frequency is not UNSET and frequency not in Frequency.values:
        raise InvalidHabitValue(f"Unknown frequency: {frequency!r}")
    if priority is not UNSET and priority is not None and priority not in Priority.values:
        raise InvalidHabitValue(f"Unknown priority: {priority!r}")
    if time_estimate is not UNSET and time_estimate and not is_valid_time_estimate(time_estimate):
        raise InvalidHabitValue(f"Time estimate must be a preset or HH:MM, got {time_estimate!r}")


def validate_draft(draft: HabitDraft) -> None:
    _check_name(draft.name)
    _check_choices(draft.frequency, draft.priority, draft.time_estimate)


NON_NULLABLE_UPDATE_FIELDS = ("description", "subtasks", "pinned", "archived")


def validate_update(update: HabitUpdate) -> None:
    if update.name is not UNSET:
        _check_name(update.name)
    for field in NON_NULLABLE_UPDATE_FIELDS:
        if getattr(update, field) is None:
            raise InvalidHabitValue(f"{field} cannot be null")
    _check_choices(update.frequency, update.priority, update.time_estimate)
