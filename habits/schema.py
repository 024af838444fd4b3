import graphene

from habits.domain import HabitDraft, HabitUpdate, SubtaskRecord
from habits.providers import DjangoStorageProvider
from habits.services import aggregation, habit_stats
from habits.services.time_estimates import format_time_estimate, time_estimate_to_minutes
from habits.store import HabitStore


def _store(info) -> HabitStore:
    """One store per request, so every resolver sees the same snapshot."""
    request = info.context
    store = getattr(request, "_habit_store", None)
    if store is None:
        store = HabitStore(DjangoStorageProvider(request.user)).load()
        request._habit_store = store
    return store


def _require_user(info):
    user = info.context.user
    if user.is_anonymous:
        raise Exception("Authentication required")
    return user


class GroupByEnum(graphene.Enum):
    HABITS = aggregation.GROUP_BY_HABITS
    CATEGORIES = aggregation.GROUP_BY_CATEGORIES


class StatsType(graphene.ObjectType):
    total_completions = graphene.Int(required=True)
    current_streak = graphene.Int(required=True)
    longest_streak = graphene.Int(required=True)
    completion_rate = graphene.Int(required=True)


class SubtaskType(graphene.ObjectType):
    id = graphene.ID(required=True)
    name = graphene.String(required=True)
    completed = graphene.Boolean(required=True)


class CategoryType(graphene.ObjectType):
    id = graphene.ID(required=True)
    name = graphene.String(required=True)
    color = graphene.String()


class CompletionType(graphene.ObjectType):
    habit_id = graphene.ID(required=True)
    date = graphene.Date(required=True)
    completed = graphene.Boolean(required=True)


class DayProgressType(graphene.ObjectType):
    date = graphene.Date(required=True)
    completed = graphene.Boolean(required=True)


class HabitType(graphene.ObjectType):
    id = graphene.ID(required=True)
    name = graphene.String(required=True)
    description = graphene.String()
    category = graphene.ID()
    category_name = graphene.String()
    frequency = graphene.String(required=True)
    priority = graphene.String()
    time_estimate = graphene.String()
    time_estimate_minutes = graphene.Int()
    time_estimate_display = graphene.String()
    subtasks = graphene.List(graphene.NonNull(SubtaskType))
    created_at = graphene.DateTime(required=True)
    archived = graphene.Boolean(required=True)
    pinned = graphene.Boolean(required=True)
    order = graphene.Int()
    completed_today = graphene.Boolean()
    stats = graphene.Field(StatsType)
    week_progress = graphene.List(graphene.NonNull(DayProgressType))
    month_progress = graphene.List(graphene.NonNull(DayProgressType))

    def resolve_category(self, info):
        return self.category_id

    def resolve_category_name(self, info):
        return _store(info).category_name(self.category_id)

    def resolve_time_estimate_minutes(self, info):
        return time_estimate_to_minutes(self.time_estimate)

    def resolve_time_estimate_display(self, info):
        return format_time_estimate(self.time_estimate)

    def resolve_completed_today(self, info):
        return _store(info).is_completed(self.id)

    def resolve_stats(self, info):
        return _store(info).stats(self.id)

    def resolve_week_progress(self, info):
        return habit_stats.weekly_progress(self.id, _store(info).completions)

    def resolve_month_progress(self, info):
        return habit_stats.monthly_progress(self.id, _store(info).completions)


class HeatmapDayType(graphene.ObjectType):
    date = graphene.Date(required=True)
    completed_count = graphene.Int(required=True)
    eligible_count = graphene.Int(required=True)
    intensity = graphene.Int(required=True)

    def resolve_intensity(self, info):
        return aggregation.heatmap_intensity(self)


class HeatmapType(graphene.ObjectType):
    days = graphene.List(graphene.NonNull(HeatmapDayType))
    weeks = graphene.List(graphene.List(graphene.NonNull(HeatmapDayType)))

    def resolve_days(self, info):
        return self

    def resolve_weeks(self, info):
        return aggregation.heatmap_weeks(self)


class TrendSeriesType(graphene.ObjectType):
    key = graphene.String(required=True)
    label = graphene.String(required=True)
    values = graphene.List(graphene.NonNull(graphene.Int))
    color = graphene.String()
    fill_color = graphene.String()


class TrendType(graphene.ObjectType):
    dates = graphene.List(graphene.NonNull(graphene.Date))
    series = graphene.List(graphene.NonNull(TrendSeriesType))


class Query(graphene.ObjectType):
    habits = graphene.List(HabitType, include_archived=graphene.Boolean(required=False))
    habit = graphene.Field(HabitType, id=graphene.ID(required=True))
    categories = graphene.List(CategoryType)
    dashboard_habits = graphene.List(HabitType)
    heatmap = graphene.Field(HeatmapType, days=graphene.Int(required=False))
    trend = graphene.Field(
        TrendType,
        window_days=graphene.Int(required=False),
        group_by=GroupByEnum(required=False),
    )

    def resolve_habits(self, info, include_archived=False):
        if info.context.user.is_anonymous:
            return []
        store = _store(info)
        return store.habits if include_archived else store.active_habits()

    def resolve_habit(self, info, id):
        _require_user(info)
        return _store(info).get_habit(id)

    def resolve_categories(self, info):
        if info.context.user.is_anonymous:
            return []
        return _store(info).categories

    def resolve_dashboard_habits(self, info):
        if info.context.user.is_anonymous:
            return []
        return _store(info).dashboard()

    def resolve_heatmap(self, info, days=aggregation.HEATMAP_DAYS):
        if info.context.user.is_anonymous:
            return []
        if days is None:
            days = aggregation.HEATMAP_DAYS
        return _store(info).heatmap(days=days)

    def resolve_trend(self, info, window_days=30, group_by=aggregation.GROUP_BY_HABITS):
        if info.context.user.is_anonymous:
            return aggregation.TrendChart()
        # graphene hands enum arguments over as members
        group_by = getattr(group_by, "value", group_by)
        return _store(info).trend(window_days, group_by)


class SubtaskInput(graphene.InputObjectType):
    id = graphene.ID(required=False)
    name = graphene.String(required=True)
    completed = graphene.Boolean(required=False)


class CreateHabit(graphene.Mutation):
    class Arguments:
        name = graphene.String(required=True)
        description = graphene.String(required=False)
        category = graphene.ID(required=False)
        frequency = graphene.String(required=False)
        priority = graphene.String(required=False)
        time_estimate = graphene.String(required=False)
        subtasks = graphene.List(graphene.NonNull(graphene.String), required=False)
        pinned = graphene.Boolean(required=False)

    habit = graphene.Field(HabitType)

    def mutate(self, info, name, description="", category=None, frequency="daily", priority=None,
               time_estimate=None, subtasks=None, pinned=False):
        _require_user(info)
        draft = HabitDraft(
            name=name,
            description=description or "",
            category_id=category,
            frequency=frequency,
            priority=priority,
            time_estimate=time_estimate,
            subtasks=tuple(subtasks or ()),
            pinned=bool(pinned),
        )
        habit = _store(info).add_habit(draft)
        return CreateHabit(habit=habit)


class UpdateHabit(graphene.Mutation):
    """Only the arguments actually sent are changed; an explicit null clears a nullable field."""

    class Arguments:
        id = graphene.ID(required=True)
        name = graphene.String(required=False)
        description = graphene.String(required=False)
        category = graphene.ID(required=False)
        frequency = graphene.String(required=False)
        priority = graphene.String(required=False)
        time_estimate = graphene.String(required=False)
        subtasks = graphene.List(graphene.NonNull(SubtaskInput), required=False)
        pinned = graphene.Boolean(required=False)
        archived = graphene.Boolean(required=False)
        order = graphene.Int(required=False)

    habit = graphene.Field(HabitType)

    def mutate(self, info, id, **fields):
        _require_user(info)
        if "category" in fields:
            fields["category_id"] = fields.pop("category")
        if fields.get("subtasks") is not None:
            fields["subtasks"] = tuple(
                SubtaskRecord(id=s.get("id"), name=s.get("name"), completed=bool(s.get("completed")))
                for s in fields["subtasks"]
            )
        habit = _store(info).update_habit(id, HabitUpdate(**fields))
        return UpdateHabit(habit=habit)


class DeleteHabit(graphene.Mutation):
    class Arguments:
        id = graphene.ID(required=True)

    ok = graphene.Boolean(required=True)
    deleted_id = graphene.ID(required=True)

    def mutate(self, info, id):
        _require_user(info)
        _store(info).delete_habit(id)
        return DeleteHabit(ok=True, deleted_id=id)


class ToggleCompletion(graphene.Mutation):
    class Arguments:
        habit_id = graphene.ID(required=True)
        date = graphene.Date(required=False)

    completion = graphene.Field(CompletionType)
    habit = graphene.Field(HabitType)

    @classmethod
    def mutate(cls, root, info, habit_id, date=None):
        _require_user(info)
        store = _store(info)
        completion = store.toggle_completion(habit_id, date)
        return cls(completion=completion, habit=store.get_habit(habit_id))


class ToggleSubtask(graphene.Mutation):
    class Arguments:
        habit_id = graphene.ID(required=True)
        subtask_id = graphene.ID(required=True)

    habit = graphene.Field(HabitType)

    def mutate(self, info, habit_id, subtask_id):
        _require_user(info)
        return ToggleSubtask(habit=_store(info).toggle_subtask(habit_id, subtask_id))


class TogglePin(graphene.Mutation):
    class Arguments:
        id = graphene.ID(required=True)

    habit = graphene.Field(HabitType)

    def mutate(self, info, id):
        _require_user(info)
        return TogglePin(habit=_store(info).toggle_pin(id))


class ToggleArchive(graphene.Mutation):
    class Arguments:
        id = graphene.ID(required=True)

    habit = graphene.Field(HabitType)

    def mutate(self, info, id):
        _require_user(info)
        return ToggleArchive(habit=_store(info).toggle_archive(id))


class ReorderHabits(graphene.Mutation):
    class Arguments:
        ids = graphene.List(graphene.NonNull(graphene.ID), required=True)

    habits = graphene.List(HabitType)

    def mutate(self, info, ids):
        _require_user(info)
        store = _store(info)
        store.reorder_habits(ids)
        return ReorderHabits(habits=store.habits)


class CreateCategory(graphene.Mutation):
    class Arguments:
        name = graphene.String(required=True)
        color = graphene.String(required=False)

    category = graphene.Field(CategoryType)

    def mutate(self, info, name, color=""):
        _require_user(info)
        return CreateCategory(category=_store(info).add_category(name, color or ""))


class Mutation(graphene.ObjectType):
    create_habit = CreateHabit.Field()
    update_habit = UpdateHabit.Field()
    delete_habit = DeleteHabit.Field()
    toggle_completion = ToggleCompletion.Field()
    toggle_subtask = ToggleSubtask.Field()
    toggle_pin = TogglePin.Field()
    toggle_archive = ToggleArchive.Field()
    reorder_habits = ReorderHabits.Field()
    create_category = CreateCategory.Field()
