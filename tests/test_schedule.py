import datetime as dt

from schedule_planner.generators import generate_default_schedule
from schedule_planner.models import ScheduleProjectContext, Task
from schedule_planner.schedule import (
    CHANGE_LOG_LIMIT,
    ChangeRequest,
    add_task,
    append_change_log,
    apply_view_settings,
    auto_shift_schedule,
    create_manual_task,
    edit_task_dates,
    remove_task,
    schedule_bounds,
    update_task,
)

BASE = dt.date(2026, 3, 2)


def _schedule():
    context = ScheduleProjectContext(project_id="p1", title="Kök", audience="privat", desired_start=BASE)
    return generate_default_schedule(context)


def _assert_bounds(schedule):
    assert schedule.start_date == min(t.start_date for t in schedule.tasks)
    assert schedule.end_date == max(t.end_date for t in schedule.tasks)
    assert all(t.end_date >= t.start_date for t in schedule.tasks)


def test_schedule_bounds_fallback_for_empty_task_list():
    start, end = dt.date(2026, 1, 1), dt.date(2026, 2, 1)

    assert schedule_bounds([], start, end) == (start, end)


def test_remove_task_purges_dependency_references():
    schedule = _schedule()

    updated = remove_task(schedule, "p1-base-1")

    assert updated.get_task("p1-base-1") is None
    assert updated.get_task("p1-base-2").dependencies == ()
    assert updated.change_log[0].field == "task_deleted"
    _assert_bounds(updated)
    assert updated.start_date == dt.date(2026, 3, 16)


def test_remove_unknown_task_is_noop():
    schedule = _schedule()

    assert remove_task(schedule, "nope") is schedule


def test_add_task_clamps_and_extends_bounds():
    schedule = _schedule()
    late = Task(
        id="extra",
        project_id="other",
        title="Extra",
        category="post",
        phase="Extra",
        start_date=dt.date(2030, 1, 10),
        end_date=dt.date(2030, 1, 1),
    )

    updated = add_task(schedule, late)

    added = updated.get_task("extra")
    assert added.project_id == "p1"
    assert added.end_date == added.start_date == dt.date(2030, 1, 10)
    assert updated.end_date == dt.date(2030, 1, 10)
    assert updated.change_log[0].field == "task_created"


def test_create_manual_task_at_schedule_end():
    schedule = _schedule()

    updated = create_manual_task(schedule)

    task = updated.tasks[-1]
    assert task.title == "Ny aktivitet"
    assert task.start_date == task.end_date == schedule.end_date
    assert task.source == "manual"


def test_update_task_logs_changed_fields_and_coerces():
    schedule = _schedule()

    updated = update_task(
        schedule,
        "p1-base-3",
        title="Upphandling",
        status="bogus",
        category="build",
        start_date="2026-04-01",
        end_date="2026-03-01",
        actor="anna",
    )

    task = updated.get_task("p1-base-3")
    assert task.title == "Upphandling"
    assert task.status == "planned"
    assert task.category == "build"
    assert task.start_date == task.end_date == dt.date(2026, 4, 1)
    assert task.source == "manual"
    fields = {entry.field for entry in updated.change_log}
    assert fields == {"title", "date_range"}
    assert all(entry.actor == "anna" for entry in updated.change_log)
    _assert_bounds(updated)


def test_update_task_without_changes_is_noop():
    schedule = _schedule()
    task = schedule.get_task("p1-base-2")

    assert update_task(schedule, "p1-base-2", title=task.title) is schedule


def test_change_log_is_most_recent_first_and_capped():
    schedule = _schedule()
    for index in range(CHANGE_LOG_LIMIT + 20):
        schedule = append_change_log(schedule, [ChangeRequest("p1-base-1", "title", str(index), str(index + 1))])

    assert len(schedule.change_log) == CHANGE_LOG_LIMIT
    assert schedule.change_log[0].from_value == str(CHANGE_LOG_LIMIT + 19)
    assert schedule.change_log[-1].from_value == "20"


def test_append_change_log_keeps_entry_order():
    schedule = append_change_log(
        _schedule(),
        [ChangeRequest("a", "title", "x", "y"), ChangeRequest("b", "phase", "x", "y")],
    )

    assert [entry.task_id for entry in schedule.change_log] == ["a", "b"]
    assert schedule.change_log[0].id != schedule.change_log[1].id


def test_apply_view_settings_coerces_unknown_values():
    schedule = _schedule()

    updated = apply_view_settings(schedule, zoom="decade", show_weekends=1, group_by="category")

    assert updated.view_settings.zoom == "month"
    assert updated.view_settings.show_weekends is True
    assert updated.view_settings.group_by == "category"
    assert updated.tasks == schedule.tasks


def test_edit_task_dates_with_auto_shift_updates_bounds_and_log():
    schedule = _schedule()
    first = schedule.get_task("p1-base-1")

    updated, result = edit_task_dates(
        schedule,
        "p1-base-1",
        first.start_date + dt.timedelta(days=10),
        first.end_date + dt.timedelta(days=10),
        auto_shift=True,
    )

    assert result.warnings == []
    assert "p1-base-2" in result.shifted_task_ids
    assert updated.get_task("p1-base-2").start_date == dt.date(2026, 3, 26)
    fields = [entry.field for entry in updated.change_log]
    assert fields[0] == "date_range"
    assert fields.count("dependency_auto_shift") == len(result.shifted_task_ids)
    _assert_bounds(updated)


def test_edit_task_dates_without_shift_leaves_warning():
    schedule = _schedule()
    first = schedule.get_task("p1-base-1")

    updated, result = edit_task_dates(
        schedule, "p1-base-1", first.start_date, first.end_date + dt.timedelta(days=3)
    )

    assert [(w.task_id, w.dependency_id) for w in result.warnings] == [("p1-base-2", "p1-base-1")]
    assert updated.get_task("p1-base-2") == schedule.get_task("p1-base-2")

    shifted, shift_result = auto_shift_schedule(updated, "p1-base-1")
    assert shift_result.warnings == []
    again, again_result = auto_shift_schedule(shifted, "p1-base-1")
    assert again_result.shifted_task_ids == []
    assert again is shifted


def test_edit_task_dates_to_same_range_logs_nothing():
    schedule = _schedule()
    first = schedule.get_task("p1-base-1")

    updated, result = edit_task_dates(schedule, "p1-base-1", first.start_date, first.end_date, auto_shift=True)

    assert result.shifted_task_ids == []
    assert updated.change_log == schedule.change_log
    assert updated.get_task("p1-base-1").start_date == first.start_date
