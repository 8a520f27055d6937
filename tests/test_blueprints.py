import datetime as dt

from schedule_planner.blueprints import (
    BLUEPRINTS,
    action_steps,
    blueprint_for,
    build_action_steps,
    classify_action,
    ensure_action_steps,
)
from schedule_planner.dependencies import get_dependency_warnings
from schedule_planner.generators import build_maintenance_tasks
from schedule_planner.models import MaintenanceAction, Schedule
from schedule_planner.schedule import with_tasks


def _maintenance_schedule(*titles):
    actions = [MaintenanceAction(title=title, planned_year=2027) for title in titles]
    tasks = build_maintenance_tasks("brf", actions, "brf")
    empty = Schedule(
        id="schedule-brf",
        project_id="brf",
        title="Plan",
        audience="brf",
        start_date=dt.date(2027, 1, 1),
        end_date=dt.date(2027, 12, 31),
    )
    return with_tasks(empty, tasks)


def test_classification_is_case_insensitive():
    assert classify_action("Byte av TRAPPHUSBELYSNING") == "lighting"
    assert classify_action("Nya armaturer i garage") == "lighting"
    assert classify_action("Måla om väggar i entré") == "painting"
    assert classify_action("Relining av stammar") == "generic"
    assert classify_action("") == "generic"


def test_lighting_wins_over_painting_keywords():
    assert classify_action("Belysning i tak") == "lighting"


def test_blueprint_sizes():
    assert len(BLUEPRINTS["lighting"]) == 8
    assert len(BLUEPRINTS["painting"]) == 8
    assert len(BLUEPRINTS["generic"]) == 7
    assert blueprint_for("Relining") is BLUEPRINTS["generic"]


def test_steps_are_anchored_to_parent_and_chained():
    schedule = _maintenance_schedule("Byte av trapphusbelysning")
    parent = schedule.tasks[0]

    steps = build_action_steps(parent, schedule.project_id)

    assert len(steps) == 8
    assert steps[0].start_date == parent.start_date - dt.timedelta(days=14)
    assert steps[0].end_date == steps[0].start_date + dt.timedelta(days=3)
    assert steps[3].start_date == parent.start_date
    assert steps[0].dependencies == ()
    for previous, step in zip(steps, steps[1:]):
        assert step.dependencies == (previous.id,)
    assert all(s.parent_action_id == parent.id and s.kind == "action_step" for s in steps)
    assert all(s.owner_role == parent.owner_role for s in steps)
    assert steps[0].id == f"brf-{parent.id}-step-1"


def test_ensure_action_steps_appends_and_logs():
    schedule = _maintenance_schedule("Relining av stammar")
    parent_id = schedule.tasks[0].id

    expanded = ensure_action_steps(schedule, parent_id)

    assert len(expanded.tasks) == 1 + 7
    assert len(action_steps(expanded.tasks, parent_id)) == 7
    assert expanded.start_date == min(t.start_date for t in expanded.tasks)
    assert expanded.change_log[0].field == "action_step_plan_created"
    assert expanded.change_log[0].to_value == "7 steg"


def test_ensure_action_steps_is_idempotent():
    schedule = _maintenance_schedule("Måla om väggar")
    parent_id = schedule.tasks[0].id

    once = ensure_action_steps(schedule, parent_id)
    twice = ensure_action_steps(once, parent_id)

    assert twice is once
    assert len(action_steps(twice.tasks, parent_id)) == 8
    assert len(twice.change_log) == 1


def test_ensure_action_steps_ignores_unknown_parent():
    schedule = _maintenance_schedule("Fasad")

    assert ensure_action_steps(schedule, "missing") is schedule


def test_generated_steps_with_overlapping_offsets_report_warnings():
    schedule = _maintenance_schedule("Relining av stammar")
    parent_id = schedule.tasks[0].id

    steps = action_steps(ensure_action_steps(schedule, parent_id).tasks, parent_id)

    # Templates overlap on purpose (e.g. stage 2 starts while stage 1 runs).
    assert get_dependency_warnings(steps)
