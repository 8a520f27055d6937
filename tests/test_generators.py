import datetime as dt

from schedule_planner.dates import add_days
from schedule_planner.generators import (
    MAINTENANCE_PLAN_PROJECT_ID,
    build_maintenance_tasks,
    build_pipeline_tasks,
    fallback_start_date,
    generate_default_schedule,
    map_maintenance_status,
)
from schedule_planner.models import MaintenanceAction, ScheduleProjectContext

BASE = dt.date(2026, 3, 2)


def test_pipeline_has_twelve_chained_tasks():
    tasks = build_pipeline_tasks("p1", "privat", BASE)

    assert len(tasks) == 12
    assert tasks[0].start_date == BASE
    assert tasks[0].end_date == dt.date(2026, 3, 15)
    assert tasks[0].dependencies == ()
    for previous, task in zip(tasks, tasks[1:]):
        assert task.dependencies == (previous.id,)
    assert [t.category for t in tasks].count("pre") == 5
    assert [t.category for t in tasks].count("build") == 4
    assert [t.category for t in tasks].count("post") == 3
    assert all(t.owner_role == "privatperson" and t.kind == "pipeline" for t in tasks)


def test_pipeline_tasks_follow_each_other_until_warranty():
    tasks = build_pipeline_tasks("p1", "brf", BASE)

    for previous, task in zip(tasks[:10], tasks[1:11]):
        assert task.start_date == add_days(previous.end_date, 1)
    assert tasks[10].end_date == dt.date(2026, 8, 21)


def test_warranty_waits_a_year_after_handover():
    tasks = build_pipeline_tasks("p1", "brf", BASE)
    handover, warranty = tasks[-2], tasks[-1]

    assert handover.phase == "Handover"
    assert warranty.start_date == add_days(handover.end_date, 365)
    assert warranty.start_date == dt.date(2027, 8, 21)
    assert warranty.duration_days == 3
    assert warranty.owner_role == "brf"


def test_pipeline_is_deterministic():
    first = build_pipeline_tasks("p1", "privat", BASE)
    second = build_pipeline_tasks("p1", "privat", BASE)

    assert [(t.id, t.start_date, t.end_date) for t in first] == [(t.id, t.start_date, t.end_date) for t in second]


def test_maintenance_tasks_stagger_within_a_year():
    actions = [
        MaintenanceAction(title="C tvättstuga", planned_year=2027),
        MaintenanceAction(title="A fönster", planned_year=2027),
        MaintenanceAction(title="B hiss", planned_year=2027),
    ]

    tasks = build_maintenance_tasks("p1", actions, "brf")

    assert [t.title for t in tasks] == ["A fönster", "B hiss", "C tvättstuga"]
    assert [t.start_date for t in tasks] == [dt.date(2027, 3, 15), dt.date(2027, 4, 5), dt.date(2027, 4, 26)]
    assert all(t.end_date == add_days(t.start_date, 44) for t in tasks)
    assert all(t.category == "maintenance" and t.dependencies == () for t in tasks)
    assert tasks[0].phase == "Underhåll 2027"


def test_maintenance_offsets_restart_each_year():
    actions = [
        MaintenanceAction(title="Tak", planned_year=2028),
        MaintenanceAction(title="Fasad", planned_year=2027),
        MaintenanceAction(title="Stammar", planned_year=2028),
    ]

    tasks = build_maintenance_tasks("p1", actions, "brf")

    assert [(t.title, t.start_date) for t in tasks] == [
        ("Fasad", dt.date(2027, 3, 15)),
        ("Stammar", dt.date(2028, 3, 15)),
        ("Tak", dt.date(2028, 4, 5)),
    ]


def test_maintenance_titles_use_swedish_letter_order():
    actions = [
        MaintenanceAction(title="Ö-hus", planned_year=2027),
        MaintenanceAction(title="Ängsgården", planned_year=2027),
        MaintenanceAction(title="Åtgärd tak", planned_year=2027),
        MaintenanceAction(title="Zinkplåt", planned_year=2027),
    ]

    tasks = build_maintenance_tasks("p1", actions, "brf")

    assert [t.title for t in tasks] == ["Zinkplåt", "Åtgärd tak", "Ängsgården", "Ö-hus"]


def test_out_of_range_planned_year_uses_current_year():
    actions = [
        MaintenanceAction(title="Framtid", planned_year=10000),
        MaintenanceAction(title="Noll", planned_year=0),
        MaintenanceAction(title="Negativ", planned_year=-5),
    ]

    tasks = build_maintenance_tasks("p1", actions, "brf")

    year = dt.date.today().year
    assert {t.phase for t in tasks} == {f"Underhåll {year}"}
    assert [t.start_date for t in tasks] == [dt.date(year, 3, 15), dt.date(year, 4, 5), dt.date(year, 4, 26)]


def test_maintenance_status_mapping():
    assert map_maintenance_status("Genomförd") == "done"
    assert map_maintenance_status("completed") == "done"
    assert map_maintenance_status("Eftersatt") == "blocked"
    assert map_maintenance_status("overdue") == "blocked"
    assert map_maintenance_status("Planerad") == "planned"
    assert map_maintenance_status(None) == "planned"


def test_maintenance_task_carries_details_and_category():
    action = MaintenanceAction(title="Relining", planned_year=2027, category="VVS", details="Alla stammar")

    (task,) = build_maintenance_tasks("p1", [action], "brf")

    assert task.notes == "Alla stammar"
    assert task.tags == ("VVS",)
    assert task.kind == "maintenance_action"


def test_fallback_start_prefers_snapshot_then_request():
    snapshot = dt.date(2026, 5, 1)
    request = dt.date(2026, 6, 1)

    both = ScheduleProjectContext("p", "T", desired_start=snapshot, request_desired_start=request)
    only_request = ScheduleProjectContext("p", "T", request_desired_start=request)
    neither = ScheduleProjectContext("p", "T")

    assert fallback_start_date(both) == snapshot
    assert fallback_start_date(only_request) == request
    assert fallback_start_date(neither) == dt.date.today() + dt.timedelta(days=30)


def test_default_schedule_combines_pipeline_and_maintenance():
    context = ScheduleProjectContext(
        project_id="req-1",
        title="Kök",
        audience="privat",
        desired_start=BASE,
        request_actions=(MaintenanceAction(title="Fönster", planned_year=2027),),
    )

    schedule = generate_default_schedule(context)

    assert len(schedule.tasks) == 13
    assert schedule.id == "schedule-req-1"
    assert schedule.start_date == min(t.start_date for t in schedule.tasks)
    assert schedule.end_date == max(t.end_date for t in schedule.tasks)
    assert schedule.view_settings.zoom == "month"
    assert schedule.change_log == ()


def test_maintenance_plan_project_skips_pipeline():
    context = ScheduleProjectContext(
        project_id=MAINTENANCE_PLAN_PROJECT_ID,
        title="Underhållsplan",
        audience="brf",
        maintenance_actions=(MaintenanceAction(title="Fasad", planned_year=2027),),
    )

    schedule = generate_default_schedule(context)

    assert [t.kind for t in schedule.tasks] == ["maintenance_action"]
    assert schedule.start_date == dt.date(2027, 3, 15)
