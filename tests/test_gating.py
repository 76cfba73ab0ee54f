from datetime import date

from core.gating import GatingEngine
from core.models import DailyTask, GoalStatus, GoalType, TaskStatus, WeeklyGoal


def _goal(status=GoalStatus.ACTIVE):
    return WeeklyGoal(id="wg_1", user_id="u", title="Week 1", type=GoalType.LEARNING, status=status)


def _task(day, status, scheduled=None, task_id=None):
    return DailyTask(
        id=task_id or f"dt_{day}",
        weekly_goal_id="wg_1",
        day_number=day,
        description=f"day {day}",
        status=status,
        scheduled_date=scheduled,
    )


def test_first_day_is_always_allowed_and_active():
    engine = GatingEngine(days_per_week=7, allow_planning_ahead=False)
    decision = engine.evaluate_creation(_goal(), [])
    assert decision.allowed
    assert decision.day_number == 1
    assert engine.initial_status(1, None) == TaskStatus.ACTIVE


def test_next_day_requires_previous_complete():
    engine = GatingEngine(days_per_week=7, allow_planning_ahead=False)
    decision = engine.evaluate_creation(_goal(), [_task(1, TaskStatus.ACTIVE)])
    assert not decision.allowed
    assert decision.reason == "Complete Day 1 before creating Day 2"
    assert decision.blocking_task_ids == ["dt_1"]


def test_creation_without_previous_day_check_still_caps_the_week():
    engine = GatingEngine(days_per_week=7, allow_planning_ahead=False)
    tasks = [_task(1, TaskStatus.ACTIVE)]
    decision = engine.evaluate_creation(_goal(), tasks, require_previous_complete=False)
    assert decision.allowed
    assert decision.day_number == 2

    full = [_task(day, TaskStatus.LOCKED) for day in range(1, 8)]
    assert not engine.evaluate_creation(_goal(), full, require_previous_complete=False).allowed
    assert not engine.evaluate_creation(
        _goal(GoalStatus.COMPLETE), tasks, require_previous_complete=False,
    ).allowed


def test_planning_ahead_creates_locked_days():
    engine = GatingEngine(days_per_week=7, allow_planning_ahead=True)
    tasks = [_task(1, TaskStatus.ACTIVE)]
    decision = engine.evaluate_creation(_goal(), tasks)
    assert decision.allowed
    assert decision.day_number == 2
    assert engine.initial_status(2, tasks[0]) == TaskStatus.LOCKED


def test_day_after_complete_day_starts_active():
    engine = GatingEngine(days_per_week=7, allow_planning_ahead=False)
    assert engine.initial_status(3, _task(2, TaskStatus.COMPLETE)) == TaskStatus.ACTIVE


def test_full_week_and_completed_goal_reject_creation():
    engine = GatingEngine(days_per_week=7, allow_planning_ahead=True)
    full = [_task(d, TaskStatus.COMPLETE) for d in range(1, 8)]
    assert not engine.evaluate_creation(_goal(), full).allowed
    assert not engine.evaluate_creation(_goal(GoalStatus.COMPLETE), []).allowed


def test_locked_task_cannot_be_completed():
    engine = GatingEngine(days_per_week=7)
    decision = engine.evaluate_completion(_task(4, TaskStatus.LOCKED))
    assert not decision.allowed
    assert decision.reason == "This task is locked. Complete Day 3 first."
    assert engine.evaluate_completion(_task(4, TaskStatus.ACTIVE)).allowed


def test_should_unlock_only_locked_successor():
    assert GatingEngine.should_unlock(_task(2, TaskStatus.LOCKED))
    assert not GatingEngine.should_unlock(_task(2, TaskStatus.ACTIVE))
    assert not GatingEngine.should_unlock(None)


def test_week_completion_needs_exactly_all_days():
    engine = GatingEngine(days_per_week=7)
    assert engine.is_week_complete(7, 7)
    assert not engine.is_week_complete(7, 6)
    assert not engine.is_week_complete(6, 6)


def test_week_stats_rounds_half_up():
    engine = GatingEngine(days_per_week=7)
    tasks = [_task(1, TaskStatus.COMPLETE), _task(2, TaskStatus.ACTIVE)]
    stats = engine.week_stats(tasks)
    assert stats.progress == 50
    assert stats.active == 1

    # 1/8 = 12.5% rounds to 13
    eight = [_task(1, TaskStatus.COMPLETE)] + [_task(d, TaskStatus.LOCKED) for d in range(2, 9)]
    assert GatingEngine(days_per_week=8).week_stats(eight).progress == 13
    assert engine.week_stats([]).progress == 0


def test_date_gate_blocks_new_date_until_previous_date_complete():
    engine = GatingEngine()
    monday = date(2026, 3, 2)
    tasks = [
        _task(1, TaskStatus.COMPLETE, monday, "dt_a"),
        _task(2, TaskStatus.ACTIVE, monday, "dt_b"),
    ]
    decision = engine.evaluate_date_creation(tasks, date(2026, 3, 3))
    assert not decision.allowed
    assert decision.reason == "Complete all tasks from Mar 2 first (1/2 done)"
    assert decision.blocking_task_ids == ["dt_b"]
    assert decision.previous_date == monday


def test_date_gate_allows_same_date_and_first_date():
    engine = GatingEngine()
    monday = date(2026, 3, 2)
    tasks = [_task(1, TaskStatus.ACTIVE, monday)]
    assert engine.evaluate_date_creation(tasks, monday).allowed
    assert engine.evaluate_date_creation([], monday).allowed
    # only earlier dates gate
    assert engine.evaluate_date_creation(tasks, date(2026, 3, 1)).allowed


def test_new_week_blocked_while_active_week_open():
    engine = GatingEngine(days_per_week=7)
    decision = engine.evaluate_new_week(_goal(), completed_count=3)
    assert not decision.allowed
    assert decision.details["active_goal"]["completed_tasks"] == 3
    assert decision.details["active_goal"]["total_tasks"] == 7
    assert engine.evaluate_new_week(_goal(), completed_count=7).allowed
    assert engine.evaluate_new_week(None, completed_count=0).allowed
