from datetime import date

import pytest

from conftest import GOOD_CODE, GOOD_NOTES, OTHER_USER, USER, complete_week
from core.event_log import read_events
from core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from core.gating import GatingEngine
from core.models import GoalStatus, GoalType, TaskStatus
from core.week_service import WeekService


def test_create_goal_requires_title_and_valid_type(service):
    with pytest.raises(ValidationError):
        service.create_goal(USER, "  ", "learning")
    with pytest.raises(ValidationError) as exc:
        service.create_goal(USER, "Week 1", "hobby")
    assert 'Must be "learning" or "product"' in exc.value.message


def test_first_day_active_and_second_day_waits(service):
    goal = service.create_goal(USER, "Learn Rust", "learning")
    day1 = service.create_task(USER, goal.id, "Ownership basics")
    assert day1.day_number == 1
    assert day1.status == TaskStatus.ACTIVE

    with pytest.raises(PreconditionError) as exc:
        service.create_task(USER, goal.id, "Borrowing")
    assert exc.value.message == "Complete Day 1 before creating Day 2"

    service.complete_task(USER, day1.id, GOOD_CODE, GOOD_NOTES)
    day2 = service.create_task(USER, goal.id, "Borrowing")
    assert day2.day_number == 2
    assert day2.status == TaskStatus.ACTIVE
    assert service.goals.get(goal.id).daily_task_ids == [day1.id, day2.id]


def test_completion_unlocks_only_the_next_day(store):
    service = WeekService(db=store, engine=GatingEngine(allow_planning_ahead=True))
    goal = service.create_goal(USER, "Plan ahead", "product")
    day1 = service.create_task(USER, goal.id, "one")
    day2 = service.create_task(USER, goal.id, "two")
    day3 = service.create_task(USER, goal.id, "three")
    assert [day1.status, day2.status, day3.status] == [TaskStatus.ACTIVE, TaskStatus.LOCKED, TaskStatus.LOCKED]

    result = service.complete_task(USER, day1.id, GOOD_CODE, GOOD_NOTES)

    assert result.next_task_unlocked
    assert result.next_task_id == day2.id
    assert not result.week_completed
    assert result.message == "Task completed! Day 2 is now unlocked."
    assert service.tasks.get(day2.id).status == TaskStatus.ACTIVE
    assert service.tasks.get(day3.id).status == TaskStatus.LOCKED


def test_locked_day_cannot_be_completed(store):
    service = WeekService(db=store, engine=GatingEngine(allow_planning_ahead=True))
    goal = service.create_goal(USER, "Plan ahead", "product")
    service.create_task(USER, goal.id, "one")
    day2 = service.create_task(USER, goal.id, "two")

    with pytest.raises(PreconditionError) as exc:
        service.complete_task(USER, day2.id, GOOD_CODE, GOOD_NOTES)
    assert exc.value.message == "This task is locked. Complete Day 1 first."
    assert service.tasks.get(day2.id).status == TaskStatus.LOCKED


def test_seeded_complete_then_locked_days_unlock_in_order(service):
    goal = service.goals.create(USER, "Seeded", GoalType.LEARNING)
    day1 = service.tasks.create(goal.id, 1, "one", [], TaskStatus.COMPLETE)
    day2 = service.tasks.create(goal.id, 2, "two", [], TaskStatus.ACTIVE)
    day3 = service.tasks.create(goal.id, 3, "three", [], TaskStatus.LOCKED)

    result = service.complete_task(USER, day2.id, GOOD_CODE, GOOD_NOTES)

    assert result.next_task_id == day3.id
    assert service.tasks.get(day1.id).status == TaskStatus.COMPLETE
    assert service.tasks.get(day3.id).status == TaskStatus.ACTIVE


def test_invalid_submission_lists_errors_and_leaves_task_active(service):
    goal = service.create_goal(USER, "Week", "learning")
    day1 = service.create_task(USER, goal.id, "one")

    with pytest.raises(ValidationError) as exc:
        service.complete_task(USER, day1.id, "tiny", "short")
    assert len(exc.value.errors) == 2
    assert exc.value.to_dict()["details"]["errors"] == exc.value.errors
    assert service.tasks.get(day1.id).status == TaskStatus.ACTIVE


def test_script_tags_are_stripped_before_storing(service):
    goal = service.create_goal(USER, "Week", "learning")
    day1 = service.create_task(USER, goal.id, "one")
    service.complete_task(USER, day1.id, GOOD_CODE + "<script>steal()</script>", GOOD_NOTES)

    stored = service.tasks.get(day1.id).completion_data
    assert "<script>" not in stored.code
    assert stored.code == GOOD_CODE.strip()


def test_script_only_code_is_rejected(service):
    goal = service.create_goal(USER, "Week", "learning")
    day1 = service.create_task(USER, goal.id, "one")
    with pytest.raises(ValidationError) as exc:
        service.complete_task(USER, day1.id, "<script>alert('a long payload')</script>", GOOD_NOTES)
    assert exc.value.errors == ["Code cannot be empty"]


def test_completion_is_idempotent(service):
    goal = service.create_goal(USER, "Week", "learning")
    day1 = service.create_task(USER, goal.id, "one")
    first = service.complete_task(USER, day1.id, GOOD_CODE, GOOD_NOTES)
    events_before = len(read_events())

    second = service.complete_task(USER, day1.id, "different code here", "different notes written here")

    assert second.already_completed
    assert not second.next_task_unlocked
    assert second.message == "Day 1 was already completed."
    assert second.task.completion_data.completed_at == first.task.completion_data.completed_at
    assert second.task.completion_data.code == GOOD_CODE.strip()
    assert second.task.version == first.task.version
    assert len(read_events()) == events_before


def test_concurrent_completion_loser_sees_already_completed(service):
    goal = service.create_goal(USER, "Week", "learning")
    day1 = service.create_task(USER, goal.id, "one")
    original_update = service.tasks.update
    raced = []

    def racing_update(task_id, changes, expected=None):
        if not raced and expected == {"status": TaskStatus.ACTIVE}:
            raced.append(task_id)
            # another request wins between our read and our write
            original_update(task_id, {"status": TaskStatus.COMPLETE})
        return original_update(task_id, changes, expected=expected)

    service.tasks.update = racing_update
    result = service.complete_task(USER, day1.id, GOOD_CODE, GOOD_NOTES)

    assert raced == [day1.id]
    assert result.already_completed
    assert read_events(event_type="task_completed") == []


def test_compare_and_swap_conflict_propagates_when_state_is_not_complete(service):
    goal = service.create_goal(USER, "Week", "learning")
    day1 = service.create_task(USER, goal.id, "one")
    with pytest.raises(ConflictError):
        service.tasks.update(day1.id, {"description": "x"}, expected={"status": TaskStatus.LOCKED})


def test_seventh_completion_completes_the_week(service):
    goal = complete_week(service)

    assert goal.status == GoalStatus.COMPLETE
    assert goal.completed_at is not None
    assert service.tasks.count(goal.id, TaskStatus.COMPLETE) == 7
    completed_events = read_events(event_type="goal_completed", user_id=USER)
    assert len(completed_events) == 1
    assert completed_events[0]["payload"]["goal_id"] == goal.id


def test_final_day_result_reports_week_completed(service):
    goal = service.goals.create(USER, "Seeded", GoalType.PRODUCT)
    for day in range(1, 7):
        service.tasks.create(goal.id, day, f"day {day}", [], TaskStatus.COMPLETE)
    last = service.tasks.create(goal.id, 7, "day 7", [], TaskStatus.ACTIVE)

    result = service.complete_task(USER, last.id, GOOD_CODE, GOOD_NOTES)

    assert result.week_completed
    assert not result.next_task_unlocked
    assert result.message == "Task completed! This was the final task of the week. Week complete!"
    assert service.goals.get(goal.id).status == GoalStatus.COMPLETE


def test_week_with_fewer_days_stays_active(service):
    goal = service.create_goal(USER, "Week", "learning")
    for day in range(1, 4):
        task = service.create_task(USER, goal.id, f"day {day}")
        service.complete_task(USER, task.id, GOOD_CODE, GOOD_NOTES)

    refreshed, completed_now = service.check_and_complete_week(goal.id)
    assert not completed_now
    assert refreshed.status == GoalStatus.ACTIVE


def test_second_active_goal_is_blocked_with_progress(service):
    goal = service.create_goal(USER, "Week 1", "learning")
    task = service.create_task(USER, goal.id, "one")
    service.complete_task(USER, task.id, GOOD_CODE, GOOD_NOTES)

    with pytest.raises(PreconditionError) as exc:
        service.create_goal(USER, "Week 2", "learning")
    active = exc.value.details["active_goal"]
    assert active["id"] == goal.id
    assert active["completed_tasks"] == 1
    assert active["total_tasks"] == 7

    # other users are unaffected
    assert service.create_goal(OTHER_USER, "Week 1", "product").status == GoalStatus.ACTIVE


def test_new_goal_allowed_after_week_complete(service):
    first = complete_week(service)
    second = service.create_goal(USER, "Week 2", "product")
    assert second.status == GoalStatus.ACTIVE
    assert service.goals.find_active(USER).id == second.id
    assert service.goals.get(first.id).status == GoalStatus.COMPLETE


def test_stale_active_week_is_completed_when_new_week_starts(service):
    goal = service.goals.create(USER, "Seeded", GoalType.LEARNING)
    for day in range(1, 8):
        service.tasks.create(goal.id, day, f"day {day}", [], TaskStatus.COMPLETE)

    new_goal = service.create_goal(USER, "Next", "learning")

    assert service.goals.get(goal.id).status == GoalStatus.COMPLETE
    assert service.goals.find_active(USER).id == new_goal.id


def test_ownership_rules(service):
    goal = service.create_goal(USER, "Mine", "learning")
    task = service.create_task(USER, goal.id, "one")

    with pytest.raises(NotFoundError):
        service.require_goal(OTHER_USER, goal.id)
    with pytest.raises(ForbiddenError):
        service.complete_task(OTHER_USER, task.id, GOOD_CODE, GOOD_NOTES)
    with pytest.raises(NotFoundError):
        service.get_task(USER, "dt_missing")
    with pytest.raises(NotFoundError):
        service.create_task(OTHER_USER, goal.id, "sneaky")


def test_update_task_rules(service):
    goal = service.create_goal(USER, "Week", "learning")
    task = service.create_task(USER, goal.id, "one")
    updated = service.update_task(USER, task.id, description="  renamed  ")
    assert updated.description == "renamed"
    assert updated.version == task.version + 1

    service.complete_task(USER, task.id, GOOD_CODE, GOOD_NOTES)
    with pytest.raises(PreconditionError):
        service.update_task(USER, task.id, description="again")


def test_update_goal_edits_title_and_type_only(service):
    goal = service.create_goal(USER, "Week", "learning")
    updated = service.update_goal(USER, goal.id, title="Renamed", goal_type="product")
    assert updated.title == "Renamed"
    assert updated.type == GoalType.PRODUCT
    assert updated.status == GoalStatus.ACTIVE


def test_goal_listing_and_detail_stats(service):
    goal = service.create_goal(USER, "Week", "learning")
    task = service.create_task(USER, goal.id, "one")
    service.complete_task(USER, task.id, GOOD_CODE, GOOD_NOTES)
    service.create_task(USER, goal.id, "two")

    listed = service.list_goals(USER)
    assert listed[0]["task_stats"] == {"total": 2, "completed": 1, "progress": 50}
    assert service.list_goals(USER, status="complete") == []

    detail = service.get_goal_detail(USER, goal.id)
    assert [t["day_number"] for t in detail["daily_tasks"]] == [1, 2]
    assert detail["task_stats"]["active"] == 1


def test_completion_lookup(service):
    goal = service.create_goal(USER, "Week", "product")
    task = service.create_task(USER, goal.id, "one")
    with pytest.raises(PreconditionError):
        service.get_completion(USER, task.id)

    service.complete_task(USER, task.id, GOOD_CODE, GOOD_NOTES, github_url="https://github.com/a/b")
    data = service.get_completion(USER, task.id)
    assert data["weekly_goal_type"] == "product"
    assert data["completion_data"]["github_url"] == "https://github.com/a/b"


def test_auto_week_creation_and_date_gate(service):
    monday = date(2026, 3, 2)
    tuesday = date(2026, 3, 3)

    day1 = service.create_task_auto(USER, "learning", "first", scheduled_date=monday)
    goal = service.goals.get(day1.weekly_goal_id)
    assert goal.title == "Week 1"
    assert day1.status == TaskStatus.ACTIVE

    with pytest.raises(PreconditionError) as exc:
        service.create_task_auto(USER, "learning", "second", scheduled_date=tuesday)
    assert exc.value.message == "Complete all tasks from Mar 2 first (0/1 done)"
    assert exc.value.details["incomplete_task_ids"] == [day1.id]
    assert exc.value.details["previous_date"] == "2026-03-02"

    service.complete_task(USER, day1.id, GOOD_CODE, GOOD_NOTES)
    day2 = service.create_task_auto(USER, "learning", "second", scheduled_date=tuesday)
    assert day2.weekly_goal_id == goal.id
    assert day2.day_number == 2


def test_auto_week_accepts_more_tasks_on_the_same_date(service):
    monday = date(2026, 3, 2)
    tuesday = date(2026, 3, 3)

    first = service.create_task_auto(USER, "learning", "first", scheduled_date=monday)
    second = service.create_task_auto(USER, "learning", "second", scheduled_date=monday)
    assert second.weekly_goal_id == first.weekly_goal_id
    assert second.day_number == 2
    assert second.status == TaskStatus.LOCKED

    service.complete_task(USER, first.id, GOOD_CODE, GOOD_NOTES)
    assert service.tasks.get(second.id).status == TaskStatus.ACTIVE

    # the date gate alone holds back Tuesday while Monday is half done
    with pytest.raises(PreconditionError) as exc:
        service.create_task_auto(USER, "learning", "third", scheduled_date=tuesday)
    assert exc.value.message == "Complete all tasks from Mar 2 first (1/2 done)"
    assert exc.value.details["incomplete_task_ids"] == [second.id]

    service.complete_task(USER, second.id, GOOD_CODE, GOOD_NOTES)
    third = service.create_task_auto(USER, "learning", "third", scheduled_date=tuesday)
    assert third.day_number == 3
    assert third.status == TaskStatus.ACTIVE


def test_auto_week_rolls_over_after_completion(service):
    complete_week(service, goal_type="learning")
    task = service.create_task_auto(USER, "product", "fresh start")
    week = service.goals.get(task.weekly_goal_id)
    assert week.title == "Week 2"
    assert week.type == GoalType.PRODUCT


def test_list_all_tasks_tags_goal(service):
    goal = service.create_goal(USER, "Tagged", "product")
    service.create_task(USER, goal.id, "one")
    service.create_goal(OTHER_USER, "Theirs", "learning")

    tasks = service.list_all_tasks(USER)
    assert len(tasks) == 1
    assert tasks[0]["goal_title"] == "Tagged"
    assert tasks[0]["goal_type"] == "product"
