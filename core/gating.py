"""
Gating engine for WeekStreak.

Pure decisions about the day-gated week, with no store access:
- whether a new day may be created (sequential and date-bucketed rules)
- what status a new day starts in
- whether a day may be completed
- what a completion cascades into (unlock next day, complete the week)
- week statistics

Per-task state machine: locked -> active -> complete (terminal).
Per-goal state machine: active -> complete (terminal).
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from core.config_manager import config
from core.models import DailyTask, GoalStatus, TaskStatus, WeeklyGoal


@dataclass
class GateDecision:
    """Allow/deny plus, on denial, the reason and the blocking tasks."""
    allowed: bool
    reason: Optional[str] = None
    blocking_task_ids: List[str] = field(default_factory=list)
    previous_date: Optional[date] = None
    day_number: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(cls, day_number: Optional[int] = None) -> "GateDecision":
        return cls(allowed=True, day_number=day_number)

    @classmethod
    def deny(cls, reason: str, **kwargs) -> "GateDecision":
        return cls(allowed=False, reason=reason, **kwargs)


@dataclass
class WeekStats:
    total: int
    completed: int
    active: int
    locked: int
    progress: int          # percent, rounded
    is_complete: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "active": self.active,
            "locked": self.locked,
            "progress": self.progress,
            "is_complete": self.is_complete,
        }


def _format_day(d: date) -> str:
    return f"{d.strftime('%b')} {d.day}"


class GatingEngine:
    """Sequencing rules for one user's weeks."""

    def __init__(
        self,
        days_per_week: Optional[int] = None,
        allow_planning_ahead: Optional[bool] = None,
    ):
        self.days_per_week = days_per_week if days_per_week is not None else config.DAYS_PER_WEEK
        self.allow_planning_ahead = (
            allow_planning_ahead if allow_planning_ahead is not None else config.ALLOW_PLANNING_AHEAD
        )

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------
    def evaluate_creation(
        self,
        goal: WeeklyGoal,
        tasks: List[DailyTask],
        require_previous_complete: bool = True,
    ) -> GateDecision:
        """
        Decide whether the next day of `goal` may be created.

        `tasks` are the goal's current tasks. On success the decision carries
        the day number the new task gets. With `require_previous_complete`
        off, the previous day may still be open and the new day starts locked
        (the date gate is then the only ordering check).
        """
        if goal.status == GoalStatus.COMPLETE:
            return GateDecision.deny("Cannot add tasks to a completed weekly goal")

        if len(tasks) >= self.days_per_week:
            return GateDecision.deny(
                f"Maximum {self.days_per_week} tasks per week. This week is full.",
                details={"total_tasks": len(tasks)},
            )

        day_number = len(tasks) + 1
        if day_number == 1:
            return GateDecision.allow(day_number)

        previous = next((t for t in tasks if t.day_number == day_number - 1), None)
        if previous is None:
            return GateDecision.deny(
                f"You must create Day {day_number - 1} before creating Day {day_number}",
            )

        if (
            require_previous_complete
            and previous.status != TaskStatus.COMPLETE
            and not self.allow_planning_ahead
        ):
            return GateDecision.deny(
                f"Complete Day {previous.day_number} before creating Day {day_number}",
                blocking_task_ids=[previous.id],
                details={"blocking_day": previous.day_number},
            )

        return GateDecision.allow(day_number)

    def evaluate_date_creation(self, tasks: List[DailyTask], new_date: date) -> GateDecision:
        """
        Date-bucketed rule: a task on a new calendar date needs every task on
        the most recent earlier date to be complete.

        `tasks` are all of the user's tasks across weeks.
        """
        if not tasks:
            return GateDecision.allow()

        by_date: Dict[date, List[DailyTask]] = {}
        for task in tasks:
            if task.scheduled_date is None:
                continue
            by_date.setdefault(task.scheduled_date, []).append(task)

        if new_date in by_date:
            return GateDecision.allow()

        earlier = sorted(d for d in by_date if d < new_date)
        if not earlier:
            return GateDecision.allow()

        previous_date = earlier[-1]
        on_previous = by_date[previous_date]
        incomplete = [t for t in on_previous if t.status != TaskStatus.COMPLETE]
        if incomplete:
            done = len(on_previous) - len(incomplete)
            return GateDecision.deny(
                f"Complete all tasks from {_format_day(previous_date)} first "
                f"({done}/{len(on_previous)} done)",
                blocking_task_ids=[t.id for t in incomplete],
                previous_date=previous_date,
            )

        return GateDecision.allow()

    def initial_status(self, day_number: int, previous: Optional[DailyTask]) -> TaskStatus:
        if day_number == 1:
            return TaskStatus.ACTIVE
        if previous is not None and previous.status == TaskStatus.COMPLETE:
            return TaskStatus.ACTIVE
        return TaskStatus.LOCKED

    # ------------------------------------------------------------------
    # completion
    # ------------------------------------------------------------------
    def evaluate_completion(self, task: DailyTask) -> GateDecision:
        """Locked days cannot be completed; complete days are idempotent."""
        if task.status == TaskStatus.LOCKED:
            return GateDecision.deny(
                f"This task is locked. Complete Day {task.day_number - 1} first.",
                details={"day_number": task.day_number},
            )
        return GateDecision.allow(task.day_number)

    @staticmethod
    def should_unlock(next_task: Optional[DailyTask]) -> bool:
        return next_task is not None and next_task.status == TaskStatus.LOCKED

    def is_week_complete(self, total: int, completed: int) -> bool:
        return total == self.days_per_week and completed == self.days_per_week

    def completion_message(
        self,
        task: DailyTask,
        next_unlocked: bool,
        week_completed: bool,
        already_completed: bool = False,
    ) -> str:
        if already_completed:
            return f"Day {task.day_number} was already completed."
        if week_completed:
            return "Task completed! This was the final task of the week. Week complete!"
        if task.day_number >= self.days_per_week:
            return "Task completed! This was the final task of the week."
        if next_unlocked:
            return f"Task completed! Day {task.day_number + 1} is now unlocked."
        return "Task completed!"

    # ------------------------------------------------------------------
    # weeks
    # ------------------------------------------------------------------
    def evaluate_new_week(self, active_goal: Optional[WeeklyGoal], completed_count: int) -> GateDecision:
        """
        A new week may start when there is no active week, or when the
        active one has all of its days complete.
        """
        if active_goal is None or completed_count >= self.days_per_week:
            return GateDecision.allow()
        return GateDecision.deny(
            f"You have an incomplete weekly goal. Complete all {self.days_per_week} "
            "tasks before creating a new week.",
            details={
                "active_goal": {
                    "id": active_goal.id,
                    "title": active_goal.title,
                    "completed_tasks": completed_count,
                    "total_tasks": self.days_per_week,
                }
            },
        )

    def week_stats(self, tasks: List[DailyTask]) -> WeekStats:
        total = len(tasks)
        completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETE)
        active = sum(1 for t in tasks if t.status == TaskStatus.ACTIVE)
        locked = sum(1 for t in tasks if t.status == TaskStatus.LOCKED)
        # half-up, not banker's rounding
        progress = int(completed * 100 / total + 0.5) if total else 0
        return WeekStats(
            total=total,
            completed=completed,
            active=active,
            locked=locked,
            progress=progress,
            is_complete=self.is_week_complete(total, completed),
        )
