"""
Week service: the application layer over the gating engine and the stores.

Every public method takes the requesting user id and enforces ownership.
Goals owned by someone else are reported as not found; tasks whose parent
goal belongs to someone else are reported as forbidden.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from core.document_store import DocumentStore
from core.event_log import append_event
from core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from core.gating import GatingEngine, WeekStats
from core.logger import get_logger
from core.models import (
    DailyTask,
    GoalStatus,
    GoalType,
    Resource,
    TaskStatus,
    WeeklyGoal,
)
from core.stores import GoalStore, TaskStore, goal_to_dict, task_to_dict
from core.validators import sanitize_code, sanitize_learning_notes, validate_submission

logger = get_logger("week_service")


@dataclass
class CompletionResult:
    task: DailyTask
    next_task_unlocked: bool
    week_completed: bool
    already_completed: bool
    message: str
    next_task_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": task_to_dict(self.task),
            "next_task_unlocked": self.next_task_unlocked,
            "next_task_id": self.next_task_id,
            "week_completed": self.week_completed,
            "already_completed": self.already_completed,
            "message": self.message,
        }


class WeekService:
    """Application service for weekly goals and their day-gated tasks."""

    def __init__(
        self,
        db: Optional[DocumentStore] = None,
        engine: Optional[GatingEngine] = None,
    ):
        self.db = db if db is not None else DocumentStore()
        self.goals = GoalStore(self.db)
        self.tasks = TaskStore(self.db)
        self.engine = engine or GatingEngine()

    # ---------------------------------------------------------------------
    # Parsing helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def parse_goal_type(raw: Any) -> GoalType:
        try:
            return GoalType(getattr(raw, "value", raw))
        except ValueError:
            raise ValidationError('Invalid type. Must be "learning" or "product"')

    @staticmethod
    def parse_goal_status(raw: Any) -> Optional[GoalStatus]:
        """Unknown filter values are ignored rather than rejected."""
        try:
            return GoalStatus(raw) if raw else None
        except ValueError:
            return None

    # ---------------------------------------------------------------------
    # Goals
    # ---------------------------------------------------------------------
    def require_goal(self, user_id: str, goal_id: str) -> WeeklyGoal:
        goal = self.goals.get_owned(goal_id, user_id)
        if goal is None:
            raise NotFoundError("Weekly goal", goal_id, "Weekly goal not found or unauthorized")
        return goal

    def create_goal(self, user_id: str, title: str, goal_type: Any) -> WeeklyGoal:
        """
        Start a new week.

        Blocked while the active week has fewer than DAYS_PER_WEEK complete
        tasks. An active week whose days are all complete but which was never
        flipped is completed here first.
        """
        title = (title or "").strip()
        if not title or not goal_type:
            raise ValidationError("Missing required fields: title, type")
        parsed_type = self.parse_goal_type(goal_type)

        with self.db.transaction():
            active = self.goals.find_active(user_id)
            if active is not None:
                completed = self.tasks.count(active.id, TaskStatus.COMPLETE)
                decision = self.engine.evaluate_new_week(active, completed)
                if not decision.allowed:
                    raise PreconditionError(decision.reason, details=decision.details)
                self._mark_goal_complete(active, reason="new_week_requested")

            goal = self.goals.create(user_id, title, parsed_type)

        append_event({
            "type": "goal_created",
            "user_id": user_id,
            "payload": {"goal_id": goal.id, "title": goal.title, "goal_type": goal.type.value},
        })
        logger.info("Weekly goal %s created for %s", goal.id, user_id)
        return goal

    def update_goal(
        self,
        user_id: str,
        goal_id: str,
        title: Optional[str] = None,
        goal_type: Optional[Any] = None,
    ) -> WeeklyGoal:
        """Only title and type are editable; status belongs to the cascade."""
        goal = self.require_goal(user_id, goal_id)
        changes: Dict[str, Any] = {}
        if title and title.strip():
            changes["title"] = title.strip()
        if goal_type:
            changes["type"] = self.parse_goal_type(goal_type)
        if not changes:
            return goal
        return self.goals.update(goal.id, changes)

    def goal_stats(self, goal_id: str) -> WeekStats:
        return self.engine.week_stats(self.tasks.list_for_goal(goal_id))

    def list_goals(
        self,
        user_id: str,
        status: Optional[str] = None,
        goal_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Goals newest first, each with task completion counts."""
        parsed_type = None
        if goal_type:
            try:
                parsed_type = GoalType(goal_type)
            except ValueError:
                parsed_type = None

        goals = self.goals.list_for_user(user_id, self.parse_goal_status(status), parsed_type)
        enriched = []
        for goal in goals:
            stats = self.goal_stats(goal.id)
            payload = goal_to_dict(goal)
            payload["task_stats"] = {
                "total": stats.total,
                "completed": stats.completed,
                "progress": stats.progress,
            }
            enriched.append(payload)
        return enriched

    def get_goal_detail(self, user_id: str, goal_id: str) -> Dict[str, Any]:
        goal = self.require_goal(user_id, goal_id)
        tasks = self.tasks.list_for_goal(goal.id)
        payload = goal_to_dict(goal)
        payload["daily_tasks"] = [task_to_dict(t) for t in tasks]
        payload["task_stats"] = self.engine.week_stats(tasks).to_dict()
        return payload

    def current_week(self, user_id: str) -> Optional[Dict[str, Any]]:
        active = self.goals.find_active(user_id)
        if active is None:
            return None
        return self.get_goal_detail(user_id, active.id)

    def get_or_create_week_for_type(self, user_id: str, goal_type: Any) -> WeeklyGoal:
        """
        Auto-managed weeks: reuse the active week, roll over to a new one
        once every day of it is complete, or open "Week N" when none exists.
        """
        parsed_type = self.parse_goal_type(goal_type)
        with self.db.transaction():
            week = self.goals.find_active(user_id)
            if week is not None:
                stats = self.goal_stats(week.id)
                if not stats.is_complete:
                    return week
                self._mark_goal_complete(week, reason="auto_week_rollover")

            week_count = self.goals.count_for_user(user_id)
            week = self.goals.create(user_id, f"Week {week_count + 1}", parsed_type)

        append_event({
            "type": "goal_created",
            "user_id": user_id,
            "payload": {"goal_id": week.id, "title": week.title, "goal_type": week.type.value, "auto": True},
        })
        logger.info("Auto-managed week %s opened for %s", week.id, user_id)
        return week

    def check_and_complete_week(self, goal_id: str) -> Tuple[Optional[WeeklyGoal], bool]:
        """
        Recount the goal's tasks from the store and complete the goal when
        every day is complete. Returns (goal, completed_now).
        """
        with self.db.transaction():
            goal = self.goals.get(goal_id)
            if goal is None or goal.status == GoalStatus.COMPLETE:
                return goal, False

            total = self.tasks.count(goal_id)
            completed = self.tasks.count(goal_id, TaskStatus.COMPLETE)
            logger.info("Week %s: %d/%d tasks completed", goal_id, completed, total)

            if not self.engine.is_week_complete(total, completed):
                return goal, False

            return self._mark_goal_complete(goal, reason="all_days_complete"), True

    def _mark_goal_complete(self, goal: WeeklyGoal, reason: str) -> WeeklyGoal:
        completed_at = datetime.now()
        updated = self.goals.update(
            goal.id,
            {"status": GoalStatus.COMPLETE, "completed_at": completed_at},
            expected={"status": GoalStatus.ACTIVE},
        )
        append_event({
            "type": "goal_completed",
            "user_id": goal.user_id,
            "payload": {"goal_id": goal.id, "reason": reason},
        })
        logger.info("Weekly goal %s auto-completed (%s)", goal.id, reason)
        return updated

    # ---------------------------------------------------------------------
    # Tasks
    # ---------------------------------------------------------------------
    def require_owned_task(self, user_id: str, task_id: str) -> Tuple[DailyTask, WeeklyGoal]:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Daily task", task_id, "Daily task not found")
        goal = self.goals.get_owned(task.weekly_goal_id, user_id)
        if goal is None:
            raise ForbiddenError("Unauthorized to access this task")
        return task, goal

    def get_task(self, user_id: str, task_id: str) -> DailyTask:
        task, _ = self.require_owned_task(user_id, task_id)
        return task

    def list_tasks(self, user_id: str, weekly_goal_id: str) -> List[DailyTask]:
        goal = self.require_goal(user_id, weekly_goal_id)
        return self.tasks.list_for_goal(goal.id)

    def list_all_tasks(self, user_id: str) -> List[Dict[str, Any]]:
        """Every task across the user's weeks, each tagged with its goal."""
        goals = {g.id: g for g in self.goals.list_for_user(user_id)}
        enriched = []
        for task in self.tasks.list_for_goals(list(goals)):
            goal = goals[task.weekly_goal_id]
            payload = task_to_dict(task)
            payload["goal_type"] = goal.type.value
            payload["goal_title"] = goal.title
            enriched.append(payload)
        return enriched

    def create_task(
        self,
        user_id: str,
        weekly_goal_id: str,
        description: str,
        resources: Optional[List[Resource]] = None,
        scheduled_date: Optional[date] = None,
    ) -> DailyTask:
        """Create the next day of an explicit week."""
        description = (description or "").strip()
        if not weekly_goal_id or not description:
            raise ValidationError("Missing required fields: weekly_goal_id, description")

        with self.db.transaction():
            goal = self.require_goal(user_id, weekly_goal_id)
            return self._create_in_goal(goal, description, resources or [], scheduled_date)

    def create_task_auto(
        self,
        user_id: str,
        goal_type: Any,
        description: str,
        resources: Optional[List[Resource]] = None,
        scheduled_date: Optional[date] = None,
    ) -> DailyTask:
        """
        Create a task in the auto-managed week. A new calendar date is only
        accepted once the most recent earlier date is fully complete; more
        tasks on an existing date are always accepted and start locked
        behind the open day.
        """
        description = (description or "").strip()
        if not description:
            raise ValidationError("Missing required fields: description")
        target_date = scheduled_date or date.today()

        with self.db.transaction():
            goal_ids = [g.id for g in self.goals.list_for_user(user_id)]
            decision = self.engine.evaluate_date_creation(self.tasks.list_for_goals(goal_ids), target_date)
            if not decision.allowed:
                raise PreconditionError(
                    decision.reason,
                    details={
                        "incomplete_task_ids": decision.blocking_task_ids,
                        "previous_date": decision.previous_date.isoformat() if decision.previous_date else None,
                    },
                )
            week = self.get_or_create_week_for_type(user_id, goal_type)
            return self._create_in_goal(
                week, description, resources or [], target_date, require_previous_complete=False,
            )

    def _create_in_goal(
        self,
        goal: WeeklyGoal,
        description: str,
        resources: List[Resource],
        scheduled_date: Optional[date],
        require_previous_complete: bool = True,
    ) -> DailyTask:
        existing = self.tasks.list_for_goal(goal.id)
        decision = self.engine.evaluate_creation(goal, existing, require_previous_complete)
        if not decision.allowed:
            details = dict(decision.details)
            if decision.blocking_task_ids:
                details["blocking_task_ids"] = decision.blocking_task_ids
            raise PreconditionError(decision.reason, details=details)

        day_number = decision.day_number
        previous = next((t for t in existing if t.day_number == day_number - 1), None)
        status = self.engine.initial_status(day_number, previous)

        task = self.tasks.create(
            weekly_goal_id=goal.id,
            day_number=day_number,
            description=description,
            resources=resources,
            status=status,
            scheduled_date=scheduled_date,
        )
        self.goals.add_task_ref(goal.id, task.id)

        append_event({
            "type": "task_created",
            "user_id": goal.user_id,
            "payload": {
                "task_id": task.id,
                "goal_id": goal.id,
                "day_number": day_number,
                "status": status.value,
            },
        })
        logger.info("Day %d (%s) created in %s as %s", day_number, task.id, goal.id, status.value)
        return task

    def update_task(
        self,
        user_id: str,
        task_id: str,
        description: Optional[str] = None,
        resources: Optional[List[Resource]] = None,
    ) -> DailyTask:
        """Edit description/resources of a day that is not complete yet."""
        task, _ = self.require_owned_task(user_id, task_id)
        if task.status == TaskStatus.COMPLETE:
            raise PreconditionError("Cannot update a completed task")

        changes: Dict[str, Any] = {}
        if description and description.strip():
            changes["description"] = description.strip()
        if resources is not None:
            changes["resources"] = [{"url": r.url, "title": r.title} for r in resources]
        if not changes:
            return task
        return self.tasks.update(task.id, changes, expected={"status": task.status})

    def complete_task(
        self,
        user_id: str,
        task_id: str,
        code: str,
        learning_notes: str,
        github_url: Optional[str] = None,
    ) -> CompletionResult:
        """
        Complete a day and run the cascade.

        1. already complete -> return it unchanged, no side effects
        2. locked -> PreconditionError
        3. invalid submission -> ValidationError listing every failure
        4. write complete (guarded on status == active)
        5. unlock day N+1 if it is locked
        6. recount the week and complete it when every day is complete
        """
        task, goal = self.require_owned_task(user_id, task_id)

        if task.status == TaskStatus.COMPLETE:
            return self._already_completed(task)

        decision = self.engine.evaluate_completion(task)
        if not decision.allowed:
            raise PreconditionError(decision.reason, details=decision.details)

        clean_code = sanitize_code(code)
        clean_notes = sanitize_learning_notes(learning_notes)
        errors = validate_submission(clean_code, clean_notes, github_url)
        if errors:
            raise ValidationError("Invalid completion submission", errors=errors)

        completion = {
            "code": clean_code,
            "learning_notes": clean_notes,
            "completed_at": datetime.now().isoformat(),
            "github_url": github_url,
        }
        try:
            task = self.tasks.update(
                task.id,
                {"status": TaskStatus.COMPLETE, "completion_data": completion},
                expected={"status": TaskStatus.ACTIVE},
            )
        except ConflictError:
            current = self.tasks.get(task.id)
            if current is not None and current.status == TaskStatus.COMPLETE:
                logger.info("Task %s completed by a concurrent request", task.id)
                return self._already_completed(current)
            raise

        append_event({
            "type": "task_completed",
            "user_id": user_id,
            "payload": {"task_id": task.id, "goal_id": goal.id, "day_number": task.day_number},
        })

        next_task_id = self._unlock_next(goal, task)
        _, week_completed = self.check_and_complete_week(goal.id)

        message = self.engine.completion_message(task, next_task_id is not None, week_completed)
        return CompletionResult(
            task=task,
            next_task_unlocked=next_task_id is not None,
            week_completed=week_completed,
            already_completed=False,
            message=message,
            next_task_id=next_task_id,
        )

    def _unlock_next(self, goal: WeeklyGoal, task: DailyTask) -> Optional[str]:
        if task.day_number >= self.engine.days_per_week:
            return None

        next_task = self.tasks.find_by_day(goal.id, task.day_number + 1)
        if not self.engine.should_unlock(next_task):
            return None

        try:
            self.tasks.update(
                next_task.id,
                {"status": TaskStatus.ACTIVE},
                expected={"status": TaskStatus.LOCKED},
            )
        except ConflictError:
            logger.info("Day %d of %s was unlocked concurrently", next_task.day_number, goal.id)
            return None

        append_event({
            "type": "task_unlocked",
            "user_id": goal.user_id,
            "payload": {"task_id": next_task.id, "goal_id": goal.id, "day_number": next_task.day_number},
        })
        logger.info("Day %d unlocked in %s", next_task.day_number, goal.id)
        return next_task.id

    def _already_completed(self, task: DailyTask) -> CompletionResult:
        return CompletionResult(
            task=task,
            next_task_unlocked=False,
            week_completed=False,
            already_completed=True,
            message=self.engine.completion_message(task, False, False, already_completed=True),
        )

    def get_completion(self, user_id: str, task_id: str) -> Dict[str, Any]:
        """The stored submission of a completed day."""
        task, goal = self.require_owned_task(user_id, task_id)
        if task.status != TaskStatus.COMPLETE or task.completion_data is None:
            raise PreconditionError("Task is not completed yet")
        return {
            "task_id": task.id,
            "day_number": task.day_number,
            "description": task.description,
            "completion_data": task_to_dict(task)["completion_data"],
            "weekly_goal_type": goal.type.value,
        }
