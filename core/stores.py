"""
Typed entity stores on top of DocumentStore.

Each store converts between the dataclasses in core.models and the plain
JSON documents the DocumentStore persists. Reads that take a user id are
owner-scoped: a document owned by someone else is simply not found.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from core.document_store import AnyOf, DocumentStore, NotEqual
from core.models import (
    CompletionData,
    DailyTask,
    ExamplePost,
    GoalStatus,
    GoalType,
    Payment,
    PaymentStatus,
    PaymentType,
    Platform,
    Resource,
    TaskStatus,
    User,
    WeeklyGoal,
)

GOALS = "weekly_goals"
TASKS = "daily_tasks"
EXAMPLE_POSTS = "example_posts"
USERS = "users"
PAYMENTS = "payments"


def _iso(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _parse_datetime(value: Optional[Any]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_date(value: Optional[Any]) -> Optional[date]:
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(str(value)[:10])


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _normalize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: (_iso(v) if isinstance(v, (datetime, date)) else _enum_value(v))
        for k, v in changes.items()
    }


# ---------------------------------------------------------------------------
# Weekly goals
# ---------------------------------------------------------------------------

def goal_to_dict(g: WeeklyGoal) -> Dict[str, Any]:
    return {
        "id": g.id,
        "user_id": g.user_id,
        "title": g.title,
        "type": _enum_value(g.type),
        "status": _enum_value(g.status),
        "start_date": _iso(g.start_date),
        "completed_at": _iso(g.completed_at),
        "daily_task_ids": list(g.daily_task_ids),
        "created_at": _iso(g.created_at),
        "updated_at": _iso(g.updated_at),
        "version": g.version,
    }


def dict_to_goal(d: Dict[str, Any]) -> WeeklyGoal:
    return WeeklyGoal(
        id=d["id"],
        user_id=d["user_id"],
        title=d["title"],
        type=GoalType(d["type"]),
        status=GoalStatus(d.get("status", "active")),
        start_date=_parse_datetime(d.get("start_date")),
        completed_at=_parse_datetime(d.get("completed_at")),
        daily_task_ids=list(d.get("daily_task_ids", [])),
        created_at=_parse_datetime(d.get("created_at")),
        updated_at=_parse_datetime(d.get("updated_at")),
        version=d.get("version", 0),
    )


class GoalStore:
    """Weekly goal documents."""

    def __init__(self, db: DocumentStore):
        self.db = db

    def create(self, user_id: str, title: str, goal_type: GoalType) -> WeeklyGoal:
        now = datetime.now()
        doc = self.db.create(GOALS, {
            "user_id": user_id,
            "title": title,
            "type": _enum_value(goal_type),
            "status": GoalStatus.ACTIVE.value,
            "start_date": now.isoformat(),
            "completed_at": None,
            "daily_task_ids": [],
        })
        return dict_to_goal(doc)

    def get(self, goal_id: str) -> Optional[WeeklyGoal]:
        doc = self.db.find_by_id(GOALS, goal_id)
        return dict_to_goal(doc) if doc else None

    def get_owned(self, goal_id: str, user_id: str) -> Optional[WeeklyGoal]:
        doc = self.db.find_by_id(GOALS, goal_id)
        if not doc or doc.get("user_id") != user_id:
            return None
        return dict_to_goal(doc)

    def find_active(self, user_id: str) -> Optional[WeeklyGoal]:
        doc = self.db.find_one(GOALS, {"user_id": user_id, "status": GoalStatus.ACTIVE.value})
        return dict_to_goal(doc) if doc else None

    def list_for_user(
        self,
        user_id: str,
        status: Optional[GoalStatus] = None,
        goal_type: Optional[GoalType] = None,
    ) -> List[WeeklyGoal]:
        filters: Dict[str, Any] = {"user_id": user_id}
        if status is not None:
            filters["status"] = _enum_value(status)
        if goal_type is not None:
            filters["type"] = _enum_value(goal_type)
        docs = self.db.find(GOALS, filters, sort_key=lambda d: d.get("start_date") or "", reverse=True)
        return [dict_to_goal(d) for d in docs]

    def count_for_user(self, user_id: str) -> int:
        return self.db.count(GOALS, {"user_id": user_id})

    def update(
        self,
        goal_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> WeeklyGoal:
        doc = self.db.update(
            GOALS,
            goal_id,
            _normalize_changes(changes),
            expected=_normalize_changes(expected) if expected else None,
        )
        return dict_to_goal(doc)

    def add_task_ref(self, goal_id: str, task_id: str) -> WeeklyGoal:
        with self.db.transaction():
            goal = self.get(goal_id)
            ids = list(goal.daily_task_ids) if goal else []
            ids.append(task_id)
            return self.update(goal_id, {"daily_task_ids": ids})


# ---------------------------------------------------------------------------
# Daily tasks
# ---------------------------------------------------------------------------

def task_to_dict(t: DailyTask) -> Dict[str, Any]:
    completion = None
    if t.completion_data is not None:
        completion = {
            "code": t.completion_data.code,
            "learning_notes": t.completion_data.learning_notes,
            "completed_at": _iso(t.completion_data.completed_at),
            "github_url": t.completion_data.github_url,
        }
    return {
        "id": t.id,
        "weekly_goal_id": t.weekly_goal_id,
        "day_number": t.day_number,
        "description": t.description,
        "resources": [{"url": r.url, "title": r.title} for r in t.resources],
        "status": _enum_value(t.status),
        "scheduled_date": _iso(t.scheduled_date),
        "completion_data": completion,
        "created_at": _iso(t.created_at),
        "updated_at": _iso(t.updated_at),
        "version": t.version,
    }


def dict_to_task(d: Dict[str, Any]) -> DailyTask:
    completion = d.get("completion_data")
    return DailyTask(
        id=d["id"],
        weekly_goal_id=d["weekly_goal_id"],
        day_number=int(d["day_number"]),
        description=d.get("description", ""),
        resources=[Resource(url=r["url"], title=r.get("title")) for r in d.get("resources", [])],
        status=TaskStatus(d.get("status", "locked")),
        scheduled_date=_parse_date(d.get("scheduled_date")),
        completion_data=CompletionData(
            code=completion.get("code", ""),
            learning_notes=completion.get("learning_notes", ""),
            completed_at=_parse_datetime(completion.get("completed_at")),
            github_url=completion.get("github_url"),
        ) if completion else None,
        created_at=_parse_datetime(d.get("created_at")),
        updated_at=_parse_datetime(d.get("updated_at")),
        version=d.get("version", 0),
    )


class TaskStore:
    """Daily task documents."""

    def __init__(self, db: DocumentStore):
        self.db = db

    def create(
        self,
        weekly_goal_id: str,
        day_number: int,
        description: str,
        resources: List[Resource],
        status: TaskStatus,
        scheduled_date: Optional[date] = None,
    ) -> DailyTask:
        doc = self.db.create(TASKS, {
            "weekly_goal_id": weekly_goal_id,
            "day_number": day_number,
            "description": description,
            "resources": [{"url": r.url, "title": r.title} for r in resources],
            "status": _enum_value(status),
            "scheduled_date": _iso(scheduled_date or date.today()),
            "completion_data": None,
        })
        return dict_to_task(doc)

    def get(self, task_id: str) -> Optional[DailyTask]:
        doc = self.db.find_by_id(TASKS, task_id)
        return dict_to_task(doc) if doc else None

    def find_by_day(self, weekly_goal_id: str, day_number: int) -> Optional[DailyTask]:
        doc = self.db.find_one(TASKS, {"weekly_goal_id": weekly_goal_id, "day_number": day_number})
        return dict_to_task(doc) if doc else None

    def list_for_goal(self, weekly_goal_id: str, status: Optional[TaskStatus] = None) -> List[DailyTask]:
        filters: Dict[str, Any] = {"weekly_goal_id": weekly_goal_id}
        if status is not None:
            filters["status"] = _enum_value(status)
        docs = self.db.find(TASKS, filters, sort_key=lambda d: d.get("day_number", 0))
        return [dict_to_task(d) for d in docs]

    def list_for_goals(self, weekly_goal_ids: List[str]) -> List[DailyTask]:
        """All tasks of the given goals, oldest first."""
        if not weekly_goal_ids:
            return []
        docs = self.db.find(
            TASKS,
            {"weekly_goal_id": AnyOf(weekly_goal_ids)},
            sort_key=lambda d: (d.get("scheduled_date") or "", d.get("created_at") or ""),
        )
        return [dict_to_task(d) for d in docs]

    def count(self, weekly_goal_id: str, status: Optional[TaskStatus] = None) -> int:
        filters: Dict[str, Any] = {"weekly_goal_id": weekly_goal_id}
        if status is not None:
            filters["status"] = _enum_value(status)
        return self.db.count(TASKS, filters)

    def update(
        self,
        task_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> DailyTask:
        doc = self.db.update(
            TASKS,
            task_id,
            _normalize_changes(changes),
            expected=_normalize_changes(expected) if expected else None,
        )
        return dict_to_task(doc)


# ---------------------------------------------------------------------------
# Example posts, users, payments
# ---------------------------------------------------------------------------

def post_to_dict(p: ExamplePost) -> Dict[str, Any]:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "type": _enum_value(p.type),
        "platform": _enum_value(p.platform),
        "content": p.content,
        "created_at": _iso(p.created_at),
        "updated_at": _iso(p.updated_at),
        "version": p.version,
    }


def dict_to_post(d: Dict[str, Any]) -> ExamplePost:
    return ExamplePost(
        id=d["id"],
        user_id=d["user_id"],
        type=GoalType(d["type"]),
        platform=Platform(d["platform"]),
        content=d.get("content", ""),
        created_at=_parse_datetime(d.get("created_at")),
        updated_at=_parse_datetime(d.get("updated_at")),
        version=d.get("version", 0),
    )


class ExamplePostStore:
    """Example post documents."""

    def __init__(self, db: DocumentStore):
        self.db = db

    def create(self, user_id: str, post_type: GoalType, platform: Platform, content: str) -> ExamplePost:
        doc = self.db.create(EXAMPLE_POSTS, {
            "user_id": user_id,
            "type": _enum_value(post_type),
            "platform": _enum_value(platform),
            "content": content,
        })
        return dict_to_post(doc)

    def get_owned(self, post_id: str, user_id: str) -> Optional[ExamplePost]:
        doc = self.db.find_by_id(EXAMPLE_POSTS, post_id)
        if not doc or doc.get("user_id") != user_id:
            return None
        return dict_to_post(doc)

    def list_for_user(
        self,
        user_id: str,
        post_type: Optional[GoalType] = None,
        platform: Optional[Platform] = None,
        newest_first: bool = True,
    ) -> List[ExamplePost]:
        filters: Dict[str, Any] = {"user_id": user_id}
        if post_type is not None:
            filters["type"] = _enum_value(post_type)
        if platform is not None:
            filters["platform"] = _enum_value(platform)
        docs = self.db.find(EXAMPLE_POSTS, filters, sort_key=lambda d: d.get("created_at") or "", reverse=newest_first)
        return [dict_to_post(d) for d in docs]

    def count(
        self,
        user_id: str,
        post_type: GoalType,
        platform: Platform,
        exclude_id: Optional[str] = None,
    ) -> int:
        filters: Dict[str, Any] = {
            "user_id": user_id,
            "type": _enum_value(post_type),
            "platform": _enum_value(platform),
        }
        if exclude_id:
            filters["id"] = NotEqual(exclude_id)
        return self.db.count(EXAMPLE_POSTS, filters)

    def update(self, post_id: str, changes: Dict[str, Any]) -> ExamplePost:
        return dict_to_post(self.db.update(EXAMPLE_POSTS, post_id, _normalize_changes(changes)))

    def delete_owned(self, post_id: str, user_id: str) -> Optional[ExamplePost]:
        doc = self.db.delete(EXAMPLE_POSTS, post_id, filters={"user_id": user_id})
        return dict_to_post(doc) if doc else None


def user_to_dict(u: User) -> Dict[str, Any]:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "created_at": _iso(u.created_at),
        "updated_at": _iso(u.updated_at),
    }


class UserStore:
    """User profile documents, keyed by the identity provider's user id."""

    def __init__(self, db: DocumentStore):
        self.db = db

    def get(self, user_id: str) -> Optional[User]:
        doc = self.db.find_by_id(USERS, user_id)
        if not doc:
            return None
        return User(
            id=doc["id"],
            email=doc["email"],
            name=doc.get("name"),
            created_at=_parse_datetime(doc.get("created_at")),
            updated_at=_parse_datetime(doc.get("updated_at")),
            version=doc.get("version", 0),
        )

    def upsert(self, user_id: str, email: str, name: Optional[str] = None) -> User:
        with self.db.transaction():
            if self.db.find_by_id(USERS, user_id):
                self.db.update(USERS, user_id, {"email": email, "name": name})
            else:
                self.db.create(USERS, {"id": user_id, "email": email, "name": name})
            return self.get(user_id)


def payment_to_dict(p: Payment) -> Dict[str, Any]:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "amount": p.amount,
        "currency": p.currency,
        "status": _enum_value(p.status),
        "type": _enum_value(p.type),
        "product_id": p.product_id,
        "provider_id": p.provider_id,
        "metadata": dict(p.metadata),
        "created_at": _iso(p.created_at),
        "updated_at": _iso(p.updated_at),
    }


def dict_to_payment(d: Dict[str, Any]) -> Payment:
    return Payment(
        id=d["id"],
        user_id=d["user_id"],
        amount=int(d.get("amount", 0)),
        currency=d.get("currency", "USD"),
        status=PaymentStatus(d.get("status", "pending")),
        type=PaymentType(d.get("type", "one_time")),
        product_id=d["product_id"],
        provider_id=d["provider_id"],
        metadata=dict(d.get("metadata") or {}),
        created_at=_parse_datetime(d.get("created_at")),
        updated_at=_parse_datetime(d.get("updated_at")),
        version=d.get("version", 0),
    )


class PaymentStore:
    """Payment documents; provider_id is unique."""

    def __init__(self, db: DocumentStore):
        self.db = db

    def find_by_provider_id(self, provider_id: str) -> Optional[Payment]:
        doc = self.db.find_one(PAYMENTS, {"provider_id": provider_id})
        return dict_to_payment(doc) if doc else None

    def create(self, payment: Dict[str, Any]) -> Payment:
        return dict_to_payment(self.db.create(PAYMENTS, _normalize_changes(payment)))
