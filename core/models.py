"""
Core Data Models for WeekStreak.
Defines weekly goals, their day-gated tasks, example posts, users and payments.
"""
from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Any, Optional, List, Dict
from enum import Enum


class GoalStatus(str, Enum):
    ACTIVE = "active"        # in progress
    COMPLETE = "complete"    # all days complete


class GoalType(str, Enum):
    LEARNING = "learning"
    PRODUCT = "product"


class TaskStatus(str, Enum):
    LOCKED = "locked"        # waiting for the previous day
    ACTIVE = "active"        # can be completed
    COMPLETE = "complete"    # terminal


class Platform(str, Enum):
    X = "x"
    LINKEDIN = "linkedin"
    BLOG = "blog"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentType(str, Enum):
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"


@dataclass
class Resource:
    """Link attached to a task"""
    url: str
    title: Optional[str] = None


@dataclass
class CompletionData:
    """What the user submitted when completing a day"""
    code: str
    learning_notes: str
    completed_at: datetime
    github_url: Optional[str] = None


@dataclass
class WeeklyGoal:
    """A week: up to DAYS_PER_WEEK day-gated tasks"""
    id: str
    user_id: str
    title: str
    type: GoalType
    status: GoalStatus = GoalStatus.ACTIVE
    start_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    daily_task_ids: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0


@dataclass
class DailyTask:
    """One day of a weekly goal"""
    id: str
    weekly_goal_id: str
    day_number: int                # 1..DAYS_PER_WEEK
    description: str
    resources: List[Resource] = field(default_factory=list)
    status: TaskStatus = TaskStatus.LOCKED
    scheduled_date: Optional[date] = None
    completion_data: Optional[CompletionData] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0


@dataclass
class ExamplePost:
    """A post the user wrote, used as a style reference for generation"""
    id: str
    user_id: str
    type: GoalType
    platform: Platform
    content: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0


@dataclass
class User:
    """Local mirror of the identity provider's profile"""
    id: str
    email: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0


@dataclass
class Payment:
    """A verified checkout, keyed by the provider session id"""
    id: str
    user_id: str
    amount: int                    # cents
    currency: str
    status: PaymentStatus
    type: PaymentType
    product_id: str
    provider_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0
