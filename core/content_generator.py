"""
Content generation: turns completed days into X / LinkedIn / blog posts.

ContentGenerator only builds prompts and calls the LLM adapter.
ContentService adds the ownership and completeness checks around it.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.example_posts import ExamplePostService
from core.exceptions import PreconditionError, ValidationError
from core.llm_adapter import BaseLLMAdapter, get_llm
from core.logger import get_logger
from core.models import GoalStatus, GoalType, TaskStatus
from core.utils import load_prompt, strip_wrapping_quotes
from core.week_service import WeekService

logger = get_logger("content_generator")

# (max_tokens for a single day, max_tokens for the weekly wrap-up)
PLATFORM_TOKENS = {
    "x": (300, 300),
    "linkedin": (1000, 1200),
    "blog": (2000, 2500),
}

TONES = {
    "x": {
        GoalType.LEARNING: 'educational and enthusiastic (e.g., "Today I learned...")',
        GoalType.PRODUCT: 'product update and shipping focused (e.g., "Shipped...", "Built...")',
    },
    "linkedin": {
        GoalType.LEARNING: "professional yet personal, sharing learning journey",
        GoalType.PRODUCT: "professional product update, showing progress",
    },
    "blog": {
        GoalType.LEARNING: "educational tutorial or learning log",
        GoalType.PRODUCT: "product development blog post or technical write-up",
    },
}

FOCUS = {
    "x": {
        GoalType.LEARNING: "Focus on what you learned and key insights",
        GoalType.PRODUCT: "Focus on what you built and shipped",
    },
    "linkedin": {
        GoalType.LEARNING: "Share your learning journey, challenges overcome, and insights gained",
        GoalType.PRODUCT: "Describe what you built, why it matters, and the impact",
    },
    "blog": {
        GoalType.LEARNING: "Structure: What you learned -> How you learned it -> Key takeaways -> Code examples",
        GoalType.PRODUCT: "Structure: Problem -> Solution -> Implementation -> Results/Next steps",
    },
}

WRAPUP_FOCUS = {
    GoalType.LEARNING: "Highlight key learnings and how they built on each other",
    GoalType.PRODUCT: "Highlight features shipped and overall progress",
}

STYLE_HEADINGS = {
    "x": "Style Reference (match this tone and style)",
    "linkedin": "Style Reference (match this tone and structure)",
    "blog": "Style Reference (match this structure and depth)",
}


@dataclass
class GeneratedContent:
    x_post: str
    linkedin_post: str
    blog_post: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "x_post": self.x_post,
            "linkedin_post": self.linkedin_post,
            "blog_post": self.blog_post,
        }

    def character_counts(self) -> Dict[str, int]:
        return {
            "x": len(self.x_post),
            "linkedin": len(self.linkedin_post),
            "blog": len(self.blog_post),
        }


def _style_reference(platform: str, example: Optional[str]) -> str:
    if not example:
        return ""
    return f"**{STYLE_HEADINGS[platform]}:**\n{example}\n\n"


class ContentGenerator:
    """Prompt building and LLM calls for the three platforms."""

    def __init__(self, llm: Optional[BaseLLMAdapter] = None):
        self._llm = llm

    @property
    def llm(self) -> BaseLLMAdapter:
        if self._llm is None:
            self._llm = get_llm()
        return self._llm

    def build_post_prompt(
        self,
        platform: str,
        code: str,
        learning_notes: str,
        goal_type: GoalType,
        example_post: Optional[str] = None,
    ) -> str:
        return load_prompt(f"content/{platform}", {
            "tone": TONES[platform][goal_type],
            "focus": FOCUS[platform][goal_type],
            "code": code,
            "learning_notes": learning_notes,
            "style_reference": _style_reference(platform, example_post),
        })

    def build_wrapup_prompt(
        self,
        platform: str,
        week_title: str,
        goal_type: GoalType,
        daily_tasks: List[Dict[str, Any]],
        example_post: Optional[str] = None,
    ) -> str:
        overview = "\n".join(f"Day {t['day_number']}: {t['description']}" for t in daily_tasks)
        detail = "\n\n".join(
            f"Day {t['day_number']}: {t['description']}\n"
            f"Code:\n{t['code']}\n"
            f"Notes:\n{t['learning_notes']}"
            for t in daily_tasks
        )
        return load_prompt(f"wrapup/{platform}", {
            "week_title": week_title,
            "week_kind": "Learning journey" if goal_type == GoalType.LEARNING else "Product development",
            "tasks_overview": overview,
            "tasks_detail": detail,
            "focus": WRAPUP_FOCUS[goal_type],
            "style_reference": _style_reference(platform, example_post),
        })

    def _generate_all(self, prompts: Dict[str, str], wrapup: bool) -> GeneratedContent:
        def call(platform: str) -> str:
            max_tokens = PLATFORM_TOKENS[platform][1 if wrapup else 0]
            response = self.llm.generate(prompts[platform], max_tokens=max_tokens)
            return strip_wrapping_quotes(response.content)

        # errors from any platform propagate from result()
        with ThreadPoolExecutor(max_workers=len(prompts)) as pool:
            futures = {platform: pool.submit(call, platform) for platform in prompts}
            results = {platform: future.result() for platform, future in futures.items()}

        return GeneratedContent(
            x_post=results["x"],
            linkedin_post=results["linkedin"],
            blog_post=results["blog"],
        )

    def generate_posts(
        self,
        code: str,
        learning_notes: str,
        goal_type: GoalType,
        example_posts: Optional[Dict[str, Optional[str]]] = None,
    ) -> GeneratedContent:
        examples = example_posts or {}
        prompts = {
            platform: self.build_post_prompt(platform, code, learning_notes, goal_type, examples.get(platform))
            for platform in PLATFORM_TOKENS
        }
        return self._generate_all(prompts, wrapup=False)

    def generate_weekly_wrapup(
        self,
        week_title: str,
        goal_type: GoalType,
        daily_tasks: List[Dict[str, Any]],
        example_posts: Optional[Dict[str, Optional[str]]] = None,
    ) -> GeneratedContent:
        examples = example_posts or {}
        prompts = {
            platform: self.build_wrapup_prompt(platform, week_title, goal_type, daily_tasks, examples.get(platform))
            for platform in PLATFORM_TOKENS
        }
        return self._generate_all(prompts, wrapup=True)


class ContentService:
    """Ownership-checked content generation over stored weeks."""

    def __init__(
        self,
        weeks: WeekService,
        example_posts: ExamplePostService,
        generator: Optional[ContentGenerator] = None,
    ):
        self.weeks = weeks
        self.example_posts = example_posts
        self.generator = generator or ContentGenerator()

    def generate_for_task(self, user_id: str, task_id: str) -> Dict[str, Any]:
        if not task_id:
            raise ValidationError("Missing required field: task_id")
        task, goal = self.weeks.require_owned_task(user_id, task_id)

        if task.status != TaskStatus.COMPLETE:
            raise PreconditionError("Can only generate content for completed tasks")
        data = task.completion_data
        if data is None or not data.code or not data.learning_notes:
            raise PreconditionError("Task completion data is missing")

        examples = self.example_posts.references_by_platform(user_id, goal.type)
        logger.info("Generating content for task %s (%s)", task.id, goal.type.value)
        content = self.generator.generate_posts(data.code, data.learning_notes, goal.type, examples)
        logger.info("Content generated for task %s", task.id)

        return {
            "task_id": task.id,
            "day_number": task.day_number,
            "week_title": goal.title,
            "goal_type": goal.type.value,
            "generated_content": content.to_dict(),
            "character_counts": content.character_counts(),
        }

    def preview(
        self,
        code: str,
        learning_notes: str,
        goal_type: Any,
        example_posts: Optional[Dict[str, Optional[str]]] = None,
    ) -> Dict[str, Any]:
        if not code or not learning_notes or not goal_type:
            raise ValidationError("Missing required fields: code, learning_notes, goal_type")
        try:
            parsed_type = GoalType(goal_type)
        except ValueError:
            raise ValidationError('Invalid goal_type. Must be "learning" or "product"')

        content = self.generator.generate_posts(code, learning_notes, parsed_type, example_posts)
        return {
            "generated_content": content.to_dict(),
            "character_counts": content.character_counts(),
        }

    def weekly_wrapup(self, user_id: str, weekly_goal_id: str) -> Dict[str, Any]:
        if not weekly_goal_id:
            raise ValidationError("Missing required field: weekly_goal_id")
        goal = self.weeks.require_goal(user_id, weekly_goal_id)
        days = self.weeks.engine.days_per_week

        if goal.status != GoalStatus.COMPLETE:
            completed = self.weeks.tasks.count(goal.id, TaskStatus.COMPLETE)
            raise PreconditionError(
                "Weekly goal is not complete yet",
                details={"progress": {"completed": completed, "total": days, "remaining": days - completed}},
            )

        tasks = self.weeks.tasks.list_for_goal(goal.id, TaskStatus.COMPLETE)
        if len(tasks) != days:
            raise PreconditionError(
                f"Expected {days} completed tasks, found {len(tasks)}",
                details={"completed_tasks": len(tasks)},
            )

        missing = [
            t.day_number for t in tasks
            if t.completion_data is None or not t.completion_data.code or not t.completion_data.learning_notes
        ]
        if missing:
            raise PreconditionError(
                "Some tasks are missing completion data",
                details={"tasks_without_data": missing},
            )

        daily = [
            {
                "day_number": t.day_number,
                "description": t.description,
                "code": t.completion_data.code,
                "learning_notes": t.completion_data.learning_notes,
            }
            for t in tasks
        ]
        examples = self.example_posts.references_by_platform(user_id, goal.type)
        logger.info("Generating weekly wrap-up for %s (%s)", goal.id, goal.type.value)
        content = self.generator.generate_weekly_wrapup(goal.title, goal.type, daily, examples)

        return {
            "weekly_goal_id": goal.id,
            "week_title": goal.title,
            "goal_type": goal.type.value,
            "completed_at": goal.completed_at.isoformat() if goal.completed_at else None,
            "generated_content": content.to_dict(),
            "character_counts": content.character_counts(),
            "stats": {
                "days_completed": len(tasks),
                "total_code_lines": sum(len(d["code"].split("\n")) for d in daily),
                "total_notes_length": sum(len(d["learning_notes"]) for d in daily),
            },
        }

    def stored_completion(self, user_id: str, task_id: str) -> Dict[str, Any]:
        return self.weeks.get_completion(user_id, task_id)
