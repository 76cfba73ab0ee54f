"""
Example posts: the user's own writing, kept as style references for content
generation. At most MAX_EXAMPLE_POSTS_PER_PLATFORM per (user, type, platform).
"""
from typing import Any, Dict, List, Optional

from core.config_manager import config
from core.document_store import DocumentStore
from core.exceptions import NotFoundError, PreconditionError, ValidationError
from core.logger import get_logger
from core.models import ExamplePost, GoalType, Platform
from core.stores import ExamplePostStore

logger = get_logger("example_posts")


def parse_post_type(raw: Any) -> GoalType:
    try:
        return GoalType(getattr(raw, "value", raw))
    except ValueError:
        raise ValidationError('Invalid type. Must be "learning" or "product"')


def parse_platform(raw: Any) -> Platform:
    try:
        return Platform(getattr(raw, "value", raw))
    except ValueError:
        raise ValidationError('Invalid platform. Must be "x", "linkedin", or "blog"')


class ExamplePostService:

    def __init__(self, db: Optional[DocumentStore] = None, limit: Optional[int] = None):
        self.db = db if db is not None else DocumentStore()
        self.posts = ExamplePostStore(self.db)
        self.limit = limit if limit is not None else config.MAX_EXAMPLE_POSTS_PER_PLATFORM

    def create(self, user_id: str, post_type: Any, platform: Any, content: str) -> ExamplePost:
        if not post_type or not platform or not (content or "").strip():
            raise ValidationError("Missing required fields: type, platform, content")
        parsed_type = parse_post_type(post_type)
        parsed_platform = parse_platform(platform)

        with self.db.transaction():
            if self.posts.count(user_id, parsed_type, parsed_platform) >= self.limit:
                raise PreconditionError(
                    f"Maximum {self.limit} example posts allowed per type per platform. "
                    f"Delete an existing {parsed_type.value} post for {parsed_platform.value} first."
                )
            post = self.posts.create(user_id, parsed_type, parsed_platform, content)

        logger.info("Example post %s created (%s/%s)", post.id, parsed_type.value, parsed_platform.value)
        return post

    def list(
        self,
        user_id: str,
        post_type: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> List[ExamplePost]:
        """Newest first. Unknown filter values are ignored."""
        parsed_type = GoalType(post_type) if post_type in {t.value for t in GoalType} else None
        parsed_platform = Platform(platform) if platform in {p.value for p in Platform} else None
        return self.posts.list_for_user(user_id, parsed_type, parsed_platform)

    def update(
        self,
        user_id: str,
        post_id: str,
        post_type: Optional[Any] = None,
        platform: Optional[Any] = None,
        content: Optional[str] = None,
    ) -> ExamplePost:
        with self.db.transaction():
            post = self.posts.get_owned(post_id, user_id)
            if post is None:
                raise NotFoundError("Example post", post_id, "Example post not found or unauthorized")

            new_type = parse_post_type(post_type) if post_type else post.type
            new_platform = parse_platform(platform) if platform else post.platform

            if (new_type, new_platform) != (post.type, post.platform):
                if self.posts.count(user_id, new_type, new_platform, exclude_id=post.id) >= self.limit:
                    raise PreconditionError(
                        f"Maximum {self.limit} example posts allowed for "
                        f"{new_type.value} on {new_platform.value}"
                    )

            changes: Dict[str, Any] = {"type": new_type, "platform": new_platform}
            if content and content.strip():
                changes["content"] = content
            return self.posts.update(post.id, changes)

    def delete(self, user_id: str, post_id: str) -> ExamplePost:
        deleted = self.posts.delete_owned(post_id, user_id)
        if deleted is None:
            raise NotFoundError("Example post", post_id, "Example post not found or unauthorized")
        logger.info("Example post %s deleted", post_id)
        return deleted

    def references_by_platform(self, user_id: str, post_type: GoalType) -> Dict[str, Optional[str]]:
        """First example per platform for the given goal type, for prompts."""
        posts = self.posts.list_for_user(user_id, post_type, newest_first=False)
        references: Dict[str, Optional[str]] = {p.value: None for p in Platform}
        for post in posts:
            if references[post.platform.value] is None:
                references[post.platform.value] = post.content
        return references
