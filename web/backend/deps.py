"""
Request dependencies: caller identity and the shared services.

All services share one DocumentStore per process. Tests replace it through
`app.dependency_overrides[get_store]`.
"""
from typing import Optional

from fastapi import Depends, Request

from core.config_manager import config
from core.content_generator import ContentService
from core.document_store import DocumentStore
from core.example_posts import ExamplePostService
from core.exceptions import UnauthorizedError
from core.payments import PaymentService
from core.stores import UserStore
from core.week_service import WeekService

_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        _store = DocumentStore()
    return _store


def reset_store() -> None:
    """Drop the process store so the next request reloads it from disk."""
    global _store
    _store = None


def get_current_user_id(request: Request) -> str:
    """The identity gateway in front of the API sets the user id header."""
    user_id = (request.headers.get(config.USER_ID_HEADER) or "").strip()
    if not user_id:
        raise UnauthorizedError()
    return user_id


def get_week_service(store: DocumentStore = Depends(get_store)) -> WeekService:
    return WeekService(db=store)


def get_example_post_service(store: DocumentStore = Depends(get_store)) -> ExamplePostService:
    return ExamplePostService(db=store)


def get_content_service(
    weeks: WeekService = Depends(get_week_service),
    posts: ExamplePostService = Depends(get_example_post_service),
) -> ContentService:
    return ContentService(weeks, posts)


def get_payment_service(store: DocumentStore = Depends(get_store)) -> PaymentService:
    return PaymentService(db=store)


def get_user_store(store: DocumentStore = Depends(get_store)) -> UserStore:
    return UserStore(store)
