from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.exceptions import NotFoundError, ValidationError
from core.stores import UserStore, user_to_dict
from web.backend.deps import get_current_user_id, get_user_store

router = APIRouter()


class UpsertUserRequest(BaseModel):
    email: str = ""
    name: Optional[str] = None


@router.put("/me")
def upsert_me(
    req: UpsertUserRequest,
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
):
    """Store the caller's profile; checkout needs the email."""
    email = req.email.strip()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    user = users.upsert(user_id, email, req.name)
    return {"success": True, "data": user_to_dict(user)}


@router.get("/me")
def get_me(
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
):
    user = users.get(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return {"success": True, "data": user_to_dict(user)}
