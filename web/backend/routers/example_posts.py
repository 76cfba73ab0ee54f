from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.example_posts import ExamplePostService
from core.stores import post_to_dict
from web.backend.deps import get_current_user_id, get_example_post_service

router = APIRouter()


class CreatePostRequest(BaseModel):
    type: str = ""
    platform: str = ""
    content: str = ""


class UpdatePostRequest(BaseModel):
    type: Optional[str] = None
    platform: Optional[str] = None
    content: Optional[str] = None


@router.post("", status_code=201)
def create_post(
    req: CreatePostRequest,
    user_id: str = Depends(get_current_user_id),
    service: ExamplePostService = Depends(get_example_post_service),
):
    post = service.create(user_id, req.type, req.platform, req.content)
    return {"success": True, "data": post_to_dict(post)}


@router.get("")
def list_posts(
    type: Optional[str] = None,
    platform: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: ExamplePostService = Depends(get_example_post_service),
):
    posts = [post_to_dict(p) for p in service.list(user_id, post_type=type, platform=platform)]
    return {"success": True, "data": posts, "count": len(posts)}


@router.put("/{post_id}")
def update_post(
    post_id: str,
    req: UpdatePostRequest,
    user_id: str = Depends(get_current_user_id),
    service: ExamplePostService = Depends(get_example_post_service),
):
    post = service.update(user_id, post_id, post_type=req.type, platform=req.platform, content=req.content)
    return {"success": True, "data": post_to_dict(post)}


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ExamplePostService = Depends(get_example_post_service),
):
    service.delete(user_id, post_id)
    return {"success": True, "message": "Example post deleted successfully"}
