from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.content_generator import ContentService
from web.backend.deps import get_content_service, get_current_user_id

router = APIRouter()


class GenerateRequest(BaseModel):
    task_id: str = ""


class PreviewRequest(BaseModel):
    code: str = ""
    learning_notes: str = ""
    goal_type: str = ""
    example_posts: Optional[Dict[str, Optional[str]]] = None


class WrapupRequest(BaseModel):
    weekly_goal_id: str = ""


@router.post("/generate")
def generate(
    req: GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContentService = Depends(get_content_service),
):
    """X, LinkedIn and blog drafts for one completed day."""
    return {"success": True, "data": service.generate_for_task(user_id, req.task_id)}


@router.post("/generate-preview")
def generate_preview(
    req: PreviewRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContentService = Depends(get_content_service),
):
    data = service.preview(req.code, req.learning_notes, req.goal_type, req.example_posts)
    return {"success": True, "data": data}


@router.post("/weekly-wrapup")
def weekly_wrapup(
    req: WrapupRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContentService = Depends(get_content_service),
):
    return {"success": True, "data": service.weekly_wrapup(user_id, req.weekly_goal_id)}


@router.get("/generated/{task_id}")
def generated(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ContentService = Depends(get_content_service),
):
    """The stored submission a day's content is generated from."""
    return {"success": True, "data": service.stored_completion(user_id, task_id)}
