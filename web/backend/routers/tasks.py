from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from core.exceptions import ValidationError
from core.models import Resource
from core.stores import task_to_dict
from core.week_service import WeekService
from web.backend.deps import get_current_user_id, get_week_service

router = APIRouter()


class ResourceIn(BaseModel):
    url: str
    title: Optional[str] = None


class CreateTaskRequest(BaseModel):
    weekly_goal_id: Optional[str] = None
    # goal type for the auto-managed week, used when weekly_goal_id is absent
    type: Optional[str] = None
    description: str = ""
    resources: List[ResourceIn] = []
    scheduled_date: Optional[date] = None


class UpdateTaskRequest(BaseModel):
    description: Optional[str] = None
    resources: Optional[List[ResourceIn]] = None


class CompleteTaskRequest(BaseModel):
    code: str = ""
    learning_notes: str = Field("", validation_alias=AliasChoices("learning_notes", "learningNotes"))
    github_url: Optional[str] = Field(None, validation_alias=AliasChoices("github_url", "githubUrl"))


def _resources(items: Optional[List[ResourceIn]]) -> Optional[List[Resource]]:
    if items is None:
        return None
    return [Resource(url=r.url, title=r.title) for r in items]


@router.post("", status_code=201)
def create_task(
    req: CreateTaskRequest,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    if not req.weekly_goal_id and req.type:
        task = service.create_task_auto(
            user_id,
            req.type,
            req.description,
            resources=_resources(req.resources),
            scheduled_date=req.scheduled_date,
        )
    else:
        task = service.create_task(
            user_id,
            req.weekly_goal_id,
            req.description,
            resources=_resources(req.resources),
            scheduled_date=req.scheduled_date,
        )
    return {"success": True, "data": task_to_dict(task)}


@router.get("")
def list_tasks(
    weekly_goal_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    if not weekly_goal_id:
        raise ValidationError("Missing required parameter: weekly_goal_id")
    tasks = [task_to_dict(t) for t in service.list_tasks(user_id, weekly_goal_id)]
    return {"success": True, "data": tasks, "count": len(tasks)}


# declared before /{task_id} so "all" is not taken for an id
@router.get("/all")
def list_all_tasks(
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    tasks = service.list_all_tasks(user_id)
    return {"success": True, "data": tasks, "count": len(tasks)}


@router.get("/{task_id}")
def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    return {"success": True, "data": task_to_dict(service.get_task(user_id, task_id))}


@router.put("/{task_id}")
def update_task(
    task_id: str,
    req: UpdateTaskRequest,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    task = service.update_task(
        user_id,
        task_id,
        description=req.description,
        resources=_resources(req.resources),
    )
    return {"success": True, "data": task_to_dict(task)}


@router.post("/{task_id}/complete")
def complete_task(
    task_id: str,
    req: CompleteTaskRequest,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    """
    Submit code and learning notes for a day. Completing an already
    completed day returns it unchanged with already_completed=true.
    """
    result = service.complete_task(
        user_id,
        task_id,
        code=req.code,
        learning_notes=req.learning_notes,
        github_url=req.github_url,
    )
    payload = result.to_dict()
    return {
        "success": True,
        "data": payload["task"],
        "next_task_unlocked": payload["next_task_unlocked"],
        "next_task_id": payload["next_task_id"],
        "week_completed": payload["week_completed"],
        "already_completed": payload["already_completed"],
        # camelCase flags for web clients
        "nextTaskUnlocked": payload["next_task_unlocked"],
        "weekCompleted": payload["week_completed"],
        "message": payload["message"],
    }


@router.get("/{task_id}/completion")
def get_completion(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    return {"success": True, "data": service.get_completion(user_id, task_id)}
