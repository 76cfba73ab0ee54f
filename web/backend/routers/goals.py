from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.stores import goal_to_dict
from core.week_service import WeekService
from web.backend.deps import get_current_user_id, get_week_service

router = APIRouter()


class CreateGoalRequest(BaseModel):
    title: str = ""
    type: str = ""


class UpdateGoalRequest(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None


@router.post("", status_code=201)
def create_goal(
    req: CreateGoalRequest,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    """
    Start a new week. Fails while the current week still has open days;
    the error details carry the active week's progress.
    """
    goal = service.create_goal(user_id, req.title, req.type)
    return {"success": True, "data": goal_to_dict(goal)}


@router.get("")
def list_goals(
    status: Optional[str] = None,
    type: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    goals = service.list_goals(user_id, status=status, goal_type=type)
    return {"success": True, "data": goals, "count": len(goals)}


@router.get("/current")
def current_goal(
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    return {"success": True, "data": service.current_week(user_id)}


@router.get("/{goal_id}")
def get_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    return {"success": True, "data": service.get_goal_detail(user_id, goal_id)}


@router.put("/{goal_id}")
def update_goal(
    goal_id: str,
    req: UpdateGoalRequest,
    user_id: str = Depends(get_current_user_id),
    service: WeekService = Depends(get_week_service),
):
    goal = service.update_goal(user_id, goal_id, title=req.title, goal_type=req.type)
    return {"success": True, "data": goal_to_dict(goal)}
