"""Project endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status

from internmanage.dependencies import get_current_actor, get_engine
from internmanage.schemas import Actor, ApiResponse, ProjectCreate, ProjectResponse
from internmanage.services.role_transitions import RoleTransitionEngine

router = APIRouter()


@router.post("", response_model=ApiResponse[ProjectResponse], status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    """Create a project, or suggest one when the caller is a developer."""
    project = engine.create_project(actor, payload)
    message = None if project.is_approved else "Project suggestion submitted successfully. Awaiting HR approval."
    return ApiResponse(message=message, data=ProjectResponse.model_validate(project))


@router.get("/pending", response_model=ApiResponse[List[ProjectResponse]])
async def pending_projects(
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    projects = engine.pending_projects(actor)
    return ApiResponse(data=[ProjectResponse.model_validate(p) for p in projects])


@router.get("/available", response_model=ApiResponse[List[ProjectResponse]])
async def available_projects(
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    projects = engine.available_projects(actor)
    return ApiResponse(data=[ProjectResponse.model_validate(p) for p in projects])


@router.put("/{project_id}/approve", response_model=ApiResponse[ProjectResponse])
async def approve_project(
    project_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    project = engine.approve_project(actor, project_id)
    return ApiResponse(
        message="Project approved successfully and assigned to the developer",
        data=ProjectResponse.model_validate(project),
    )
