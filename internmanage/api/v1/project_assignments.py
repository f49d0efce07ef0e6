"""Project assignment endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status

from internmanage.dependencies import get_current_actor, get_engine
from internmanage.models import ProjectAssignment, RoleKind
from internmanage.schemas import (
    Actor,
    AllMembersNotify,
    ApiResponse,
    AssignmentInitialize,
    AssignmentResponse,
    AssignUser,
    DeveloperAssignmentResponse,
    InternAssignmentResponse,
    ProjectMembersNotify,
    ProjectSummary,
    RandomPanelistAssign,
    RemoveUser,
    UserSummary,
    VolunteerCreate,
    VolunteerRequestResponse,
    VolunteerReview,
)
from internmanage.services.role_transitions import RoleTransitionEngine
from internmanage.services.roles import role_label

router = APIRouter()


def _serialize_assignment(assignment: ProjectAssignment) -> AssignmentResponse:
    return AssignmentResponse.model_validate(assignment)


def _serialize_intern_view(assignment: ProjectAssignment, intern_id: int) -> InternAssignmentResponse:
    own = assignment.find_member(intern_id, RoleKind.INTERN)
    return InternAssignmentResponse(
        id=assignment.id,
        company=assignment.company,
        project=ProjectSummary.model_validate(assignment.project),
        assigned_at=own.assigned_at if own else None,
        mentors=[UserSummary.model_validate(m.user) for m in assignment.assigned_developers],
        interns=[UserSummary.model_validate(m.user) for m in assignment.assigned_interns],
        panelists=[UserSummary.model_validate(m.user) for m in assignment.panelists],
    )


@router.get("/unassigned-interns/{project_id}", response_model=ApiResponse[List[UserSummary]])
async def unassigned_interns(
    project_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    """Interns of the project's company not yet on its roster."""
    users = engine.unassigned_users(actor, project_id, RoleKind.INTERN)
    return ApiResponse(data=[UserSummary.model_validate(user) for user in users])


@router.get("/unassigned-developers/{project_id}", response_model=ApiResponse[List[UserSummary]])
async def unassigned_developers(
    project_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    """Developers of the project's company not yet mentoring it."""
    users = engine.unassigned_users(actor, project_id, RoleKind.MENTOR)
    return ApiResponse(data=[UserSummary.model_validate(user) for user in users])


@router.post("/volunteer", response_model=ApiResponse[VolunteerRequestResponse], status_code=status.HTTP_201_CREATED)
async def volunteer(
    payload: VolunteerCreate,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    request = engine.volunteer(actor, payload.project_id, payload.role)
    return ApiResponse(
        message="Volunteer request submitted successfully. Awaiting HR approval.",
        data=VolunteerRequestResponse.model_validate(request),
    )


@router.get("/pending-volunteers", response_model=ApiResponse[List[AssignmentResponse]])
async def pending_volunteers(
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    assignments = engine.pending_volunteers(actor)
    return ApiResponse(data=[_serialize_assignment(a) for a in assignments])


@router.put("/review-volunteer", response_model=ApiResponse[VolunteerRequestResponse])
async def review_volunteer(
    payload: VolunteerReview,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    """Approve or reject a pending volunteer request."""
    request = engine.review(actor, payload.assignment_id, payload.user_id, payload.role, payload.status)
    return ApiResponse(
        message=f"Volunteer request {payload.status.value} successfully",
        data=VolunteerRequestResponse.model_validate(request),
    )


@router.post("/assign-user", response_model=ApiResponse[AssignmentResponse])
async def assign_user(
    payload: AssignUser,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    assignment = engine.assign_direct(actor, payload.project_id, payload.user_id, payload.role)
    return ApiResponse(
        message=f"{role_label(payload.role)} assigned to project successfully",
        data=_serialize_assignment(assignment),
    )


@router.delete("/remove-user", response_model=ApiResponse[AssignmentResponse])
async def remove_user(
    payload: RemoveUser,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    assignment = engine.remove_from_roster(actor, payload.assignment_id, payload.user_id, payload.role)
    return ApiResponse(
        message=f"{role_label(payload.role)} removed from project successfully",
        data=_serialize_assignment(assignment),
    )


@router.post("/initialize", response_model=ApiResponse[AssignmentResponse], status_code=status.HTTP_201_CREATED)
async def initialize(
    payload: AssignmentInitialize,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    assignment = engine.initialize(actor, payload.project_id)
    return ApiResponse(
        message="Project assignment initialized successfully",
        data=_serialize_assignment(assignment),
    )


@router.post(
    "/panelist/assign-random",
    response_model=ApiResponse[AssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def assign_random_panelist(
    payload: RandomPanelistAssign,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    assignment, developer = engine.assign_random_panelist(actor, payload.project_id)
    return ApiResponse(
        message=f"Successfully assigned {developer.name} as a random panelist.",
        data=_serialize_assignment(assignment),
    )


@router.post("/notify-members", response_model=ApiResponse[int])
async def notify_members(
    payload: ProjectMembersNotify,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    """Send a message to every member of one project."""
    recipients = engine.notify_project_members(actor, payload.project_id, payload.subject, payload.message)
    return ApiResponse(message="Notifications to all project members have been queued.", data=recipients)


@router.post("/notify-all-projects-members", response_model=ApiResponse[int])
async def notify_all_projects_members(
    payload: AllMembersNotify,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    recipients = engine.notify_all_project_members(actor, payload.subject, payload.message)
    return ApiResponse(message="Notifications to all members of all projects have been queued.", data=recipients)


@router.get("/all", response_model=ApiResponse[List[AssignmentResponse]])
async def list_assignments(
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    assignments = engine.list_assignments(actor)
    return ApiResponse(data=[_serialize_assignment(a) for a in assignments])


@router.get("/project/{project_id}", response_model=ApiResponse[AssignmentResponse])
async def get_by_project(
    project_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    return ApiResponse(data=_serialize_assignment(engine.get_by_project(actor, project_id)))


@router.get("/intern/{intern_id}", response_model=ApiResponse[List[InternAssignmentResponse]])
async def assignments_for_intern(
    intern_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    assignments = engine.assignments_for_intern(actor, intern_id)
    if not assignments:
        return ApiResponse(data=[], message="Not assigned to any projects yet.")
    return ApiResponse(data=[_serialize_intern_view(a, intern_id) for a in assignments])


@router.get("/developer/{developer_id}", response_model=ApiResponse[List[DeveloperAssignmentResponse]])
async def assignments_for_developer(
    developer_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    """Projects the developer mentors or sits on the panel for."""
    entries = engine.assignments_for_developer(actor, developer_id)
    if not entries:
        return ApiResponse(data=[], message="No project assignments found for this developer")
    return ApiResponse(
        data=[
            DeveloperAssignmentResponse(assignment=_serialize_assignment(assignment), roles=roles)
            for assignment, roles in entries
        ]
    )


@router.get("/{assignment_id}", response_model=ApiResponse[AssignmentResponse])
async def get_assignment(
    assignment_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: RoleTransitionEngine = Depends(get_engine),
):
    return ApiResponse(data=_serialize_assignment(engine.get_by_id(actor, assignment_id)))
