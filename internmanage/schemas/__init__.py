"""
Pydantic schemas for request/response validation
"""
from internmanage.schemas.common import ApiResponse, ErrorResponse
from internmanage.schemas.user import Actor, UserSummary
from internmanage.schemas.project import ProjectCreate, ProjectResponse, ProjectSummary
from internmanage.schemas.assignment import (
    AllMembersNotify,
    AssignmentInitialize,
    AssignmentResponse,
    AssignUser,
    DeveloperAssignmentResponse,
    InternAssignmentResponse,
    ProjectMembersNotify,
    RandomPanelistAssign,
    RemoveUser,
    RosterMemberResponse,
    VolunteerCreate,
    VolunteerRequestResponse,
    VolunteerReview,
)
from internmanage.schemas.attendance import BackfillRequest, BackfillResult

__all__ = [
    "ApiResponse",
    "ErrorResponse",
    "Actor",
    "UserSummary",
    "ProjectCreate",
    "ProjectResponse",
    "ProjectSummary",
    "AllMembersNotify",
    "AssignmentInitialize",
    "AssignmentResponse",
    "AssignUser",
    "DeveloperAssignmentResponse",
    "InternAssignmentResponse",
    "ProjectMembersNotify",
    "RandomPanelistAssign",
    "RemoveUser",
    "RosterMemberResponse",
    "VolunteerCreate",
    "VolunteerRequestResponse",
    "VolunteerReview",
    "BackfillRequest",
    "BackfillResult",
]
