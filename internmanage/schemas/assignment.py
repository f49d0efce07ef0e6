"""Schemas for project assignments and their rosters"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from internmanage.models import RoleKind, VolunteerStatus
from internmanage.schemas.project import ProjectSummary
from internmanage.schemas.user import UserSummary


class VolunteerCreate(BaseModel):
    project_id: int
    role: RoleKind


class VolunteerReview(BaseModel):
    assignment_id: int
    user_id: int
    role: RoleKind
    status: VolunteerStatus


class AssignUser(BaseModel):
    project_id: int
    user_id: int
    role: RoleKind


class RandomPanelistAssign(BaseModel):
    project_id: int


class RemoveUser(BaseModel):
    assignment_id: int
    user_id: int
    role: RoleKind


class AssignmentInitialize(BaseModel):
    project_id: int


class ProjectMembersNotify(BaseModel):
    project_id: int
    subject: Optional[str] = Field(default=None, min_length=5, max_length=100)
    message: str = Field(..., min_length=10, max_length=1000)


class AllMembersNotify(BaseModel):
    subject: Optional[str] = Field(default=None, min_length=5, max_length=100)
    message: str = Field(..., min_length=10, max_length=1000)


class RosterMemberResponse(BaseModel):
    id: int
    role: RoleKind
    assigned_by_id: Optional[int]
    assigned_at: datetime
    user: UserSummary

    class Config:
        from_attributes = True


class VolunteerRequestResponse(BaseModel):
    id: int
    assignment_id: int
    role: RoleKind
    status: VolunteerStatus
    requested_at: datetime
    reviewed_by_id: Optional[int]
    reviewed_at: Optional[datetime]
    user: UserSummary

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: int
    project_id: int
    company: str
    project: ProjectSummary
    assigned_developers: List[RosterMemberResponse]
    assigned_interns: List[RosterMemberResponse]
    panelists: List[RosterMemberResponse]
    volunteer_developers: List[VolunteerRequestResponse]
    volunteer_interns: List[VolunteerRequestResponse]
    volunteer_panelists: List[VolunteerRequestResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DeveloperAssignmentResponse(BaseModel):
    """An assignment seen from one developer, with the roles they hold on it"""

    assignment: AssignmentResponse
    roles: List[Literal["Mentor", "Panelist"]]


class InternAssignmentResponse(BaseModel):
    id: int
    company: str
    project: ProjectSummary
    assigned_at: Optional[datetime]
    mentors: List[UserSummary]
    interns: List[UserSummary]
    panelists: List[UserSummary]
