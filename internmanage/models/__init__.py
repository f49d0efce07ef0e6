"""InternManage Database Models"""
from internmanage.models.user import User, UserType
from internmanage.models.project import Project
from internmanage.models.project_assignment import (
    ProjectAssignment,
    RoleKind,
    VolunteerStatus,
)
from internmanage.models.assignment_member import AssignmentMember
from internmanage.models.volunteer_request import VolunteerRequest
from internmanage.models.internship import Internship
from internmanage.models.application import Application, ApplicationStatus
from internmanage.models.attendance import Attendance, AttendanceStatus, SYSTEM_MARKER

__all__ = [
    "User",
    "UserType",
    "Project",
    "ProjectAssignment",
    "RoleKind",
    "VolunteerStatus",
    "AssignmentMember",
    "VolunteerRequest",
    "Internship",
    "Application",
    "ApplicationStatus",
    "Attendance",
    "AttendanceStatus",
    "SYSTEM_MARKER",
]
