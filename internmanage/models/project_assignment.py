"""
Project Assignment Model

One assignment per project. It owns the assigned rosters (mentors, interns,
panelists) as ``AssignmentMember`` rows and the volunteer rosters as
``VolunteerRequest`` rows.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from internmanage.database import Base


class RoleKind(str, enum.Enum):
    MENTOR = "developer"
    INTERN = "intern"
    PANELIST = "panelist"


class VolunteerStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return not VOLUNTEER_TRANSITIONS[self]

    def can_transition_to(self, target: "VolunteerStatus") -> bool:
        return target in VOLUNTEER_TRANSITIONS[self]


VOLUNTEER_TRANSITIONS = {
    VolunteerStatus.PENDING: frozenset({VolunteerStatus.APPROVED, VolunteerStatus.REJECTED}),
    VolunteerStatus.APPROVED: frozenset(),
    VolunteerStatus.REJECTED: frozenset(),
}


class ProjectAssignment(Base):
    __tablename__ = "project_assignments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), unique=True, nullable=False)
    company = Column(String(255), nullable=False, index=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="assignment")
    members = relationship(
        "AssignmentMember",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AssignmentMember.id",
    )
    volunteers = relationship(
        "VolunteerRequest",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="VolunteerRequest.id",
    )

    # Every roster write bumps version_id, so two writers racing on the same
    # assignment cannot both commit.
    __mapper_args__ = {"version_id_col": version_id}

    def roster(self, role: RoleKind):
        return [member for member in self.members if member.role == role]

    def volunteer_roster(self, role: RoleKind):
        return [request for request in self.volunteers if request.role == role]

    def find_member(self, user_id: int, role: RoleKind):
        return next((m for m in self.members if m.user_id == user_id and m.role == role), None)

    def find_volunteer(self, user_id: int, role: RoleKind):
        return next((v for v in self.volunteers if v.user_id == user_id and v.role == role), None)

    @property
    def assigned_developers(self):
        return self.roster(RoleKind.MENTOR)

    @property
    def assigned_interns(self):
        return self.roster(RoleKind.INTERN)

    @property
    def panelists(self):
        return self.roster(RoleKind.PANELIST)

    @property
    def volunteer_developers(self):
        return self.volunteer_roster(RoleKind.MENTOR)

    @property
    def volunteer_interns(self):
        return self.volunteer_roster(RoleKind.INTERN)

    @property
    def volunteer_panelists(self):
        return self.volunteer_roster(RoleKind.PANELIST)
