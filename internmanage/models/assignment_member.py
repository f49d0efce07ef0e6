"""
Assignment Member Model
"""
from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    Enum as SQLEnum,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from internmanage.database import Base
from internmanage.models.project_assignment import RoleKind

DEVELOPER_ROLES = (RoleKind.MENTOR, RoleKind.PANELIST)


class AssignmentMember(Base):
    __tablename__ = "assignment_members"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    assignment_id = Column(Integer, ForeignKey("project_assignments.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(SQLEnum(RoleKind), nullable=False)
    # Copy of user_id for mentor and panelist rows, NULL for interns
    developer_slot = Column(Integer, nullable=True)
    assigned_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    assignment = relationship("ProjectAssignment", back_populates="members")
    user = relationship("User", foreign_keys=[user_id])
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])

    __table_args__ = (
        UniqueConstraint("assignment_id", "user_id", "role", name="unique_assignment_member"),
        # A developer is either mentor or panelist on a given project, never both
        UniqueConstraint("assignment_id", "developer_slot", name="unique_assignment_developer"),
        # A developer mentors at most one project across the whole platform
        Index(
            "unique_platform_mentor",
            "user_id",
            unique=True,
            sqlite_where=text("role = 'MENTOR'"),
            postgresql_where=text("role = 'MENTOR'"),
        ),
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.role in DEVELOPER_ROLES:
            self.developer_slot = self.user_id
