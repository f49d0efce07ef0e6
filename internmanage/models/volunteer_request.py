"""
Volunteer Request Model
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from internmanage.database import Base
from internmanage.models.project_assignment import RoleKind, VolunteerStatus


class VolunteerRequest(Base):
    __tablename__ = "volunteer_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    assignment_id = Column(Integer, ForeignKey("project_assignments.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(SQLEnum(RoleKind), nullable=False)
    status = Column(SQLEnum(VolunteerStatus), default=VolunteerStatus.PENDING, nullable=False)
    requested_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    assignment = relationship("ProjectAssignment", back_populates="volunteers")
    user = relationship("User", foreign_keys=[user_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])

    # One request per user, project and role, whatever its status
    __table_args__ = (
        UniqueConstraint("assignment_id", "user_id", "role", name="unique_volunteer_request"),
    )
