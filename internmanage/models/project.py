"""
Project Model
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from internmanage.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False)
    skill_requirement = Column(JSON, default=list, nullable=False)
    estimated_time_to_complete = Column(String(100), nullable=True)
    # E-mail of the developer who suggested the project, if any
    suggested_by = Column(String(255), nullable=True)
    is_approved = Column(Boolean, default=False, nullable=False)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    assignment = relationship("ProjectAssignment", back_populates="project", uselist=False)
