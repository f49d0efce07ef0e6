"""Schemas for projects"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    company: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    skill_requirement: List[str] = Field(..., min_length=1)
    estimated_time_to_complete: str = Field(..., min_length=2, max_length=100)


class ProjectSummary(BaseModel):
    id: int
    name: str
    company: str
    is_approved: bool

    class Config:
        from_attributes = True


class ProjectResponse(ProjectSummary):
    description: str
    skill_requirement: List[str]
    estimated_time_to_complete: Optional[str]
    suggested_by: Optional[str]
    approved_by_id: Optional[int]
    approved_at: Optional[datetime]
    created_at: datetime
