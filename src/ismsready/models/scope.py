"""Project scope data models: projects, boundaries, stakeholders, objectives."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BoundaryType(str, Enum):
    DEPARTMENT = "Department"
    SYSTEM = "System"
    LOCATION = "Location"
    OTHER = "Other"


class Project(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    owner_id: str
    on_hold: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Boundary(BaseModel):
    id: str = Field(default_factory=new_id)
    project_id: str
    name: str
    type: BoundaryType = BoundaryType.OTHER
    included: bool = True
    notes: Optional[str] = None
    owner_id: str
    created_at: datetime = Field(default_factory=utcnow)


class Stakeholder(BaseModel):
    id: str = Field(default_factory=new_id)
    project_id: str
    name: str
    role: Optional[str] = None
    email: Optional[str] = None
    responsibilities: Optional[str] = None
    owner_id: str
    created_at: datetime = Field(default_factory=utcnow)


class ObjectivePriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Objective(BaseModel):
    """ISMS objective; ``order`` is its 1-based position in the project's list."""

    id: str = Field(default_factory=new_id)
    project_id: str
    statement: str
    priority: ObjectivePriority = ObjectivePriority.MEDIUM
    order: int = 1
    owner_id: str
    created_at: datetime = Field(default_factory=utcnow)
