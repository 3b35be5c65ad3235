"""Evidence and gap data models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .scope import new_id, utcnow


class GapSeverity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class GapStatus(str, Enum):
    IDENTIFIED = "Identified"
    IN_REVIEW = "InReview"
    CONFIRMED = "Confirmed"
    REMEDIATED = "Remediated"
    CLOSED = "Closed"


class Evidence(BaseModel):
    id: str = Field(default_factory=new_id)
    boundary_control_id: str
    title: str
    description: Optional[str] = None
    file_ref: Optional[str] = None
    uploaded_by: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Gap(BaseModel):
    id: str = Field(default_factory=new_id)
    boundary_control_id: str
    title: Optional[str] = None
    description: str
    severity: GapSeverity = GapSeverity.MEDIUM
    status: GapStatus = GapStatus.IDENTIFIED
    identified_by: str
    identified_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        return self.status not in (GapStatus.REMEDIATED, GapStatus.CLOSED)
