"""Statement-of-Applicability data models."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .scope import new_id, utcnow


class ComplianceStatus(str, Enum):
    COMPLIANT = "Compliant"
    PARTIALLY_COMPLIANT = "PartiallyCompliant"
    NON_COMPLIANT = "NonCompliant"
    NOT_ASSESSED = "NotAssessed"


class ApplicabilityCell(BaseModel):
    """The recorded decision for one (boundary, control) pair."""

    id: str = Field(default_factory=new_id)
    boundary_id: str
    control_id: str
    is_applicable: bool
    reason_inclusion: Optional[str] = None
    reason_exclusion: Optional[str] = None
    implementation_status: Optional[str] = None
    compliance_status: Optional[ComplianceStatus] = None
    assessment_date: Optional[date] = None
    assessment_notes: Optional[str] = None
    owner_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str]:
        return (self.boundary_id, self.control_id)


class MatrixRow(BaseModel):
    """One grid position; cells that were never decided have is_applicable=None."""

    boundary_id: str
    boundary_name: str = ""
    control_id: str
    reference: str
    description: str = ""
    domain: str
    cell_id: Optional[str] = None
    is_applicable: Optional[bool] = None
    compliance_status: ComplianceStatus = ComplianceStatus.NOT_ASSESSED
    open_gap_count: int = 0
    evidence_count: int = 0


class DomainSummary(BaseModel):
    """Decision and compliance counts for one control domain."""

    name: str
    total: int
    decided: int
    applicable: int
    compliant: int
    coverage: float
