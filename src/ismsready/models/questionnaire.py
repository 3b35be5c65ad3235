"""Readiness questionnaire data models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .scope import new_id


ANSWER_STATUSES = (
    "Compliant",
    "Non-Compliant",
    "Partially Compliant",
    "Not Applicable",
    "Not Answered",
)


class Question(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str
    domain: Optional[str] = None


class Answer(BaseModel):
    project_id: str
    question_id: str
    answer_status: Optional[str] = None
    answered_by: Optional[str] = None
    answered_at: Optional[datetime] = None
    evidence_notes: Optional[str] = None
