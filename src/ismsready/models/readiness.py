"""Readiness view data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ProjectStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    ON_HOLD = "OnHold"


class ModuleScores(BaseModel):
    boundary: float = 0.0
    stakeholder: float = 0.0
    soa: float = 0.0
    questionnaire: float = 0.0
    remediation: float = 0.0


class ReadinessView(BaseModel):
    project_id: str
    status: ProjectStatus
    completion_percentage: int
    module_scores: ModuleScores


class ProjectStats(BaseModel):
    total: int = 0
    not_started: int = 0
    in_progress: int = 0
    completed: int = 0
    on_hold: int = 0
