"""Readiness aggregator.

Derives a project's status and completion percentage from five equally
weighted module scores:

- boundary: at least one boundary exists
- stakeholder: at least one stakeholder exists
- soa: decided cells / (in-scope boundaries x catalog controls)
- questionnaire: fraction answered, supplied by the questionnaire collaborator
- remediation: (remediated + closed gaps) / all gaps; with no gaps, 1.0 once
  any applicability decision exists and 0.0 before that

Nothing is cached or persisted; every call reads current state.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional

from ..models.ledger import Gap, GapStatus
from ..models.readiness import ModuleScores, ProjectStats, ProjectStatus, ReadinessView
from ..models.scope import Project
from ..store.base import ComplianceStore
from .errors import AggregationError, NotFoundError

logger = logging.getLogger(__name__)

RESOLVED_GAP_STATES = (GapStatus.REMEDIATED, GapStatus.CLOSED)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _remediation(decided_cells: int, resolved_gaps: int, total_gaps: int) -> float:
    if total_gaps > 0:
        return _clamp(resolved_gaps / total_gaps)
    # No findings only counts once something has actually been assessed
    return 1.0 if decided_cells > 0 else 0.0


def compute_module_scores(
    boundary_count: int,
    stakeholder_count: int,
    decided_cells: int,
    control_count: int,
    questionnaire: float,
    resolved_gaps: int,
    total_gaps: int,
    in_scope_boundaries: Optional[int] = None,
) -> ModuleScores:
    """Module scores in [0, 1].

    ``boundary`` only asks whether any boundary exists; the SoA denominator
    counts in-scope boundaries, which default to all of them.
    """
    if in_scope_boundaries is None:
        in_scope_boundaries = boundary_count
    denominator = in_scope_boundaries * control_count
    return ModuleScores(
        boundary=1.0 if boundary_count > 0 else 0.0,
        stakeholder=1.0 if stakeholder_count > 0 else 0.0,
        soa=_clamp(decided_cells / denominator) if denominator > 0 else 0.0,
        questionnaire=_clamp(questionnaire),
        remediation=_remediation(decided_cells, resolved_gaps, total_gaps),
    )


def compute_completion(scores: ModuleScores) -> int:
    """Equal-weight mean of the module scores as a 0-100 integer, halves rounded up."""
    values = [
        scores.boundary,
        scores.stakeholder,
        scores.soa,
        scores.questionnaire,
        scores.remediation,
    ]
    mean = sum(values) / len(values)
    # epsilon absorbs float noise such as 0.1 * 5 / 5 * 100 == 10.000000000000002
    percentage = math.floor(100 * mean + 0.5 + 1e-9)
    return max(0, min(100, percentage))


def derive_status(completion_percentage: int, on_hold: bool = False) -> ProjectStatus:
    """First match wins: 0 -> NotStarted, 100 -> Completed, hold flag -> OnHold."""
    if completion_percentage == 0:
        return ProjectStatus.NOT_STARTED
    if completion_percentage == 100:
        return ProjectStatus.COMPLETED
    if on_hold:
        return ProjectStatus.ON_HOLD
    return ProjectStatus.IN_PROGRESS


class ReadinessAggregator:
    def __init__(self, store: ComplianceStore):
        self.store = store

    async def readiness(self, project_id: str) -> ReadinessView:
        try:
            project = await self.store.get_project(project_id)
        except Exception as e:
            raise AggregationError(project_id, f"Could not load project {project_id}: {e}") from e
        if project is None:
            raise NotFoundError("project", project_id)
        return await self._compute(project)

    async def _compute(self, project: Project) -> ReadinessView:
        project_id = project.id
        try:
            boundaries, stakeholders, controls, cells, questionnaire = await asyncio.gather(
                self.store.list_boundaries(project_id),
                self.store.list_stakeholders(project_id),
                self.store.list_controls(),
                self.store.list_cells(project_id),
                self.store.questionnaire_completion(project_id),
            )
            in_scope = {b.id for b in boundaries if b.included}
            control_ids = {c.id for c in controls}
            # soa and remediation both look only at in-scope cells for catalog controls
            counted = [
                cell for cell in cells
                if cell.boundary_id in in_scope and cell.control_id in control_ids
            ]
            gap_lists: list[list[Gap]] = await asyncio.gather(
                *(self.store.list_gaps(cell.id) for cell in counted)
            )
        except Exception as e:
            logger.warning("Readiness inputs for %s failed to load: %s", project_id, e)
            raise AggregationError(
                project_id, f"Readiness inputs for project {project_id} failed to load: {e}"
            ) from e

        if questionnaire is None or not isinstance(questionnaire, (int, float)) or math.isnan(questionnaire):
            raise AggregationError(
                project_id, f"Questionnaire completion for {project_id} is not a number: {questionnaire!r}"
            )

        gaps = [gap for gap_list in gap_lists for gap in gap_list]
        resolved = sum(1 for gap in gaps if gap.status in RESOLVED_GAP_STATES)

        scores = compute_module_scores(
            boundary_count=len(boundaries),
            stakeholder_count=len(stakeholders),
            decided_cells=len(counted),
            control_count=len(control_ids),
            questionnaire=float(questionnaire),
            resolved_gaps=resolved,
            total_gaps=len(gaps),
            in_scope_boundaries=len(in_scope),
        )
        completion = compute_completion(scores)
        status = derive_status(completion, project.on_hold)
        logger.debug("Readiness %s: %d%% %s", project_id, completion, status.value)
        return ReadinessView(
            project_id=project_id,
            status=status,
            completion_percentage=completion,
            module_scores=scores,
        )

    async def project_stats(self, owner_id: str) -> ProjectStats:
        """Count the owner's projects by derived status."""
        try:
            projects = await self.store.list_projects(owner_id)
        except Exception as e:
            raise AggregationError("*", f"Could not list projects for {owner_id}: {e}") from e

        views = await asyncio.gather(*(self._compute(p) for p in projects))
        stats = ProjectStats(total=len(views))
        for view in views:
            if view.status == ProjectStatus.NOT_STARTED:
                stats.not_started += 1
            elif view.status == ProjectStatus.IN_PROGRESS:
                stats.in_progress += 1
            elif view.status == ProjectStatus.COMPLETED:
                stats.completed += 1
            elif view.status == ProjectStatus.ON_HOLD:
                stats.on_hold += 1
        return stats


def explain(view: ReadinessView) -> list[tuple[str, float, Optional[str]]]:
    """Module scores with a hint for each module that is holding the score back."""
    hints = {
        "boundary": "Add at least one boundary",
        "stakeholder": "Add at least one stakeholder",
        "soa": "Decide applicability for every boundary/control pair",
        "questionnaire": "Answer the remaining questionnaire items",
        "remediation": "Remediate or close open gaps",
    }
    scores = view.module_scores.model_dump()
    return [
        (module, scores[module], hints[module] if scores[module] < 1.0 else None)
        for module in hints
    ]
