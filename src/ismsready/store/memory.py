"""In-process store backed by dicts.

Every mutation runs inside ``_write()``: writes are serialised with an
asyncio.Lock and the tables are restored if the mutation or its commit
fails. Records are copied on the way in and out so a caller holding a
model never aliases persisted state.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, TypeVar

from pydantic import BaseModel

from ..core.errors import ConcurrentModificationError, NotFoundError
from ..models.catalog import Control
from ..models.ledger import Evidence, Gap, GapStatus
from ..models.matrix import ApplicabilityCell
from ..models.questionnaire import Answer, Question
from ..models.scope import Boundary, Objective, Project, Stakeholder, utcnow
from .base import BaseStore

M = TypeVar("M", bound=BaseModel)

TABLES = (
    "projects",
    "boundaries",
    "stakeholders",
    "objectives",
    "cells",
    "cell_index",
    "evidence",
    "gaps",
    "questions",
    "answers",
)


def _copy(record: M) -> M:
    return record.model_copy(deep=True)


def _apply(record: M, changes: dict) -> M:
    return type(record).model_validate({**record.model_dump(), **changes})


class MemoryStore(BaseStore):
    name = "memory"

    def __init__(
        self,
        controls: Optional[list[Control]] = None,
        store_config: Optional[dict] = None,
        questions: Optional[list[Question]] = None,
    ):
        super().__init__(store_config)
        self._lock = asyncio.Lock()
        self.controls: dict[str, Control] = {c.id: c for c in controls or []}
        self.projects: dict[str, Project] = {}
        self.boundaries: dict[str, Boundary] = {}
        self.stakeholders: dict[str, Stakeholder] = {}
        self.objectives: dict[str, Objective] = {}
        self.cells: dict[str, ApplicabilityCell] = {}
        self.cell_index: dict[tuple[str, str], str] = {}
        self.evidence: dict[str, Evidence] = {}
        self.gaps: dict[str, Gap] = {}
        self.questions: dict[str, Question] = {q.id: q for q in questions or []}
        self.answers: dict[tuple[str, str], Answer] = {}

    async def _refresh(self) -> None:
        """Hook run inside the write lock before a mutation reads state."""

    async def _committed(self) -> None:
        """Hook run inside the write lock after every mutation."""

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[None]:
        async with self._lock:
            await self._refresh()
            # Records are replaced, never mutated in place, so shallow copies suffice
            saved = {table: dict(getattr(self, table)) for table in TABLES}
            try:
                yield
                await self._committed()
            except BaseException:
                for table, rows in saved.items():
                    setattr(self, table, rows)
                raise

    # -- reference data ----------------------------------------------------

    async def list_controls(self) -> list[Control]:
        return list(self.controls.values())

    async def get_control(self, control_id: str) -> Optional[Control]:
        return self.controls.get(control_id)

    # -- projects and scope ------------------------------------------------

    async def create_project(self, project: Project) -> Project:
        async with self._write():
            self.projects[project.id] = _copy(project)
        return _copy(project)

    async def get_project(self, project_id: str) -> Optional[Project]:
        project = self.projects.get(project_id)
        return _copy(project) if project else None

    async def list_projects(self, owner_id: str) -> list[Project]:
        return [_copy(p) for p in self.projects.values() if p.owner_id == owner_id]

    async def set_project_hold(self, project_id: str, on_hold: bool) -> Project:
        async with self._write():
            project = self.projects.get(project_id)
            if project is None:
                raise NotFoundError("project", project_id)
            updated = _apply(project, {"on_hold": on_hold})
            self.projects[project_id] = updated
        return _copy(updated)

    async def create_boundary(self, boundary: Boundary) -> Boundary:
        async with self._write():
            self.boundaries[boundary.id] = _copy(boundary)
        return _copy(boundary)

    async def get_boundary(self, boundary_id: str) -> Optional[Boundary]:
        boundary = self.boundaries.get(boundary_id)
        return _copy(boundary) if boundary else None

    async def list_boundaries(self, project_id: str) -> list[Boundary]:
        return [_copy(b) for b in self.boundaries.values() if b.project_id == project_id]

    async def update_boundary(self, boundary_id: str, changes: dict) -> Boundary:
        async with self._write():
            boundary = self.boundaries.get(boundary_id)
            if boundary is None:
                raise NotFoundError("boundary", boundary_id)
            updated = _apply(boundary, changes)
            self.boundaries[boundary_id] = updated
        return _copy(updated)

    async def delete_boundary(self, boundary_id: str) -> None:
        async with self._write():
            if self.boundaries.pop(boundary_id, None) is None:
                raise NotFoundError("boundary", boundary_id)

    async def create_stakeholder(self, stakeholder: Stakeholder) -> Stakeholder:
        async with self._write():
            self.stakeholders[stakeholder.id] = _copy(stakeholder)
        return _copy(stakeholder)

    async def list_stakeholders(self, project_id: str) -> list[Stakeholder]:
        return [_copy(s) for s in self.stakeholders.values() if s.project_id == project_id]

    # -- objectives --------------------------------------------------------

    async def create_objective(self, objective: Objective) -> Objective:
        async with self._write():
            self.objectives[objective.id] = _copy(objective)
        return _copy(objective)

    async def get_objective(self, objective_id: str) -> Optional[Objective]:
        objective = self.objectives.get(objective_id)
        return _copy(objective) if objective else None

    async def list_objectives(self, project_id: str) -> list[Objective]:
        return [_copy(o) for o in self.objectives.values() if o.project_id == project_id]

    async def update_objective(self, objective_id: str, changes: dict) -> Objective:
        async with self._write():
            objective = self.objectives.get(objective_id)
            if objective is None:
                raise NotFoundError("objective", objective_id)
            updated = _apply(objective, changes)
            self.objectives[objective_id] = updated
        return _copy(updated)

    async def delete_objective(self, objective_id: str) -> None:
        async with self._write():
            if self.objectives.pop(objective_id, None) is None:
                raise NotFoundError("objective", objective_id)

    # -- applicability cells -----------------------------------------------

    async def upsert_cell(self, cell: ApplicabilityCell) -> ApplicabilityCell:
        """Insert or replace the cell for (boundary_id, control_id); last writer wins."""
        async with self._write():
            existing_id = self.cell_index.get(cell.key)
            if existing_id is not None:
                existing = self.cells[existing_id]
                stored = cell.model_copy(
                    update={
                        "id": existing.id,
                        "created_at": existing.created_at,
                        "updated_at": utcnow(),
                    },
                    deep=True,
                )
            else:
                stored = _copy(cell)
            self.cells[stored.id] = stored
            self.cell_index[stored.key] = stored.id
        return _copy(stored)

    async def get_cell(self, cell_id: str) -> Optional[ApplicabilityCell]:
        cell = self.cells.get(cell_id)
        return _copy(cell) if cell else None

    async def find_cell(self, boundary_id: str, control_id: str) -> Optional[ApplicabilityCell]:
        cell_id = self.cell_index.get((boundary_id, control_id))
        return await self.get_cell(cell_id) if cell_id else None

    async def update_cell(self, cell_id: str, changes: dict) -> ApplicabilityCell:
        async with self._write():
            cell = self.cells.get(cell_id)
            if cell is None:
                raise NotFoundError("cell", cell_id)
            updated = _apply(cell, {**changes, "updated_at": utcnow()})
            self.cells[cell_id] = updated
        return _copy(updated)

    async def list_cells(self, project_id: str) -> list[ApplicabilityCell]:
        boundary_ids = {b.id for b in self.boundaries.values() if b.project_id == project_id}
        return [_copy(c) for c in self.cells.values() if c.boundary_id in boundary_ids]

    async def list_cells_for_boundary(self, boundary_id: str) -> list[ApplicabilityCell]:
        return [_copy(c) for c in self.cells.values() if c.boundary_id == boundary_id]

    # -- evidence and gaps -------------------------------------------------

    async def add_evidence(self, evidence: Evidence) -> Evidence:
        async with self._write():
            self.evidence[evidence.id] = _copy(evidence)
        return _copy(evidence)

    async def list_evidence(self, boundary_control_id: str) -> list[Evidence]:
        return [
            _copy(e) for e in self.evidence.values()
            if e.boundary_control_id == boundary_control_id
        ]

    async def delete_evidence(self, evidence_id: str) -> None:
        async with self._write():
            if self.evidence.pop(evidence_id, None) is None:
                raise NotFoundError("evidence", evidence_id)

    async def add_gap(self, gap: Gap) -> Gap:
        async with self._write():
            self.gaps[gap.id] = _copy(gap)
        return _copy(gap)

    async def get_gap(self, gap_id: str) -> Optional[Gap]:
        gap = self.gaps.get(gap_id)
        return _copy(gap) if gap else None

    async def list_gaps(self, boundary_control_id: str) -> list[Gap]:
        return [
            _copy(g) for g in self.gaps.values()
            if g.boundary_control_id == boundary_control_id
        ]

    async def update_gap(self, gap_id: str, changes: dict) -> Gap:
        # Status moves only through compare_and_set_gap_status
        changes = {k: v for k, v in changes.items() if k != "status"}
        async with self._write():
            gap = self.gaps.get(gap_id)
            if gap is None:
                raise NotFoundError("gap", gap_id)
            updated = _apply(gap, {**changes, "updated_at": utcnow()})
            self.gaps[gap_id] = updated
        return _copy(updated)

    async def compare_and_set_gap_status(
        self, gap_id: str, expected: GapStatus, new: GapStatus
    ) -> Gap:
        async with self._write():
            gap = self.gaps.get(gap_id)
            if gap is None:
                raise NotFoundError("gap", gap_id)
            if gap.status != expected:
                raise ConcurrentModificationError(gap_id, expected.value, gap.status.value)
            updated = _apply(gap, {"status": new, "updated_at": utcnow()})
            self.gaps[gap_id] = updated
        return _copy(updated)

    # -- questionnaire -----------------------------------------------------

    async def add_question(self, question: Question) -> Question:
        async with self._write():
            self.questions[question.id] = _copy(question)
        return _copy(question)

    async def list_questions(self) -> list[Question]:
        return [_copy(q) for q in self.questions.values()]

    async def list_answers(self, project_id: str) -> list[Answer]:
        return [_copy(a) for a in self.answers.values() if a.project_id == project_id]

    async def save_answer(self, answer: Answer) -> Answer:
        async with self._write():
            self.answers[(answer.project_id, answer.question_id)] = _copy(answer)
        return _copy(answer)
