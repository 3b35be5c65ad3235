"""Persistence collaborator abstraction.

The engine reads and writes through a ComplianceStore. Reads return empty
lists (never None) when nothing exists; single-record lookups return None
on a miss and leave the NotFoundError decision to the caller.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from ..core.errors import ValidationError
from ..models.catalog import Control
from ..models.ledger import Evidence, Gap, GapStatus
from ..models.matrix import ApplicabilityCell
from ..models.questionnaire import Answer, Question
from ..models.scope import Boundary, Objective, Project, Stakeholder


@runtime_checkable
class ComplianceStore(Protocol):
    """Protocol that all persistence backends must implement."""

    name: str

    # Reference data
    async def list_controls(self) -> list[Control]: ...
    async def get_control(self, control_id: str) -> Optional[Control]: ...

    # Projects and scope
    async def create_project(self, project: Project) -> Project: ...
    async def get_project(self, project_id: str) -> Optional[Project]: ...
    async def list_projects(self, owner_id: str) -> list[Project]: ...
    async def set_project_hold(self, project_id: str, on_hold: bool) -> Project: ...
    async def create_boundary(self, boundary: Boundary) -> Boundary: ...
    async def get_boundary(self, boundary_id: str) -> Optional[Boundary]: ...
    async def list_boundaries(self, project_id: str) -> list[Boundary]: ...
    async def update_boundary(self, boundary_id: str, changes: dict) -> Boundary: ...
    async def delete_boundary(self, boundary_id: str) -> None: ...
    async def create_stakeholder(self, stakeholder: Stakeholder) -> Stakeholder: ...
    async def list_stakeholders(self, project_id: str) -> list[Stakeholder]: ...

    # Objectives
    async def create_objective(self, objective: Objective) -> Objective: ...
    async def get_objective(self, objective_id: str) -> Optional[Objective]: ...
    async def list_objectives(self, project_id: str) -> list[Objective]: ...
    async def update_objective(self, objective_id: str, changes: dict) -> Objective: ...
    async def delete_objective(self, objective_id: str) -> None: ...

    # Applicability cells
    async def upsert_cell(self, cell: ApplicabilityCell) -> ApplicabilityCell: ...
    async def get_cell(self, cell_id: str) -> Optional[ApplicabilityCell]: ...
    async def find_cell(self, boundary_id: str, control_id: str) -> Optional[ApplicabilityCell]: ...
    async def update_cell(self, cell_id: str, changes: dict) -> ApplicabilityCell: ...
    async def list_cells(self, project_id: str) -> list[ApplicabilityCell]: ...
    async def list_cells_for_boundary(self, boundary_id: str) -> list[ApplicabilityCell]: ...

    # Evidence and gaps
    async def add_evidence(self, evidence: Evidence) -> Evidence: ...
    async def list_evidence(self, boundary_control_id: str) -> list[Evidence]: ...
    async def delete_evidence(self, evidence_id: str) -> None: ...
    async def add_gap(self, gap: Gap) -> Gap: ...
    async def get_gap(self, gap_id: str) -> Optional[Gap]: ...
    async def list_gaps(self, boundary_control_id: str) -> list[Gap]: ...
    async def update_gap(self, gap_id: str, changes: dict) -> Gap: ...
    async def compare_and_set_gap_status(
        self, gap_id: str, expected: GapStatus, new: GapStatus
    ) -> Gap: ...

    # Questionnaire
    async def add_question(self, question: Question) -> Question: ...
    async def list_questions(self) -> list[Question]: ...
    async def list_answers(self, project_id: str) -> list[Answer]: ...
    async def save_answer(self, answer: Answer) -> Answer: ...
    async def questionnaire_completion(self, project_id: str) -> float: ...


class BaseStore:
    """Shared behaviour for backends: config handling and derived reads."""

    name: str = "base"

    def __init__(self, store_config: Optional[dict] = None):
        self.config = store_config or {}
        self.timeout = float(self.config.get("timeout_seconds", 10))

    async def list_questions(self) -> list[Question]:
        raise NotImplementedError

    async def list_answers(self, project_id: str) -> list[Answer]:
        raise NotImplementedError

    async def questionnaire_completion(self, project_id: str) -> float:
        """Fraction of questions answered for the project, in [0, 1]."""
        from ..core.questionnaire import completion_fraction

        questions = await self.list_questions()
        answers = await self.list_answers(project_id)
        return completion_fraction(questions, answers)


def get_store(
    config: dict,
    backend_override: Optional[str] = None,
    controls: Optional[list[Control]] = None,
) -> BaseStore:
    """Factory function to create the configured persistence backend.

    File and memory backends take their controls from the catalog and their
    questions from the bundled questionnaire; the REST backend reads both
    from its own tables.
    """
    store_config = dict(config.get("store", {}))
    backend = backend_override or store_config.get("backend", "yaml")

    # Common config (store section minus backend sub-configs)
    common = {k: v for k, v in store_config.items() if k not in ("yaml", "rest")}

    questions = None
    if backend in ("memory", "yaml"):
        from ..catalog.loader import load_bundled_questions, load_catalog_controls
        if controls is None:
            controls = load_catalog_controls(config)
        questions = load_bundled_questions()

    if backend == "memory":
        from .memory import MemoryStore
        return MemoryStore(controls=controls, store_config=common, questions=questions)
    elif backend == "yaml":
        from .yaml_store import YamlStore
        path = (store_config.get("yaml") or {}).get("path", ".isms/state.yaml")
        return YamlStore(path, controls=controls, store_config=common, questions=questions)
    elif backend == "rest":
        from .rest import RestStore
        return RestStore({**common, **(store_config.get("rest") or {})})
    else:
        raise ValidationError(f"Unknown store backend: {backend}", field="store.backend")
