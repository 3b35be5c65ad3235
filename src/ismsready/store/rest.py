"""PostgREST (Supabase-style) HTTP store.

Table layout mirrors the model field names: projects, boundaries,
stakeholders, objectives, controls, boundary_controls, evidence, gaps,
questionnaire_questions, project_questionnaire_answers.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import httpx

from ..core.errors import (
    BackendUnavailable,
    ConcurrentModificationError,
    IsmsError,
    NotFoundError,
    ValidationError,
)
from ..models.catalog import Control
from ..models.ledger import Evidence, Gap, GapStatus
from ..models.matrix import ApplicabilityCell
from ..models.questionnaire import Answer, Question
from ..models.scope import Boundary, Objective, Project, Stakeholder, utcnow
from ..utils.sanitize import sanitize_error
from .base import BaseStore

logger = logging.getLogger(__name__)

RETURN_ROWS = "return=representation"
UPSERT = "resolution=merge-duplicates,return=representation"


class RestStore(BaseStore):
    name = "rest"

    def __init__(self, store_config: dict, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(store_config)
        self.endpoint = (store_config.get("endpoint") or "").rstrip("/")
        self.schema = store_config.get("schema", "public")
        self._transport = transport

    def _get_api_key(self) -> Optional[str]:
        env_var = self.config.get("api_key_env", "ISMS_REST_API_KEY")
        return self.config.get("api_key") or os.environ.get(env_var)

    def _headers(self, prefer: Optional[str] = None) -> dict:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Accept-Profile": self.schema,
            "Content-Profile": self.schema,
        }
        api_key = self._get_api_key()
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        prefer: Optional[str] = None,
    ) -> list[dict]:
        if not self.endpoint:
            raise BackendUnavailable("REST store endpoint is not configured", backend=self.name)

        url = f"{self.endpoint}/rest/v1/{table}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=self._headers(prefer)
                )
                response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out after %ss", method, table, self.timeout)
            raise BackendUnavailable(
                f"{method} {table} timed out after {self.timeout}s", backend=self.name
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = sanitize_error(e.response.text)
            logger.warning("%s %s failed: %s", method, table, status)
            if status >= 500:
                raise BackendUnavailable(f"{status} | {body}", backend=self.name) from e
            if status in (400, 422):
                raise ValidationError(f"{table} rejected the request: {status} | {body}") from e
            if status == 404:
                raise NotFoundError("table", table) from e
            raise IsmsError(f"{method} {table} failed: {status} | {body}") from e
        except httpx.TransportError as e:
            logger.warning("%s %s transport error", method, table)
            raise BackendUnavailable(sanitize_error(str(e)) or "transport error", backend=self.name) from e

        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def _get_one(self, table: str, record_id: str) -> Optional[dict]:
        rows = await self._request("GET", table, params={"id": f"eq.{record_id}", "limit": "1"})
        return rows[0] if rows else None

    async def _patch_one(self, table: str, entity: str, record_id: str, changes: dict) -> dict:
        rows = await self._request(
            "PATCH", table, params={"id": f"eq.{record_id}"}, json=changes, prefer=RETURN_ROWS
        )
        if not rows:
            raise NotFoundError(entity, record_id)
        return rows[0]

    @staticmethod
    def _json(changes: dict) -> dict:
        return {
            k: (v.value if hasattr(v, "value") else v.isoformat() if hasattr(v, "isoformat") else v)
            for k, v in changes.items()
        }

    # -- reference data ----------------------------------------------------

    async def list_controls(self) -> list[Control]:
        rows = await self._request("GET", "controls", params={"order": "reference.asc"})
        return [Control.model_validate(r) for r in rows]

    async def get_control(self, control_id: str) -> Optional[Control]:
        row = await self._get_one("controls", control_id)
        return Control.model_validate(row) if row else None

    # -- projects and scope ------------------------------------------------

    async def create_project(self, project: Project) -> Project:
        rows = await self._request(
            "POST", "projects", json=project.model_dump(mode="json"), prefer=RETURN_ROWS
        )
        return Project.model_validate(rows[0])

    async def get_project(self, project_id: str) -> Optional[Project]:
        row = await self._get_one("projects", project_id)
        return Project.model_validate(row) if row else None

    async def list_projects(self, owner_id: str) -> list[Project]:
        rows = await self._request(
            "GET", "projects", params={"owner_id": f"eq.{owner_id}", "order": "created_at.desc"}
        )
        return [Project.model_validate(r) for r in rows]

    async def set_project_hold(self, project_id: str, on_hold: bool) -> Project:
        row = await self._patch_one("projects", "project", project_id, {"on_hold": on_hold})
        return Project.model_validate(row)

    async def create_boundary(self, boundary: Boundary) -> Boundary:
        rows = await self._request(
            "POST", "boundaries", json=boundary.model_dump(mode="json"), prefer=RETURN_ROWS
        )
        return Boundary.model_validate(rows[0])

    async def get_boundary(self, boundary_id: str) -> Optional[Boundary]:
        row = await self._get_one("boundaries", boundary_id)
        return Boundary.model_validate(row) if row else None

    async def list_boundaries(self, project_id: str) -> list[Boundary]:
        rows = await self._request(
            "GET", "boundaries", params={"project_id": f"eq.{project_id}", "order": "created_at.asc"}
        )
        return [Boundary.model_validate(r) for r in rows]

    async def update_boundary(self, boundary_id: str, changes: dict) -> Boundary:
        row = await self._patch_one("boundaries", "boundary", boundary_id, self._json(changes))
        return Boundary.model_validate(row)

    async def delete_boundary(self, boundary_id: str) -> None:
        rows = await self._request(
            "DELETE", "boundaries", params={"id": f"eq.{boundary_id}"}, prefer=RETURN_ROWS
        )
        if not rows:
            raise NotFoundError("boundary", boundary_id)

    async def create_stakeholder(self, stakeholder: Stakeholder) -> Stakeholder:
        rows = await self._request(
            "POST", "stakeholders", json=stakeholder.model_dump(mode="json"), prefer=RETURN_ROWS
        )
        return Stakeholder.model_validate(rows[0])

    async def list_stakeholders(self, project_id: str) -> list[Stakeholder]:
        rows = await self._request(
            "GET", "stakeholders", params={"project_id": f"eq.{project_id}", "order": "created_at.asc"}
        )
        return [Stakeholder.model_validate(r) for r in rows]

    # -- objectives --------------------------------------------------------

    async def create_objective(self, objective: Objective) -> Objective:
        rows = await self._request(
            "POST", "objectives", json=objective.model_dump(mode="json"), prefer=RETURN_ROWS
        )
        return Objective.model_validate(rows[0])

    async def get_objective(self, objective_id: str) -> Optional[Objective]:
        row = await self._get_one("objectives", objective_id)
        return Objective.model_validate(row) if row else None

    async def list_objectives(self, project_id: str) -> list[Objective]:
        rows = await self._request(
            "GET",
            "objectives",
            params={"project_id": f"eq.{project_id}", "order": "order.asc,created_at.desc"},
        )
        return [Objective.model_validate(r) for r in rows]

    async def update_objective(self, objective_id: str, changes: dict) -> Objective:
        row = await self._patch_one("objectives", "objective", objective_id, self._json(changes))
        return Objective.model_validate(row)

    async def delete_objective(self, objective_id: str) -> None:
        rows = await self._request(
            "DELETE", "objectives", params={"id": f"eq.{objective_id}"}, prefer=RETURN_ROWS
        )
        if not rows:
            raise NotFoundError("objective", objective_id)

    # -- applicability cells -----------------------------------------------

    async def upsert_cell(self, cell: ApplicabilityCell) -> ApplicabilityCell:
        """Upsert on the (boundary_id, control_id) unique key.

        id and created_at are left out of the payload so an existing row keeps
        its identity; the database assigns them for new rows.
        """
        payload = cell.model_dump(mode="json", exclude={"id", "created_at"})
        payload["updated_at"] = utcnow().isoformat()
        rows = await self._request(
            "POST",
            "boundary_controls",
            params={"on_conflict": "boundary_id,control_id"},
            json=payload,
            prefer=UPSERT,
        )
        return ApplicabilityCell.model_validate(rows[0])

    async def get_cell(self, cell_id: str) -> Optional[ApplicabilityCell]:
        row = await self._get_one("boundary_controls", cell_id)
        return ApplicabilityCell.model_validate(row) if row else None

    async def find_cell(self, boundary_id: str, control_id: str) -> Optional[ApplicabilityCell]:
        rows = await self._request(
            "GET",
            "boundary_controls",
            params={"boundary_id": f"eq.{boundary_id}", "control_id": f"eq.{control_id}", "limit": "1"},
        )
        return ApplicabilityCell.model_validate(rows[0]) if rows else None

    async def update_cell(self, cell_id: str, changes: dict) -> ApplicabilityCell:
        payload = self._json({**changes, "updated_at": utcnow()})
        row = await self._patch_one("boundary_controls", "cell", cell_id, payload)
        return ApplicabilityCell.model_validate(row)

    async def list_cells(self, project_id: str) -> list[ApplicabilityCell]:
        boundaries = await self.list_boundaries(project_id)
        if not boundaries:
            return []
        ids = ",".join(b.id for b in boundaries)
        rows = await self._request(
            "GET", "boundary_controls", params={"boundary_id": f"in.({ids})", "order": "created_at.asc"}
        )
        return [ApplicabilityCell.model_validate(r) for r in rows]

    async def list_cells_for_boundary(self, boundary_id: str) -> list[ApplicabilityCell]:
        rows = await self._request(
            "GET", "boundary_controls", params={"boundary_id": f"eq.{boundary_id}", "order": "created_at.asc"}
        )
        return [ApplicabilityCell.model_validate(r) for r in rows]

    # -- evidence and gaps -------------------------------------------------

    async def add_evidence(self, evidence: Evidence) -> Evidence:
        rows = await self._request(
            "POST", "evidence", json=evidence.model_dump(mode="json"), prefer=RETURN_ROWS
        )
        return Evidence.model_validate(rows[0])

    async def list_evidence(self, boundary_control_id: str) -> list[Evidence]:
        rows = await self._request(
            "GET",
            "evidence",
            params={"boundary_control_id": f"eq.{boundary_control_id}", "order": "created_at.asc,id.asc"},
        )
        return [Evidence.model_validate(r) for r in rows]

    async def delete_evidence(self, evidence_id: str) -> None:
        rows = await self._request(
            "DELETE", "evidence", params={"id": f"eq.{evidence_id}"}, prefer=RETURN_ROWS
        )
        if not rows:
            raise NotFoundError("evidence", evidence_id)

    async def add_gap(self, gap: Gap) -> Gap:
        rows = await self._request("POST", "gaps", json=gap.model_dump(mode="json"), prefer=RETURN_ROWS)
        return Gap.model_validate(rows[0])

    async def get_gap(self, gap_id: str) -> Optional[Gap]:
        row = await self._get_one("gaps", gap_id)
        return Gap.model_validate(row) if row else None

    async def list_gaps(self, boundary_control_id: str) -> list[Gap]:
        rows = await self._request(
            "GET",
            "gaps",
            params={"boundary_control_id": f"eq.{boundary_control_id}", "order": "identified_at.asc,id.asc"},
        )
        return [Gap.model_validate(r) for r in rows]

    async def update_gap(self, gap_id: str, changes: dict) -> Gap:
        changes = {k: v for k, v in changes.items() if k != "status"}
        payload = self._json({**changes, "updated_at": utcnow()})
        row = await self._patch_one("gaps", "gap", gap_id, payload)
        return Gap.model_validate(row)

    async def compare_and_set_gap_status(
        self, gap_id: str, expected: GapStatus, new: GapStatus
    ) -> Gap:
        """Conditional PATCH: only rows still in the expected status are updated."""
        rows = await self._request(
            "PATCH",
            "gaps",
            params={"id": f"eq.{gap_id}", "status": f"eq.{expected.value}"},
            json={"status": new.value, "updated_at": utcnow().isoformat()},
            prefer=RETURN_ROWS,
        )
        if rows:
            return Gap.model_validate(rows[0])

        current = await self.get_gap(gap_id)
        if current is None:
            raise NotFoundError("gap", gap_id)
        raise ConcurrentModificationError(gap_id, expected.value, current.status.value)

    # -- questionnaire -----------------------------------------------------

    async def add_question(self, question: Question) -> Question:
        rows = await self._request(
            "POST", "questionnaire_questions", json=question.model_dump(mode="json"), prefer=RETURN_ROWS
        )
        return Question.model_validate(rows[0])

    async def list_questions(self) -> list[Question]:
        rows = await self._request("GET", "questionnaire_questions", params={"order": "domain.asc"})
        return [Question.model_validate(r) for r in rows]

    async def list_answers(self, project_id: str) -> list[Answer]:
        rows = await self._request(
            "GET", "project_questionnaire_answers", params={"project_id": f"eq.{project_id}"}
        )
        return [Answer.model_validate(r) for r in rows]

    async def save_answer(self, answer: Answer) -> Answer:
        rows = await self._request(
            "POST",
            "project_questionnaire_answers",
            params={"on_conflict": "project_id,question_id"},
            json=answer.model_dump(mode="json"),
            prefer=UPSERT,
        )
        return Answer.model_validate(rows[0])
